from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from predictleague.api.deps import get_current_user
from predictleague.core.config import get_settings
from predictleague.core.errors import AuthorizationError, NotFoundError, StoreError
from predictleague.db.session import get_db
from predictleague.models import User
from predictleague.schemas.common import ActionOut
from predictleague.schemas.private_leagues import (
    LeagueMessageOut,
    PrivateLeagueCreate,
    PrivateLeagueDetailOut,
    PrivateLeagueJoin,
    PrivateLeagueMemberOut,
    PrivateLeagueOut,
)
from predictleague.services import private_leagues as league_service
from predictleague.services.action_log import log_action
from predictleague.services.chat import get_recent_league_messages

router = APIRouter(prefix="/private-leagues", tags=["private-leagues"])


def _league_out(summary: league_service.PrivateLeagueSummary) -> PrivateLeagueOut:
    league = summary.league
    return PrivateLeagueOut(
        id=league.id,
        name=league.name,
        description=league.description,
        creator_id=league.creator_id,
        creator_username=summary.creator_username,
        invite_code=league.invite_code,
        max_members=league.max_members,
        is_active=league.is_active,
        member_count=summary.member_count,
        role=summary.role,
        created_at=league.created_at,
    )


def _standings(db: Session, league_id: int) -> list[PrivateLeagueMemberOut]:
    return [
        PrivateLeagueMemberOut(
            user_id=standing.member.user_id,
            username=standing.username,
            role=standing.member.role,
            points=standing.member.points,
            rank=index,
            joined_at=standing.member.joined_at,
        )
        for index, standing in enumerate(league_service.get_league_members(db, league_id), start=1)
    ]


def _require_member(db: Session, league_id: int, user_id: int) -> league_service.PrivateLeagueSummary:
    summary = league_service.get_private_league_summary(db, league_id)
    if not summary:
        raise NotFoundError("private_league_not_found", "League not found")
    membership = league_service.get_membership(db, league_id, user_id)
    if not membership:
        raise AuthorizationError("not_a_member", "You are not a member of this league")
    summary.role = membership.role
    return summary


@router.get("", response_model=list[PrivateLeagueOut])
def my_private_leagues(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> list[PrivateLeagueOut]:
    return [_league_out(summary) for summary in league_service.list_user_private_leagues(db, user.id)]


@router.post("", response_model=PrivateLeagueOut, status_code=status.HTTP_201_CREATED)
def create_private_league(
    payload: PrivateLeagueCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> PrivateLeagueOut:
    league = league_service.create_private_league(
        db,
        name=payload.name,
        description=payload.description,
        creator_id=user.id,
        max_members=payload.max_members,
    )
    log_action(
        db,
        category="private_league",
        action="create",
        actor_user_id=user.id,
        details={"private_league_id": league.id, "name": league.name, "code": league.invite_code},
    )
    return _league_out(_require_member(db, league.id, user.id))


@router.post("/join", response_model=PrivateLeagueOut)
def join_private_league(
    payload: PrivateLeagueJoin,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> PrivateLeagueOut:
    league = league_service.join_private_league(db, payload.invite_code, user.id)
    log_action(
        db,
        category="private_league",
        action="join",
        actor_user_id=user.id,
        details={"private_league_id": league.id},
    )
    return _league_out(_require_member(db, league.id, user.id))


@router.get("/{league_id}", response_model=PrivateLeagueDetailOut)
def get_private_league(
    league_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> PrivateLeagueDetailOut:
    summary = _require_member(db, league_id, user.id)
    return PrivateLeagueDetailOut(league=_league_out(summary), members=_standings(db, league_id))


@router.get("/{league_id}/leaderboard", response_model=list[PrivateLeagueMemberOut])
def leaderboard(
    league_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> list[PrivateLeagueMemberOut]:
    _require_member(db, league_id, user.id)
    return _standings(db, league_id)


@router.get("/{league_id}/messages", response_model=list[LeagueMessageOut])
def league_messages(
    league_id: int,
    limit: int | None = Query(default=None, ge=1, le=200),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> list[LeagueMessageOut]:
    _require_member(db, league_id, user.id)
    return get_recent_league_messages(db, league_id, limit or get_settings().CHAT_HISTORY_LIMIT)


@router.post("/{league_id}/leave", response_model=ActionOut)
def leave_private_league(
    league_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> ActionOut:
    league_service.leave_private_league(db, league_id, user.id)
    log_action(
        db,
        category="private_league",
        action="leave",
        actor_user_id=user.id,
        details={"private_league_id": league_id},
    )
    return ActionOut(message="You left the league")


@router.delete("/{league_id}/members/{member_user_id}", response_model=ActionOut)
def kick_member(
    league_id: int,
    member_user_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> ActionOut:
    league_service.kick_member(db, league_id, user.id, member_user_id)
    log_action(
        db,
        category="private_league",
        action="kick",
        actor_user_id=user.id,
        target_user_id=member_user_id,
        details={"private_league_id": league_id},
    )
    return ActionOut(message="Member removed")


@router.delete("/{league_id}", response_model=ActionOut)
def delete_private_league(
    league_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> ActionOut:
    if not league_service.get_private_league(db, league_id):
        raise NotFoundError("private_league_not_found", "League not found")
    if not league_service.is_league_admin(db, league_id, user.id):
        raise AuthorizationError("not_league_admin", "Only league administrators can delete the league")
    if not league_service.delete_private_league(db, league_id):
        raise StoreError("private_league_delete_failed")
    log_action(
        db,
        category="private_league",
        action="delete",
        actor_user_id=user.id,
        details={"private_league_id": league_id},
    )
    return ActionOut(message="League deleted")
