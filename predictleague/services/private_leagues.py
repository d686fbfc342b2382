from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
import logging
import secrets
import string
from typing import DefaultDict, Dict, List, Mapping, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, aliased

from predictleague.core.config import get_settings
from predictleague.core.errors import (
    AuthorizationError,
    NotFoundError,
    StateConflictError,
    StoreError,
    ValidationError,
)
from predictleague.models import (
    MEMBER,
    MEMBER_ADMIN,
    LeagueMessage,
    PrivateLeague,
    PrivateLeagueMember,
    User,
)

logger = logging.getLogger(__name__)

INVITE_CODE_ALPHABET = string.ascii_uppercase + string.digits
INVITE_CODE_LENGTH = 6


@dataclass
class PrivateLeagueSummary:
    league: PrivateLeague
    creator_username: str
    member_count: int
    role: Optional[str] = None


@dataclass
class MemberStanding:
    member: PrivateLeagueMember
    username: str


def generate_invite_code(length: int = INVITE_CODE_LENGTH) -> str:
    return "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(length))


def normalize_invite_code(code: str | None) -> str:
    return (code or "").strip().upper()


def get_private_league(db: Session, league_id: int) -> PrivateLeague | None:
    return db.get(PrivateLeague, league_id)


def get_private_league_by_invite_code(db: Session, invite_code: str) -> PrivateLeague | None:
    code = normalize_invite_code(invite_code)
    return db.execute(
        select(PrivateLeague).where(PrivateLeague.invite_code == code)
    ).scalar_one_or_none()


def get_membership(db: Session, league_id: int, user_id: int) -> PrivateLeagueMember | None:
    return db.execute(
        select(PrivateLeagueMember).where(
            PrivateLeagueMember.private_league_id == league_id,
            PrivateLeagueMember.user_id == user_id,
        )
    ).scalar_one_or_none()


def is_member(db: Session, league_id: int, user_id: int) -> bool:
    return get_membership(db, league_id, user_id) is not None


def is_league_admin(db: Session, league_id: int, user_id: int) -> bool:
    membership = get_membership(db, league_id, user_id)
    return membership is not None and membership.role == MEMBER_ADMIN


def count_members(db: Session, league_id: int) -> int:
    return db.execute(
        select(func.count(PrivateLeagueMember.id)).where(
            PrivateLeagueMember.private_league_id == league_id
        )
    ).scalar_one()


def _allocate_invite_code(db: Session) -> str:
    attempts = get_settings().INVITE_CODE_ATTEMPTS
    for _ in range(attempts):
        code = generate_invite_code()
        taken = db.execute(
            select(PrivateLeague.id).where(PrivateLeague.invite_code == code)
        ).first()
        if not taken:
            return code
    logger.error("invite_code_exhausted attempts=%s", attempts)
    raise StoreError("invite_code_generation_failed")


def create_private_league(
    db: Session,
    *,
    name: str,
    creator_id: int,
    description: str | None = None,
    max_members: int | None = None,
) -> PrivateLeague:
    name = (name or "").strip()
    if not name:
        raise ValidationError("name_required", "A league name is required")
    if max_members is None:
        max_members = get_settings().PRIVATE_LEAGUE_MAX_MEMBERS
    if max_members < 1:
        raise ValidationError("max_members_invalid", "max_members must be at least 1")

    creator = db.get(User, creator_id)
    if not creator:
        raise NotFoundError("user_not_found", "User not found")

    league = PrivateLeague(
        name=name,
        description=(description or "").strip() or None,
        creator_id=creator.id,
        invite_code=_allocate_invite_code(db),
        max_members=max_members,
        is_active=True,
    )
    try:
        db.add(league)
        db.flush()
        db.add(
            PrivateLeagueMember(
                private_league_id=league.id,
                user_id=creator.id,
                role=MEMBER_ADMIN,
                points=creator.points or 0,
            )
        )
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.warning("private_league_create_conflict creator_id=%s detail=%s", creator_id, exc)
        raise StoreError("private_league_create_failed") from exc
    db.refresh(league)
    logger.info(
        "private_league_created league_id=%s creator_id=%s code=%s",
        league.id,
        creator.id,
        league.invite_code,
    )
    return league


def add_member(db: Session, league_id: int, user_id: int, role: str = MEMBER) -> bool:
    """Add ``user_id`` with league points seeded from the current global total.

    Returns False (never raises) for an unknown league or user, an existing
    membership, or a league at capacity.
    """
    league = db.get(PrivateLeague, league_id)
    if not league:
        return False
    if get_membership(db, league_id, user_id):
        return False
    if count_members(db, league_id) >= league.max_members:
        return False
    user = db.get(User, user_id)
    if not user:
        return False

    try:
        db.add(
            PrivateLeagueMember(
                private_league_id=league_id,
                user_id=user_id,
                role=role,
                points=user.points or 0,
            )
        )
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning("private_league_add_member_conflict league_id=%s user_id=%s", league_id, user_id)
        return False
    return True


def join_private_league(db: Session, invite_code: str, user_id: int) -> PrivateLeague:
    code = normalize_invite_code(invite_code)
    if not code:
        raise ValidationError("invite_code_required", "An invite code is required")

    league = get_private_league_by_invite_code(db, code)
    if not league:
        raise NotFoundError("invite_code_invalid", "Invalid invite code")
    if not league.is_active:
        raise StateConflictError("league_inactive", "This league is no longer active")
    if is_member(db, league.id, user_id):
        raise StateConflictError("already_member", "You are already a member of this league")
    if count_members(db, league.id) >= league.max_members:
        raise StateConflictError("league_full", "This league is full")

    if not add_member(db, league.id, user_id):
        raise StateConflictError("join_failed", "Could not join the league")
    logger.info("private_league_joined league_id=%s user_id=%s", league.id, user_id)
    return league


def remove_member(db: Session, league_id: int, user_id: int) -> bool:
    result = db.execute(
        delete(PrivateLeagueMember).where(
            PrivateLeagueMember.private_league_id == league_id,
            PrivateLeagueMember.user_id == user_id,
        )
    )
    db.commit()
    return result.rowcount > 0


def leave_private_league(db: Session, league_id: int, user_id: int) -> None:
    league = get_private_league(db, league_id)
    if not league:
        raise NotFoundError("private_league_not_found", "League not found")
    if league.creator_id == user_id:
        raise StateConflictError("creator_cannot_leave", "The creator cannot leave the league")
    if not remove_member(db, league_id, user_id):
        raise NotFoundError("not_a_member", "You are not a member of this league")


def kick_member(db: Session, league_id: int, actor_id: int, target_user_id: int) -> None:
    league = get_private_league(db, league_id)
    if not league:
        raise NotFoundError("private_league_not_found", "League not found")
    if not is_league_admin(db, league_id, actor_id):
        raise AuthorizationError("not_league_admin", "Only league administrators can remove members")
    if target_user_id == league.creator_id:
        raise StateConflictError("creator_cannot_be_removed", "The creator cannot be removed")
    if not remove_member(db, league_id, target_user_id):
        raise NotFoundError("member_not_found", "Member not found")


def delete_private_league(db: Session, league_id: int) -> bool:
    """Delete chat history, roster and league row in one transaction."""
    try:
        db.execute(delete(LeagueMessage).where(LeagueMessage.private_league_id == league_id))
        db.execute(
            delete(PrivateLeagueMember).where(PrivateLeagueMember.private_league_id == league_id)
        )
        result = db.execute(delete(PrivateLeague).where(PrivateLeague.id == league_id))
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("private_league_delete_failed league_id=%s", league_id)
        return False
    return result.rowcount > 0


def propagate_points(db: Session, match_id: int, user_points: Mapping[int, int]) -> bool:
    """Add each user's scoring delta to their tally in every active private league.

    Leagues are committed independently; a failing league is rolled back and
    logged while the others proceed. Returns False if any league failed.
    """
    deltas = {user_id: points for user_id, points in user_points.items() if points}
    if not deltas:
        return True

    rows = db.execute(
        select(PrivateLeagueMember.private_league_id, PrivateLeagueMember.user_id)
        .join(PrivateLeague, PrivateLeague.id == PrivateLeagueMember.private_league_id)
        .where(
            PrivateLeague.is_active.is_(True),
            PrivateLeagueMember.user_id.in_(list(deltas)),
        )
    ).all()

    members_by_league: DefaultDict[int, List[int]] = defaultdict(list)
    for league_id, user_id in rows:
        members_by_league[league_id].append(user_id)

    ok = True
    for league_id, user_ids in members_by_league.items():
        try:
            for user_id in user_ids:
                db.execute(
                    update(PrivateLeagueMember)
                    .where(
                        PrivateLeagueMember.private_league_id == league_id,
                        PrivateLeagueMember.user_id == user_id,
                    )
                    .values(points=PrivateLeagueMember.points + deltas[user_id])
                )
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            ok = False
            logger.exception(
                "private_league_points_failed league_id=%s match_id=%s", league_id, match_id
            )

    logger.info(
        "private_league_points_propagated match_id=%s leagues=%s users=%s ok=%s",
        match_id,
        len(members_by_league),
        len(deltas),
        ok,
    )
    return ok


def reverse_member_points(db: Session, user_points: Mapping[int, int]) -> None:
    """Subtract points from every active league tally of each user. Does not commit."""
    active_leagues = select(PrivateLeague.id).where(PrivateLeague.is_active.is_(True))
    for user_id, points in user_points.items():
        if not points:
            continue
        db.execute(
            update(PrivateLeagueMember)
            .where(
                PrivateLeagueMember.user_id == user_id,
                PrivateLeagueMember.private_league_id.in_(active_leagues),
            )
            .values(points=PrivateLeagueMember.points - points)
            .execution_options(synchronize_session=False)
        )


def sync_member_points(db: Session, league_id: int) -> int:
    """Reset every member's league tally to the user's global points."""
    if not get_private_league(db, league_id):
        raise NotFoundError("private_league_not_found", "League not found")
    global_points = (
        select(User.points)
        .where(User.id == PrivateLeagueMember.user_id)
        .scalar_subquery()
    )
    result = db.execute(
        update(PrivateLeagueMember)
        .where(PrivateLeagueMember.private_league_id == league_id)
        .values(points=global_points)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount


def list_user_private_leagues(db: Session, user_id: int) -> List[PrivateLeagueSummary]:
    counted = aliased(PrivateLeagueMember)
    member_count = (
        select(func.count(counted.id))
        .where(counted.private_league_id == PrivateLeague.id)
        .correlate(PrivateLeague)
        .scalar_subquery()
    )
    rows = db.execute(
        select(PrivateLeague, User.username, member_count, PrivateLeagueMember.role)
        .join(User, User.id == PrivateLeague.creator_id)
        .join(PrivateLeagueMember, PrivateLeagueMember.private_league_id == PrivateLeague.id)
        .where(PrivateLeagueMember.user_id == user_id, PrivateLeague.is_active.is_(True))
        .order_by(PrivateLeague.created_at.desc(), PrivateLeague.id.desc())
    ).all()
    return [
        PrivateLeagueSummary(league=league, creator_username=username, member_count=count, role=role)
        for league, username, count, role in rows
    ]


def get_private_league_summary(db: Session, league_id: int) -> PrivateLeagueSummary | None:
    row = db.execute(
        select(PrivateLeague, User.username)
        .join(User, User.id == PrivateLeague.creator_id)
        .where(PrivateLeague.id == league_id)
    ).first()
    if not row:
        return None
    league, username = row
    return PrivateLeagueSummary(
        league=league,
        creator_username=username,
        member_count=count_members(db, league_id),
    )


def get_league_members(db: Session, league_id: int) -> List[MemberStanding]:
    rows = db.execute(
        select(PrivateLeagueMember, User.username)
        .join(User, User.id == PrivateLeagueMember.user_id)
        .where(PrivateLeagueMember.private_league_id == league_id)
        .order_by(
            PrivateLeagueMember.points.desc(),
            PrivateLeagueMember.joined_at.asc(),
            PrivateLeagueMember.id.asc(),
        )
    ).all()
    return [MemberStanding(member=member, username=username) for member, username in rows]


def league_points_by_user(db: Session, league_id: int) -> Dict[int, int]:
    rows = db.execute(
        select(PrivateLeagueMember.user_id, PrivateLeagueMember.points).where(
            PrivateLeagueMember.private_league_id == league_id
        )
    ).all()
    return {user_id: points for user_id, points in rows}
