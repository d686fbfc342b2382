from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from predictleague.api.deps import require_admin
from predictleague.db.session import get_db
from predictleague.schemas.common import ActionOut
from predictleague.schemas.matches import (
    MatchCreate,
    MatchOut,
    MatchUpdate,
    ScoreIn,
    ScoreUpdateOut,
    ScoringOut,
)
from predictleague.services import matches as match_service
from predictleague.services.action_log import log_action
from predictleague.services.catalog import get_league_or_404
from predictleague.services.scoring import ScoringResult

router = APIRouter(tags=["matches"])


def scoring_out(result: ScoringResult) -> ScoringOut:
    return ScoringOut(
        match_id=result.match_id,
        updated_predictions=result.updated_count,
        users_awarded=len(result.user_points),
        points_awarded=sum(result.user_points.values()),
        private_leagues_updated=result.propagation_ok,
    )


@router.get("/matches", response_model=list[MatchOut])
def list_matches(db: Session = Depends(get_db)) -> list[MatchOut]:
    return match_service.list_matches(db)


@router.get("/matches/upcoming", response_model=list[MatchOut])
def list_upcoming_matches(
    league_id: int | None = Query(default=None),
    round: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> list[MatchOut]:
    return match_service.list_upcoming_matches(db, league_id=league_id, round_label=round)


@router.get("/matches/{match_id}", response_model=MatchOut)
def get_match(match_id: int, db: Session = Depends(get_db)) -> MatchOut:
    return match_service.get_match_out(db, match_id)


@router.get("/leagues/{league_id}/matches", response_model=list[MatchOut])
def list_league_matches(
    league_id: int,
    round: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> list[MatchOut]:
    get_league_or_404(db, league_id)
    return match_service.list_matches(db, league_id=league_id, round_label=round)


@router.get("/leagues/{league_id}/rounds", response_model=list[str])
def list_league_rounds(league_id: int, db: Session = Depends(get_db)) -> list[str]:
    get_league_or_404(db, league_id)
    return match_service.list_rounds(db, league_id)


@router.post("/matches", response_model=MatchOut, status_code=status.HTTP_201_CREATED)
def create_match(
    payload: MatchCreate,
    db: Session = Depends(get_db),
    admin: dict[str, Any] = Depends(require_admin),
) -> MatchOut:
    match = match_service.create_match(db, payload.model_dump())
    log_action(
        db,
        category="match",
        action="create",
        actor_user_id=admin["id"],
        details={"match_id": match.id, "league_id": match.league_id},
    )
    return match


@router.put("/matches/{match_id}", response_model=MatchOut)
def update_match(
    match_id: int,
    payload: MatchUpdate,
    db: Session = Depends(get_db),
    admin: dict[str, Any] = Depends(require_admin),
) -> MatchOut:
    changes = payload.model_dump(exclude_unset=True)
    match = match_service.update_match(db, match_id, changes)
    log_action(
        db,
        category="match",
        action="update",
        actor_user_id=admin["id"],
        details={"match_id": match_id, "fields": sorted(changes)},
    )
    return match


@router.put("/matches/{match_id}/score", response_model=ScoreUpdateOut)
def update_score(
    match_id: int,
    payload: ScoreIn,
    db: Session = Depends(get_db),
    admin: dict[str, Any] = Depends(require_admin),
) -> ScoreUpdateOut:
    result = match_service.update_score(db, match_id, payload.home_score, payload.away_score)
    log_action(
        db,
        category="match",
        action="score",
        actor_user_id=admin["id"],
        details={
            "match_id": match_id,
            "score": f"{payload.home_score}-{payload.away_score}",
            "scoring_error": result.scoring_error,
        },
    )
    if result.scoring_error:
        message = "Score updated but points could not be calculated"
    elif result.scoring and not result.scoring.propagation_ok:
        message = "Score updated; some private leagues were not updated"
    else:
        message = "Score updated and points calculated"
    return ScoreUpdateOut(
        message=message,
        match=result.match,
        scoring=scoring_out(result.scoring) if result.scoring else None,
        scoring_error=result.scoring_error,
    )


@router.delete("/matches/{match_id}", response_model=ActionOut)
def delete_match(
    match_id: int,
    db: Session = Depends(get_db),
    admin: dict[str, Any] = Depends(require_admin),
) -> ActionOut:
    reversed_points = match_service.delete_match(db, match_id)
    log_action(
        db,
        category="match",
        action="delete",
        actor_user_id=admin["id"],
        details={"match_id": match_id, "reversed_users": len(reversed_points)},
    )
    return ActionOut(message="Match deleted", data={"reversed_points": reversed_points})
