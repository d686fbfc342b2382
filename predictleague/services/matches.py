from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, aliased

from predictleague.core.errors import (
    AppError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from predictleague.models import (
    MATCH_FINISHED,
    MATCH_IN_PROGRESS,
    MATCH_SCHEDULED,
    League,
    Match,
    Prediction,
    Team,
    User,
)
from predictleague.schemas.matches import MatchOut
from predictleague.services.private_leagues import reverse_member_points
from predictleague.services.scoring import ScoringResult, compute_and_apply_points

logger = logging.getLogger(__name__)

STATUS_ORDER = {MATCH_SCHEDULED: 0, MATCH_IN_PROGRESS: 1, MATCH_FINISHED: 2}


@dataclass
class ScoreUpdateResult:
    match: MatchOut
    scoring: Optional[ScoringResult] = None
    scoring_error: Optional[str] = None


def _match_query():
    home = aliased(Team)
    away = aliased(Team)
    return (
        select(Match, home.name, away.name, League.name)
        .join(home, home.id == Match.home_team_id)
        .join(away, away.id == Match.away_team_id)
        .join(League, League.id == Match.league_id)
    )


def _to_out(row) -> MatchOut:
    match, home_name, away_name, league_name = row
    return MatchOut(
        id=match.id,
        league_id=match.league_id,
        league_name=league_name,
        home_team_id=match.home_team_id,
        home_team_name=home_name,
        away_team_id=match.away_team_id,
        away_team_name=away_name,
        match_date=match.match_date,
        status=match.status,
        home_score=match.home_score,
        away_score=match.away_score,
        round=match.round,
        created_at=match.created_at,
        updated_at=match.updated_at,
    )


def list_matches(
    db: Session,
    league_id: int | None = None,
    round_label: str | None = None,
) -> List[MatchOut]:
    stmt = _match_query()
    if league_id is not None:
        stmt = stmt.where(Match.league_id == league_id)
    if round_label is not None:
        stmt = stmt.where(Match.round == round_label)
    rows = db.execute(stmt.order_by(Match.match_date.desc(), Match.id.desc())).all()
    return [_to_out(row) for row in rows]


def list_upcoming_matches(
    db: Session,
    league_id: int | None = None,
    round_label: str | None = None,
    now: datetime | None = None,
) -> List[MatchOut]:
    now = now or datetime.now(timezone.utc)
    stmt = _match_query().where(Match.status == MATCH_SCHEDULED, Match.match_date > now)
    if league_id is not None:
        stmt = stmt.where(Match.league_id == league_id)
    if round_label is not None:
        stmt = stmt.where(Match.round == round_label)
    rows = db.execute(stmt.order_by(Match.match_date.asc(), Match.id.asc())).all()
    return [_to_out(row) for row in rows]


def list_rounds(db: Session, league_id: int) -> List[str]:
    return (
        db.execute(
            select(Match.round)
            .where(Match.league_id == league_id, Match.round.is_not(None))
            .distinct()
            .order_by(Match.round)
        )
        .scalars()
        .all()
    )


def get_match_out(db: Session, match_id: int) -> MatchOut:
    row = db.execute(_match_query().where(Match.id == match_id)).first()
    if not row:
        raise NotFoundError("match_not_found", "Match not found")
    return _to_out(row)


def _ensure_refs(db: Session, league_id: int, home_team_id: int, away_team_id: int) -> None:
    if not db.get(League, league_id):
        raise NotFoundError("league_not_found", "League not found")
    if not db.get(Team, home_team_id) or not db.get(Team, away_team_id):
        raise NotFoundError("team_not_found", "One or more teams not found")
    if home_team_id == away_team_id:
        raise ValidationError("same_team", "Home and away teams must differ")


def create_match(db: Session, data: Dict[str, Any]) -> MatchOut:
    _ensure_refs(db, data["league_id"], data["home_team_id"], data["away_team_id"])
    match = Match(
        league_id=data["league_id"],
        home_team_id=data["home_team_id"],
        away_team_id=data["away_team_id"],
        match_date=data["match_date"],
        status=MATCH_SCHEDULED,
        round=(data.get("round") or "").strip() or None,
    )
    db.add(match)
    db.commit()
    return get_match_out(db, match.id)


def update_match(db: Session, match_id: int, data: Dict[str, Any]) -> MatchOut:
    match = db.get(Match, match_id)
    if not match:
        raise NotFoundError("match_not_found", "Match not found")

    league_id = data.get("league_id") or match.league_id
    home_team_id = data.get("home_team_id") or match.home_team_id
    away_team_id = data.get("away_team_id") or match.away_team_id
    _ensure_refs(db, league_id, home_team_id, away_team_id)

    new_status = data.get("status")
    if new_status is not None:
        if STATUS_ORDER[new_status] < STATUS_ORDER[match.status]:
            raise StateConflictError("status_backwards", "Match status can only move forward")
        if new_status == MATCH_FINISHED and match.status != MATCH_FINISHED:
            raise StateConflictError(
                "use_score_update", "Record the score to finish a match"
            )
        if new_status == MATCH_IN_PROGRESS and match.status != MATCH_IN_PROGRESS:
            raise StateConflictError("status_reserved", "Matches go straight from scheduled to finished")

    match.league_id = league_id
    match.home_team_id = home_team_id
    match.away_team_id = away_team_id
    if data.get("match_date") is not None:
        match.match_date = data["match_date"]
    if "round" in data:
        match.round = (data["round"] or "").strip() or None
    db.commit()
    return get_match_out(db, match_id)


def update_score(db: Session, match_id: int, home_score: int, away_score: int) -> ScoreUpdateResult:
    """Record the final score, mark the match finished, then score predictions.

    The score update stands on its own: a scoring or propagation failure is
    reported in the result rather than raised.
    """
    if home_score is None or away_score is None:
        raise ValidationError("scores_required", "Both scores are required")
    if home_score < 0 or away_score < 0:
        raise ValidationError("scores_invalid", "Scores cannot be negative")

    result = db.execute(
        update(Match)
        .where(Match.id == match_id)
        .values(home_score=home_score, away_score=away_score, status=MATCH_FINISHED)
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount == 0:
        db.rollback()
        raise NotFoundError("match_not_found", "Match not found")
    db.commit()
    logger.info(
        "match_score_updated match_id=%s score=%s-%s", match_id, home_score, away_score
    )

    outcome = ScoreUpdateResult(match=get_match_out(db, match_id))
    try:
        outcome.scoring = compute_and_apply_points(db, match_id)
    except AppError as exc:
        logger.error("auto_scoring_failed match_id=%s code=%s", match_id, exc.code)
        outcome.scoring_error = exc.code
    return outcome


def delete_match(db: Session, match_id: int) -> Dict[int, int]:
    """Reverse earned points, drop predictions, then the match, as one unit.

    Returns the points taken back per user.
    """
    if not db.get(Match, match_id):
        raise NotFoundError("match_not_found", "Match not found")

    rows = db.execute(
        select(Prediction.user_id, Prediction.points_earned).where(
            Prediction.match_id == match_id,
            Prediction.points_earned != 0,
        )
    ).all()
    reversed_points: Dict[int, int] = {}
    for user_id, points in rows:
        reversed_points[user_id] = reversed_points.get(user_id, 0) + points

    try:
        for user_id, points in reversed_points.items():
            db.execute(
                update(User)
                .where(User.id == user_id)
                .values(points=User.points - points)
                .execution_options(synchronize_session=False)
            )
        reverse_member_points(db, reversed_points)
        db.execute(delete(Prediction).where(Prediction.match_id == match_id))
        db.execute(delete(Match).where(Match.id == match_id))
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("match_delete_failed match_id=%s", match_id)
        raise

    logger.info("match_deleted match_id=%s reversed_users=%s", match_id, len(reversed_points))
    return reversed_points
