from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Dict, Literal

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from predictleague.core.errors import NotFoundError, StateConflictError, StoreError
from predictleague.models import MATCH_FINISHED, Match, Prediction, User
from predictleague.services.private_leagues import propagate_points

logger = logging.getLogger(__name__)

Outcome = Literal["home_win", "away_win", "draw"]

EXACT_SCORE_POINTS = 3
CORRECT_OUTCOME_POINTS = 1


@dataclass
class ScoringResult:
    match_id: int
    updated_count: int = 0
    user_points: Dict[int, int] = field(default_factory=dict)
    propagation_ok: bool = True


def match_outcome(home_score: int, away_score: int) -> Outcome:
    if home_score > away_score:
        return "home_win"
    if home_score < away_score:
        return "away_win"
    return "draw"


def calc_prediction_points(
    predicted_home: int,
    predicted_away: int,
    actual_home: int,
    actual_away: int,
) -> int:
    if predicted_home == actual_home and predicted_away == actual_away:
        return EXACT_SCORE_POINTS
    if match_outcome(predicted_home, predicted_away) == match_outcome(actual_home, actual_away):
        return CORRECT_OUTCOME_POINTS
    return 0


def compute_and_apply_points(db: Session, match_id: int) -> ScoringResult:
    """Score every prediction of a finished match and apply the point deltas.

    Each prediction stores its freshly computed points and the owning user is
    credited with ``new - previously stored``, so running this twice for the same
    result changes nothing and a corrected score re-scores cleanly. Private-league
    propagation runs after the commit and never undoes it.
    """
    match = db.get(Match, match_id)
    if not match:
        raise NotFoundError("match_not_found", "Match not found")
    if match.status != MATCH_FINISHED or match.home_score is None or match.away_score is None:
        raise StateConflictError("match_not_finished", "The match is not finished")

    predictions = (
        db.execute(
            select(Prediction).where(Prediction.match_id == match_id).order_by(Prediction.id)
        )
        .scalars()
        .all()
    )

    result = ScoringResult(match_id=match_id)
    try:
        for prediction in predictions:
            points = calc_prediction_points(
                prediction.home_score_prediction,
                prediction.away_score_prediction,
                match.home_score,
                match.away_score,
            )
            delta = points - (prediction.points_earned or 0)
            result.updated_count += 1
            if delta == 0:
                continue
            prediction.points_earned = points
            db.execute(
                update(User)
                .where(User.id == prediction.user_id)
                .values(points=User.points + delta)
            )
            result.user_points[prediction.user_id] = (
                result.user_points.get(prediction.user_id, 0) + delta
            )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("scoring_failed match_id=%s", match_id)
        raise StoreError("scoring_failed") from exc

    logger.info(
        "scoring_applied match_id=%s predictions=%s users=%s",
        match_id,
        result.updated_count,
        len(result.user_points),
    )

    if result.user_points:
        try:
            result.propagation_ok = propagate_points(db, match_id, result.user_points)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("private_league_propagation_failed match_id=%s", match_id)
            result.propagation_ok = False
    return result
