from __future__ import annotations

import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, aliased

from predictleague.core.errors import (
    AuthorizationError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from predictleague.models import MATCH_SCHEDULED, Match, Prediction, Team, User
from predictleague.schemas.predictions import PredictionOut

logger = logging.getLogger(__name__)


def _validate_scores(home: int, away: int) -> None:
    if home is None or away is None:
        raise ValidationError("scores_required", "Both predicted scores are required")
    if home < 0 or away < 0:
        raise ValidationError("scores_invalid", "Predicted scores cannot be negative")


def _open_match(db: Session, match_id: int) -> Match:
    match = db.get(Match, match_id)
    if not match:
        raise NotFoundError("match_not_found", "Match not found")
    if match.status != MATCH_SCHEDULED:
        raise StateConflictError(
            "match_not_scheduled", "Predictions are closed for this match"
        )
    return match


def _prediction_query():
    home = aliased(Team)
    away = aliased(Team)
    return (
        select(Prediction, User.username, Match, home.name, away.name)
        .join(User, User.id == Prediction.user_id)
        .join(Match, Match.id == Prediction.match_id)
        .join(home, home.id == Match.home_team_id)
        .join(away, away.id == Match.away_team_id)
    )


def _to_out(row) -> PredictionOut:
    prediction, username, match, home_name, away_name = row
    return PredictionOut(
        id=prediction.id,
        user_id=prediction.user_id,
        username=username,
        match_id=prediction.match_id,
        home_score_prediction=prediction.home_score_prediction,
        away_score_prediction=prediction.away_score_prediction,
        points_earned=prediction.points_earned,
        created_at=prediction.created_at,
        updated_at=prediction.updated_at,
        home_team_name=home_name,
        away_team_name=away_name,
        match_date=match.match_date,
        match_status=match.status,
        actual_home_score=match.home_score,
        actual_away_score=match.away_score,
        league_id=match.league_id,
        round=match.round,
    )


def get_prediction_out(db: Session, prediction_id: int) -> PredictionOut:
    row = db.execute(_prediction_query().where(Prediction.id == prediction_id)).first()
    if not row:
        raise NotFoundError("prediction_not_found", "Prediction not found")
    return _to_out(row)


def create_prediction(
    db: Session,
    *,
    user_id: int,
    match_id: int,
    home_score: int,
    away_score: int,
) -> PredictionOut:
    _validate_scores(home_score, away_score)
    _open_match(db, match_id)

    existing = db.execute(
        select(Prediction.id).where(
            Prediction.user_id == user_id, Prediction.match_id == match_id
        )
    ).first()
    if existing:
        raise StateConflictError(
            "prediction_exists", "You already have a prediction for this match"
        )

    prediction = Prediction(
        user_id=user_id,
        match_id=match_id,
        home_score_prediction=home_score,
        away_score_prediction=away_score,
        points_earned=0,
    )
    db.add(prediction)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise StateConflictError(
            "prediction_exists", "You already have a prediction for this match"
        ) from exc
    logger.info("prediction_created user_id=%s match_id=%s", user_id, match_id)
    return get_prediction_out(db, prediction.id)


def update_prediction(
    db: Session,
    *,
    prediction_id: int,
    user_id: int,
    home_score: int,
    away_score: int,
) -> PredictionOut:
    _validate_scores(home_score, away_score)
    prediction = db.get(Prediction, prediction_id)
    if not prediction:
        raise NotFoundError("prediction_not_found", "Prediction not found")
    if prediction.user_id != user_id:
        raise AuthorizationError("not_prediction_owner", "You can only edit your own predictions")
    _open_match(db, prediction.match_id)

    prediction.home_score_prediction = home_score
    prediction.away_score_prediction = away_score
    db.commit()
    return get_prediction_out(db, prediction_id)


def list_user_predictions(db: Session, user_id: int) -> List[PredictionOut]:
    rows = db.execute(
        _prediction_query()
        .where(Prediction.user_id == user_id)
        .order_by(Match.match_date.desc(), Prediction.id.desc())
    ).all()
    return [_to_out(row) for row in rows]


def list_match_predictions(db: Session, match_id: int) -> List[PredictionOut]:
    if not db.get(Match, match_id):
        raise NotFoundError("match_not_found", "Match not found")
    rows = db.execute(
        _prediction_query()
        .where(Prediction.match_id == match_id)
        .order_by(Prediction.points_earned.desc(), Prediction.created_at.asc(), Prediction.id.asc())
    ).all()
    return [_to_out(row) for row in rows]
