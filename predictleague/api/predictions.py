from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from predictleague.api.deps import get_current_user, require_admin
from predictleague.api.matches import scoring_out
from predictleague.db.session import get_db
from predictleague.models import User
from predictleague.schemas.matches import ScoringOut
from predictleague.schemas.predictions import PredictionCreate, PredictionOut, PredictionUpdate
from predictleague.services import predictions as prediction_service
from predictleague.services.action_log import log_action
from predictleague.services.scoring import compute_and_apply_points

router = APIRouter(tags=["predictions"])


@router.post("/predictions", response_model=PredictionOut, status_code=status.HTTP_201_CREATED)
def create_prediction(
    payload: PredictionCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> PredictionOut:
    return prediction_service.create_prediction(
        db,
        user_id=user.id,
        match_id=payload.match_id,
        home_score=payload.home_score_prediction,
        away_score=payload.away_score_prediction,
    )


@router.put("/predictions/{prediction_id}", response_model=PredictionOut)
def update_prediction(
    prediction_id: int,
    payload: PredictionUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> PredictionOut:
    return prediction_service.update_prediction(
        db,
        prediction_id=prediction_id,
        user_id=user.id,
        home_score=payload.home_score_prediction,
        away_score=payload.away_score_prediction,
    )


@router.get("/predictions/mine", response_model=list[PredictionOut])
def my_predictions(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> list[PredictionOut]:
    return prediction_service.list_user_predictions(db, user.id)


@router.get("/matches/{match_id}/predictions", response_model=list[PredictionOut])
def match_predictions(
    match_id: int,
    db: Session = Depends(get_db),
    _: dict[str, Any] = Depends(require_admin),
) -> list[PredictionOut]:
    return prediction_service.list_match_predictions(db, match_id)


@router.post("/matches/{match_id}/calculate-points", response_model=ScoringOut)
def calculate_points(
    match_id: int,
    db: Session = Depends(get_db),
    admin: dict[str, Any] = Depends(require_admin),
) -> ScoringOut:
    result = compute_and_apply_points(db, match_id)
    log_action(
        db,
        category="match",
        action="calculate_points",
        actor_user_id=admin["id"],
        details={"match_id": match_id, "users": len(result.user_points)},
    )
    return scoring_out(result)
