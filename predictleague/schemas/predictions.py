from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class PredictionCreate(BaseModel):
    match_id: int
    home_score_prediction: int = Field(ge=0)
    away_score_prediction: int = Field(ge=0)


class PredictionUpdate(BaseModel):
    home_score_prediction: int = Field(ge=0)
    away_score_prediction: int = Field(ge=0)


class PredictionOut(BaseModel):
    id: int
    user_id: int
    username: str
    match_id: int
    home_score_prediction: int
    away_score_prediction: int
    points_earned: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    home_team_name: str
    away_team_name: str
    match_date: datetime
    match_status: str
    actual_home_score: Optional[int] = None
    actual_away_score: Optional[int] = None
    league_id: int
    round: Optional[str] = None
