from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

MatchStatus = Literal["scheduled", "in_progress", "finished"]


class MatchCreate(BaseModel):
    league_id: int
    home_team_id: int
    away_team_id: int
    match_date: datetime
    round: Optional[str] = None


class MatchUpdate(BaseModel):
    league_id: Optional[int] = None
    home_team_id: Optional[int] = None
    away_team_id: Optional[int] = None
    match_date: Optional[datetime] = None
    status: Optional[MatchStatus] = None
    round: Optional[str] = None


class ScoreIn(BaseModel):
    home_score: int = Field(ge=0)
    away_score: int = Field(ge=0)


class MatchOut(BaseModel):
    id: int
    league_id: int
    league_name: str
    home_team_id: int
    home_team_name: str
    away_team_id: int
    away_team_name: str
    match_date: datetime
    status: MatchStatus
    home_score: Optional[int] = None
    away_score: Optional[int] = None
    round: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ScoringOut(BaseModel):
    match_id: int
    updated_predictions: int
    users_awarded: int
    points_awarded: int
    private_leagues_updated: bool


class ScoreUpdateOut(BaseModel):
    success: bool = True
    message: str
    match: MatchOut
    scoring: Optional[ScoringOut] = None
    scoring_error: Optional[str] = None
