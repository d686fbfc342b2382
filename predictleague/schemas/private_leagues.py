from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class PrivateLeagueCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    max_members: Optional[int] = Field(default=None, ge=1, le=500)


class PrivateLeagueJoin(BaseModel):
    invite_code: str


class PrivateLeagueOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    creator_id: int
    creator_username: str
    invite_code: str
    max_members: int
    is_active: bool
    member_count: int
    role: Optional[str] = None
    created_at: Optional[datetime] = None


class PrivateLeagueMemberOut(BaseModel):
    user_id: int
    username: str
    role: str
    points: int
    rank: int
    joined_at: Optional[datetime] = None


class PrivateLeagueDetailOut(BaseModel):
    league: PrivateLeagueOut
    members: List[PrivateLeagueMemberOut]


class LeagueMessageOut(BaseModel):
    id: int
    user_id: int
    username: str
    message: str
    timestamp: Optional[datetime] = None
