from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class LeagueIn(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    country: Optional[str] = None
    season: str = Field(min_length=1, max_length=20)
    is_cup: bool = False
    active: bool = True


class LeagueUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    country: Optional[str] = None
    season: Optional[str] = Field(default=None, min_length=1, max_length=20)
    is_cup: Optional[bool] = None
    active: Optional[bool] = None


class LeagueOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    country: Optional[str] = None
    season: str
    is_cup: bool
    active: bool


class TeamIn(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    league_id: int
    logo_url: Optional[str] = None


class TeamUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    league_id: Optional[int] = None
    logo_url: Optional[str] = None


class TeamOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    league_id: int
    logo_url: Optional[str] = None
