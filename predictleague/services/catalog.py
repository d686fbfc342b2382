from __future__ import annotations

from typing import Any, Dict, List

from sqlalchemy import exists, select
from sqlalchemy.orm import Session

from predictleague.core.errors import NotFoundError, StateConflictError
from predictleague.models import League, Match, Team


def list_leagues(db: Session, active_only: bool = False) -> List[League]:
    stmt = select(League).order_by(League.name.asc())
    if active_only:
        stmt = stmt.where(League.active.is_(True))
    return db.execute(stmt).scalars().all()


def get_league_or_404(db: Session, league_id: int) -> League:
    league = db.get(League, league_id)
    if not league:
        raise NotFoundError("league_not_found", "League not found")
    return league


def create_league(db: Session, data: Dict[str, Any]) -> League:
    league = League(**data)
    db.add(league)
    db.commit()
    db.refresh(league)
    return league


def update_league(db: Session, league_id: int, data: Dict[str, Any]) -> League:
    league = get_league_or_404(db, league_id)
    for key, value in data.items():
        setattr(league, key, value)
    db.commit()
    db.refresh(league)
    return league


def delete_league(db: Session, league_id: int) -> None:
    league = get_league_or_404(db, league_id)
    in_use = db.execute(
        select(
            exists().where(Team.league_id == league_id)
            | exists().where(Match.league_id == league_id)
        )
    ).scalar()
    if in_use:
        raise StateConflictError("league_in_use", "The league still has teams or matches")
    db.delete(league)
    db.commit()


def list_teams(db: Session, league_id: int | None = None) -> List[Team]:
    stmt = select(Team).order_by(Team.name.asc())
    if league_id is not None:
        stmt = stmt.where(Team.league_id == league_id)
    return db.execute(stmt).scalars().all()


def get_team_or_404(db: Session, team_id: int) -> Team:
    team = db.get(Team, team_id)
    if not team:
        raise NotFoundError("team_not_found", "Team not found")
    return team


def create_team(db: Session, data: Dict[str, Any]) -> Team:
    get_league_or_404(db, data["league_id"])
    team = Team(**data)
    db.add(team)
    db.commit()
    db.refresh(team)
    return team


def update_team(db: Session, team_id: int, data: Dict[str, Any]) -> Team:
    team = get_team_or_404(db, team_id)
    if data.get("league_id") is not None:
        get_league_or_404(db, data["league_id"])
    for key, value in data.items():
        setattr(team, key, value)
    db.commit()
    db.refresh(team)
    return team


def delete_team(db: Session, team_id: int) -> None:
    team = get_team_or_404(db, team_id)
    in_use = db.execute(
        select(
            exists().where((Match.home_team_id == team_id) | (Match.away_team_id == team_id))
        )
    ).scalar()
    if in_use:
        raise StateConflictError("team_in_use", "The team still has matches")
    db.delete(team)
    db.commit()
