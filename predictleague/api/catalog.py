from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from predictleague.api.deps import require_admin
from predictleague.db.session import get_db
from predictleague.schemas.catalog import (
    LeagueIn,
    LeagueOut,
    LeagueUpdate,
    TeamIn,
    TeamOut,
    TeamUpdate,
)
from predictleague.schemas.common import ActionOut
from predictleague.services import catalog as catalog_service
from predictleague.services.action_log import log_action

router = APIRouter(tags=["catalog"])


@router.get("/leagues", response_model=list[LeagueOut])
def list_leagues(db: Session = Depends(get_db)) -> list[LeagueOut]:
    return catalog_service.list_leagues(db)


@router.get("/leagues/active", response_model=list[LeagueOut])
def list_active_leagues(db: Session = Depends(get_db)) -> list[LeagueOut]:
    return catalog_service.list_leagues(db, active_only=True)


@router.get("/leagues/{league_id}", response_model=LeagueOut)
def get_league(league_id: int, db: Session = Depends(get_db)) -> LeagueOut:
    return catalog_service.get_league_or_404(db, league_id)


@router.post("/leagues", response_model=LeagueOut, status_code=status.HTTP_201_CREATED)
def create_league(
    payload: LeagueIn,
    db: Session = Depends(get_db),
    admin: dict[str, Any] = Depends(require_admin),
) -> LeagueOut:
    league = catalog_service.create_league(db, payload.model_dump())
    log_action(
        db,
        category="catalog",
        action="league_create",
        actor_user_id=admin["id"],
        details={"league_id": league.id, "name": league.name},
    )
    return league


@router.put("/leagues/{league_id}", response_model=LeagueOut)
def update_league(
    league_id: int,
    payload: LeagueUpdate,
    db: Session = Depends(get_db),
    admin: dict[str, Any] = Depends(require_admin),
) -> LeagueOut:
    changes = payload.model_dump(exclude_unset=True)
    league = catalog_service.update_league(db, league_id, changes)
    log_action(
        db,
        category="catalog",
        action="league_update",
        actor_user_id=admin["id"],
        details={"league_id": league_id, "fields": sorted(changes)},
    )
    return league


@router.delete("/leagues/{league_id}", response_model=ActionOut)
def delete_league(
    league_id: int,
    db: Session = Depends(get_db),
    admin: dict[str, Any] = Depends(require_admin),
) -> ActionOut:
    catalog_service.delete_league(db, league_id)
    log_action(
        db,
        category="catalog",
        action="league_delete",
        actor_user_id=admin["id"],
        details={"league_id": league_id},
    )
    return ActionOut(message="League deleted")


@router.get("/teams", response_model=list[TeamOut])
def list_teams(db: Session = Depends(get_db)) -> list[TeamOut]:
    return catalog_service.list_teams(db)


@router.get("/leagues/{league_id}/teams", response_model=list[TeamOut])
def list_league_teams(league_id: int, db: Session = Depends(get_db)) -> list[TeamOut]:
    catalog_service.get_league_or_404(db, league_id)
    return catalog_service.list_teams(db, league_id=league_id)


@router.get("/teams/{team_id}", response_model=TeamOut)
def get_team(team_id: int, db: Session = Depends(get_db)) -> TeamOut:
    return catalog_service.get_team_or_404(db, team_id)


@router.post("/teams", response_model=TeamOut, status_code=status.HTTP_201_CREATED)
def create_team(
    payload: TeamIn,
    db: Session = Depends(get_db),
    admin: dict[str, Any] = Depends(require_admin),
) -> TeamOut:
    team = catalog_service.create_team(db, payload.model_dump())
    log_action(
        db,
        category="catalog",
        action="team_create",
        actor_user_id=admin["id"],
        details={"team_id": team.id, "league_id": team.league_id},
    )
    return team


@router.put("/teams/{team_id}", response_model=TeamOut)
def update_team(
    team_id: int,
    payload: TeamUpdate,
    db: Session = Depends(get_db),
    admin: dict[str, Any] = Depends(require_admin),
) -> TeamOut:
    changes = payload.model_dump(exclude_unset=True)
    team = catalog_service.update_team(db, team_id, changes)
    log_action(
        db,
        category="catalog",
        action="team_update",
        actor_user_id=admin["id"],
        details={"team_id": team_id, "fields": sorted(changes)},
    )
    return team


@router.delete("/teams/{team_id}", response_model=ActionOut)
def delete_team(
    team_id: int,
    db: Session = Depends(get_db),
    admin: dict[str, Any] = Depends(require_admin),
) -> ActionOut:
    catalog_service.delete_team(db, team_id)
    log_action(
        db,
        category="catalog",
        action="team_delete",
        actor_user_id=admin["id"],
        details={"team_id": team_id},
    )
    return ActionOut(message="Team deleted")
