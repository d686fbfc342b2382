from __future__ import annotations

from typing import Any, List

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from predictleague.api.deps import require_admin
from predictleague.db.session import get_db
from predictleague.models import User
from predictleague.schemas.auth import UserOut
from predictleague.schemas.common import ActionOut
from predictleague.services.action_log import log_action
from predictleague.services.private_leagues import sync_member_points

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("/check", response_model=ActionOut)
def admin_check(claims: dict[str, Any] = Depends(require_admin)) -> ActionOut:
    return ActionOut(message="Admin access granted", data={"username": claims["sub"]})


@router.get("/users", response_model=List[UserOut])
def list_users(db: Session = Depends(get_db)) -> List[UserOut]:
    users = db.execute(select(User).order_by(User.points.desc(), User.username.asc())).scalars().all()
    return [
        UserOut(
            id=user.id,
            username=user.username,
            role=user.role,
            points=user.points,
            created_at=user.created_at,
        )
        for user in users
    ]


@router.post("/private-leagues/{league_id}/sync-points", response_model=ActionOut)
def sync_private_league_points(
    league_id: int,
    db: Session = Depends(get_db),
    claims: dict[str, Any] = Depends(require_admin),
) -> ActionOut:
    updated = sync_member_points(db, league_id)
    log_action(
        db,
        category="private_league",
        action="sync_points",
        actor_user_id=claims["id"],
        details={"private_league_id": league_id, "members": updated},
    )
    return ActionOut(message="League points synced", data={"members_updated": updated})
