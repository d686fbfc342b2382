from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from predictleague.db.session import get_db
from predictleague.schemas.ranking import RankingEntryOut
from predictleague.services.ranking import build_global_ranking

router = APIRouter(prefix="/ranking", tags=["ranking"])


@router.get("", response_model=list[RankingEntryOut])
def global_ranking(db: Session = Depends(get_db)) -> list[RankingEntryOut]:
    return build_global_ranking(db)
