from __future__ import annotations

import json
from typing import Any, Optional

from sqlalchemy.orm import Session

from predictleague.models import ActionLog


def log_action(
    db: Session,
    *,
    category: str,
    action: str,
    actor_user_id: Optional[int] = None,
    target_user_id: Optional[int] = None,
    details: Optional[dict[str, Any]] = None,
) -> None:
    """Record an audit row and commit it."""
    payload = json.dumps(details, ensure_ascii=False, default=str) if details else None
    db.add(
        ActionLog(
            category=category,
            action=action,
            actor_user_id=actor_user_id,
            target_user_id=target_user_id,
            details=payload,
        )
    )
    db.commit()
