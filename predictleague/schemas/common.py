from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel


class ActionOut(BaseModel):
    success: bool = True
    message: str
    data: Optional[Any] = None
