from __future__ import annotations

from typing import Any

from fastapi import Depends, Header, HTTPException, Request, WebSocket, status
from jose import JWTError
from sqlalchemy.orm import Session

from predictleague.core.security import decode_token
from predictleague.db.session import get_db
from predictleague.models import ROLE_ADMIN, User

TOKEN_COOKIE = "token"


def _bearer(authorization: str | None) -> str | None:
    if authorization and authorization.startswith("Bearer "):
        return authorization.split(" ", 1)[1].strip() or None
    return None


def _claims_from(token: str | None) -> dict[str, Any] | None:
    if not token:
        return None
    try:
        payload = decode_token(token)
    except JWTError:
        return None
    if not payload.get("sub") or payload.get("id") is None:
        return None
    return payload


def get_token_claims(
    request: Request,
    authorization: str | None = Header(default=None),
) -> dict[str, Any]:
    token = _bearer(authorization) or request.cookies.get(TOKEN_COOKIE)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="missing_token")
    claims = _claims_from(token)
    if claims is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token")
    return claims


def get_current_user(
    db: Session = Depends(get_db),
    claims: dict[str, Any] = Depends(get_token_claims),
) -> User:
    user = db.get(User, int(claims["id"]))
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="user_not_found")
    return user


def require_admin(claims: dict[str, Any] = Depends(get_token_claims)) -> dict[str, Any]:
    if claims.get("role") != ROLE_ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="admin_required")
    return claims


def websocket_claims(websocket: WebSocket) -> dict[str, Any] | None:
    """Claims for a socket handshake: cookie, then Authorization header, then ``?token=``."""
    token = (
        websocket.cookies.get(TOKEN_COOKIE)
        or _bearer(websocket.headers.get("authorization"))
        or websocket.query_params.get("token")
    )
    return _claims_from(token)
