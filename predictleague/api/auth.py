from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from predictleague.api.deps import TOKEN_COOKIE, get_current_user
from predictleague.core.config import get_settings
from predictleague.core.security import create_access_token, get_password_hash, verify_password
from predictleague.db.session import get_db
from predictleague.models import ROLE_USER, User
from predictleague.schemas.auth import Token, UserCreate, UserLogin, UserOut
from predictleague.schemas.common import ActionOut
from predictleague.services.rate_limit import rate_limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

AUTH_RATE_LIMIT_WINDOW = 60
AUTH_RATE_LIMIT_MAX = 12


def _get_client_key(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
    else:
        ip = request.client.host if request.client else "unknown"
    return f"auth:{ip}"


def _enforce_rate_limit(request: Request) -> None:
    key = _get_client_key(request)
    if not rate_limiter.allow(key, AUTH_RATE_LIMIT_MAX, AUTH_RATE_LIMIT_WINDOW):
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="rate_limited")


def _issue_token(response: Response, user: User) -> Token:
    settings = get_settings()
    token = create_access_token(username=user.username, user_id=user.id, role=user.role)
    response.set_cookie(
        TOKEN_COOKIE,
        token,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )
    return Token(access_token=token, username=user.username, role=user.role)


@router.post("/register", response_model=Token, status_code=status.HTTP_201_CREATED)
def register(
    payload: UserCreate,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
) -> Token:
    _enforce_rate_limit(request)
    username = payload.username.strip()
    existing = db.execute(select(User.id).where(User.username == username)).first()
    if existing:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="username_taken")

    user = User(username=username, password_hash=get_password_hash(payload.password), role=ROLE_USER)
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("user_registered user_id=%s", user.id)
    return _issue_token(response, user)


@router.post("/login", response_model=Token)
def login(
    payload: UserLogin,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
) -> Token:
    _enforce_rate_limit(request)
    user = db.execute(
        select(User).where(User.username == payload.username.strip())
    ).scalar_one_or_none()
    if not user or not verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_credentials")
    return _issue_token(response, user)


@router.get("/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)) -> UserOut:
    return UserOut(
        id=user.id,
        username=user.username,
        role=user.role,
        points=user.points,
        created_at=user.created_at,
    )


@router.post("/logout", response_model=ActionOut)
def logout(response: Response) -> ActionOut:
    response.delete_cookie(TOKEN_COOKIE)
    return ActionOut(message="Logged out")
