import os

os.environ["APP_ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret"

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from predictleague.core.security import create_access_token, get_password_hash
from predictleague.db.base import Base
from predictleague.db.session import get_db, get_session_factory
from predictleague.main import app
from predictleague.models import (
    MATCH_SCHEDULED,
    ROLE_ADMIN,
    ROLE_USER,
    League,
    Match,
    Prediction,
    Team,
    User,
)
from predictleague.services.chat import ChatRoomRegistry
from predictleague.services.rate_limit import rate_limiter


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    yield factory
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.state.chat_rooms = ChatRoomRegistry()
    rate_limiter.reset()
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    rate_limiter.reset()


@pytest.fixture
def make_user(db):
    def _make(username, role=ROLE_USER, points=0, password="secret123"):
        user = User(
            username=username,
            password_hash=get_password_hash(password),
            role=role,
            points=points,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def auth_headers():
    def _headers(user):
        token = create_access_token(username=user.username, user_id=user.id, role=user.role)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def admin(make_user):
    return make_user("admin", role=ROLE_ADMIN)


@pytest.fixture
def league_setup(db):
    league = League(name="Ligue 1", country="France", season="2024-2025")
    db.add(league)
    db.flush()
    home = Team(name="PSG", league_id=league.id)
    away = Team(name="Marseille", league_id=league.id)
    db.add_all([home, away])
    db.commit()
    return league, home, away


@pytest.fixture
def make_match(db, league_setup):
    league, home, away = league_setup

    def _make(status=MATCH_SCHEDULED, days_ahead=2, round_label="J1", home_score=None, away_score=None):
        match = Match(
            league_id=league.id,
            home_team_id=home.id,
            away_team_id=away.id,
            match_date=datetime.now(timezone.utc) + timedelta(days=days_ahead),
            status=status,
            round=round_label,
            home_score=home_score,
            away_score=away_score,
        )
        db.add(match)
        db.commit()
        db.refresh(match)
        return match

    return _make


@pytest.fixture
def predict(db):
    def _predict(user, match, home, away):
        prediction = Prediction(
            user_id=user.id,
            match_id=match.id,
            home_score_prediction=home,
            away_score_prediction=away,
        )
        db.add(prediction)
        db.commit()
        db.refresh(prediction)
        return prediction

    return _predict
