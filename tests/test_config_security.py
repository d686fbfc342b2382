import pytest
from jose import JWTError

from predictleague.core.config import Settings, get_settings
from predictleague.core.security import (
    create_access_token,
    decode_token,
    get_password_hash,
    verify_password,
)
from predictleague.services.rate_limit import RateLimiter


def test_settings_defaults():
    settings = Settings(_env_file=None, APP_ENV="local")
    assert settings.ACCESS_TOKEN_EXPIRE_MINUTES == 60
    assert settings.CHAT_HISTORY_LIMIT == 20
    assert settings.PRIVATE_LEAGUE_MAX_MEMBERS == 20
    assert settings.is_production is False


def test_settings_origins_and_prod_flag():
    settings = Settings(
        _env_file=None,
        APP_ENV="PROD",
        CORS_ORIGINS="https://a.example, https://b.example ,",
    )
    assert settings.is_production is True
    assert settings.allowed_origins == ["https://a.example", "https://b.example"]


def test_get_settings_is_cached():
    assert get_settings() is get_settings()
    assert get_settings().APP_ENV == "test"


def test_password_hashing():
    hashed = get_password_hash("secret123")
    assert hashed != "secret123"
    assert verify_password("secret123", hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password("secret123", None)


def test_token_claims_round_trip():
    token = create_access_token(username="fan", user_id=7, role="user")
    claims = decode_token(token)
    assert claims["sub"] == "fan"
    assert claims["id"] == 7
    assert claims["role"] == "user"
    assert "exp" in claims


def test_tampered_token_rejected():
    token = create_access_token(username="fan", user_id=7, role="user")
    with pytest.raises(JWTError):
        decode_token(token[:-2] + ("AA" if not token.endswith("AA") else "BB"))


def test_rate_limiter_window():
    now = [0.0]
    limiter = RateLimiter(clock=lambda: now[0])
    assert limiter.allow("k", 2, 10)
    assert limiter.allow("k", 2, 10)
    assert not limiter.allow("k", 2, 10)
    assert limiter.allow("other", 2, 10)
    now[0] = 11.0
    assert limiter.allow("k", 2, 10)


def test_health(client):
    resp = client.get("/health")
    assert resp.json() == {"ok": True, "env": "test"}
