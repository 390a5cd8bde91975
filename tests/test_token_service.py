"""Token issuer tests: claims, expiry, issuer/audience checks."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from budgetmanager.auth.jwt import (
    TokenError,
    TokenExpiredError,
    TokenService,
)
from budgetmanager.auth.roles import Role
from budgetmanager.config import JwtConfig

CONFIG = JwtConfig(
    secret_key="test-secret-key-that-is-long-enough-0123",
    issuer="budgetmanager-test",
    audience="budgetmanager-test-clients",
    expiry_minutes=30,
)


def test_issue_carries_identity_claims():
    now = datetime.now(timezone.utc).replace(microsecond=0)
    svc = TokenService(CONFIG, clock=lambda: now)

    issued = svc.issue(42, "alice@example.com", Role.PRO)
    claims = svc.verify(issued.token)

    assert claims["sub"] == "alice@example.com"
    assert claims["UserId"] == "42"
    assert claims["role"] == "Pro"
    assert claims["iss"] == CONFIG.issuer
    assert claims["aud"] == CONFIG.audience
    assert claims["exp"] == int((now + timedelta(minutes=30)).timestamp())
    assert issued.expires_at == now + timedelta(minutes=30)


def test_tokens_are_unique_within_a_second():
    now = datetime.now(timezone.utc)
    svc = TokenService(CONFIG, clock=lambda: now)
    assert svc.issue(1, "a@example.com").token != svc.issue(1, "a@example.com").token


def test_expired_token_rejected():
    past = datetime.now(timezone.utc) - timedelta(hours=2)
    issuer = TokenService(CONFIG, clock=lambda: past)
    token = issuer.issue(1, "a@example.com").token

    with pytest.raises(TokenExpiredError):
        TokenService(CONFIG).verify(token)


def test_wrong_secret_rejected():
    token = TokenService(CONFIG).issue(1, "a@example.com").token
    other = JwtConfig(
        secret_key="a-completely-different-secret-key-987654",
        issuer=CONFIG.issuer,
        audience=CONFIG.audience,
        expiry_minutes=30,
    )
    with pytest.raises(TokenError):
        TokenService(other).verify(token)


def test_wrong_audience_rejected():
    token = TokenService(CONFIG).issue(1, "a@example.com").token
    other = JwtConfig(
        secret_key=CONFIG.secret_key,
        issuer=CONFIG.issuer,
        audience="someone-else",
        expiry_minutes=30,
    )
    with pytest.raises(TokenError):
        TokenService(other).verify(token)


def test_wrong_issuer_rejected():
    token = TokenService(CONFIG).issue(1, "a@example.com").token
    other = JwtConfig(
        secret_key=CONFIG.secret_key,
        issuer="not-us",
        audience=CONFIG.audience,
        expiry_minutes=30,
    )
    with pytest.raises(TokenError):
        TokenService(other).verify(token)


def test_missing_user_id_claim_rejected():
    now = datetime.now(timezone.utc)
    token = jwt.encode(
        {
            "sub": "a@example.com",
            "iss": CONFIG.issuer,
            "aud": CONFIG.audience,
            "exp": now + timedelta(minutes=5),
        },
        CONFIG.secret_key,
        algorithm="HS256",
    )
    with pytest.raises(TokenError):
        TokenService(CONFIG).verify(token)


def test_empty_secret_refused():
    with pytest.raises(ValueError):
        TokenService(JwtConfig("", "i", "a", 5))
