"""JWT token creation and verification.

Access tokens carry the subject email, a "UserId" claim with the
numeric id as a string, the account role, issuer, audience, issue time,
expiry and a random jti (two logins in the same second still get
distinct tokens, so revoking one session leaves the other alone).

TokenService never reads global settings; it is built from a JwtConfig
and an optional clock, which keeps issuance reproducible in tests.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

import jwt

from budgetmanager.auth.roles import Role
from budgetmanager.config import JwtConfig

USER_ID_CLAIM = "UserId"
ROLE_CLAIM = "role"


class TokenError(Exception):
    """Raised when a token fails verification."""


class TokenExpiredError(TokenError):
    """The token's signature is fine but exp has passed."""


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_at: datetime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    """Issues and verifies HMAC-signed bearer tokens."""

    def __init__(
        self,
        config: JwtConfig,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        if not config.secret_key:
            raise ValueError("JWT secret key is not configured")
        self.config = config
        self._clock = clock or _utcnow

    def issue(
        self,
        user_id: int,
        email: str,
        role: Optional[Role] = None,
    ) -> IssuedToken:
        now = self._clock()
        expires = now + timedelta(minutes=self.config.expiry_minutes)
        payload: dict[str, Any] = {
            "sub": email,
            USER_ID_CLAIM: str(user_id),
            "iss": self.config.issuer,
            "aud": self.config.audience,
            "iat": now,
            "exp": expires,
            "jti": uuid.uuid4().hex,
        }
        if role is not None:
            payload[ROLE_CLAIM] = role.value
        token = jwt.encode(
            payload, self.config.secret_key, algorithm=self.config.algorithm
        )
        return IssuedToken(token=token, expires_at=expires)

    def verify(self, token: str) -> dict[str, Any]:
        """Verify signature, expiry, issuer and audience.

        Returns the claims on success, raises TokenError otherwise.
        """
        try:
            return jwt.decode(
                token,
                self.config.secret_key,
                algorithms=[self.config.algorithm],
                audience=self.config.audience,
                issuer=self.config.issuer,
                options={"require": ["exp", "iss", "aud", "sub", USER_ID_CLAIM]},
            )
        except jwt.ExpiredSignatureError:
            raise TokenExpiredError("Token has expired")
        except jwt.InvalidTokenError as e:
            raise TokenError(f"Invalid token: {e}")

    @staticmethod
    def expiry_of(claims: dict[str, Any]) -> datetime:
        return datetime.fromtimestamp(int(claims["exp"]), tz=timezone.utc)
