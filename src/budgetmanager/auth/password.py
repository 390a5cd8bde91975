"""Password hashing and strength policy.

bcrypt handles salting; the work factor comes from settings so tests
can run with a cheap factor. Passwords are truncated to 72 bytes
(bcrypt's limit) before hashing and verification.
"""

import re
from typing import Optional

import bcrypt

from budgetmanager.config import settings

PASSWORD_SYMBOLS = "@$!%*?&"

_PASSWORD_RE = re.compile(
    r"(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]{8,}"
)
_EMAIL_RE = re.compile(r"[^@\s]+@[^@\s]+\.[^@\s]+")

PASSWORD_POLICY_MESSAGE = (
    "Password must be at least 8 characters long and contain an uppercase "
    f"letter, a lowercase letter, a digit and one of {PASSWORD_SYMBOLS}."
)

# Verified against when the email is unknown so both login failures cost
# the same bcrypt work.
_DUMMY_HASH: Optional[str] = None


def hash_password(password: str, rounds: Optional[int] = None) -> str:
    pw_bytes = password.encode("utf-8")[:72]
    salt = bcrypt.gensalt(rounds=rounds or settings.bcrypt_rounds)
    return bcrypt.hashpw(pw_bytes, salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        pw_bytes = password.encode("utf-8")[:72]
        return bcrypt.checkpw(pw_bytes, password_hash.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def burn_verification(password: str) -> None:
    """Spend one verification on a throwaway hash."""
    global _DUMMY_HASH
    if _DUMMY_HASH is None:
        _DUMMY_HASH = hash_password("not-a-real-password")
    verify_password(password, _DUMMY_HASH)


def is_strong_password(password: str) -> bool:
    return bool(_PASSWORD_RE.fullmatch(password))


def normalize_email(email: str) -> str:
    return email.strip().lower()


def is_valid_email(email: str) -> bool:
    return len(email) <= 255 and bool(_EMAIL_RE.fullmatch(email))
