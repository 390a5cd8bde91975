"""Closed role enumeration used by the access decision point."""

import enum


class Role(str, enum.Enum):
    """Account roles. Any other value fails validation on assignment."""

    ADMIN = "Admin"
    PRO = "Pro"
    USER = "User"
