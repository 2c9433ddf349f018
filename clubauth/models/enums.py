"""
Enums shared by ORM models and contracts.
"""

from enum import Enum


class ChallengeType(str, Enum):
    """Kinds of single-use challenge tokens."""

    PASSKEY_REGISTER = "passkey_register"
    PASSKEY_LOGIN = "passkey_login"
    SIGNUP = "signup"
    PASSWORD_RESET = "password_reset"
