"""SQLAlchemy ORM models.

Pure database models using SQLAlchemy 2.0 declarative style.
"""

from clubauth.models.orm.base import Base
from clubauth.models.orm.challenge import Challenge
from clubauth.models.orm.passkey import PasskeyCredential
from clubauth.models.orm.password_reset_token import PasswordResetToken
from clubauth.models.orm.refresh_token import RefreshToken
from clubauth.models.orm.user import User

__all__ = [
    "Base",
    "Challenge",
    "PasskeyCredential",
    "PasswordResetToken",
    "RefreshToken",
    "User",
]
