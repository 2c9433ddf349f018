"""
User ORM model.

Represents members of the coding club platform.
"""

from typing import TYPE_CHECKING
from uuid import uuid4

from sqlalchemy import BigInteger, Boolean, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clubauth.models.orm.base import Base, epoch_now

if TYPE_CHECKING:
    from clubauth.models.orm.passkey import PasskeyCredential
    from clubauth.models.orm.refresh_token import RefreshToken


class User(Base):
    """User database table."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    email: Mapped[str] = mapped_column(String(320), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255))
    phone: Mapped[str | None] = mapped_column(String(32), default=None)
    # Absent until a password is set (Google / EtLab-only accounts)
    password_hash: Mapped[str | None] = mapped_column(String(255), default=None)
    google_id: Mapped[str | None] = mapped_column(String(255), unique=True, default=None)
    etlab_username: Mapped[str | None] = mapped_column(String(255), unique=True, default=None)
    profile_photo_url: Mapped[str | None] = mapped_column(String(1024), default=None)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[int] = mapped_column(BigInteger, default=epoch_now)
    updated_at: Mapped[int] = mapped_column(BigInteger, default=epoch_now, onupdate=epoch_now)

    # Relationships
    refresh_tokens: Mapped[list["RefreshToken"]] = relationship(back_populates="user")
    passkeys: Mapped[list["PasskeyCredential"]] = relationship(back_populates="user")
