"""
Passkey (WebAuthn) ORM model.

Credentials are stored as asserted by the client. The attestation object is
kept in ``public_key`` as an opaque value and is not verified.
"""

from typing import TYPE_CHECKING
from uuid import uuid4

from sqlalchemy import JSON, BigInteger, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clubauth.models.orm.base import Base, epoch_now

if TYPE_CHECKING:
    from clubauth.models.orm.user import User


class PasskeyCredential(Base):
    """WebAuthn passkey credentials for passwordless authentication."""

    __tablename__ = "passkey_credentials"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))

    # Credential ID reported by the authenticator (base64url)
    credential_id: Mapped[str] = mapped_column(String(1024), unique=True)
    public_key: Mapped[str | None] = mapped_column(Text, default=None)
    counter: Mapped[int] = mapped_column(Integer, default=0)
    transports: Mapped[list[str]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"), default=list
    )  # usb, nfc, ble, internal, hybrid

    # User-facing info
    device_name: Mapped[str | None] = mapped_column(String(255), default=None)
    created_at: Mapped[int] = mapped_column(BigInteger, default=epoch_now)
    last_used_at: Mapped[int | None] = mapped_column(BigInteger, default=None)

    # Relationships
    user: Mapped["User"] = relationship(back_populates="passkeys")

    __table_args__ = (Index("ix_passkey_credentials_user_id", "user_id"),)
