"""
RefreshToken ORM model.

One row per signed-in device. Only the SHA-256 digest of the token is stored.
"""

from typing import TYPE_CHECKING
from uuid import uuid4

from sqlalchemy import BigInteger, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clubauth.models.orm.base import Base, epoch_now

if TYPE_CHECKING:
    from clubauth.models.orm.user import User


class RefreshToken(Base):
    """Refresh token database table."""

    __tablename__ = "refresh_tokens"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    token_hash: Mapped[str] = mapped_column(String(64))
    expires_at: Mapped[int] = mapped_column(BigInteger)
    created_at: Mapped[int] = mapped_column(BigInteger, default=epoch_now)
    last_used_at: Mapped[int | None] = mapped_column(BigInteger, default=None)
    # Optional metadata
    ip_address: Mapped[str | None] = mapped_column(String(45), default=None)
    user_agent: Mapped[str | None] = mapped_column(String(512), default=None)

    # Relationships
    user: Mapped["User"] = relationship(back_populates="refresh_tokens")

    def is_expired(self, now: int) -> bool:
        """Check if the token has expired at ``now`` (epoch seconds)."""
        return self.expires_at <= now

    __table_args__ = (
        Index("ix_refresh_tokens_user_id", "user_id"),
        Index("ix_refresh_tokens_token_hash", "token_hash"),
    )
