"""
PasswordResetToken ORM model.
"""

from sqlalchemy import BigInteger, Boolean, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from clubauth.models.orm.base import Base, epoch_now


class PasswordResetToken(Base):
    """Password reset tokens. Single use through the ``used`` flag."""

    __tablename__ = "password_reset_tokens"

    token: Mapped[str] = mapped_column(String(128), primary_key=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    expires_at: Mapped[int] = mapped_column(BigInteger)
    used: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[int] = mapped_column(BigInteger, default=epoch_now)

    __table_args__ = (Index("ix_password_reset_tokens_user_id", "user_id"),)
