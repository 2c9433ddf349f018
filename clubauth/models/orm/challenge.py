"""
Challenge ORM model.

Relational fallback for single-use challenges when Redis is not used.
Rows are pruned on read: consumption deletes them, expiry is checked against
``expires_at``.
"""

import sqlalchemy
from sqlalchemy import BigInteger, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from clubauth.models.enums import ChallengeType
from clubauth.models.orm.base import Base, epoch_now


class Challenge(Base):
    """Single-use challenge table."""

    __tablename__ = "challenges"

    challenge: Mapped[str] = mapped_column(String(128), primary_key=True)
    # Unset for anonymous ceremonies
    user_id: Mapped[str | None] = mapped_column(String(36), default=None)
    type: Mapped[ChallengeType] = mapped_column(
        sqlalchemy.Enum(
            ChallengeType,
            name="challenge_type",
            native_enum=False,
            length=32,
            values_callable=lambda x: [e.value for e in x],
        )
    )
    created_at: Mapped[int] = mapped_column(BigInteger, default=epoch_now)
    expires_at: Mapped[int] = mapped_column(BigInteger)

    __table_args__ = (Index("ix_challenges_expires_at", "expires_at"),)
