"""
Base declarative class for ORM models.

All SQLAlchemy models inherit from the Base class defined here.
"""

import time

from sqlalchemy.orm import DeclarativeBase


def epoch_now() -> int:
    """Current time in whole epoch seconds, the unit every timestamp column uses."""
    return int(time.time())


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass
