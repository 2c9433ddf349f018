"""Repository layer - data access over SQLAlchemy async sessions."""
