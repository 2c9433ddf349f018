"""Models: ORM tables, API contracts and shared enums."""
