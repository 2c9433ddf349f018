"""API contracts (request/response schemas)."""
