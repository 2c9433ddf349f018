"""
Common response models.

Every endpoint answers with the same envelope: ``{"success": true, "data": ...}``
on success and ``{"success": false, "error": "<message>"}`` on failure.
"""

from typing import Generic, Literal, TypeVar

from pydantic import BaseModel

DataT = TypeVar("DataT")


class ErrorResponse(BaseModel):
    """Standard error response model."""

    success: Literal[False] = False
    error: str


class SuccessResponse(BaseModel, Generic[DataT]):
    """Standard success envelope."""

    success: Literal[True] = True
    data: DataT


class MessageResponse(BaseModel):
    """Success response carrying only a human-readable message."""

    success: Literal[True] = True
    message: str


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str = "healthy"
    version: str = "1.0.0"
