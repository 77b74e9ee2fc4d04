"""Common schemas shared across API endpoints."""

from typing import List, Literal

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str


class NotificationResponse(BaseModel):
    """A user-facing toast emitted by the core."""

    title: str
    description: str
    variant: Literal["default", "destructive"] = "default"
    created_at: str


class NotificationListResponse(BaseModel):
    notifications: List[NotificationResponse]
