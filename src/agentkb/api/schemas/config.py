"""Configuration-related schemas."""

from typing import Any, Dict

from pydantic import BaseModel, Field


class ApiConfigSchema(BaseModel):
    base_url: str
    timeout: int
    # Never echoed back
    has_token: bool = False


class SyncConfigSchema(BaseModel):
    debounce_seconds: float


class TrainingConfigSchema(BaseModel):
    poll_interval: float
    progress_step: int
    max_polls: int


class NotificationConfigSchema(BaseModel):
    history_size: int


class ConfigResponse(BaseModel):
    """Full configuration response."""

    api: ApiConfigSchema
    sync: SyncConfigSchema
    training: TrainingConfigSchema
    notifications: NotificationConfigSchema


class ConfigUpdateRequest(BaseModel):
    """Request body for updating configuration.

    Keys use section prefixes, e.g. ``api_base_url`` or
    ``training_poll_interval``.
    """

    updates: Dict[str, Any] = Field(default_factory=dict)
