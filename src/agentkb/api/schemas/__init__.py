"""Pydantic schemas for API request/response models."""

from .common import (
    ErrorResponse,
    HealthResponse,
    NotificationListResponse,
    NotificationResponse,
)
from .config import (
    ApiConfigSchema,
    ConfigResponse,
    ConfigUpdateRequest,
    NotificationConfigSchema,
    SyncConfigSchema,
    TrainingConfigSchema,
)
from .source import (
    DocumentSchema,
    ImportSourcesRequest,
    RemoveNodesRequest,
    RemoveSourcesRequest,
    RemoveSourcesResponse,
    SelectionSummary,
    SetSubtreeRequest,
    SourceListResponse,
    SourceResponse,
    ToggleNodeRequest,
    UrlNodeSchema,
)
from .task import TaskListResponse, TaskResponse
from .training import (
    BatchResponse,
    CancelResponse,
    TrainAllRequest,
    TrainSourceResponse,
)

__all__ = [
    # Common
    "ErrorResponse",
    "HealthResponse",
    "NotificationResponse",
    "NotificationListResponse",
    # Config
    "ConfigResponse",
    "ConfigUpdateRequest",
    "ApiConfigSchema",
    "SyncConfigSchema",
    "TrainingConfigSchema",
    "NotificationConfigSchema",
    # Sources
    "UrlNodeSchema",
    "DocumentSchema",
    "SelectionSummary",
    "SourceResponse",
    "SourceListResponse",
    "RemoveSourcesRequest",
    "RemoveSourcesResponse",
    "ImportSourcesRequest",
    "ToggleNodeRequest",
    "SetSubtreeRequest",
    "RemoveNodesRequest",
    # Training
    "TrainSourceResponse",
    "TrainAllRequest",
    "BatchResponse",
    "CancelResponse",
    # Task
    "TaskResponse",
    "TaskListResponse",
]
