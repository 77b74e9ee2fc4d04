"""Service layer for agentkb.

Stateful services built on the pure core: the source registry, the
knowledge-base client, training orchestration and server synchronisation.
"""

from .config_service import ConfigService
from .knowledge_client import ImportSelection, KnowledgeClient
from .notifier import Notification, Notifier
from .registry import SourceRegistry
from .sync_service import Debouncer, SyncCoordinator
from .task_runner import TaskInfo, TaskRunner, TaskStatus
from .training_service import (
    ApiTrainingBackend,
    BatchProgress,
    TrainingBackend,
    TrainingOrchestrator,
)
from .workspace import KnowledgeWorkspace

__all__ = [
    "ConfigService",
    "KnowledgeClient",
    "ImportSelection",
    "Notification",
    "Notifier",
    "SourceRegistry",
    "Debouncer",
    "SyncCoordinator",
    "TaskInfo",
    "TaskRunner",
    "TaskStatus",
    "ApiTrainingBackend",
    "BatchProgress",
    "TrainingBackend",
    "TrainingOrchestrator",
    "KnowledgeWorkspace",
]
