"""
agentkb: knowledge sources and training for support agents

Keeps an agent's knowledge sources (documents, websites and their crawled
URL trees), the user's selection within them, and the training runs that
ingest that selection, in step with the knowledge-base service.
"""

from agentkb.core import (
    Document,
    KnowledgeSource,
    SourceType,
    TrainingStatus,
    UrlNode,
    compute_state,
    count_selected,
    set_subtree,
    toggle,
)
from agentkb.services import (
    KnowledgeWorkspace,
    SourceRegistry,
    SyncCoordinator,
    TrainingOrchestrator,
)

__version__ = "0.1.0"

__all__ = [
    # Model
    "UrlNode",
    "Document",
    "KnowledgeSource",
    "SourceType",
    "TrainingStatus",
    # Selection
    "toggle",
    "set_subtree",
    "compute_state",
    "count_selected",
    # Services
    "SourceRegistry",
    "TrainingOrchestrator",
    "SyncCoordinator",
    "KnowledgeWorkspace",
]
