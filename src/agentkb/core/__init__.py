"""Core data model for agentkb: URL trees, sources and selection."""

from .errors import (
    AgentKBError,
    EmptyBatchError,
    EmptySelectionError,
    KnowledgeConnectionError,
    KnowledgeServiceError,
    SourceNotFoundError,
    TrainingFault,
    ValidationFailure,
)
from .selection import (
    SelectionSnapshot,
    SelectionState,
    compute_forest_state,
    compute_state,
    count_selected,
    selection_summary,
    set_subtree,
    source_state,
    toggle,
)
from .source import Document, KnowledgeSource, SourceType, TrainingStatus
from .tree import LinkStatus, UrlNode

__all__ = [
    "AgentKBError",
    "ValidationFailure",
    "EmptySelectionError",
    "EmptyBatchError",
    "SourceNotFoundError",
    "KnowledgeServiceError",
    "KnowledgeConnectionError",
    "TrainingFault",
    "UrlNode",
    "LinkStatus",
    "Document",
    "KnowledgeSource",
    "SourceType",
    "TrainingStatus",
    "SelectionSnapshot",
    "SelectionState",
    "toggle",
    "set_subtree",
    "compute_state",
    "compute_forest_state",
    "count_selected",
    "source_state",
    "selection_summary",
]
