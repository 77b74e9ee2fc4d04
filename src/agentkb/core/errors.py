"""Error types for the knowledge core."""

from typing import Optional


class AgentKBError(Exception):
    """Base class for all agentkb errors."""


class ValidationFailure(AgentKBError):
    """A request was rejected before any state changed.

    Validation failures are reported synchronously and are never retried.
    """


class EmptySelectionError(ValidationFailure):
    """Raised when a retrain is requested for a source with no selected leaves."""

    def __init__(self, source_id: int, message: Optional[str] = None):
        self.source_id = source_id
        super().__init__(
            message or f"Source {source_id} has no selected URLs or documents"
        )


class EmptyBatchError(ValidationFailure):
    """Raised when 'train all' is invoked without any sources."""

    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message or "Please import at least one knowledge source to train."
        )


class SourceNotFoundError(AgentKBError, KeyError):
    """Raised when a source id is not present in the registry."""

    def __init__(self, source_id: int):
        self.source_id = source_id
        super().__init__(f"Knowledge source not found: {source_id}")

    def __str__(self) -> str:
        return self.args[0]


class KnowledgeServiceError(AgentKBError):
    """The knowledge-base service rejected a request or returned garbage."""

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message)


class KnowledgeConnectionError(KnowledgeServiceError):
    """The knowledge-base service could not be reached."""


class TrainingFault(AgentKBError):
    """A training job finished unsuccessfully.

    Attributes:
        link_broken: True when the fault came from an unreachable source.
    """

    def __init__(self, message: str, link_broken: bool = False):
        self.link_broken = link_broken
        super().__init__(message)
