"""Batch progress tracking and text rendering for training runs.

``SourceTracker`` keeps the ordered processing queue of a "train all" batch;
the formatting helpers turn its counters into short status lines that a UI
can show without knowing anything about the batch internals.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Iterable, List, Optional
from urllib.parse import urlparse

from agentkb.core.source import KnowledgeSource


class QueueStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class SourceProgress:
    """Position and status of one source in the processing queue."""

    id: int
    title: str
    type: str
    position: int  # 1-based
    status: QueueStatus = QueueStatus.PENDING
    processed: bool = False


@dataclass(frozen=True)
class ProgressCount:
    done: int
    total: int

    @property
    def percentage(self) -> int:
        return round(self.done / self.total * 100) if self.total else 0


class SourceTracker:
    """Ordered processing queue for a batch of sources."""

    def __init__(self, sources: Iterable[KnowledgeSource]):
        self._sources: List[SourceProgress] = [
            SourceProgress(
                id=source.id,
                title=source.name or "Untitled Source",
                type=source.type.value,
                position=index + 1,
            )
            for index, source in enumerate(sources)
        ]
        self._current_index = 0

    @property
    def sources(self) -> List[SourceProgress]:
        return list(self._sources)

    @property
    def total(self) -> int:
        return len(self._sources)

    def get_source(self, source_id: int) -> Optional[SourceProgress]:
        for entry in self._sources:
            if entry.id == source_id:
                return entry
        return None

    def get_source_by_position(self, position: int) -> Optional[SourceProgress]:
        for entry in self._sources:
            if entry.position == position:
                return entry
        return None

    def current_source(self) -> Optional[SourceProgress]:
        for entry in self._sources:
            if entry.status == QueueStatus.ACTIVE:
                return entry
        return None

    def update_status(self, source_id: int, status: QueueStatus) -> bool:
        """Move a source to ``status``. Returns False for unknown ids.

        Activating a source demotes any earlier active entry back to pending.
        """
        index = next(
            (i for i, entry in enumerate(self._sources) if entry.id == source_id),
            None,
        )
        if index is None:
            return False

        entry = self._sources[index]
        if status == QueueStatus.ACTIVE and entry.status != QueueStatus.ACTIVE:
            for i in range(index):
                if self._sources[i].status == QueueStatus.ACTIVE:
                    self._sources[i] = replace(
                        self._sources[i], status=QueueStatus.PENDING
                    )
            self._current_index = index

        processed = entry.processed or status in (
            QueueStatus.COMPLETED,
            QueueStatus.FAILED,
        )
        self._sources[index] = replace(entry, status=status, processed=processed)
        return True

    def current_progress(self) -> ProgressCount:
        """Position of the active source, as ``[current/total]``."""
        if not self._sources:
            return ProgressCount(0, 0)
        return ProgressCount(self._current_index + 1, self.total)

    def completion_progress(self) -> ProgressCount:
        done = sum(1 for entry in self._sources if entry.processed)
        return ProgressCount(done, self.total)

    def counts(self) -> Dict[QueueStatus, int]:
        result = {status: 0 for status in QueueStatus}
        for entry in self._sources:
            result[entry.status] += 1
        return result

    def reset(self) -> None:
        self._sources = [
            replace(entry, status=QueueStatus.PENDING, processed=False)
            for entry in self._sources
        ]
        self._current_index = 0


# ---------------------------------------------------------------------------
# Text rendering
# ---------------------------------------------------------------------------

_TYPE_ICONS = {
    "website": "🌐",
    "url": "🌐",
    "document": "📄",
    "folder": "📁",
    "third_party": "💾",
}


def source_type_icon(source_type: str) -> str:
    return _TYPE_ICONS.get(source_type.lower(), "📄")


def format_source_name(entry: SourceProgress) -> str:
    """Icon plus name; web sources show their host name."""
    name = entry.title
    if entry.type in ("website", "url"):
        host = urlparse(entry.title).hostname
        if host:
            name = host
    return f"{source_type_icon(entry.type)} {name}"


def create_progress_bar(percentage: int, width: int = 20) -> str:
    filled = int(max(0, min(100, percentage)) / 100 * width)
    return "█" * filled + "░" * (width - filled)


@dataclass(frozen=True)
class ProgressDisplay:
    current_text: str
    progress_bar: str
    status_icon: str


def format_progress_display(
    current: int, total: int, percentage: int, source_name: Optional[str] = None
) -> ProgressDisplay:
    if source_name:
        current_text = f"[{current}/{total}] Extracting {source_name}..."
    else:
        current_text = f"Processing [{current}/{total}]"

    if percentage == 100:
        icon = "✓"
    elif current > 0:
        icon = "⚡"
    else:
        icon = "⏳"

    return ProgressDisplay(
        current_text=current_text,
        progress_bar=f"[{create_progress_bar(percentage)}] {percentage}% complete",
        status_icon=icon,
    )


def phase_message(
    phase: str, current: Optional[int] = None, total: Optional[int] = None
) -> str:
    """Status line for a training phase reported by the service."""
    if phase == "extracting":
        if current and total:
            return f"Text extraction in progress... [{current}/{total}]"
        return "Starting text extraction..."
    messages = {
        "extraction_completed": "✓ Text extraction completed successfully",
        "embedding_start": "Generating AI embeddings...",
        "embedding_completed": "✓ AI embedding generation completed",
        "completed": "🎉 Training completed successfully",
        "failed": "✗ Training process failed",
    }
    return messages.get(phase, "Training in progress...")
