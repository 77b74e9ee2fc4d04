"""Knowledge source model shared by the registry, trainer and API layers.

A knowledge source is one trainable unit owned by an agent: an uploaded
document set, a crawled website, a list of URLs, plain text, a spreadsheet or
an import from a third-party integration. Each source owns its URL tree and
document list exclusively.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from agentkb.core.constants import SERVICE_STATUS_ACTIVE, SERVICE_STATUS_ISSUES
from agentkb.core.tree import (
    UrlNode,
    from_sub_urls,
    nodes_from_dicts,
    read_chars,
    read_selected,
)

LeafId = Union[int, str]


class SourceType(str, Enum):
    """Kind of content a knowledge source holds."""

    DOCUMENT = "document"
    URL = "url"
    WEBSITE = "website"
    DATABASE = "database"
    CSV = "csv"
    PLAIN_TEXT = "plain_text"
    THIRD_PARTY = "third_party"

    @classmethod
    def parse(cls, value: Optional[str]) -> "SourceType":
        """Map a service type label onto the closed set, defaulting to document."""
        if isinstance(value, cls):
            return value
        label = (value or "").strip().lower().replace("-", "_").replace(" ", "_")
        return _TYPE_ALIASES.get(label, cls.DOCUMENT)

    @property
    def is_web(self) -> bool:
        return self in (SourceType.URL, SourceType.WEBSITE)


_TYPE_ALIASES: Dict[str, SourceType] = {
    **{t.value: t for t in SourceType},
    "pdf": SourceType.DOCUMENT,
    "docx": SourceType.DOCUMENT,
    "file": SourceType.DOCUMENT,
    "folder": SourceType.DOCUMENT,
    "webpage": SourceType.URL,
    "text": SourceType.PLAIN_TEXT,
    "plaintext": SourceType.PLAIN_TEXT,
    "spreadsheet": SourceType.CSV,
    "xlsx": SourceType.CSV,
    "google_drive": SourceType.THIRD_PARTY,
    "thirdparty": SourceType.THIRD_PARTY,
}


class TrainingStatus(str, Enum):
    """Training state of a single knowledge source."""

    IDLE = "idle"
    TRAINING = "training"
    SUCCESS = "success"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (TrainingStatus.SUCCESS, TrainingStatus.ERROR)

    @classmethod
    def parse(cls, value: Optional[str]) -> "TrainingStatus":
        """Map a local or service status label, defaulting to idle.

        The service reports trained sources as "Active" and failed ones as
        "Issues".
        """
        if isinstance(value, cls):
            return value
        return _STATUS_ALIASES.get((value or "").strip().lower(), cls.IDLE)


_STATUS_ALIASES: Dict[str, TrainingStatus] = {
    **{s.value: s for s in TrainingStatus},
    SERVICE_STATUS_ACTIVE.lower(): TrainingStatus.SUCCESS,
    SERVICE_STATUS_ISSUES.lower(): TrainingStatus.ERROR,
}


@dataclass(frozen=True)
class Document:
    """A file inside a document-collection source."""

    id: LeafId
    name: str
    type: str = ""
    size: str = ""
    is_selected: bool = True
    chars: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "size": self.size,
            "selected": self.is_selected,
            "chars": self.chars,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Document":
        return cls(
            id=data.get("id", data.get("name", "")),
            name=data.get("name") or data.get("title") or "",
            type=data.get("type") or "",
            size=str(data.get("size") or ""),
            is_selected=read_selected(data, True),
            chars=read_chars(data),
        )


def _clamp_progress(value: Optional[float]) -> int:
    if value is None:
        return 0
    return max(0, min(100, int(value)))


@dataclass(frozen=True)
class KnowledgeSource:
    """A trainable knowledge source and its training state.

    Invariant: ``progress`` is above zero only while training and is pinned
    to 100 once training succeeds or fails. Use :meth:`with_status` to move
    between states so the invariant holds.
    """

    id: int
    name: str
    type: SourceType = SourceType.DOCUMENT
    size: str = ""
    last_updated: str = ""
    training_status: TrainingStatus = TrainingStatus.IDLE
    progress: int = 0
    link_broken: bool = False
    documents: Tuple[Document, ...] = field(default_factory=tuple)
    inside_links: Tuple[UrlNode, ...] = field(default_factory=tuple)
    children: Tuple[UrlNode, ...] = field(default_factory=tuple)
    content: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def __post_init__(self) -> None:
        for name in ("documents", "inside_links", "children"):
            value = getattr(self, name)
            if not isinstance(value, tuple):
                object.__setattr__(self, name, tuple(value))
        object.__setattr__(self, "type", SourceType.parse(self.type))
        status = TrainingStatus.parse(self.training_status)
        object.__setattr__(self, "training_status", status)
        object.__setattr__(self, "progress", _pin_progress(status, self.progress))

    @property
    def is_training(self) -> bool:
        return self.training_status == TrainingStatus.TRAINING

    def with_status(
        self,
        status: TrainingStatus,
        progress: Optional[int] = None,
        link_broken: Optional[bool] = None,
    ) -> "KnowledgeSource":
        """Return a copy in ``status`` with the progress invariant applied."""
        changes: Dict[str, Any] = {
            "training_status": status,
            "progress": _pin_progress(
                status, self.progress if progress is None else progress
            ),
        }
        if link_broken is not None:
            changes["link_broken"] = link_broken
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "size": self.size,
            "last_updated": self.last_updated,
            "training_status": self.training_status.value,
            "progress": self.progress,
            "link_broken": self.link_broken,
            "documents": [doc.to_dict() for doc in self.documents],
            "inside_links": [node.to_dict() for node in self.inside_links],
            "children": [node.to_dict() for node in self.children],
            "content": self.content,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KnowledgeSource":
        """Create from a service payload (camelCase or snake_case keys)."""
        metadata = data.get("metadata") or {}

        children_data = data.get("children")
        if children_data:
            children = nodes_from_dicts(children_data)
        else:
            children = from_sub_urls(metadata.get("sub_urls"))

        links_data = (
            data.get("inside_links")
            or data.get("insideLinks")
            or data.get("knowledge_sources")
            or ()
        )

        return cls(
            id=int(data["id"]),
            name=data.get("name") or data.get("title") or "Untitled Source",
            type=SourceType.parse(data.get("type") or data.get("format")),
            size=str(data.get("size") or metadata.get("file_size") or ""),
            last_updated=data.get("last_updated") or data.get("lastUpdated") or "",
            training_status=TrainingStatus.parse(
                data.get("training_status") or data.get("trainingStatus")
            ),
            progress=_clamp_progress(data.get("progress")),
            link_broken=bool(data.get("link_broken") or data.get("linkBroken")),
            documents=tuple(
                Document.from_dict(d) for d in data.get("documents") or ()
            ),
            inside_links=nodes_from_dicts(links_data),
            children=children,
            content=data.get("content"),
            metadata=dict(metadata),
        )


def _pin_progress(status: TrainingStatus, progress: Optional[int]) -> int:
    if status.is_terminal:
        return 100
    if status == TrainingStatus.IDLE:
        return 0
    return _clamp_progress(progress)
