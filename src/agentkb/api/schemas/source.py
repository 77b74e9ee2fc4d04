"""Schemas for knowledge sources, URL trees and selection."""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field


class UrlNodeSchema(BaseModel):
    """One node of a crawled URL tree."""

    id: Optional[int] = None
    key: str
    url: str
    title: str = ""
    status: str = "success"
    selected: bool = False
    chars: int = 0
    children: List["UrlNodeSchema"] = Field(default_factory=list)


class DocumentSchema(BaseModel):
    """A file belonging to a document source."""

    id: Union[int, str]
    name: str
    type: str = ""
    size: str = ""
    selected: bool = True
    chars: int = 0


class SelectionSummary(BaseModel):
    """Tri-state selection of a source or subtree."""

    state: str
    selected_count: int
    total_count: int
    summary: str = ""


class SourceResponse(BaseModel):
    """A knowledge source as stored in the registry."""

    id: int
    name: str
    type: str
    size: str = ""
    last_updated: str = ""
    training_status: str
    progress: int = Field(ge=0, le=100)
    link_broken: bool = False
    documents: List[DocumentSchema] = Field(default_factory=list)
    inside_links: List[UrlNodeSchema] = Field(default_factory=list)
    children: List[UrlNodeSchema] = Field(default_factory=list)
    content: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    selection: SelectionSummary


class SourceListResponse(BaseModel):
    """All sources of an agent."""

    sources: List[SourceResponse]
    needs_retraining: bool = False
    is_training_all: bool = False
    training_selection: List[int] = Field(default_factory=list)


class RemoveSourcesRequest(BaseModel):
    ids: List[int] = Field(min_length=1)


class RemoveSourcesResponse(BaseModel):
    removed: List[int]


class ImportSourcesRequest(BaseModel):
    """Catalogue sources to attach, with optional URL picks per source."""

    source_ids: List[int] = Field(min_length=1)
    selected_urls: Dict[int, List[str]] = Field(default_factory=dict)


class ToggleNodeRequest(BaseModel):
    """Toggle a URL node by key, or a document by id."""

    key: Optional[str] = None
    document_id: Optional[Union[int, str]] = None


class SetSubtreeRequest(BaseModel):
    """Set a node's whole subtree, or the whole source when key is omitted."""

    key: Optional[str] = None
    selected: bool


class RemoveNodesRequest(BaseModel):
    keys: List[str] = Field(min_length=1)
