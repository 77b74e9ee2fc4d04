"""Knowledge source endpoints: listing, import, removal and selection."""

import logging

from fastapi import APIRouter, HTTPException

from agentkb.api.deps import WorkspaceDep
from agentkb.api.schemas import (
    ImportSourcesRequest,
    RemoveNodesRequest,
    RemoveSourcesRequest,
    RemoveSourcesResponse,
    SelectionSummary,
    SetSubtreeRequest,
    SourceListResponse,
    SourceResponse,
    ToggleNodeRequest,
)
from agentkb.core.errors import KnowledgeServiceError, SourceNotFoundError
from agentkb.core.selection import compute_state, selection_summary, source_state
from agentkb.core.source import KnowledgeSource
from agentkb.core.tree import find_node
from agentkb.services.knowledge_client import ImportSelection
from agentkb.services.workspace import KnowledgeWorkspace

logger = logging.getLogger(__name__)

router = APIRouter()


def _summary(source: KnowledgeSource) -> SelectionSummary:
    snapshot = source_state(source)
    return SelectionSummary(
        state=snapshot.state.value,
        selected_count=snapshot.selected_count,
        total_count=snapshot.total_count,
        summary=selection_summary(source),
    )


def source_to_response(source: KnowledgeSource) -> SourceResponse:
    """Convert a KnowledgeSource to its API schema."""
    return SourceResponse(**source.to_dict(), selection=_summary(source))


def _list_response(workspace: KnowledgeWorkspace) -> SourceListResponse:
    return SourceListResponse(
        sources=[source_to_response(s) for s in workspace.registry.sources],
        needs_retraining=workspace.registry.needs_retraining,
        is_training_all=workspace.training.is_training_all,
        training_selection=workspace.registry.training_selection,
    )


def _require(workspace: KnowledgeWorkspace, source_id: int) -> KnowledgeSource:
    try:
        return workspace.registry.require(source_id)
    except SourceNotFoundError:
        raise HTTPException(status_code=404, detail="Knowledge source not found")


def _require_node(source: KnowledgeSource, key: str) -> None:
    if find_node(source.children + source.inside_links, key) is None:
        raise HTTPException(status_code=404, detail=f"URL not found: {key}")


@router.get("/sources", response_model=SourceListResponse)
async def list_sources(workspace: WorkspaceDep) -> SourceListResponse:
    """List the agent's knowledge sources in registry order."""
    return _list_response(workspace)


@router.post("/sources/refresh", response_model=SourceListResponse)
async def refresh_sources(workspace: WorkspaceDep) -> SourceListResponse:
    """Refetch sources from the knowledge-base service now."""
    try:
        await workspace.sync.refresh()
    except KnowledgeServiceError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return _list_response(workspace)


@router.post("/sources/import", response_model=SourceListResponse, status_code=201)
async def import_sources(
    body: ImportSourcesRequest, workspace: WorkspaceDep
) -> SourceListResponse:
    """Attach catalogue sources to the agent."""
    selection = ImportSelection(
        source_ids=body.source_ids, selected_urls=body.selected_urls
    )
    try:
        await workspace.sync.import_sources(selection)
    except KnowledgeServiceError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return _list_response(workspace)


@router.delete("/sources", response_model=RemoveSourcesResponse)
async def remove_sources(
    body: RemoveSourcesRequest, workspace: WorkspaceDep
) -> RemoveSourcesResponse:
    """Remove sources from the agent.

    The sources disappear from the listing immediately; if the service
    rejects the removal the listing is refetched and 502 returned.
    """
    try:
        removed = await workspace.sync.remove_sources(body.ids)
    except KnowledgeServiceError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return RemoveSourcesResponse(removed=[s.id for s in removed])


@router.get("/sources/{source_id}", response_model=SourceResponse)
async def get_source(source_id: int, workspace: WorkspaceDep) -> SourceResponse:
    return source_to_response(_require(workspace, source_id))


@router.get("/sources/{source_id}/selection", response_model=SelectionSummary)
async def get_selection(
    source_id: int, workspace: WorkspaceDep, key: str | None = None
) -> SelectionSummary:
    """Selection state of a source, or of one URL subtree when key is given."""
    source = _require(workspace, source_id)
    if key is None:
        return _summary(source)

    node = find_node(source.children + source.inside_links, key)
    if node is None:
        raise HTTPException(status_code=404, detail=f"URL not found: {key}")
    snapshot = compute_state(node)
    return SelectionSummary(
        state=snapshot.state.value,
        selected_count=snapshot.selected_count,
        total_count=snapshot.total_count,
    )


@router.post("/sources/{source_id}/selection/toggle", response_model=SourceResponse)
async def toggle_selection(
    source_id: int, body: ToggleNodeRequest, workspace: WorkspaceDep
) -> SourceResponse:
    """Toggle a URL node (by key) or a document (by id)."""
    source = _require(workspace, source_id)
    if body.key is not None:
        _require_node(source, body.key)
        source = workspace.registry.toggle_node(source_id, body.key)
    elif body.document_id is not None:
        if not any(doc.id == body.document_id for doc in source.documents):
            raise HTTPException(status_code=404, detail="Document not found")
        source = workspace.registry.toggle_document(source_id, body.document_id)
    else:
        raise HTTPException(status_code=422, detail="Either key or document_id")
    return source_to_response(source)


@router.post("/sources/{source_id}/selection/subtree", response_model=SourceResponse)
async def set_subtree_selection(
    source_id: int, body: SetSubtreeRequest, workspace: WorkspaceDep
) -> SourceResponse:
    """Select or deselect a whole subtree, or the whole source."""
    source = _require(workspace, source_id)
    if body.key is None:
        source = workspace.registry.select_all(source_id, body.selected)
    else:
        _require_node(source, body.key)
        source = workspace.registry.set_subtree(source_id, body.key, body.selected)
    return source_to_response(source)


@router.post("/sources/{source_id}/nodes/remove", response_model=SourceResponse)
async def remove_nodes(
    source_id: int, body: RemoveNodesRequest, workspace: WorkspaceDep
) -> SourceResponse:
    """Drop URLs (with their subtrees) from a website source."""
    _require(workspace, source_id)
    return source_to_response(workspace.registry.remove_nodes(source_id, body.keys))


@router.post(
    "/sources/{source_id}/training-selection", response_model=SourceListResponse
)
async def select_for_training(
    source_id: int, workspace: WorkspaceDep
) -> SourceListResponse:
    """Add a source to the working set that train-all uses by default."""
    _require(workspace, source_id)
    workspace.registry.select_for_training(source_id)
    return _list_response(workspace)


@router.delete(
    "/sources/{source_id}/training-selection", response_model=SourceListResponse
)
async def deselect_for_training(
    source_id: int, workspace: WorkspaceDep
) -> SourceListResponse:
    """Drop a source from the training working set."""
    _require(workspace, source_id)
    workspace.registry.deselect_for_training(source_id)
    return _list_response(workspace)
