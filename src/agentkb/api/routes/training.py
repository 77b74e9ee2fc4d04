"""Training endpoints: train one source, train all, batch progress, cancel."""

from fastapi import APIRouter, HTTPException

from agentkb.api.deps import WorkspaceDep
from agentkb.api.schemas import (
    BatchResponse,
    CancelResponse,
    TrainAllRequest,
    TrainSourceResponse,
)
from agentkb.core.errors import (
    AgentKBError,
    SourceNotFoundError,
    ValidationFailure,
)

router = APIRouter()


@router.post("/sources/{source_id}/train", response_model=TrainSourceResponse)
async def train_source(
    source_id: int, workspace: WorkspaceDep, require_selection: bool = False
) -> TrainSourceResponse:
    """Start (or retrain) a source.

    With ``require_selection`` the request is rejected with 422 when no URL
    or file of the source is selected.
    """
    try:
        job_id = await workspace.training.train_source(
            source_id, require_selection=require_selection
        )
    except SourceNotFoundError:
        raise HTTPException(status_code=404, detail="Knowledge source not found")
    except ValidationFailure as e:
        raise HTTPException(status_code=422, detail=str(e))
    except AgentKBError as e:
        raise HTTPException(status_code=409, detail=str(e))

    source = workspace.registry.require(source_id)
    return TrainSourceResponse(
        source_id=source_id,
        job_id=job_id,
        training_status=source.training_status.value,
    )


@router.post("/train-all", response_model=BatchResponse, status_code=202)
async def train_all(
    workspace: WorkspaceDep, body: TrainAllRequest | None = None
) -> BatchResponse:
    """Train the given sources as one batch.

    Without ids the training working set is trained, or every source when
    that set is empty.
    """
    source_ids = body.source_ids if body is not None else None
    try:
        batch_id = await workspace.training.train_all_sources(source_ids)
    except SourceNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValidationFailure as e:
        raise HTTPException(status_code=422, detail=str(e))
    except AgentKBError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return BatchResponse(**workspace.training.batch_progress(batch_id).to_dict())


@router.get("/batches/{batch_id}", response_model=BatchResponse)
async def get_batch(batch_id: str, workspace: WorkspaceDep) -> BatchResponse:
    """Aggregate progress of a batch."""
    try:
        progress = workspace.training.batch_progress(batch_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Batch not found")
    return BatchResponse(**progress.to_dict())


@router.post("/sources/{source_id}/cancel", response_model=CancelResponse)
async def cancel_training(source_id: int, workspace: WorkspaceDep) -> CancelResponse:
    """Stop a source's running training job."""
    if source_id not in workspace.registry:
        raise HTTPException(status_code=404, detail="Knowledge source not found")
    cancelled = await workspace.training.cancel(source_id)
    return CancelResponse(source_id=source_id, cancelled=cancelled)
