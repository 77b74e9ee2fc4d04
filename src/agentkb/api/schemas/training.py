"""Schemas for training jobs and batches."""

from typing import List, Optional

from pydantic import BaseModel, Field


class TrainSourceResponse(BaseModel):
    """Returned when a source's training job is started."""

    source_id: int
    job_id: str
    training_status: str


class TrainAllRequest(BaseModel):
    """Sources to train.

    When omitted the training working set is used, or every source of the
    agent when that set is empty.
    """

    source_ids: Optional[List[int]] = None


class BatchResponse(BaseModel):
    """Progress of a "train all" batch."""

    batch_id: str
    total: int
    completed: int
    failed: int
    progress: int = Field(ge=0, le=100)
    is_complete: bool
    current_text: str = ""
    progress_bar: str = ""
    status_icon: str = ""
    phase_text: Optional[str] = None


class CancelResponse(BaseModel):
    source_id: int
    cancelled: bool
