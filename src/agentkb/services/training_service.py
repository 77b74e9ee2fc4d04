"""Training orchestration for knowledge sources.

Each source moves through ``idle -> training -> success | error`` and may be
retrained from either terminal state. Every training run is a job with its
own uuid; the orchestrator remembers the current job per source and drops
progress ticks and completions from any job that has since been superseded,
so a finished source never flips back to ``training`` because of a late tick.

Jobs run through the serial :class:`TaskRunner`. The orchestrator keeps no
copy of source state: every transition is written through the registry.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Set

from agentkb.core.constants import (
    DEFAULT_MAX_POLLS,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_PROGRESS_STEP,
    PROGRESS_CEILING_WHILE_POLLING,
    SERVICE_STATUS_ACTIVE,
    SERVICE_STATUS_ISSUES,
)
from agentkb.core.errors import (
    AgentKBError,
    EmptyBatchError,
    EmptySelectionError,
    KnowledgeConnectionError,
    KnowledgeServiceError,
    TrainingFault,
)
from agentkb.core.progress import (
    QueueStatus,
    SourceTracker,
    format_progress_display,
    format_source_name,
    phase_message,
)
from agentkb.core.selection import has_selection, selected_leaf_ids, selected_urls
from agentkb.core.source import KnowledgeSource, LeafId, TrainingStatus
from agentkb.services import notifier as messages
from agentkb.services.knowledge_client import KnowledgeClient
from agentkb.services.notifier import Notifier
from agentkb.services.registry import RECONCILED, REMOVED, SourceRegistry
from agentkb.services.task_runner import TaskInfo, TaskRunner, TaskStatus

logger = logging.getLogger(__name__)

TickFn = Callable[[int, Optional[str]], None]


class TrainingBackend(Protocol):
    """Something that can ingest a source's selected leaves."""

    async def run(
        self, source: KnowledgeSource, leaf_ids: List[LeafId], report: TickFn
    ) -> None:
        """Train ``source``, calling ``report(progress, phase)`` along the way.

        ``phase`` is the service's name for the current training step, or
        None when it reports none. Returns normally on success and raises on
        failure; raise :class:`TrainingFault` with ``link_broken=True`` for
        connectivity faults.
        """
        ...

    async def cancel(self, source: KnowledgeSource) -> None: ...


class ApiTrainingBackend:
    """Trains through the knowledge-base service and polls until it settles."""

    # Consecutive unreachable polls before the job is declared broken
    MAX_CONNECTION_FAILURES = 3

    def __init__(
        self,
        client: KnowledgeClient,
        agent_id: str,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        progress_step: int = DEFAULT_PROGRESS_STEP,
        max_polls: int = DEFAULT_MAX_POLLS,
    ):
        self.client = client
        self.agent_id = agent_id
        self.poll_interval = poll_interval
        self.progress_step = progress_step
        self.max_polls = max_polls

    async def run(
        self, source: KnowledgeSource, leaf_ids: List[LeafId], report: TickFn
    ) -> None:
        try:
            ticket = await self.client.train_agent(
                self.agent_id,
                leaf_ids,
                source_ids=[source.id],
                selected_urls=selected_urls(source),
            )
        except KnowledgeConnectionError as e:
            raise TrainingFault(str(e), link_broken=True) from e
        except KnowledgeServiceError as e:
            raise TrainingFault(str(e)) from e

        logger.info(
            "Training accepted for source %s (task %s)", source.id, ticket.task_id
        )
        progress = 0
        report(progress, None)
        failures = 0

        for _ in range(self.max_polls):
            await asyncio.sleep(self.poll_interval)
            try:
                answer = await self.client.train_status(self.agent_id)
            except KnowledgeConnectionError as e:
                failures += 1
                logger.warning("Training status poll failed (%d): %s", failures, e)
                if failures >= self.MAX_CONNECTION_FAILURES:
                    raise TrainingFault(str(e), link_broken=True) from e
                continue
            except KnowledgeServiceError as e:
                logger.warning("Training status poll rejected: %s", e)
                continue
            failures = 0

            if answer.status == SERVICE_STATUS_ACTIVE:
                return
            if answer.status == SERVICE_STATUS_ISSUES:
                raise TrainingFault(answer.message or "Training reported issues")

            if answer.progress is not None:
                progress = max(progress, min(answer.progress, 99))
            else:
                progress = min(
                    progress + self.progress_step, PROGRESS_CEILING_WHILE_POLLING
                )
            report(progress, answer.phase)

        raise TrainingFault(f"Training of {source.name} did not finish in time")

    async def cancel(self, source: KnowledgeSource) -> None:
        await self.client.cancel_training(self.agent_id)


@dataclass
class BatchProgress:
    """Aggregate view of a "train all" batch, with ready-made status lines."""

    batch_id: str
    total: int
    completed: int
    failed: int
    progress: int
    current_text: str = ""
    progress_bar: str = ""
    status_icon: str = ""
    phase_text: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return self.completed >= self.total

    def to_dict(self) -> Dict[str, Any]:
        return {
            "batch_id": self.batch_id,
            "total": self.total,
            "completed": self.completed,
            "failed": self.failed,
            "progress": self.progress,
            "is_complete": self.is_complete,
            "current_text": self.current_text,
            "progress_bar": self.progress_bar,
            "status_icon": self.status_icon,
            "phase_text": self.phase_text,
        }


@dataclass
class TrainingBatch:
    batch_id: str
    source_ids: List[int]
    tracker: SourceTracker
    job_ids: Dict[int, str] = field(default_factory=dict)
    outcomes: Dict[int, TrainingStatus] = field(default_factory=dict)
    done: asyncio.Event = field(default_factory=asyncio.Event)


class TrainingOrchestrator:
    """Drives per-source training state machines and "train all" batches."""

    # Finished batches kept for progress queries
    MAX_FINISHED_BATCHES = 20

    def __init__(
        self,
        registry: SourceRegistry,
        backend: TrainingBackend,
        runner: TaskRunner,
        notifier: Optional[Notifier] = None,
    ):
        self.registry = registry
        self.backend = backend
        self.runner = runner
        self.notifier = notifier or Notifier()
        self._current_jobs: Dict[int, str] = {}
        self._phases: Dict[int, str] = {}
        self._done: Dict[str, asyncio.Event] = {}
        self._batches: Dict[str, TrainingBatch] = {}
        self._active_batch: Optional[str] = None
        self._cancels: Set[asyncio.Task] = set()
        self._closed = False
        self._unsubscribe = registry.subscribe(self._on_registry_change)

    @property
    def is_training_all(self) -> bool:
        return self._active_batch is not None

    @property
    def active_batch_id(self) -> Optional[str]:
        return self._active_batch

    def current_job(self, source_id: int) -> Optional[str]:
        return self._current_jobs.get(source_id)

    # ------------------------------------------------------------------
    # Single source
    # ------------------------------------------------------------------

    async def train_source(
        self,
        source_id: int,
        *,
        require_selection: bool = False,
        batch_id: Optional[str] = None,
    ) -> str:
        """Start training a source and return the job id.

        A source that is already training keeps its running job, whose id
        is returned. A leftover job of a source that is no longer training
        is cancelled and any batch waiting on it follows the new job. With
        ``require_selection`` a source without any selected leaf is rejected
        before its state changes.

        Raises:
            SourceNotFoundError: Unknown source id.
            EmptySelectionError: ``require_selection`` and nothing selected.
        """
        if self._closed:
            raise AgentKBError("Training orchestrator is closed")

        source = self.registry.require(source_id)
        if require_selection and not has_selection(source):
            self.notifier.emit(messages.empty_selection_message(source.name))
            raise EmptySelectionError(source_id)

        batch = self._batches.get(batch_id) if batch_id else None
        current = self._current_jobs.get(source_id)
        if current is not None and source.is_training:
            logger.debug("Source %s already training (job %s)", source_id, current)
            if batch is not None:
                batch.job_ids[source_id] = current
            return current

        job_id = str(uuid.uuid4())
        self._current_jobs[source_id] = job_id
        self._phases.pop(source_id, None)
        self._done[job_id] = asyncio.Event()
        if batch is not None:
            batch.job_ids[source_id] = job_id
        if current is not None:
            await self._supersede(source_id, current, job_id)

        self.registry.set_status(source_id, TrainingStatus.TRAINING, progress=0)
        self.notifier.emit(messages.training_status_message("start", source.name))

        leaf_ids = selected_leaf_ids(source)

        async def _job(progress_cb: Callable[[str, int, int], None]) -> None:
            self._mark_batch(batch_id, source_id, QueueStatus.ACTIVE)

            def _report(progress: int, phase: Optional[str] = None) -> None:
                progress_cb(phase or "training", progress, 100)
                self._on_tick(source_id, job_id, progress, phase)

            await self.backend.run(source, leaf_ids, _report)

        async def _on_complete(info: TaskInfo) -> None:
            self._on_complete(source_id, job_id, info)

        await self.runner.submit(
            "train_source",
            _job,
            on_complete=_on_complete,
            metadata={"source_id": source_id, "batch_id": batch_id},
            task_id=job_id,
        )
        logger.info("Training job %s queued for source %s", job_id, source_id)
        return job_id

    async def _supersede(self, source_id: int, old_job: str, new_job: str) -> None:
        for batch in self._batches.values():
            if source_id in batch.outcomes:
                continue
            if batch.job_ids.get(source_id) == old_job:
                batch.job_ids[source_id] = new_job
        logger.debug("Job %s superseded by %s", old_job, new_job)
        self._release(old_job)
        await self.runner.cancel(old_job)

    def _on_tick(
        self, source_id: int, job_id: str, progress: int, phase: Optional[str] = None
    ) -> None:
        if self._closed or self._current_jobs.get(source_id) != job_id:
            logger.debug("Dropping stale tick from job %s", job_id)
            return
        source = self.registry.get(source_id)
        if source is None or not source.is_training:
            return
        if phase:
            self._phases[source_id] = phase
        progress = max(source.progress, max(0, min(100, int(progress))))
        if progress != source.progress:
            self.registry.set_status(source_id, TrainingStatus.TRAINING, progress)

    def _on_complete(self, source_id: int, job_id: str, info: TaskInfo) -> None:
        try:
            if self._closed or self._current_jobs.get(source_id) != job_id:
                logger.debug("Dropping result of superseded job %s", job_id)
                return
            del self._current_jobs[source_id]
            self._phases.pop(source_id, None)

            source = self.registry.get(source_id)
            if source is None:
                logger.info("Source %s was removed while training", source_id)
                self._record_outcome(job_id, source_id, TrainingStatus.ERROR)
                return

            if info.status == TaskStatus.COMPLETED:
                self.registry.set_status(
                    source_id,
                    TrainingStatus.SUCCESS,
                    link_broken=False if source.link_broken else None,
                )
                self.notifier.emit(
                    messages.training_status_message("success", source.name)
                )
                self._record_outcome(job_id, source_id, TrainingStatus.SUCCESS)
                return

            fault = info.exception
            link_broken = isinstance(fault, TrainingFault) and fault.link_broken
            self.registry.set_status(
                source_id,
                TrainingStatus.ERROR,
                link_broken=True if link_broken else None,
            )
            logger.warning("Training of source %s failed: %s", source_id, info.error)
            self.notifier.emit(messages.training_status_message("error", source.name))
            self._record_outcome(job_id, source_id, TrainingStatus.ERROR)
        finally:
            self._release(job_id)

    def _on_registry_change(self, action: str, ids: List[int]) -> None:
        if action not in (REMOVED, RECONCILED):
            return
        gone = [sid for sid in self._current_jobs if sid not in self.registry]
        for source_id in gone:
            job_id = self._current_jobs.pop(source_id)
            self._phases.pop(source_id, None)
            logger.info("Source %s was removed while training", source_id)
            self._record_outcome(job_id, source_id, TrainingStatus.ERROR)
            self._release(job_id)
            self._cancel_later(job_id)

    def _cancel_later(self, job_id: str) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No event loop; job %s left to finish", job_id)
            return
        task = loop.create_task(self.runner.cancel(job_id))
        self._cancels.add(task)
        task.add_done_callback(self._cancels.discard)

    def _release(self, job_id: str) -> None:
        event = self._done.pop(job_id, None)
        if event is not None:
            event.set()

    async def cancel(self, source_id: int) -> bool:
        """Stop a source's training job. Returns False if nothing was running."""
        job_id = self._current_jobs.pop(source_id, None)
        if job_id is None:
            return False
        self._phases.pop(source_id, None)

        await self.runner.cancel(job_id)
        source = self.registry.get(source_id)
        if source is not None:
            self.registry.set_status(source_id, TrainingStatus.ERROR)
            try:
                await self.backend.cancel(source)
            except KnowledgeServiceError as e:
                logger.warning("Service refused to cancel training: %s", e)
            self.notifier.emit(messages.training_cancelled_message(source.name))
        self._record_outcome(job_id, source_id, TrainingStatus.ERROR)
        self._release(job_id)
        return True

    async def wait(self, job_id: str, timeout: Optional[float] = None) -> None:
        """Wait until a job has finished (or been superseded).

        Returns at once for a job that is no longer tracked.
        """
        event = self._done.get(job_id)
        if event is None:
            return
        await asyncio.wait_for(event.wait(), timeout)

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    async def train_all_sources(
        self, source_ids: Optional[Sequence[int]] = None
    ) -> str:
        """Train several sources and return a batch id.

        Without ``source_ids`` the registry's training working set is used,
        or every source when that set is empty. While a batch is running a
        second call is a no-op returning the running batch's id.

        Raises:
            EmptyBatchError: There is nothing to train.
            SourceNotFoundError: An id is not in the registry.
        """
        if source_ids is None:
            source_ids = self.registry.training_selection or self.registry.ids()
        ids = list(dict.fromkeys(source_ids))
        if not ids:
            self.notifier.emit(messages.empty_batch_message())
            raise EmptyBatchError()
        if self._active_batch is not None:
            logger.debug("Train-all already running (%s)", self._active_batch)
            return self._active_batch

        sources = [self.registry.require(sid) for sid in ids]
        batch = TrainingBatch(
            batch_id=str(uuid.uuid4()),
            source_ids=ids,
            tracker=SourceTracker(sources),
        )
        self._batches[batch.batch_id] = batch
        self._active_batch = batch.batch_id
        self.notifier.emit(messages.train_all_started_message(len(ids)))
        logger.info(
            "Training batch %s started with %d sources", batch.batch_id, len(ids)
        )

        for sid in ids:
            if sid in batch.outcomes:
                continue
            if sid not in self.registry:
                # removed while earlier members were being queued
                self._record_batch(batch, sid, TrainingStatus.ERROR)
                continue
            await self.train_source(sid, batch_id=batch.batch_id)
        return batch.batch_id

    def get_batch(self, batch_id: str) -> Optional[TrainingBatch]:
        return self._batches.get(batch_id)

    def batch_progress(self, batch_id: str) -> BatchProgress:
        """Counts, mean progress and status lines of a batch."""
        batch = self._batches.get(batch_id)
        if batch is None:
            raise KeyError(batch_id)

        progresses = []
        for sid in batch.source_ids:
            if sid in batch.outcomes:
                progresses.append(100)
                continue
            source = self.registry.get(sid)
            progresses.append(source.progress if source and source.is_training else 0)

        total = len(batch.source_ids)
        completed = len(batch.outcomes)
        failed = sum(
            1 for status in batch.outcomes.values() if status == TrainingStatus.ERROR
        )
        progress = round(sum(progresses) / len(progresses)) if progresses else 0

        tracker = batch.tracker
        active = tracker.current_source() if completed < total else None
        if active is not None:
            position = tracker.current_progress()
            display = format_progress_display(
                position.done, position.total, progress, format_source_name(active)
            )
            phase = self._phases.get(active.id)
        else:
            position = tracker.completion_progress()
            display = format_progress_display(position.done, position.total, progress)
            phase = None
            if completed >= total:
                phase = "failed" if failed else "completed"

        return BatchProgress(
            batch_id=batch_id,
            total=total,
            completed=completed,
            failed=failed,
            progress=progress,
            current_text=display.current_text,
            progress_bar=display.progress_bar,
            status_icon=display.status_icon,
            phase_text=phase_message(phase) if phase else None,
        )

    async def wait_batch(
        self, batch_id: str, timeout: Optional[float] = None
    ) -> BatchProgress:
        batch = self._batches.get(batch_id)
        if batch is None:
            raise KeyError(batch_id)
        await asyncio.wait_for(batch.done.wait(), timeout)
        return self.batch_progress(batch_id)

    def _mark_batch(
        self, batch_id: Optional[str], source_id: int, status: QueueStatus
    ) -> None:
        batch = self._batches.get(batch_id) if batch_id else None
        if batch is not None:
            batch.tracker.update_status(source_id, status)

    def _record_outcome(
        self, job_id: str, source_id: int, status: TrainingStatus
    ) -> None:
        for batch in list(self._batches.values()):
            if source_id in batch.outcomes:
                continue
            if batch.job_ids.get(source_id) == job_id:
                self._record_batch(batch, source_id, status)

    def _record_batch(
        self, batch: TrainingBatch, source_id: int, status: TrainingStatus
    ) -> None:
        batch.outcomes[source_id] = status
        batch.tracker.update_status(
            source_id,
            QueueStatus.COMPLETED
            if status == TrainingStatus.SUCCESS
            else QueueStatus.FAILED,
        )
        if len(batch.outcomes) < len(batch.source_ids):
            return

        summary = self.batch_progress(batch.batch_id)
        if self._active_batch == batch.batch_id:
            self._active_batch = None
        if summary.failed == 0:
            self.registry.needs_retraining = False
        self.notifier.emit(
            messages.train_all_finished_message(summary.total, summary.failed)
        )
        logger.info(
            "Training batch %s finished: %d/%d failed",
            batch.batch_id,
            summary.failed,
            summary.total,
        )
        batch.done.set()
        self._prune_batches()

    def _prune_batches(self) -> None:
        finished = [bid for bid, b in self._batches.items() if b.done.is_set()]
        for batch_id in finished[: max(0, len(finished) - self.MAX_FINISHED_BATCHES)]:
            del self._batches[batch_id]

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Supersede every running job without touching source state."""
        self._closed = True
        self._unsubscribe()
        jobs = list(self._current_jobs.values())
        self._current_jobs.clear()
        self._phases.clear()
        for job_id in jobs:
            await self.runner.cancel(job_id)
        if self._cancels:
            await asyncio.gather(*self._cancels, return_exceptions=True)
        for job_id in list(self._done):
            self._release(job_id)
        for batch in self._batches.values():
            batch.done.set()
        self._active_batch = None
