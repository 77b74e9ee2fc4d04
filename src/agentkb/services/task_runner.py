"""Async task runner for long-running background operations.

Provides a TaskRunner that executes coroutine jobs one at a time on the event
loop, with per-task progress tracking, cancellation and optional on_complete
callbacks.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int, int], None]
JobFn = Callable[[ProgressCallback], Awaitable[Any]]


class TaskStatus(str, Enum):
    """Status of a background task."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.ERROR, TaskStatus.CANCELLED)


@dataclass
class TaskInfo:
    """State of a background task."""

    task_id: str
    task_type: str
    status: TaskStatus
    created_at: str
    updated_at: str
    progress: int = 0
    stage: str = ""
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    exception: Optional[BaseException] = field(default=None, repr=False)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class TaskRunner:
    """Runs coroutine jobs serially with progress tracking.

    One task runs at a time (serial queue). Progress is reported via a callback
    that the job receives. Task state is stored in memory only.
    """

    def __init__(self) -> None:
        self._tasks: Dict[str, TaskInfo] = {}
        self._queue: "asyncio.Queue[str]" = asyncio.Queue()
        self._pending_fns: Dict[str, tuple[JobFn, Optional[Callable]]] = {}
        self._worker_task: Optional[asyncio.Task] = None
        self._current: Optional[tuple[str, asyncio.Future]] = None

    @property
    def is_running(self) -> bool:
        return self._worker_task is not None and not self._worker_task.done()

    async def start(self) -> None:
        """Start the background worker loop."""
        if self.is_running:
            return
        self._worker_task = asyncio.create_task(self._worker_loop())
        logger.info("TaskRunner started")

    async def stop(self) -> None:
        """Cancel the worker and any job it is running."""
        if self._current is not None:
            self._current[1].cancel()
        if self._worker_task is not None:
            self._worker_task.cancel()
            try:
                await self._worker_task
            except asyncio.CancelledError:
                pass
            self._worker_task = None
        logger.info("TaskRunner stopped")

    async def submit(
        self,
        task_type: str,
        fn: JobFn,
        *,
        on_complete: Optional[Callable] = None,
        metadata: Optional[Dict[str, Any]] = None,
        task_id: Optional[str] = None,
    ) -> str:
        """Submit a coroutine function for background execution.

        Args:
            task_type: Label for the kind of work (e.g. "train_source").
            fn: Async callable receiving a ``progress_callback(stage, current, total)``.
            on_complete: Optional callback invoked after the task finishes (success,
                error or cancellation). Receives the TaskInfo. May be sync or async.
            metadata: Arbitrary dict stored on the TaskInfo.
            task_id: Use this id instead of generating one.

        Returns:
            The task's ID.
        """
        task_id = task_id or str(uuid.uuid4())
        now = _now()
        info = TaskInfo(
            task_id=task_id,
            task_type=task_type,
            status=TaskStatus.PENDING,
            created_at=now,
            updated_at=now,
            metadata=metadata or {},
        )
        self._tasks[task_id] = info
        self._pending_fns[task_id] = (fn, on_complete)
        await self._queue.put(task_id)
        logger.info("Task %s (%s) submitted", task_id, task_type)
        return task_id

    async def cancel(self, task_id: str) -> bool:
        """Cancel a pending or running task. Returns False if it already finished."""
        info = self._tasks.get(task_id)
        if info is None or info.status.is_terminal:
            return False

        if self._current is not None and self._current[0] == task_id:
            self._current[1].cancel()
            return True

        entry = self._pending_fns.pop(task_id, None)
        info.status = TaskStatus.CANCELLED
        info.updated_at = _now()
        logger.info("Task %s cancelled before it started", task_id)
        if entry is not None:
            await self._run_on_complete(info, entry[1])
        return True

    def get_task(self, task_id: str) -> Optional[TaskInfo]:
        """Return task info or None if not found."""
        return self._tasks.get(task_id)

    def list_tasks(
        self,
        task_type: Optional[str] = None,
        status: Optional[TaskStatus] = None,
    ) -> List[TaskInfo]:
        """Return tasks filtered by type and/or status, newest first."""
        tasks = list(self._tasks.values())
        if task_type is not None:
            tasks = [t for t in tasks if t.task_type == task_type]
        if status is not None:
            tasks = [t for t in tasks if t.status == status]
        tasks.sort(key=lambda t: t.created_at, reverse=True)
        return tasks

    async def _worker_loop(self) -> None:
        """Process tasks from the queue one at a time."""
        while True:
            task_id = await self._queue.get()
            entry = self._pending_fns.pop(task_id, None)
            if entry is None:
                continue
            fn, on_complete = entry
            info = self._tasks[task_id]

            info.status = TaskStatus.RUNNING
            info.updated_at = _now()

            def _make_progress_cb(t: TaskInfo) -> ProgressCallback:
                def _cb(stage: str, current: int, total: int) -> None:
                    t.stage = stage
                    t.progress = min(int(current / total * 100), 100) if total else 0
                    t.updated_at = _now()

                return _cb

            job = asyncio.ensure_future(fn(_make_progress_cb(info)))
            self._current = (task_id, job)
            try:
                await asyncio.wait({job})
            except asyncio.CancelledError:
                job.cancel()
                raise
            finally:
                self._current = None

            if job.cancelled():
                info.status = TaskStatus.CANCELLED
                logger.info("Task %s cancelled", task_id)
            elif job.exception() is not None:
                exc = job.exception()
                info.status = TaskStatus.ERROR
                info.error = str(exc)
                info.exception = exc
                logger.error("Task %s failed: %s", task_id, exc)
            else:
                raw_result = job.result()
                info.status = TaskStatus.COMPLETED
                info.progress = 100
                if isinstance(raw_result, dict):
                    info.result = raw_result
                elif raw_result is not None:
                    info.result = {"success": raw_result}
                logger.info("Task %s completed", task_id)
            info.updated_at = _now()

            await self._run_on_complete(info, on_complete)

    async def _run_on_complete(
        self, info: TaskInfo, on_complete: Optional[Callable]
    ) -> None:
        if on_complete is None:
            return
        try:
            ret = on_complete(info)
            if asyncio.iscoroutine(ret):
                await ret
        except Exception as exc:
            logger.error(
                "on_complete callback for task %s failed: %s",
                info.task_id,
                exc,
            )
