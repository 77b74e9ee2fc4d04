"""User-facing notifications emitted by the knowledge core.

The core never renders anything itself. It emits :class:`Notification`
events to a :class:`Notifier`, which fans them out to subscribers (a toast
bridge, a websocket, a test probe) and keeps a short history for polling
clients. Delivery never blocks the caller: coroutine subscribers are
scheduled on the running loop instead of awaited.
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Deque, Dict, List, Literal, Optional

from agentkb.core.constants import DEFAULT_NOTIFICATION_HISTORY

logger = logging.getLogger(__name__)

Variant = Literal["default", "destructive"]


@dataclass(frozen=True)
class Notification:
    title: str
    description: str
    variant: Variant = "default"
    created_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "variant": self.variant,
            "created_at": self.created_at,
        }


Subscriber = Callable[[Notification], Any]


class Notifier:
    """Fan-out of notifications with a bounded history."""

    def __init__(self, history_size: int = DEFAULT_NOTIFICATION_HISTORY) -> None:
        self._subscribers: List[Subscriber] = []
        self._history: Deque[Notification] = deque(maxlen=history_size)
        self._pending: set = set()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a subscriber. Returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    @property
    def history(self) -> List[Notification]:
        return list(self._history)

    def emit(self, notification: Notification) -> None:
        self._history.append(notification)
        logger.debug(
            "Notification: %s - %s", notification.title, notification.description
        )
        for callback in list(self._subscribers):
            try:
                ret = callback(notification)
            except Exception as exc:
                logger.error("Notification subscriber failed: %s", exc)
                continue
            if asyncio.iscoroutine(ret):
                self._schedule(ret)

    def _schedule(self, coro: Any) -> None:
        try:
            task = asyncio.get_running_loop().create_task(coro)
        except RuntimeError:
            coro.close()
            logger.warning("Dropped async notification subscriber: no running loop")
            return
        self._pending.add(task)
        task.add_done_callback(self._reap)

    def _reap(self, task: "asyncio.Task[Any]") -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Notification subscriber failed: %s", task.exception())


# ---------------------------------------------------------------------------
# Message catalogue
# ---------------------------------------------------------------------------


def source_change_message(action: str, source_name: str) -> Notification:
    """Message for a source being added, removed or modified."""
    if action == "removed":
        return Notification(
            "Knowledge source removed",
            f"{source_name} has been removed. Your agent needs retraining to "
            "update its knowledge.",
            "destructive",
        )
    if action == "added":
        return Notification(
            "Knowledge source added",
            f"{source_name} has been added. Training is required for the agent "
            "to use this knowledge.",
        )
    if action == "modified":
        return Notification(
            "Knowledge source modified",
            f"{source_name} has been modified. Your agent needs retraining to "
            "update its knowledge.",
        )
    return Notification(
        "Knowledge source updated",
        "Consider retraining your agent to update its knowledge.",
    )


def training_status_message(status: str, source_name: str) -> Notification:
    """Message for a training job starting, succeeding or failing."""
    if status == "start":
        return Notification(
            "Training started",
            f"{source_name} is now being processed. This may take a few moments.",
        )
    if status == "success":
        return Notification(
            "Training complete",
            f"{source_name} has been trained successfully and is ready to use.",
        )
    if status == "error":
        return Notification(
            "Training failed",
            f"Failed to train {source_name}. Please try again or check your source.",
            "destructive",
        )
    return Notification(
        "Training status update", f"{source_name} training status has changed."
    )


def training_cancelled_message(source_name: str) -> Notification:
    return Notification(
        "Training cancelled",
        f"Training of {source_name} was cancelled.",
        "destructive",
    )


def retraining_required_message() -> Notification:
    return Notification(
        "Retraining required",
        "Your knowledge sources have changed. Please retrain your agent to "
        "apply these changes.",
        "destructive",
    )


def empty_batch_message(detail: Optional[str] = None) -> Notification:
    return Notification(
        "No sources selected",
        detail or "Please import at least one knowledge source to train.",
        "destructive",
    )


def empty_selection_message(source_name: str) -> Notification:
    return Notification(
        "Nothing selected",
        f"Select at least one URL or file in {source_name} before retraining.",
        "destructive",
    )


def train_all_started_message(count: int) -> Notification:
    return Notification(
        "Training all sources",
        f"Processing {count} knowledge sources. This may take a moment.",
    )


def train_all_finished_message(total: int, failed: int) -> Notification:
    if failed:
        return Notification(
            "Training finished with errors",
            f"{failed} of {total} knowledge sources failed to train.",
            "destructive",
        )
    return Notification(
        "Training complete", f"All {total} knowledge sources were trained."
    )


def sources_imported_message(count: int) -> Notification:
    return Notification(
        "Knowledge sources imported",
        f"{count} sources have been imported successfully.",
    )


def service_error_message(action: str, detail: str) -> Notification:
    return Notification(f"Failed to {action}", detail, "destructive")
