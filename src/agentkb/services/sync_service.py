"""Keeps the local registry in step with the knowledge-base service.

Local mutations (sources added or removed) schedule a refetch through a
:class:`Debouncer`, so a burst of changes costs one round trip. Removals are
applied optimistically and undone by refetching the server's view if the
service rejects them. Deletes, imports and refetches are each guarded
against running twice at once, and a refetch that lands while a delete or
import is in flight is postponed until that operation settles.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable, List, Optional

from agentkb.core.constants import DEFAULT_DEBOUNCE_SECONDS
from agentkb.core.errors import KnowledgeServiceError
from agentkb.core.source import KnowledgeSource
from agentkb.services import notifier as messages
from agentkb.services.knowledge_client import ImportSelection, KnowledgeClient
from agentkb.services.notifier import Notifier
from agentkb.services.registry import ADDED, REMOVED, SourceRegistry

logger = logging.getLogger(__name__)


class Debouncer:
    """Collapses bursts of :meth:`trigger` calls into one callback run.

    Each trigger restarts the quiet period; the callback runs once the
    period elapses without another trigger. Must be triggered from inside a
    running event loop.
    """

    def __init__(self, delay: float, callback: Callable[[], Awaitable[Any]]):
        self.delay = delay
        self.callback = callback
        self._handle: Optional[asyncio.TimerHandle] = None
        self._task: Optional["asyncio.Task[Any]"] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def trigger(self) -> None:
        loop = asyncio.get_running_loop()
        if self._handle is not None:
            self._handle.cancel()
        self._handle = loop.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self._task = asyncio.ensure_future(self._run())

    async def _run(self) -> None:
        try:
            await self.callback()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Debounced callback failed: %s", e)

    async def close(self) -> None:
        """Drop any pending run and cancel one in progress."""
        self.cancel()
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None


class SyncCoordinator:
    """Refetch, delete and import for one agent's knowledge sources."""

    def __init__(
        self,
        agent_id: str,
        registry: SourceRegistry,
        client: KnowledgeClient,
        notifier: Optional[Notifier] = None,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
    ):
        self.agent_id = agent_id
        self.registry = registry
        self.client = client
        self.notifier = notifier or Notifier()
        self.is_deleting = False
        self.is_importing = False
        self.is_refreshing = False
        self._stale = False
        self._closed = False
        self._debouncer = Debouncer(debounce_seconds, self.refresh)
        self._unsubscribe = registry.subscribe(self._on_registry_change)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def refresh_pending(self) -> bool:
        return self._debouncer.pending

    @property
    def _busy(self) -> bool:
        return self.is_deleting or self.is_importing

    def _on_registry_change(self, action: str, ids: List[int]) -> None:
        if action in (ADDED, REMOVED):
            self.notify_mutation()

    def notify_mutation(self) -> None:
        """Schedule a debounced refetch after a local change."""
        if self._closed:
            return
        try:
            self._debouncer.trigger()
        except RuntimeError:
            # no running loop; refetch on the next operation instead
            self._stale = True

    def _flush_stale(self) -> None:
        if self._stale and not self._busy and not self._closed:
            self._stale = False
            self.notify_mutation()

    async def refresh(self) -> bool:
        """Refetch the agent's sources and reconcile them into the registry.

        Returns False when the refetch was skipped or its result discarded
        (closed, or a delete/import/refetch was in flight).

        Raises:
            KnowledgeServiceError: The service could not be queried.
        """
        if self._closed:
            return False
        if self._busy or self.is_refreshing:
            self._stale = True
            return False

        self.is_refreshing = True
        try:
            snapshot = await self.client.list_knowledge_sources(self.agent_id)
        finally:
            self.is_refreshing = False

        if self._closed:
            return False
        if self._busy:
            self._stale = True
            return False

        self.registry.reconcile(snapshot)
        logger.debug("Reconciled %d sources for agent %s", len(snapshot), self.agent_id)
        self._flush_stale()
        return True

    async def _invalidate(self) -> None:
        self._stale = False
        try:
            await self.refresh()
        except KnowledgeServiceError as e:
            logger.warning("Could not refetch sources after failure: %s", e)

    async def remove_sources(self, source_ids: Iterable[int]) -> List[KnowledgeSource]:
        """Remove sources locally, then on the service.

        Returns the removed sources, or an empty list when a delete was
        already in flight or none of the ids were known.

        Raises:
            KnowledgeServiceError: The service refused; local state has been
                refetched from the service.
        """
        if self._closed:
            return []
        if self.is_deleting:
            logger.debug("Delete already in flight for agent %s", self.agent_id)
            return []

        ids = [sid for sid in dict.fromkeys(source_ids) if sid in self.registry]
        if not ids:
            return []

        self.is_deleting = True
        removed = [self.registry.remove(sid) for sid in ids]
        try:
            snapshot = await self.client.remove_knowledge_sources(self.agent_id, ids)
        except KnowledgeServiceError as e:
            logger.error("Failed to remove sources %s: %s", ids, e)
            self.notifier.emit(
                messages.service_error_message("remove knowledge source", str(e))
            )
            self.is_deleting = False
            if not self._closed:
                await self._invalidate()
            raise
        finally:
            self.is_deleting = False

        for source in removed:
            self.notifier.emit(messages.source_change_message("removed", source.name))
        if snapshot is not None and not self._closed:
            self.registry.reconcile(snapshot)
        logger.info("Removed %d sources from agent %s", len(removed), self.agent_id)
        self._flush_stale()
        return removed

    async def import_sources(self, selection: ImportSelection) -> List[KnowledgeSource]:
        """Import catalogue sources and merge them into the registry.

        Returns the sources that were actually added. A second import while
        one is in flight is ignored.
        """
        if self._closed:
            return []
        if self.is_importing:
            logger.debug("Import already in flight for agent %s", self.agent_id)
            return []

        self.is_importing = True
        try:
            imported = await self.client.import_sources(self.agent_id, selection)
        except KnowledgeServiceError as e:
            logger.error("Failed to import sources: %s", e)
            self.notifier.emit(
                messages.service_error_message("import knowledge sources", str(e))
            )
            raise
        finally:
            self.is_importing = False

        if self._closed:
            return []
        added = self.registry.import_sources(imported, selection.selected_urls)
        if added:
            self.notifier.emit(messages.sources_imported_message(len(added)))
        self._flush_stale()
        return added

    async def close(self) -> None:
        """Stop listening and cancel any pending or running refetch."""
        self._closed = True
        self._unsubscribe()
        await self._debouncer.close()
