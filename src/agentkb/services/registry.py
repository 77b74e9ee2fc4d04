"""Source registry - the single source of truth for an agent's knowledge sources.

Every mutation of a source, whether a selection toggle, a training transition
or a server refresh, goes through this registry. Sources are immutable; the
registry swaps in updated copies and tells its listeners which ids changed.
"""

import logging
from dataclasses import replace
from typing import (
    Callable,
    Collection,
    Dict,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Tuple,
)

from agentkb.core import selection
from agentkb.core.errors import SourceNotFoundError
from agentkb.core.source import Document, KnowledgeSource, LeafId, TrainingStatus
from agentkb.core.tree import UrlNode, iter_leaves, map_leaves, remove_nodes

logger = logging.getLogger(__name__)

ChangeListener = Callable[[str, List[int]], None]

# Actions reported to listeners
ADDED = "added"
REMOVED = "removed"
UPDATED = "updated"
SELECTION = "selection"
TRAINING = "training"
RECONCILED = "reconciled"


class SourceRegistry:
    """Ordered collection of knowledge sources keyed by id."""

    def __init__(self, sources: Iterable[KnowledgeSource] = ()) -> None:
        self._sources: Dict[int, KnowledgeSource] = {}
        self._training_selection: List[int] = []
        self._listeners: List[ChangeListener] = []
        self.needs_retraining = False
        for source in sources:
            self._sources.setdefault(source.id, source)

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def sources(self) -> List[KnowledgeSource]:
        return list(self._sources.values())

    def ids(self) -> List[int]:
        return list(self._sources)

    def __len__(self) -> int:
        return len(self._sources)

    def __contains__(self, source_id: object) -> bool:
        return source_id in self._sources

    def __iter__(self) -> Iterator[KnowledgeSource]:
        return iter(self.sources)

    def get(self, source_id: int) -> Optional[KnowledgeSource]:
        return self._sources.get(source_id)

    def require(self, source_id: int) -> KnowledgeSource:
        """Return a source or raise :class:`SourceNotFoundError`."""
        source = self._sources.get(source_id)
        if source is None:
            raise SourceNotFoundError(source_id)
        return source

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Register ``listener(action, ids)``. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _emit(self, action: str, ids: List[int]) -> None:
        for listener in list(self._listeners):
            try:
                listener(action, ids)
            except Exception as exc:
                logger.error("Registry listener failed on %s: %s", action, exc)

    # ------------------------------------------------------------------
    # Add / remove / update
    # ------------------------------------------------------------------

    def add(self, source: KnowledgeSource) -> bool:
        """Append a source. A duplicate id is dropped and False returned."""
        if source.id in self._sources:
            logger.debug("Ignoring duplicate knowledge source %s", source.id)
            return False
        self._sources[source.id] = source
        self.needs_retraining = True
        self._emit(ADDED, [source.id])
        return True

    def add_many(self, sources: Iterable[KnowledgeSource]) -> List[KnowledgeSource]:
        """Append several sources, skipping duplicates. Returns those added."""
        added: List[KnowledgeSource] = []
        for source in sources:
            if source.id in self._sources:
                logger.debug("Ignoring duplicate knowledge source %s", source.id)
                continue
            self._sources[source.id] = source
            added.append(source)
        if added:
            self.needs_retraining = True
            self._emit(ADDED, [s.id for s in added])
        return added

    def remove(self, source_id: int) -> Optional[KnowledgeSource]:
        """Remove a source and drop it from the training working set."""
        source = self._sources.pop(source_id, None)
        if source is None:
            return None
        if source_id in self._training_selection:
            self._training_selection.remove(source_id)
        self.needs_retraining = True
        self._emit(REMOVED, [source_id])
        return source

    def update(self, source_id: int, **changes) -> KnowledgeSource:
        """Replace a source with a copy carrying ``changes``."""
        source = replace(self.require(source_id), **changes)
        self._sources[source_id] = source
        self.needs_retraining = True
        self._emit(UPDATED, [source_id])
        return source

    def set_status(
        self,
        source_id: int,
        status: TrainingStatus,
        progress: Optional[int] = None,
        link_broken: Optional[bool] = None,
    ) -> KnowledgeSource:
        """Move a source's training state, keeping the progress invariant."""
        source = self.require(source_id).with_status(status, progress, link_broken)
        self._sources[source_id] = source
        self._emit(TRAINING, [source_id])
        return source

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def _update_trees(
        self,
        source_id: int,
        fn: Callable[[Tuple[UrlNode, ...]], Tuple[UrlNode, ...]],
    ) -> KnowledgeSource:
        source = self.require(source_id)
        children = fn(source.children)
        inside_links = fn(source.inside_links)
        if children is source.children and inside_links is source.inside_links:
            return source
        return self._store_selection(
            replace(source, children=children, inside_links=inside_links)
        )

    def _update_documents(
        self,
        source_id: int,
        fn: Callable[[Tuple[Document, ...]], Tuple[Document, ...]],
    ) -> KnowledgeSource:
        source = self.require(source_id)
        documents = fn(source.documents)
        if documents is source.documents:
            return source
        return self._store_selection(replace(source, documents=documents))

    def _store_selection(self, source: KnowledgeSource) -> KnowledgeSource:
        self._sources[source.id] = source
        self.needs_retraining = True
        self._emit(SELECTION, [source.id])
        return source

    def toggle_node(self, source_id: int, key: str) -> KnowledgeSource:
        return self._update_trees(
            source_id, lambda roots: selection.toggle_at(roots, key)
        )

    def set_subtree(self, source_id: int, key: str, selected: bool) -> KnowledgeSource:
        return self._update_trees(
            source_id, lambda roots: selection.set_subtree_at(roots, key, selected)
        )

    def select_all(self, source_id: int, selected: bool) -> KnowledgeSource:
        """Select or deselect every URL and document of a source."""
        self._update_trees(
            source_id, lambda roots: selection.set_all(roots, selected)
        )
        return self._update_documents(
            source_id, lambda docs: selection.set_documents(docs, selected)
        )

    def toggle_document(self, source_id: int, doc_id: LeafId) -> KnowledgeSource:
        return self._update_documents(
            source_id, lambda docs: selection.toggle_document(docs, doc_id)
        )

    def set_documents(
        self,
        source_id: int,
        selected: bool,
        ids: Optional[Collection[LeafId]] = None,
    ) -> KnowledgeSource:
        return self._update_documents(
            source_id, lambda docs: selection.set_documents(docs, selected, ids)
        )

    def remove_nodes(self, source_id: int, keys: Iterable[str]) -> KnowledgeSource:
        """Drop URLs (and their subtrees) from a source's tree and link list."""
        keys = list(keys)
        return self._update_trees(source_id, lambda roots: remove_nodes(roots, keys))

    # ------------------------------------------------------------------
    # Training working set
    # ------------------------------------------------------------------

    @property
    def training_selection(self) -> List[int]:
        return list(self._training_selection)

    def select_for_training(self, source_id: int) -> None:
        self.require(source_id)
        if source_id not in self._training_selection:
            self._training_selection.append(source_id)

    def deselect_for_training(self, source_id: int) -> None:
        if source_id in self._training_selection:
            self._training_selection.remove(source_id)

    # ------------------------------------------------------------------
    # Import and reconciliation
    # ------------------------------------------------------------------

    @staticmethod
    def import_merge(
        external: Iterable[KnowledgeSource],
        current: Iterable[KnowledgeSource],
        selected_urls: Optional[Mapping[int, Collection[str]]] = None,
    ) -> List[KnowledgeSource]:
        """Return the external sources that are not already present.

        When ``selected_urls`` names a source, the returned copy has exactly
        those URLs selected. The external sources themselves are untouched.
        """
        seen = {source.id for source in current}
        merged: List[KnowledgeSource] = []
        for source in external:
            if source.id in seen:
                continue
            seen.add(source.id)
            if selected_urls is not None and source.id in selected_urls:
                urls = selected_urls[source.id]
                source = replace(
                    source,
                    children=selection.narrow_to_urls(source.children, urls),
                    inside_links=selection.narrow_to_urls(source.inside_links, urls),
                )
            merged.append(source)
        return merged

    def import_sources(
        self,
        external: Iterable[KnowledgeSource],
        selected_urls: Optional[Mapping[int, Collection[str]]] = None,
    ) -> List[KnowledgeSource]:
        """Merge an external catalogue into the registry. Returns what was added."""
        merged = self.import_merge(external, self.sources, selected_urls)
        return self.add_many(merged)

    def reconcile(self, snapshot: Iterable[KnowledgeSource]) -> None:
        """Replace the registry contents with a server snapshot.

        Sources that are training locally keep their local training state,
        as do finished sources the snapshot reports without a status. Leaves
        that exist on both sides keep their local selection.
        """
        fresh: Dict[int, KnowledgeSource] = {}
        for source in snapshot:
            if source.id in fresh:
                continue
            local = self._sources.get(source.id)
            if local is not None:
                source = _carry_selection(local, source)
                unreported = source.training_status == TrainingStatus.IDLE
                if local.is_training or (
                    unreported and local.training_status.is_terminal
                ):
                    source = replace(
                        source,
                        training_status=local.training_status,
                        progress=local.progress,
                        link_broken=local.link_broken,
                    )
            fresh[source.id] = source

        self._sources = fresh
        self._training_selection = [
            sid for sid in self._training_selection if sid in fresh
        ]
        self._emit(RECONCILED, list(fresh))


def _carry_selection(local: KnowledgeSource, fresh: KnowledgeSource) -> KnowledgeSource:
    picked = {
        leaf.key: leaf.is_selected
        for leaf in iter_leaves(local.children + local.inside_links)
    }
    picked_docs = {doc.id: doc.is_selected for doc in local.documents}

    def _apply(leaf: UrlNode) -> UrlNode:
        if leaf.key in picked and picked[leaf.key] != leaf.is_selected:
            return replace(leaf, is_selected=picked[leaf.key])
        return leaf

    return replace(
        fresh,
        children=map_leaves(fresh.children, _apply),
        inside_links=map_leaves(fresh.inside_links, _apply),
        documents=tuple(
            replace(doc, is_selected=picked_docs[doc.id])
            if doc.id in picked_docs
            else doc
            for doc in fresh.documents
        ),
    )
