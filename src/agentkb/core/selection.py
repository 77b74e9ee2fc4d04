"""Tri-state selection over URL trees and document lists.

All functions are pure: they take nodes or sources and return new ones.
Selection lives on leaves only; an aggregate node's state is folded from its
leaves every time it is asked for, so it can never drift out of sync.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Collection, Iterable, List, Optional, Tuple

from agentkb.core.source import Document, KnowledgeSource, LeafId
from agentkb.core.tree import UrlNode, iter_leaves, map_leaves, update_node


class SelectionState(str, Enum):
    """Checkbox state of a node, list or source."""

    SELECTED = "selected"
    UNSELECTED = "unselected"
    INDETERMINATE = "indeterminate"


@dataclass(frozen=True)
class SelectionSnapshot:
    """Selected and total leaf counts for a subtree."""

    selected_count: int = 0
    total_count: int = 0

    @property
    def state(self) -> SelectionState:
        if self.selected_count == 0:
            return SelectionState.UNSELECTED
        if self.selected_count == self.total_count:
            return SelectionState.SELECTED
        return SelectionState.INDETERMINATE

    @property
    def is_empty(self) -> bool:
        return self.total_count == 0

    def __add__(self, other: "SelectionSnapshot") -> "SelectionSnapshot":
        return SelectionSnapshot(
            self.selected_count + other.selected_count,
            self.total_count + other.total_count,
        )


EMPTY_SNAPSHOT = SelectionSnapshot()


# ---------------------------------------------------------------------------
# Node level
# ---------------------------------------------------------------------------


def compute_state(node: UrlNode) -> SelectionSnapshot:
    """Fold the selection of every leaf under ``node`` (a leaf counts itself)."""
    if node.is_leaf:
        return SelectionSnapshot(1 if node.is_selected else 0, 1)
    return compute_forest_state(node.children)


def compute_forest_state(nodes: Iterable[UrlNode]) -> SelectionSnapshot:
    """Fold a sequence of trees. An empty sequence is 0 of 0, unselected."""
    snapshot = EMPTY_SNAPSHOT
    for node in nodes:
        snapshot = snapshot + compute_state(node)
    return snapshot


def set_subtree(node: UrlNode, selected: bool) -> UrlNode:
    """Set every leaf under ``node`` to ``selected``. Idempotent."""
    if node.is_leaf:
        if node.is_selected == selected:
            return node
        return replace(node, is_selected=selected)
    return node.with_children(set_all(node.children, selected))


def toggle(node: UrlNode) -> UrlNode:
    """Flip a leaf, or select/deselect a whole subtree like a tri-state box.

    A fully selected aggregate becomes fully deselected; a partially or
    fully deselected one becomes fully selected. Siblings are never touched.
    """
    if node.is_leaf:
        return replace(node, is_selected=not node.is_selected)
    fully_selected = compute_state(node).state == SelectionState.SELECTED
    return set_subtree(node, not fully_selected)


def set_all(roots: Tuple[UrlNode, ...], selected: bool) -> Tuple[UrlNode, ...]:
    """Select or deselect every leaf of a forest."""

    def _set(leaf: UrlNode) -> UrlNode:
        if leaf.is_selected == selected:
            return leaf
        return replace(leaf, is_selected=selected)

    return map_leaves(roots, _set)


def toggle_at(roots: Tuple[UrlNode, ...], key: str) -> Tuple[UrlNode, ...]:
    """Toggle the node with ``key`` inside a forest."""
    return update_node(roots, key, toggle)


def set_subtree_at(
    roots: Tuple[UrlNode, ...], key: str, selected: bool
) -> Tuple[UrlNode, ...]:
    """Set the subtree rooted at ``key`` inside a forest."""
    return update_node(roots, key, lambda node: set_subtree(node, selected))


def narrow_to_urls(
    roots: Tuple[UrlNode, ...], urls: Collection[str]
) -> Tuple[UrlNode, ...]:
    """Select exactly the leaves whose URL is in ``urls``."""
    accepted = set(urls)
    return map_leaves(
        roots, lambda leaf: replace(leaf, is_selected=leaf.url in accepted)
    )


# ---------------------------------------------------------------------------
# Document level
# ---------------------------------------------------------------------------


def document_state(documents: Iterable[Document]) -> SelectionSnapshot:
    selected = total = 0
    for doc in documents:
        total += 1
        if doc.is_selected:
            selected += 1
    return SelectionSnapshot(selected, total)


def toggle_document(
    documents: Tuple[Document, ...], doc_id: LeafId
) -> Tuple[Document, ...]:
    """Flip one document; returns the input unchanged for an unknown id."""
    if not any(doc.id == doc_id for doc in documents):
        return documents
    return tuple(
        replace(doc, is_selected=not doc.is_selected) if doc.id == doc_id else doc
        for doc in documents
    )


def set_documents(
    documents: Tuple[Document, ...],
    selected: bool,
    ids: Optional[Collection[LeafId]] = None,
) -> Tuple[Document, ...]:
    """Set the selection of all documents, or only those in ``ids``."""
    return tuple(
        replace(doc, is_selected=selected)
        if (ids is None or doc.id in ids) and doc.is_selected != selected
        else doc
        for doc in documents
    )


# ---------------------------------------------------------------------------
# Source level
# ---------------------------------------------------------------------------


def source_state(source: KnowledgeSource) -> SelectionSnapshot:
    """Combined snapshot over a source's tree, link list and documents."""
    return (
        compute_forest_state(source.children)
        + compute_forest_state(source.inside_links)
        + document_state(source.documents)
    )


def count_selected(source: KnowledgeSource) -> int:
    """Number of selected leaves (URLs and documents) in a source."""
    return source_state(source).selected_count


def has_selection(source: KnowledgeSource) -> bool:
    return count_selected(source) > 0


def selection_summary(source: KnowledgeSource) -> str:
    """Human-readable selection count, e.g. ``"3 URLs selected"``.

    A source without any leaves reads "No items" rather than a 0/0 count.
    """
    url_snapshot = compute_forest_state(source.children) + compute_forest_state(
        source.inside_links
    )
    doc_snapshot = document_state(source.documents)
    if url_snapshot.is_empty and doc_snapshot.is_empty:
        return "No items"

    parts = []
    if not url_snapshot.is_empty:
        parts.append(_plural(url_snapshot.selected_count, "URL"))
    if not doc_snapshot.is_empty:
        parts.append(_plural(doc_snapshot.selected_count, "file"))
    return ", ".join(parts) + " selected"


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}" + ("" if count == 1 else "s")


def selected_urls(source: KnowledgeSource) -> List[str]:
    """URLs of every selected leaf, in tree order."""
    return [
        leaf.url
        for leaf in iter_leaves(source.children + source.inside_links)
        if leaf.is_selected
    ]


def selected_leaf_ids(source: KnowledgeSource) -> List[LeafId]:
    """Service ids of every selected leaf that has one, URLs first."""
    ids: List[LeafId] = [
        leaf.id
        for leaf in iter_leaves(source.children + source.inside_links)
        if leaf.is_selected and leaf.id is not None
    ]
    ids.extend(doc.id for doc in source.documents if doc.is_selected)
    return ids
