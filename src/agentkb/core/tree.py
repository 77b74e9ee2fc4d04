"""Recursive URL tree for crawled websites and link lists.

Nodes are frozen dataclasses holding their children in a tuple, so a tree can
only change through the copy-on-write helpers in this module. Updates copy the
path from the root to the changed node and reuse every untouched subtree.
Traversal is depth-first and keeps the import order of siblings.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple


class LinkStatus(str, Enum):
    """Crawl status of a single URL."""

    SUCCESS = "success"
    ERROR = "error"
    PENDING = "pending"


def read_selected(data: Dict[str, Any], default: bool) -> bool:
    for key in ("is_selected", "isSelected", "selected"):
        if key in data and data[key] is not None:
            return bool(data[key])
    return default


def read_chars(data: Dict[str, Any]) -> Optional[int]:
    for key in ("chars", "no_of_chars", "charCount"):
        value = data.get(key)
        if value is not None:
            try:
                return int(value)
            except (TypeError, ValueError):
                return None
    return None


@dataclass(frozen=True)
class UrlNode:
    """A crawlable URL with an ordered sequence of child URLs.

    A node without children is a leaf and carries its own selection flag. A
    node with children is an aggregate: its selection is derived from its
    leaves, and its own ``is_selected`` value is not consulted.
    """

    url: str
    title: str = ""
    key: str = ""
    id: Optional[int] = None
    is_selected: bool = False
    children: Tuple["UrlNode", ...] = field(default_factory=tuple)
    status: LinkStatus = LinkStatus.SUCCESS
    chars: Optional[int] = None

    def __post_init__(self) -> None:
        if not self.key:
            object.__setattr__(self, "key", self.url)
        if not isinstance(self.children, tuple):
            object.__setattr__(self, "children", tuple(self.children))
        if not isinstance(self.status, LinkStatus):
            try:
                status = LinkStatus(self.status)
            except ValueError:
                status = LinkStatus.SUCCESS
            object.__setattr__(self, "status", status)

    @property
    def is_leaf(self) -> bool:
        return not self.children

    def with_children(self, children: Iterable["UrlNode"]) -> "UrlNode":
        """Return a copy of this node with a new child sequence."""
        return replace(self, children=tuple(children))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "key": self.key,
            "url": self.url,
            "title": self.title,
            "status": self.status.value,
            "selected": self.is_selected,
            "chars": self.chars,
            "children": [child.to_dict() for child in self.children],
        }

    @classmethod
    def from_dict(
        cls, data: Dict[str, Any], default_selected: bool = True
    ) -> "UrlNode":
        """Create a node (and its subtree) from a service dictionary.

        Nodes that do not state their selection default to selected, matching
        how freshly crawled URLs are offered for training.
        """
        raw_id = data.get("id")
        try:
            node_id = int(raw_id) if raw_id is not None else None
        except (TypeError, ValueError):
            node_id = None
        url = data.get("url") or ""
        return cls(
            url=url,
            title=data.get("title") or url,
            key=str(data.get("key") or url),
            id=node_id,
            is_selected=read_selected(data, default_selected),
            children=nodes_from_dicts(data.get("children") or (), default_selected),
            status=data.get("status") or LinkStatus.SUCCESS,
            chars=read_chars(data),
        )


def nodes_from_dicts(
    items: Iterable[Dict[str, Any]], default_selected: bool = True
) -> Tuple[UrlNode, ...]:
    """Build an ordered forest from a list of node dictionaries."""
    return tuple(UrlNode.from_dict(item, default_selected) for item in items)


def from_sub_urls(sub_urls: Optional[Dict[str, Any]]) -> Tuple[UrlNode, ...]:
    """Build the crawl tree from a source's ``metadata.sub_urls`` block.

    The block describes the crawl root (``url``/``title``) and its nested
    ``children``. Returns an empty forest when there is nothing to show.
    """
    if not sub_urls or not sub_urls.get("url"):
        return ()
    return (UrlNode.from_dict(sub_urls),)


def walk(roots: Iterable[UrlNode]) -> Iterator[UrlNode]:
    """Yield every node depth-first, parents before children."""
    for node in roots:
        yield node
        yield from walk(node.children)


def iter_leaves(roots: Iterable[UrlNode]) -> Iterator[UrlNode]:
    """Yield leaf nodes in depth-first, left-to-right order."""
    for node in walk(roots):
        if node.is_leaf:
            yield node


def find_node(roots: Iterable[UrlNode], key: str) -> Optional[UrlNode]:
    """Return the first node with the given key, or None."""
    for node in walk(roots):
        if node.key == key:
            return node
    return None


def update_node(
    roots: Tuple[UrlNode, ...], key: str, fn: Callable[[UrlNode], UrlNode]
) -> Tuple[UrlNode, ...]:
    """Replace the node with ``key`` by ``fn(node)``, copying only its ancestors.

    Returns ``roots`` itself when no node matches.
    """
    changed = False
    updated: List[UrlNode] = []
    for node in roots:
        if changed:
            updated.append(node)
            continue
        if node.key == key:
            updated.append(fn(node))
            changed = True
            continue
        new_children = update_node(node.children, key, fn)
        if new_children is not node.children:
            updated.append(node.with_children(new_children))
            changed = True
        else:
            updated.append(node)
    return tuple(updated) if changed else roots


def map_leaves(
    roots: Tuple[UrlNode, ...], fn: Callable[[UrlNode], UrlNode]
) -> Tuple[UrlNode, ...]:
    """Apply ``fn`` to every leaf, rebuilding the aggregates above them."""
    return tuple(
        fn(node)
        if node.is_leaf
        else node.with_children(map_leaves(node.children, fn))
        for node in roots
    )


def remove_nodes(
    roots: Tuple[UrlNode, ...], keys: Iterable[str]
) -> Tuple[UrlNode, ...]:
    """Drop the subtrees rooted at ``keys``.

    An aggregate whose children are all removed is dropped as well; it would
    otherwise turn into a leaf with no content of its own.
    """
    doomed = set(keys)

    def _prune(nodes: Tuple[UrlNode, ...]) -> Tuple[UrlNode, ...]:
        kept: List[UrlNode] = []
        for node in nodes:
            if node.key in doomed:
                continue
            if node.is_leaf:
                kept.append(node)
                continue
            children = _prune(node.children)
            if not children:
                continue
            if children != node.children:
                node = node.with_children(children)
            kept.append(node)
        return tuple(kept)

    return _prune(roots) if doomed else roots


def count_nodes(roots: Iterable[UrlNode]) -> int:
    """Count every node in the forest, aggregates included."""
    return sum(1 for _ in walk(roots))


def total_chars(roots: Iterable[UrlNode]) -> int:
    """Sum the character counts of all leaves that report one."""
    return sum(leaf.chars or 0 for leaf in iter_leaves(roots))
