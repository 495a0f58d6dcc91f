"""Hierarchy reads: children, descendants, parent, ancestors.

Each query ANDs its hierarchy predicate onto the caller's filter, so
``get_children(store, node, "#", {"status": "active"})`` returns only the
active children.
"""

from __future__ import annotations

from typing import Optional, Sequence

from pathtree.db.filters import Eq, FilterLike, FindOptions, StartsWith, merge_filter
from pathtree.db.models import Node
from pathtree.db.store import NodeStore
from pathtree.tree.paths import descendant_prefix, split_path


def get_children(
    store: NodeStore,
    node: Node,
    delimiter: str,
    filter: FilterLike = None,
    fields: Optional[Sequence[str]] = None,
    options: Optional[FindOptions] = None,
    recursive: bool = False,
) -> list[Node]:
    """Direct children, or with ``recursive=True`` **all** descendants."""
    if recursive:
        if not node.path:
            return []
        criterion = StartsWith("path", descendant_prefix(node.path, delimiter))
    else:
        criterion = Eq("parent", node.id)
    return store.find(merge_filter(filter, criterion), fields, options)


def get_parent(store: NodeStore, node: Node) -> Optional[Node]:
    """The parent record, or ``None`` for a root or a dangling reference."""
    if not node.parent:
        return None
    return store.find_by_id(node.parent)


def ancestor_ids(node: Node, delimiter: str) -> list[str]:
    """Ids of every strict ancestor, root first."""
    return split_path(node.path, delimiter)[:-1]


def get_ancestors(
    store: NodeStore,
    node: Node,
    delimiter: str,
    filter: FilterLike = None,
    fields: Optional[Sequence[str]] = None,
    options: Optional[FindOptions] = None,
) -> list[Node]:
    """All ancestors in one batched lookup; order is up to the store."""
    ids = ancestor_ids(node, delimiter)
    if not ids:
        return []
    return store.find_by_ids(ids, filter, fields, options)
