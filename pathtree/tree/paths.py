"""Materialized-path string helpers and the path builder.

A path is the ids of every ancestor (root first) followed by the node's own
id, joined by a single delimiter character::

    root#child#grandchild
"""

from __future__ import annotations

from typing import Optional

from pathtree.db.models import Node
from pathtree.db.store import NodeStore
from pathtree.errors import InvalidIdentifierError, ParentNotFoundError


def split_path(path: Optional[str], delimiter: str) -> list[str]:
    return path.split(delimiter) if path else []


def level(path: Optional[str], delimiter: str) -> int:
    """Depth of a node from its path; a root is level 1, no path is 0."""
    return len(split_path(path, delimiter))


def descendant_prefix(path: str, delimiter: str) -> str:
    """Prefix shared by every strict descendant of the node at ``path``.

    The trailing delimiter keeps ``a#b`` from matching a sibling ``a#bc``.
    """
    return path + delimiter


def is_descendant_path(path: str, ancestor_path: str, delimiter: str) -> bool:
    return path.startswith(descendant_prefix(ancestor_path, delimiter))


def rebase_path(path: str, previous_prefix: str, new_prefix: str) -> str:
    """Swap ``previous_prefix`` for ``new_prefix``, keeping the rest verbatim."""
    return new_prefix + path[len(previous_prefix):]


def check_identifier(node_id: str, delimiter: str) -> None:
    if delimiter in str(node_id):
        raise InvalidIdentifierError(str(node_id), delimiter)


def build_path(node_id: str, parent_path: Optional[str], delimiter: str) -> str:
    """Compose a node's path from its parent's path (``None`` for a root)."""
    check_identifier(node_id, delimiter)
    if parent_path is None:
        return str(node_id)
    return parent_path + delimiter + str(node_id)


def compute_path(store: NodeStore, node: Node, delimiter: str) -> tuple[str, Optional[Node]]:
    """Resolve ``node``'s parent and return ``(path, parent_node)``.

    Roots need no lookup.  Otherwise the parent is fetched by id.

    Raises:
        ParentNotFoundError: If ``node.parent`` does not resolve to a record.
        InvalidIdentifierError: If ``node.id`` contains the delimiter.
    """
    if not node.parent:
        return build_path(node.id, None, delimiter), None

    parent = store.find_by_id(node.parent)
    if parent is None:
        raise ParentNotFoundError(node.parent, node.id)
    return build_path(node.id, parent.path, delimiter), parent
