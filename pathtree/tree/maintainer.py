"""The hierarchy engine.

``Hierarchy`` keeps the materialized ``path`` of every node in a store
consistent and answers hierarchy queries.  A save runs through three steps,
each of which lives in its own module:

1. :mod:`pathtree.tree.gate` decides whether the path must be rebuilt
   (new node, or ``parent`` changed).
2. :mod:`pathtree.tree.paths` fetches the parent and computes the new path.
3. :mod:`pathtree.tree.cascade` rewrites the descendants of a moved node.

Only then is the node itself written.  When the store supports
transactions, steps 2-3 and the write are one transaction.

Usage::

    from pathtree.db import SqliteNodeStore, get_connection, init_db
    from pathtree.tree import Hierarchy

    conn = get_connection()
    init_db(conn)
    tree = Hierarchy(SqliteNodeStore(conn))
    root = tree.create({"title": "Root"})
    child = tree.create({"title": "Child"}, parent=root)
    tree.level(child)  # 2
"""

from __future__ import annotations

import uuid
from collections import deque
from contextlib import nullcontext
from typing import Any, ContextManager, Mapping, Optional, Sequence, Union

from pathtree.config import settings
from pathtree.db.filters import Eq, Filter, FilterLike, FindOptions
from pathtree.db.models import Node
from pathtree.db.store import NodeStore, SupportsTransactions
from pathtree.errors import CascadeError, ConfigurationError, CycleError, NodeNotFoundError
from pathtree.tree import gate, queries
from pathtree.tree.cascade import CascadeResult, cascade_path_change
from pathtree.tree.paths import build_path, check_identifier, compute_path, is_descendant_path
from pathtree.tree.paths import level as path_level

ON_DELETE_POLICIES = ("DELETE", "REPARENT")


class Hierarchy:
    """Materialized-path tree over a :class:`~pathtree.db.store.NodeStore`.

    Args:
        store: Where nodes live.
        delimiter: Single character joining path segments.  Defaults to
            ``settings.path_delimiter``.
        on_delete: ``"DELETE"`` removes a deleted node's whole subtree;
            ``"REPARENT"`` moves its children up to its parent first.
        cascade_concurrency: Maximum simultaneous descendant rewrites.
        reject_cycles: Refuse to move a node beneath itself or one of its
            descendants.
    """

    def __init__(
        self,
        store: NodeStore,
        delimiter: Optional[str] = None,
        on_delete: Optional[str] = None,
        cascade_concurrency: Optional[int] = None,
        reject_cycles: Optional[bool] = None,
    ) -> None:
        self.store = store
        self.delimiter = settings.path_delimiter if delimiter is None else delimiter
        self.on_delete = (settings.on_delete if on_delete is None else on_delete).upper()
        self.cascade_concurrency = (
            settings.cascade_concurrency if cascade_concurrency is None else cascade_concurrency
        )
        self.reject_cycles = settings.reject_cycles if reject_cycles is None else reject_cycles

        if len(self.delimiter) != 1:
            raise ConfigurationError(
                f"Path delimiter must be a single character, got {self.delimiter!r}"
            )
        if self.on_delete not in ON_DELETE_POLICIES:
            raise ConfigurationError(
                f"Unknown on_delete policy {self.on_delete!r}; use one of {ON_DELETE_POLICIES}"
            )
        if self.cascade_concurrency < 1:
            raise ConfigurationError("cascade_concurrency must be at least 1")

    @property
    def transactional(self) -> bool:
        return isinstance(self.store, SupportsTransactions)

    def _unit_of_work(self) -> ContextManager[Any]:
        if self.transactional:
            return self.store.transaction()  # type: ignore[attr-defined]
        return nullcontext()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def create(
        self,
        payload: Optional[Mapping[str, Any]] = None,
        parent: Union[str, Node, None] = None,
        node_id: Optional[str] = None,
    ) -> Node:
        """Build and save a new node.  ``node_id`` defaults to a fresh UUID."""
        node = Node(
            id=node_id or str(uuid.uuid4()),
            parent=parent,
            payload=dict(payload or {}),
        )
        return self.save(node)

    def save(self, node: Node) -> Node:
        """Persist ``node``, maintaining its path and its descendants' paths.

        When the gate lets the save through unchanged only the payload is
        written; ``parent`` and ``path`` keep their stored values.  A reparent
        cascades from the path in the store, not the one on the handle.

        Raises:
            ParentNotFoundError: ``node.parent`` does not exist; nothing written.
            NodeNotFoundError: ``node`` was saved before but is gone.
            CycleError: The new parent lies inside the node's own subtree.
            CascadeIncompleteError / CascadeFailedError: Descendant rewrites
                failed.  ``exc.rolled_back`` tells whether the store undid
                the whole save.
            StoreError: The store failed.
        """
        decision = gate.inspect(node)
        state = node.saved_state()
        try:
            with self._unit_of_work():
                if not decision.rebuild:
                    return self.store.update_payload(node)

                previous_path = None
                if decision.cascade:
                    stored = self.store.find_by_id(node.id)
                    if stored is None:
                        raise NodeNotFoundError(node.id)
                    previous_path = stored.path
                new_path, parent = compute_path(self.store, node, self.delimiter)
                if decision.cascade and self.reject_cycles and parent is not None:
                    self._check_cycle(node, parent, previous_path)
                node.path = new_path
                if decision.cascade and previous_path is not None:
                    self._cascade(previous_path, new_path)
                return self._write(node)
        except BaseException as exc:
            node.restore_saved_state(state)
            if isinstance(exc, CascadeError):
                exc.rolled_back = self.transactional
            raise

    def move(self, node: Node, parent: Union[str, Node, None]) -> Node:
        """Reparent ``node`` (``None`` makes it a root) and save it."""
        node.parent = parent
        return self.save(node)

    def delete(self, node: Node) -> list[str]:
        """Remove ``node`` according to the ``on_delete`` policy.

        Returns:
            Ids of every removed node.
        """
        stored = self.store.find_by_id(node.id)
        if stored is None:
            raise NodeNotFoundError(node.id)

        with self._unit_of_work():
            if self.on_delete == "REPARENT":
                for child in self.get_children(stored):
                    self.move(child, stored.parent)
                removed = [stored.id]
            else:
                descendants = self.get_children(stored, fields=[], recursive=True)
                removed = [stored.id] + [d.id for d in descendants]
            self.store.delete_by_ids(removed)

        print(f"[DELETE] Removed {len(removed)} node(s) ({self.on_delete}).")
        return removed

    def repair(self, node: Node) -> int:
        """Recompute the paths of ``node``'s subtree from ``parent`` links.

        Meant for recovering from an incomplete cascade on a store without
        transactions.  Returns the number of paths that changed.
        """
        stored = self.store.find_by_id(node.id)
        if stored is None:
            raise NodeNotFoundError(node.id)

        fixed = 0
        with self._unit_of_work():
            path, _ = compute_path(self.store, stored, self.delimiter)
            if path != stored.path:
                self.store.update_by_id(stored.id, {"path": path})
                fixed += 1
            node.path = node.saved_path = path

            seen = {node.id}
            queue = deque([(node.id, path)])
            while queue:
                parent_id, parent_path = queue.popleft()
                for child in self.store.find(Filter((Eq("parent", parent_id),)), fields=[]):
                    if child.id in seen:
                        continue
                    seen.add(child.id)
                    child_path = build_path(child.id, parent_path, self.delimiter)
                    if child.path != child_path:
                        self.store.update_by_id(child.id, {"path": child_path})
                        fixed += 1
                    queue.append((child.id, child_path))

        print(f"[REPAIR] Rewrote {fixed} path(s) under {path!r}.")
        return fixed

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get_children(
        self,
        node: Node,
        filter: FilterLike = None,
        fields: Optional[Sequence[str]] = None,
        options: Optional[FindOptions] = None,
        recursive: bool = False,
    ) -> list[Node]:
        return queries.get_children(
            self.store, node, self.delimiter, filter, fields, options, recursive
        )

    def get_parent(self, node: Node) -> Optional[Node]:
        return queries.get_parent(self.store, node)

    def get_ancestors(
        self,
        node: Node,
        filter: FilterLike = None,
        fields: Optional[Sequence[str]] = None,
        options: Optional[FindOptions] = None,
    ) -> list[Node]:
        return queries.get_ancestors(self.store, node, self.delimiter, filter, fields, options)

    def level(self, node: Node) -> int:
        return path_level(node.path, self.delimiter)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _check_cycle(self, node: Node, parent: Node, node_path: Optional[str]) -> None:
        if parent.id == node.id:
            raise CycleError(node.id, parent.id)
        if node_path and parent.path and is_descendant_path(parent.path, node_path, self.delimiter):
            raise CycleError(node.id, parent.id)

    def _cascade(self, previous_path: str, new_path: str) -> CascadeResult:
        return cascade_path_change(
            self.store,
            previous_path,
            new_path,
            self.delimiter,
            concurrency=self.cascade_concurrency,
        )

    def _write(self, node: Node) -> Node:
        check_identifier(node.id, self.delimiter)
        if node.is_new:
            return self.store.insert(node)
        return self.store.replace(node)
