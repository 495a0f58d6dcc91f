"""Node storage: the ``NodeStore`` protocol and its SQLite implementation.

The hierarchy engine only talks to a store through :class:`NodeStore`, so
any document store offering point lookup, filtered find and update-by-id
can back a tree.  Stores that can also group writes atomically implement
:class:`SupportsTransactions`; the engine then runs a reparent and its
cascade inside one transaction.
"""

from __future__ import annotations

import json
import re
import sqlite3
import threading
from contextlib import contextmanager
from time import time
from typing import Any, Iterable, Iterator, Mapping, Optional, Protocol, Sequence, runtime_checkable

from pathtree.db.filters import Criterion, Eq, Filter, FilterLike, FindOptions, In, StartsWith, as_filter
from pathtree.db.models import Node
from pathtree.errors import NodeNotFoundError, StoreError


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------

class NodeStore(Protocol):
    def find_by_id(self, node_id: str) -> Optional[Node]: ...

    def find(
        self,
        filter: FilterLike = None,
        fields: Optional[Sequence[str]] = None,
        options: Optional[FindOptions] = None,
    ) -> list[Node]: ...

    def find_by_ids(
        self,
        ids: Iterable[str],
        filter: FilterLike = None,
        fields: Optional[Sequence[str]] = None,
        options: Optional[FindOptions] = None,
    ) -> list[Node]: ...

    def update_by_id(self, node_id: str, fields: Mapping[str, Any]) -> Node: ...

    def insert(self, node: Node) -> Node: ...

    def replace(self, node: Node) -> Node: ...

    def update_payload(self, node: Node) -> Node: ...

    def delete_by_ids(self, ids: Iterable[str]) -> int: ...


@runtime_checkable
class SupportsTransactions(Protocol):
    def transaction(self) -> Any: ...


# ---------------------------------------------------------------------------
# SQL compilation helpers
# ---------------------------------------------------------------------------

COLUMNS = ("id", "parent", "path", "created_at", "updated_at")
UPDATABLE = {"parent", "path", "payload"}
_PAYLOAD_KEY = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _column_sql(name: str) -> str:
    if name in COLUMNS:
        return name
    if not _PAYLOAD_KEY.match(name):
        raise ValueError(f"Invalid field name {name!r}")
    return f"json_extract(payload, '$.{name}')"


def _prefix_upper_bound(prefix: str) -> Optional[str]:
    """Smallest string greater than every string starting with ``prefix``.

    SQLite compares TEXT as UTF-8 bytes, which orders like code points.
    """
    if not prefix or ord(prefix[-1]) >= 0x10FFFF:
        return None
    successor = ord(prefix[-1]) + 1
    if 0xD800 <= successor <= 0xDFFF:
        successor = 0xE000
    return prefix[:-1] + chr(successor)


def _merged_payload(stored_json: Optional[str], node: Node) -> str:
    """Payload to write for ``node``, keeping keys a projection never loaded."""
    if node.projected_fields is None:
        return node.payload_json()
    merged = json.loads(stored_json or "{}")
    for key in node.projected_fields:
        if key not in node.payload:
            merged.pop(key, None)
    merged.update(node.payload)
    return json.dumps(merged)


def _criterion_sql(criterion: Criterion) -> tuple[str, list[Any]]:
    column = _column_sql(criterion.field)
    if isinstance(criterion, Eq):
        if criterion.value is None:
            return f"{column} IS NULL", []
        return f"{column} = ?", [criterion.value]
    if isinstance(criterion, StartsWith):
        # substr() compares the raw prefix; LIKE/GLOB would treat
        # characters in ids as wildcards.
        exact = f"substr({column}, 1, ?) = ?"
        params = [len(criterion.prefix), criterion.prefix]
        upper = _prefix_upper_bound(criterion.prefix)
        if column not in COLUMNS or upper is None:
            return exact, params
        # the range lets SQLite search the column's index
        return f"({column} >= ? AND {column} < ? AND {exact})", [criterion.prefix, upper] + params
    if isinstance(criterion, In):
        if not criterion.values:
            return "0", []
        placeholders = ",".join("?" for _ in criterion.values)
        return f"{column} IN ({placeholders})", list(criterion.values)
    raise TypeError(f"Unsupported criterion: {criterion!r}")


def compile_filter(filter: Filter) -> tuple[str, list[Any]]:
    """Return a ``WHERE`` clause (possibly empty) and its parameters."""
    clauses: list[str] = []
    params: list[Any] = []
    for criterion in filter.criteria:
        sql, values = _criterion_sql(criterion)
        clauses.append(sql)
        params.extend(values)
    if not clauses:
        return "", params
    return "WHERE " + " AND ".join(clauses), params


def compile_options(options: Optional[FindOptions]) -> tuple[str, list[Any]]:
    if options is None:
        return "", []
    sql = ""
    params: list[Any] = []
    if options.order_by:
        direction = "DESC" if options.descending else "ASC"
        sql += f" ORDER BY {_column_sql(options.order_by)} {direction}"
    if options.limit is not None or options.skip:
        sql += " LIMIT ? OFFSET ?"
        params.extend([-1 if options.limit is None else options.limit, options.skip])
    return sql, params


def _row_to_node(row: sqlite3.Row, fields: Optional[Sequence[str]] = None) -> Node:
    payload = json.loads(row["payload"] or "{}")
    if fields is not None:
        payload = {key: payload[key] for key in fields if key in payload}
    node = Node(
        id=row["id"],
        parent=row["parent"],
        path=row["path"],
        payload=payload,
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        projected_fields=None if fields is None else tuple(fields),
    )
    node.mark_saved()
    return node


# ---------------------------------------------------------------------------
# SQLite store
# ---------------------------------------------------------------------------

class SqliteNodeStore:
    """A :class:`NodeStore` over the ``nodes`` table of one connection.

    Every statement runs under a re-entrant lock so worker threads can share
    the connection.  Outside :meth:`transaction` each write commits on its
    own; inside it, writes from any thread join the open transaction.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn
        self._lock = threading.RLock()
        self._tx_depth = 0

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _query(self, sql: str, params: Sequence[Any] = ()) -> list[sqlite3.Row]:
        with self._lock:
            try:
                return self.conn.execute(sql, params).fetchall()
            except sqlite3.Error as exc:
                raise StoreError(f"Query failed: {exc}") from exc

    def _write(self, sql: str, params: Sequence[Any] = ()) -> int:
        with self._lock:
            try:
                cursor = self.conn.execute(sql, params)
                if not self._tx_depth:
                    self.conn.commit()
                return cursor.rowcount
            except sqlite3.Error as exc:
                if not self._tx_depth:
                    self.conn.rollback()
                raise StoreError(f"Write failed: {exc}") from exc

    @contextmanager
    def transaction(self) -> Iterator[SqliteNodeStore]:
        """Group every write made inside the block into one transaction.

        Nested blocks join the outermost one; only the outermost block
        commits, and any exception escaping it rolls everything back.
        """
        with self._lock:
            outermost = self._tx_depth == 0
            if outermost:
                try:
                    self.conn.execute("BEGIN IMMEDIATE")
                except sqlite3.Error as exc:
                    raise StoreError(f"Could not begin transaction: {exc}") from exc
            self._tx_depth += 1
        try:
            yield self
        except BaseException:
            with self._lock:
                self._tx_depth -= 1
                if outermost:
                    self.conn.rollback()
            raise
        with self._lock:
            self._tx_depth -= 1
            if outermost:
                try:
                    self.conn.commit()
                except sqlite3.Error as exc:
                    self.conn.rollback()
                    raise StoreError(f"Commit failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def find_by_id(self, node_id: str) -> Optional[Node]:
        """Fetch a single node by id.  Returns ``None`` if not found."""
        rows = self._query("SELECT * FROM nodes WHERE id = ?", (node_id,))
        return _row_to_node(rows[0]) if rows else None

    def find(
        self,
        filter: FilterLike = None,
        fields: Optional[Sequence[str]] = None,
        options: Optional[FindOptions] = None,
    ) -> list[Node]:
        """Return every node matching ``filter``.

        Args:
            filter: A :class:`Filter`, a ``{field: value}`` mapping, or ``None``.
            fields: Payload keys to load; ``None`` loads the whole payload.
                Stored columns are always returned.
            options: Sort and paging.
        """
        where, params = compile_filter(as_filter(filter))
        tail, tail_params = compile_options(options)
        rows = self._query(f"SELECT * FROM nodes {where}{tail}", params + tail_params)  # noqa: S608
        return [_row_to_node(r, fields) for r in rows]

    def find_by_ids(
        self,
        ids: Iterable[str],
        filter: FilterLike = None,
        fields: Optional[Sequence[str]] = None,
        options: Optional[FindOptions] = None,
    ) -> list[Node]:
        return self.find(as_filter(filter).and_(In("id", ids)), fields, options)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def insert(self, node: Node) -> Node:
        """Insert a new row for ``node`` and mark it as persisted."""
        now = int(time())
        self._write(
            """
            INSERT INTO nodes (id, parent, path, payload, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (node.id, node.parent, node.path, node.payload_json(), now, now),
        )
        node.created_at = now
        node.updated_at = now
        node.mark_saved()
        return node

    def _stored_row(self, node_id: str) -> sqlite3.Row:
        rows = self._query("SELECT parent, path, payload FROM nodes WHERE id = ?", (node_id,))
        if not rows:
            raise NodeNotFoundError(node_id)
        return rows[0]

    def replace(self, node: Node) -> Node:
        """Overwrite the stored parent, path and payload of an existing row.

        A projected node only overwrites the payload keys it loaded.

        Raises:
            NodeNotFoundError: If no row has ``node.id``.
        """
        now = int(time())
        with self._lock:
            stored_json = None
            if node.projected_fields is not None:
                stored_json = self._stored_row(node.id)["payload"]
            count = self._write(
                "UPDATE nodes SET parent = ?, path = ?, payload = ?, updated_at = ? WHERE id = ?",
                (node.parent, node.path, _merged_payload(stored_json, node), now, node.id),
            )
        if not count:
            raise NodeNotFoundError(node.id)
        node.updated_at = now
        node.mark_saved()
        return node

    def update_payload(self, node: Node) -> Node:
        """Write only ``node``'s payload, leaving ``parent`` and ``path`` alone.

        The handle's ``parent`` and ``path`` are refreshed from the stored
        row, so a handle loaded before a cascade catches up with it.

        Raises:
            NodeNotFoundError: If no row has ``node.id``.
        """
        now = int(time())
        with self._lock:
            row = self._stored_row(node.id)
            self._write(
                "UPDATE nodes SET payload = ?, updated_at = ? WHERE id = ?",
                (_merged_payload(row["payload"], node), now, node.id),
            )
        node.parent = row["parent"]
        node.path = row["path"]
        node.updated_at = now
        node.mark_saved()
        return node

    def update_by_id(self, node_id: str, fields: Mapping[str, Any]) -> Node:
        """Update one or more stored fields on a node.

        Allowed keys: ``parent``, ``path``, ``payload`` (dict).
        ``updated_at`` is always refreshed automatically.

        Raises:
            ValueError: If a key is not updatable or no keys are given.
            NodeNotFoundError: If ``node_id`` does not exist.
        """
        updates: dict[str, Any] = {}
        for key, value in fields.items():
            if key not in UPDATABLE:
                raise ValueError(f"Cannot update field {key!r}")
            updates[key] = json.dumps(value) if key == "payload" else value

        if not updates:
            raise ValueError("No valid fields provided to update_by_id()")

        updates["updated_at"] = int(time())
        set_clause = ", ".join(f"{col} = ?" for col in updates)
        values = list(updates.values()) + [node_id]

        with self._lock:
            count = self._write(f"UPDATE nodes SET {set_clause} WHERE id = ?", values)  # noqa: S608
            if not count:
                raise NodeNotFoundError(node_id)
            return self.find_by_id(node_id)  # type: ignore[return-value]

    def delete_by_ids(self, ids: Iterable[str]) -> int:
        """Delete every listed node; unknown ids are ignored."""
        id_list = list(ids)
        if not id_list:
            return 0
        placeholders = ",".join("?" for _ in id_list)
        return self._write(f"DELETE FROM nodes WHERE id IN ({placeholders})", id_list)  # noqa: S608

    def count(self, filter: FilterLike = None) -> int:
        where, params = compile_filter(as_filter(filter))
        rows = self._query(f"SELECT COUNT(*) FROM nodes {where}", params)  # noqa: S608
        return rows[0][0]
