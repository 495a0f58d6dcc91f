"""Database layer tests: connection, schema, filters and the SQLite store.

All tests use an in-memory SQLite database so they are:
- Fast (no disk I/O)
- Isolated (each fixture gets a fresh DB)
- Side-effect free (nothing written to ~/.pathtree_data)
"""

from __future__ import annotations

import sqlite3
from typing import Generator

import pytest

from pathtree.db.connection import get_connection
from pathtree.db.filters import Eq, Filter, FindOptions, In, StartsWith, as_filter, merge_filter
from pathtree.db.schema import init_db
from pathtree.db.models import Node
from pathtree.db.store import SqliteNodeStore, compile_filter, compile_options
from pathtree.errors import NodeNotFoundError, StoreError


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def conn() -> Generator[sqlite3.Connection, None, None]:
    """In-memory connection with the schema initialised."""
    connection = get_connection(db_path=":memory:")  # type: ignore[arg-type]
    init_db(connection)
    yield connection
    connection.close()


@pytest.fixture()
def store(conn: sqlite3.Connection) -> SqliteNodeStore:
    return SqliteNodeStore(conn)


def _insert(store: SqliteNodeStore, node_id: str, path: str, parent: str | None = None, **payload) -> Node:
    return store.insert(Node(id=node_id, parent=parent, path=path, payload=payload))


# ---------------------------------------------------------------------------
# connection / init
# ---------------------------------------------------------------------------

class TestConnection:
    def test_foreign_keys_enabled(self, conn: sqlite3.Connection) -> None:
        row = conn.execute("PRAGMA foreign_keys").fetchone()
        assert row[0] == 1

    def test_wal_mode(self, conn: sqlite3.Connection) -> None:
        row = conn.execute("PRAGMA journal_mode").fetchone()
        # In-memory DBs always return 'memory', on-disk returns 'wal'
        assert row[0] in ("wal", "memory")

    def test_row_factory(self, conn: sqlite3.Connection) -> None:
        assert conn.row_factory is sqlite3.Row


class TestInitDb:
    def test_tables_exist(self, conn: sqlite3.Connection) -> None:
        tables = {
            r[0]
            for r in conn.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table'"
            ).fetchall()
        }
        assert "nodes" in tables

    def test_path_and_parent_indexed(self, conn: sqlite3.Connection) -> None:
        indexes = {
            r[0]
            for r in conn.execute(
                "SELECT name FROM sqlite_master WHERE type = 'index'"
            ).fetchall()
        }
        assert {"idx_nodes_parent", "idx_nodes_path"} <= indexes

    def test_idempotent_keeps_rows(self, conn: sqlite3.Connection) -> None:
        SqliteNodeStore(conn).insert(Node(id="A", path="A"))
        init_db(conn)
        init_db(conn)
        assert SqliteNodeStore(conn).count() == 1


# ---------------------------------------------------------------------------
# filters
# ---------------------------------------------------------------------------

class TestFilters:
    def test_where_builds_equality_criteria(self) -> None:
        f = Filter.where(status="active", kind="doc")
        assert f.criteria == (Eq("status", "active"), Eq("kind", "doc"))

    def test_merge_keeps_caller_criteria(self) -> None:
        merged = merge_filter({"status": "active"}, Eq("parent", "R"))
        assert merged.criteria == (Eq("status", "active"), Eq("parent", "R"))

    def test_merge_does_not_mutate_base(self) -> None:
        base = Filter.where(status="active")
        merge_filter(base, Eq("parent", "R"))
        assert base.criteria == (Eq("status", "active"),)

    def test_as_filter_none(self) -> None:
        assert as_filter(None) == Filter()
        assert not as_filter(None)

    def test_as_filter_rejects_other_types(self) -> None:
        with pytest.raises(TypeError):
            as_filter(["status"])  # type: ignore[arg-type]

    def test_in_accepts_any_iterable(self) -> None:
        assert In("id", iter(["a", "b"])).values == ("a", "b")

    def test_compile_columns_and_payload(self) -> None:
        where, params = compile_filter(
            Filter((Eq("parent", "R"), Eq("status", "active")))
        )
        assert where == "WHERE parent = ? AND json_extract(payload, '$.status') = ?"
        assert params == ["R", "active"]

    def test_compile_none_is_null(self) -> None:
        where, params = compile_filter(Filter((Eq("parent", None),)))
        assert where == "WHERE parent IS NULL"
        assert params == []

    def test_compile_starts_with_uses_raw_prefix(self) -> None:
        where, params = compile_filter(Filter((StartsWith("path", "a%#"),)))
        assert where == "WHERE (path >= ? AND path < ? AND substr(path, 1, ?) = ?)"
        assert params == ["a%#", "a%$", 3, "a%#"]

    def test_compile_starts_with_on_payload_key_has_no_range(self) -> None:
        where, params = compile_filter(Filter((StartsWith("title", "ab"),)))
        assert where == "WHERE substr(json_extract(payload, '$.title'), 1, ?) = ?"
        assert params == [2, "ab"]

    def test_compile_empty_in_matches_nothing(self) -> None:
        where, _ = compile_filter(Filter((In("id", []),)))
        assert where == "WHERE 0"

    def test_compile_rejects_unsafe_field(self) -> None:
        with pytest.raises(ValueError, match="Invalid field name"):
            compile_filter(Filter((Eq("x') OR 1=1 --", 1),)))

    def test_compile_options(self) -> None:
        sql, params = compile_options(FindOptions(order_by="title", descending=True, limit=5, skip=2))
        assert sql == " ORDER BY json_extract(payload, '$.title') DESC LIMIT ? OFFSET ?"
        assert params == [5, 2]

    def test_compile_skip_without_limit(self) -> None:
        _, params = compile_options(FindOptions(skip=3))
        assert params == [-1, 3]


# ---------------------------------------------------------------------------
# store
# ---------------------------------------------------------------------------

class TestSqliteNodeStore:
    def test_insert_and_find_by_id(self, store: SqliteNodeStore) -> None:
        node = _insert(store, "R", "R", title="Root")
        assert node.created_at is not None
        assert not node.is_new

        fetched = store.find_by_id("R")
        assert fetched is not None
        assert fetched.path == "R"
        assert fetched.parent is None
        assert fetched.payload == {"title": "Root"}
        assert fetched.saved_path == "R"

    def test_find_by_id_missing(self, store: SqliteNodeStore) -> None:
        assert store.find_by_id("nope") is None

    def test_insert_duplicate_raises_store_error(self, store: SqliteNodeStore) -> None:
        _insert(store, "R", "R")
        with pytest.raises(StoreError):
            _insert(store, "R", "R")

    def test_find_with_payload_filter(self, store: SqliteNodeStore) -> None:
        _insert(store, "A", "A", status="active")
        _insert(store, "B", "B", status="archived")
        found = store.find({"status": "active"})
        assert [n.id for n in found] == ["A"]

    def test_find_projection_limits_payload(self, store: SqliteNodeStore) -> None:
        _insert(store, "A", "A", title="A", body="long text")
        (node,) = store.find(fields=["title"])
        assert node.payload == {"title": "A"}
        assert node.path == "A"

    def test_find_order_and_limit(self, store: SqliteNodeStore) -> None:
        for name in ("c", "a", "b"):
            _insert(store, name.upper(), name.upper(), title=name)
        found = store.find(options=FindOptions(order_by="title", limit=2))
        assert [n.title for n in found] == ["a", "b"]

    def test_starts_with_treats_wildcards_literally(self, store: SqliteNodeStore) -> None:
        _insert(store, "a_b", "a_b")
        _insert(store, "axb", "axb")
        found = store.find(Filter((StartsWith("path", "a_"),)))
        assert [n.id for n in found] == ["a_b"]

    def test_path_prefix_scan_uses_index(self, store: SqliteNodeStore, conn: sqlite3.Connection) -> None:
        _insert(store, "R", "R")
        _insert(store, "C", "R#C", parent="R")
        where, params = compile_filter(Filter((StartsWith("path", "R#"),)))
        plan = conn.execute(f"EXPLAIN QUERY PLAN SELECT * FROM nodes {where}", params).fetchall()
        assert any("idx_nodes_path" in row[3] for row in plan)
        assert [n.id for n in store.find(Filter((StartsWith("path", "R#"),)))] == ["C"]

    def test_find_by_ids(self, store: SqliteNodeStore) -> None:
        for node_id in ("A", "B", "C"):
            _insert(store, node_id, node_id)
        found = store.find_by_ids(["A", "C", "missing"])
        assert {n.id for n in found} == {"A", "C"}

    def test_update_by_id(self, store: SqliteNodeStore) -> None:
        _insert(store, "A", "A")
        updated = store.update_by_id("A", {"path": "X#A", "payload": {"k": 1}})
        assert updated.path == "X#A"
        assert updated.payload == {"k": 1}

    def test_update_by_id_missing(self, store: SqliteNodeStore) -> None:
        with pytest.raises(NodeNotFoundError):
            store.update_by_id("nope", {"path": "x"})

    def test_update_by_id_rejects_unknown_field(self, store: SqliteNodeStore) -> None:
        _insert(store, "A", "A")
        with pytest.raises(ValueError, match="Cannot update field"):
            store.update_by_id("A", {"id": "B"})

    def test_update_by_id_requires_fields(self, store: SqliteNodeStore) -> None:
        _insert(store, "A", "A")
        with pytest.raises(ValueError, match="No valid fields"):
            store.update_by_id("A", {})

    def test_replace_missing(self, store: SqliteNodeStore) -> None:
        node = Node(id="ghost", path="ghost")
        node.mark_saved()
        with pytest.raises(NodeNotFoundError):
            store.replace(node)

    def test_replace_projected_node_keeps_unloaded_keys(self, store: SqliteNodeStore) -> None:
        _insert(store, "A", "A", title="A", body="keep me", tag="x")
        (node,) = store.find(fields=["title", "tag"])
        assert node.projected_fields == ("title", "tag")

        del node.payload["tag"]
        node.payload["title"] = "A2"
        node.payload["extra"] = 1
        store.replace(node)

        assert store.find_by_id("A").payload == {"title": "A2", "body": "keep me", "extra": 1}

    def test_update_payload_leaves_hierarchy_columns(self, store: SqliteNodeStore) -> None:
        _insert(store, "A", "X#A", parent="X", title="A")
        node = Node(id="A", parent="stale", path="stale#A", payload={"title": "B"})
        node.mark_saved()

        store.update_payload(node)

        stored = store.find_by_id("A")
        assert (stored.parent, stored.path) == ("X", "X#A")
        assert stored.payload == {"title": "B"}
        assert (node.parent, node.path, node.saved_path) == ("X", "X#A", "X#A")

    def test_update_payload_missing(self, store: SqliteNodeStore) -> None:
        node = Node(id="ghost")
        node.mark_saved()
        with pytest.raises(NodeNotFoundError):
            store.update_payload(node)

    def test_delete_by_ids(self, store: SqliteNodeStore) -> None:
        for node_id in ("A", "B", "C"):
            _insert(store, node_id, node_id)
        assert store.delete_by_ids(["A", "B", "missing"]) == 2
        assert store.count() == 1
        assert store.delete_by_ids([]) == 0


class TestTransactions:
    def test_commit(self, store: SqliteNodeStore) -> None:
        with store.transaction():
            _insert(store, "A", "A")
            _insert(store, "B", "B")
        assert store.count() == 2

    def test_rollback_on_error(self, store: SqliteNodeStore) -> None:
        with pytest.raises(RuntimeError):
            with store.transaction():
                _insert(store, "A", "A")
                raise RuntimeError("boom")
        assert store.count() == 0

    def test_nested_joins_outer(self, store: SqliteNodeStore) -> None:
        with pytest.raises(RuntimeError):
            with store.transaction():
                with store.transaction():
                    _insert(store, "A", "A")
                assert store.count() == 1
                raise RuntimeError("boom")
        assert store.count() == 0

    def test_writes_commit_individually_outside_transaction(
        self, store: SqliteNodeStore, conn: sqlite3.Connection
    ) -> None:
        _insert(store, "A", "A")
        assert not conn.in_transaction
