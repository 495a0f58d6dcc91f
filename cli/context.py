"""Shared plumbing for pathtree CLI commands.

Every command opens the configured database, wraps it in a
:class:`~pathtree.tree.Hierarchy`, and closes the connection on exit.
Library errors are reported as a one-line message and exit code 1.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator

import typer

from pathtree.db import SqliteNodeStore, get_connection, init_db
from pathtree.db.models import Node
from pathtree.errors import HierarchyError
from pathtree.tree import Hierarchy


@contextmanager
def open_hierarchy(command: str, **options: Any) -> Iterator[Hierarchy]:
    """Yield a ``Hierarchy`` over the workspace DB.

    ``options`` are passed to :class:`Hierarchy`; anything omitted comes
    from ``settings``.

    ``HierarchyError`` raised inside the block is echoed as
    ``[<command>] ✗ <message>`` and turned into ``typer.Exit(1)``.
    """
    conn = get_connection()
    init_db(conn)
    try:
        yield Hierarchy(SqliteNodeStore(conn), **options)
    except HierarchyError as exc:
        typer.echo(f"[{command}] ✗ {exc}")
        raise typer.Exit(code=1)
    finally:
        conn.close()


def require_node(tree: Hierarchy, node_id: str, command: str) -> Node:
    """Fetch ``node_id`` or abort the command with exit code 1."""
    node = tree.store.find_by_id(node_id)
    if node is None:
        typer.echo(f"[{command}] ✗ Node not found: {node_id!r}")
        raise typer.Exit(code=1)
    return node


def describe(node: Node, level: int) -> str:
    return f"  {node.id}  L{level}  {node.title!r}  path={node.path!r}"
