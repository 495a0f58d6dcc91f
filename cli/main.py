"""pathtree CLI: entry-point for managing a materialized-path hierarchy.

Usage:
    python cli/main.py --help

Sub-command groups:
    db    → database setup
    node  → create, move, rename, inspect and delete nodes
    tree  → render the hierarchy
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that `from pathtree.xxx import ...`
# works when the CLI is invoked as `python cli/main.py` from any working
# directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import typer

from pathtree.config import settings
from pathtree.db import SqliteNodeStore, get_connection, init_db

from cli.commands.node import node_app
from cli.commands.tree import tree_app

app = typer.Typer(
    name="pathtree",
    help="Materialized-path hierarchy CLI.",
    no_args_is_help=True,
)

# ---------------------------------------------------------------------------
# DB commands
# ---------------------------------------------------------------------------
db_app = typer.Typer(help="Database operations.", no_args_is_help=True)
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """Initialise the SQLite database (create tables if they do not exist)."""
    conn = get_connection()
    try:
        init_db(conn)
        count = SqliteNodeStore(conn).count()
    finally:
        conn.close()
    typer.echo(f"[db init] Database ready at {settings.db_path} ({count} node(s))")


@db_app.command("settings")
def db_settings() -> None:
    """Show the hierarchy settings in effect."""
    typer.echo(f"[db settings] delimiter={settings.path_delimiter!r}")
    typer.echo(f"[db settings] on_delete={settings.on_delete}")
    typer.echo(f"[db settings] cascade_concurrency={settings.cascade_concurrency}")
    typer.echo(f"[db settings] reject_cycles={settings.reject_cycles}")


# ---------------------------------------------------------------------------
# Hierarchy commands
# ---------------------------------------------------------------------------
app.add_typer(node_app, name="node")
app.add_typer(tree_app, name="tree")


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
