"""Command for visualising the hierarchy."""

from typing import Optional

import typer

from cli.context import describe, open_hierarchy, require_node
from cli.rendering import render_forest, render_tree

tree_app = typer.Typer(help="Visualise the hierarchy.", no_args_is_help=True)


@tree_app.callback()
def _tree_group() -> None:
    """Visualise the hierarchy."""


@tree_app.command("show")
def tree_show(
    root_id: Optional[str] = typer.Argument(None, help="Subtree root (all roots when omitted)."),
    format: str = typer.Option("tree", "--format", help="Output format: tree | list"),
) -> None:
    """Display the hierarchy as an ASCII tree or flat list."""
    if format not in ("tree", "list"):
        typer.echo(f"[tree show] Unknown format {format!r}. Use: tree | list")
        raise typer.Exit(code=1)

    with open_hierarchy("tree show") as tree:
        if root_id:
            root = require_node(tree, root_id, "tree show")
            nodes = [root] + tree.get_children(root, recursive=True)
        else:
            nodes = tree.store.find()

        if not nodes:
            typer.echo("[tree show] No nodes found.")
            return

        if format == "list":
            for n in sorted(nodes, key=lambda n: n.path or ""):
                typer.echo(describe(n, tree.level(n)))
            return

        typer.echo(render_tree(nodes, root_id) if root_id else render_forest(nodes))
