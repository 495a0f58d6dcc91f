"""Node commands: create, move, rename, inspect, delete."""

from typing import Optional

import typer

from cli.context import describe, open_hierarchy, require_node

node_app = typer.Typer(help="Create, move and inspect nodes.", no_args_is_help=True)


@node_app.command("add")
def node_add(
    title: str = typer.Argument(..., help="Title stored in the node payload."),
    parent: Optional[str] = typer.Option(None, "--parent", help="Parent node ID."),
    node_id: Optional[str] = typer.Option(None, "--id", help="Explicit node ID (UUID when omitted)."),
) -> None:
    """Create a node, optionally beneath a parent."""
    with open_hierarchy("node add") as tree:
        node = tree.create({"title": title}, parent=parent, node_id=node_id)
        typer.echo(f"[node add] Created node: {node.id}  path={node.path!r}  level={tree.level(node)}")


@node_app.command("move")
def node_move(
    node_id: str = typer.Argument(..., help="Node to move."),
    parent: Optional[str] = typer.Option(None, "--parent", help="New parent node ID."),
    root: bool = typer.Option(False, "--root", help="Make the node a root."),
) -> None:
    """Reparent a node; every descendant path is rewritten."""
    if (parent is not None) == root:
        typer.echo("[node move] Pass exactly one of --parent or --root.")
        raise typer.Exit(code=1)

    with open_hierarchy("node move") as tree:
        node = require_node(tree, node_id, "node move")
        tree.move(node, None if root else parent)
        typer.echo(f"[node move] {node.id} now at path={node.path!r}")


@node_app.command("rename")
def node_rename(
    node_id: str = typer.Argument(..., help="Node to rename."),
    title: str = typer.Argument(..., help="New title."),
) -> None:
    """Change a node's title (its path is left alone)."""
    with open_hierarchy("node rename") as tree:
        node = require_node(tree, node_id, "node rename")
        node.payload["title"] = title
        tree.save(node)
        typer.echo(f"[node rename] {node.id} title={title!r}")


@node_app.command("children")
def node_children(
    node_id: str = typer.Argument(..., help="Parent node ID."),
    recursive: bool = typer.Option(False, "--recursive", "-r", help="Include all descendants."),
) -> None:
    """List direct children, or every descendant with --recursive."""
    with open_hierarchy("node children") as tree:
        node = require_node(tree, node_id, "node children")
        children = tree.get_children(node, recursive=recursive)
        if not children:
            typer.echo("[node children] No children found.")
            return
        for child in sorted(children, key=lambda c: c.path or ""):
            typer.echo(describe(child, tree.level(child)))


@node_app.command("ancestors")
def node_ancestors(
    node_id: str = typer.Argument(..., help="Node ID."),
) -> None:
    """List a node's ancestors, root first."""
    with open_hierarchy("node ancestors") as tree:
        node = require_node(tree, node_id, "node ancestors")
        ancestors = tree.get_ancestors(node)
        if not ancestors:
            typer.echo("[node ancestors] Node is a root.")
            return
        for ancestor in sorted(ancestors, key=tree.level):
            typer.echo(describe(ancestor, tree.level(ancestor)))


@node_app.command("level")
def node_level(
    node_id: str = typer.Argument(..., help="Node ID."),
) -> None:
    """Print a node's depth (a root is level 1)."""
    with open_hierarchy("node level") as tree:
        node = require_node(tree, node_id, "node level")
        typer.echo(str(tree.level(node)))


@node_app.command("delete")
def node_delete(
    node_id: str = typer.Argument(..., help="Node to delete."),
    on_delete: Optional[str] = typer.Option(
        None, "--on-delete", help="DELETE (whole subtree) | REPARENT (children move up)."
    ),
) -> None:
    """Delete a node according to the on-delete policy."""
    options = {} if on_delete is None else {"on_delete": on_delete}
    with open_hierarchy("node delete", **options) as tree:
        node = require_node(tree, node_id, "node delete")
        removed = tree.delete(node)
        typer.echo(f"[node delete] Removed {len(removed)} node(s).")


@node_app.command("repair")
def node_repair(
    node_id: str = typer.Argument(..., help="Subtree root to repair."),
) -> None:
    """Recompute the paths of a subtree from its parent links."""
    with open_hierarchy("node repair") as tree:
        node = require_node(tree, node_id, "node repair")
        fixed = tree.repair(node)
        typer.echo(f"[node repair] {fixed} path(s) rewritten.")
