"""Utilities for rendering hierarchies in the CLI."""

from __future__ import annotations

from typing import Dict, List

from pathtree.db.models import Node


def render_tree(nodes: List[Node], root_id: str) -> str:
    """Render a subtree as an ASCII tree.

    Args:
        nodes: The root and its descendants (any order).
        root_id: The ID of the node to draw at the top.

    Returns:
        String representation of the tree.
    """
    # Build adjacency list from parent links
    adj: Dict[str, List[Node]] = {}
    node_map = {n.id: n for n in nodes}
    for n in nodes:
        if n.parent is not None and n.id != root_id:
            adj.setdefault(n.parent, []).append(n)
    for children in adj.values():
        children.sort(key=lambda c: (c.title, c.id))

    lines: List[str] = []
    visited: set[str] = set()

    def _render_node(node: Node, prefix: str, is_last: bool, is_root: bool) -> None:
        if node.id in visited:
            lines.append(f"{prefix}└── [Recursive Cycle] {node.id[:8]}")
            return
        visited.add(node.id)

        label = f"{node.title or '(untitled)'} ({node.id[:8]})"
        if is_root:
            lines.append(label)
            child_prefix = ""
        else:
            connector = "└── " if is_last else "├── "
            lines.append(f"{prefix}{connector}{label}")
            child_prefix = prefix + ("    " if is_last else "│   ")

        children = adj.get(node.id, [])
        count = len(children)
        for i, child in enumerate(children):
            _render_node(child, child_prefix, i == count - 1, False)

    root = node_map.get(root_id)
    if root:
        _render_node(root, "", True, True)
    else:
        lines.append("Root node not found in subtree.")

    return "\n".join(lines)


def render_forest(nodes: List[Node]) -> str:
    """Render every root in ``nodes`` one after another."""
    roots = sorted((n for n in nodes if n.parent is None), key=lambda n: (n.title, n.id))
    return "\n".join(render_tree(nodes, r.id) for r in roots)
