"""Decide whether a save has to (re)build a node's path."""

from __future__ import annotations

from dataclasses import dataclass

from pathtree.db.models import Node


def should_rebuild_path(is_new: bool, parent_changed: bool) -> bool:
    return is_new or parent_changed


def should_cascade(is_new: bool, parent_changed: bool) -> bool:
    """Only an existing node that changed parent can have descendants to move."""
    return parent_changed and not is_new


@dataclass(frozen=True)
class GateDecision:
    is_new: bool
    parent_changed: bool

    @property
    def rebuild(self) -> bool:
        return should_rebuild_path(self.is_new, self.parent_changed)

    @property
    def cascade(self) -> bool:
        return should_cascade(self.is_new, self.parent_changed)


def inspect(node: Node) -> GateDecision:
    """Compare ``node`` against its persisted state."""
    return GateDecision(is_new=node.is_new, parent_changed=node.parent_changed)
