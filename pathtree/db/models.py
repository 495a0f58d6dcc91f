"""Dataclass models representing DB rows.

These are plain Python objects, not ORM models.  The store serialises /
deserialises to and from these types.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from typing import Any


@dataclass
class Node:
    """One record taking part in the hierarchy.

    ``parent`` accepts either an id or another :class:`Node`; only the id is
    kept.  ``path`` is owned by the hierarchy engine and is overwritten on
    save.  ``saved_parent`` / ``saved_path`` hold the values last read from
    or written to the store and are what the engine compares against.

    A node loaded with a ``fields`` projection carries the loaded payload
    keys in ``projected_fields``; saving it only touches those keys.
    """

    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    parent: str | None = None
    path: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)
    created_at: int | None = None
    updated_at: int | None = None

    is_new: bool = field(default=True, repr=False, compare=False)
    saved_parent: str | None = field(default=None, repr=False, compare=False)
    saved_path: str | None = field(default=None, repr=False, compare=False)
    projected_fields: tuple[str, ...] | None = field(default=None, repr=False, compare=False)

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "parent" and isinstance(value, Node):
            value = value.id
        object.__setattr__(self, name, value)

    # ------------------------------------------------------------------
    # Persisted-state tracking
    # ------------------------------------------------------------------
    @property
    def parent_changed(self) -> bool:
        """``True`` when ``parent`` differs from the persisted value."""
        return not self.is_new and self.parent != self.saved_parent

    def mark_saved(self) -> None:
        """Record the current parent/path as the persisted state."""
        self.is_new = False
        self.saved_parent = self.parent
        self.saved_path = self.path

    def saved_state(self) -> tuple[bool, str | None, str | None]:
        return self.is_new, self.saved_parent, self.saved_path

    def restore_saved_state(self, state: tuple[bool, str | None, str | None]) -> None:
        """Undo ``mark_saved`` calls whose writes were rolled back."""
        self.is_new, self.saved_parent, self.saved_path = state
        self.path = self.saved_path

    # ------------------------------------------------------------------
    # Convenience helpers
    # ------------------------------------------------------------------
    @property
    def title(self) -> str:
        return str(self.payload.get("title", ""))

    def payload_json(self) -> str:
        """Serialise the payload dict to a JSON string for storage."""
        return json.dumps(self.payload)
