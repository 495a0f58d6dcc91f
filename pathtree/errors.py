"""Exceptions raised by the hierarchy engine and its stores."""

from __future__ import annotations


class HierarchyError(Exception):
    """Base class for every error raised by pathtree."""


class ConfigurationError(HierarchyError, ValueError):
    """An engine option is outside its allowed values."""


class InvalidIdentifierError(HierarchyError, ValueError):
    """A node id contains the path delimiter."""

    def __init__(self, node_id: str, delimiter: str) -> None:
        super().__init__(
            f"Node id {node_id!r} contains the path delimiter {delimiter!r}"
        )
        self.node_id = node_id
        self.delimiter = delimiter


class NodeNotFoundError(HierarchyError, LookupError):
    def __init__(self, node_id: str) -> None:
        super().__init__(f"Node not found: {node_id!r}")
        self.node_id = node_id


class ParentNotFoundError(HierarchyError, LookupError):
    """The parent referenced by a node being saved does not exist.

    Raised before any path or descendant is written, so the save has no
    effect.
    """

    def __init__(self, parent_id: str, node_id: str | None = None) -> None:
        super().__init__(f"Parent not found: {parent_id!r}")
        self.parent_id = parent_id
        self.node_id = node_id


class CycleError(HierarchyError, ValueError):
    """Reparenting would place a node beneath itself."""

    def __init__(self, node_id: str, parent_id: str) -> None:
        super().__init__(
            f"Cannot move {node_id!r} under {parent_id!r}: "
            "the new parent is the node itself or one of its descendants"
        )
        self.node_id = node_id
        self.parent_id = parent_id


class StoreError(HierarchyError):
    """The underlying document store failed (I/O, locking, SQL errors)."""


class CascadeError(HierarchyError):
    """Descendant path rewrites did not all succeed.

    Attributes:
        previous_path: Path prefix the descendants were moved away from.
        new_path: Path prefix they should now carry.
        rewritten: Ids whose path was rewritten.
        failed: Mapping of id -> exception for rewrites that failed.
        rolled_back: ``True`` when the store undid the whole save.
    """

    def __init__(
        self,
        message: str,
        previous_path: str,
        new_path: str,
        rewritten: list[str],
        failed: dict[str, BaseException],
    ) -> None:
        super().__init__(message)
        self.previous_path = previous_path
        self.new_path = new_path
        self.rewritten = rewritten
        self.failed = failed
        self.rolled_back = False


class CascadeIncompleteError(CascadeError):
    """Some descendants were rewritten and some were not."""


class CascadeFailedError(CascadeError):
    """No descendant could be rewritten."""
