"""Materialized-path hierarchy engine.

Public re-exports so callers can write::

    from pathtree.tree import Hierarchy
"""

from pathtree.tree.cascade import CascadeResult, cascade_path_change
from pathtree.tree.gate import GateDecision, should_cascade, should_rebuild_path
from pathtree.tree.maintainer import ON_DELETE_POLICIES, Hierarchy

__all__ = [
    "CascadeResult",
    "GateDecision",
    "Hierarchy",
    "ON_DELETE_POLICIES",
    "cascade_path_change",
    "should_cascade",
    "should_rebuild_path",
]
