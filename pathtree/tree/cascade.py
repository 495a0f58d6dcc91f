"""Rewrite descendant paths after a node moves.

``cascade_path_change`` finds every strict descendant under the old path and
rewrites its prefix.  Rewrites are independent, so they run **in parallel**
on a ``ThreadPoolExecutor`` bounded by ``concurrency``; the call returns only
once every rewrite has finished.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field

from pathtree.db.filters import Filter, StartsWith
from pathtree.db.models import Node
from pathtree.db.store import NodeStore
from pathtree.errors import CascadeFailedError, CascadeIncompleteError
from pathtree.tree.paths import descendant_prefix, rebase_path


@dataclass
class CascadeResult:
    previous_path: str
    new_path: str
    rewritten: list[str] = field(default_factory=list)
    failed: dict[str, BaseException] = field(default_factory=dict)

    @property
    def complete(self) -> bool:
        return not self.failed


def find_descendants(store: NodeStore, path: str, delimiter: str) -> list[Node]:
    """Every node whose path starts with ``path + delimiter``."""
    return store.find(Filter((StartsWith("path", descendant_prefix(path, delimiter)),)))


def cascade_path_change(
    store: NodeStore,
    previous_path: str,
    new_path: str,
    delimiter: str,
    concurrency: int = 5,
) -> CascadeResult:
    """Move every descendant of ``previous_path`` under ``new_path``.

    Raises:
        StoreError: If the descendant scan itself fails (nothing rewritten).
        CascadeIncompleteError: If some rewrites failed and some succeeded.
        CascadeFailedError: If every rewrite failed.
    """
    result = CascadeResult(previous_path=previous_path, new_path=new_path)
    if previous_path == new_path:
        return result

    descendants = find_descendants(store, previous_path, delimiter)
    if not descendants:
        return result

    with ThreadPoolExecutor(max_workers=min(concurrency, len(descendants))) as pool:
        future_to_id = {
            pool.submit(
                store.update_by_id,
                doc.id,
                {"path": rebase_path(doc.path, previous_path, new_path)},
            ): doc.id
            for doc in descendants
        }
        for future in as_completed(future_to_id):
            node_id = future_to_id[future]
            try:
                future.result()
                result.rewritten.append(node_id)
            except Exception as exc:
                print(f"[CASCADE] ✗ Failed to rewrite {node_id!r}: {exc}")
                result.failed[node_id] = exc

    print(
        f"[CASCADE] Rewrote {len(result.rewritten)}/{len(descendants)} "
        f"descendant path(s): {previous_path!r} -> {new_path!r}"
    )

    if result.failed and result.rewritten:
        raise CascadeIncompleteError(
            f"Cascade incomplete: {len(result.failed)} of {len(descendants)} "
            f"descendant(s) still under {previous_path!r}",
            previous_path,
            new_path,
            result.rewritten,
            result.failed,
        )
    if result.failed:
        raise CascadeFailedError(
            f"Cascade failed: no descendant of {previous_path!r} was rewritten",
            previous_path,
            new_path,
            result.rewritten,
            result.failed,
        )
    return result
