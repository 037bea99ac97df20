"""
Branch hierarchy closure (``asset_kernel.domain.hierarchy``).

Pure graph walk over (branch_id, parent_id) pairs.  Visibility is one-way:
a branch sees itself and every descendant, never its ancestors or siblings.
"""

from __future__ import annotations

from collections import defaultdict, deque
from collections.abc import Hashable, Iterable, Mapping
from typing import TypeVar

K = TypeVar("K", bound=Hashable)


def build_children_index(pairs: Iterable[tuple[K, K | None]]) -> dict[K, list[K]]:
    """Index (id, parent_id) rows as parent -> children."""
    children: dict[K, list[K]] = defaultdict(list)
    for branch_id, parent_id in pairs:
        if parent_id is not None:
            children[parent_id].append(branch_id)
    return dict(children)


def descendant_closure(root: K, children: Mapping[K, Iterable[K]]) -> frozenset[K]:
    """
    Return ``root`` plus all transitive descendants.

    Breadth-first with a visited set: each id is expanded at most once, so a
    corrupted parent cycle terminates.
    """
    seen: set[K] = {root}
    queue: deque[K] = deque([root])
    while queue:
        current = queue.popleft()
        for child in children.get(current, ()):
            if child not in seen:
                seen.add(child)
                queue.append(child)
    return frozenset(seen)
