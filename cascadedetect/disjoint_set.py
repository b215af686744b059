from __future__ import annotations

from typing import List

import numpy as np

from .errors import ConfigError


class DisjointSet:
    """Union-find over the indices [0, n).

    `find` is iterative with full path compression. `union(i, j)` attaches
    the representative of i under the representative of j; there is no
    union by rank.
    """

    def __init__(self, n: int):
        if n is None or isinstance(n, bool) or not isinstance(n, (int, np.integer)):
            raise ConfigError(f"DisjointSet size must be an integer, got {n!r}")
        if n < 0:
            raise ConfigError(f"DisjointSet size must be non-negative, got {n}")
        self.parent: List[int] = list(range(int(n)))

    def __len__(self) -> int:
        return len(self.parent)

    def find(self, i: int) -> int:
        parent = self.parent
        root = i
        while parent[root] != root:
            root = parent[root]
        while parent[i] != root:
            nxt = parent[i]
            parent[i] = root
            i = nxt
        return root

    def union(self, i: int, j: int) -> None:
        self.parent[self.find(i)] = self.find(j)


__all__ = ["DisjointSet"]
