"""Rectangle merging (non-maximum suppression).

Two candidates are joined when both overlap ratios

    overlap / (area_i * (area_i / area_j))
    overlap / (area_j * (area_i / area_j))

reach the threshold. The ratios are not an intersection-over-union; the
default threshold of 0.5 was tuned against this exact formula.
"""

from __future__ import annotations

import math
from typing import Dict, List, Protocol, Sequence

from .disjoint_set import DisjointSet
from .types import DetectionResult

REGIONS_OVERLAP = 0.5


class RectLike(Protocol):
    x: int
    y: int
    width: int
    height: int


def intersect_rect(x0: int, y0: int, x1: int, y1: int, x2: int, y2: int, x3: int, y3: int) -> bool:
    """True unless box (x2, y2)-(x3, y3) lies entirely to one side of (x0, y0)-(x1, y1).

    Boxes that only touch count as intersecting.
    """
    return not (x2 > x1 or x3 < x0 or y2 > y1 or y3 < y0)


def _should_join(r1: RectLike, r2: RectLike, overlap_threshold: float) -> bool:
    if not intersect_rect(
        r1.x, r1.y, r1.x + r1.width, r1.y + r1.height,
        r2.x, r2.y, r2.x + r2.width, r2.y + r2.height,
    ):
        return False
    area1 = r1.width * r1.height
    area2 = r2.width * r2.height
    if area1 <= 0 or area2 <= 0:
        return False
    x1 = max(r1.x, r2.x)
    y1 = max(r1.y, r2.y)
    x2 = min(r1.x + r1.width, r2.x + r2.width)
    y2 = min(r1.y + r1.height, r2.y + r2.height)
    overlap = (x1 - x2) * (y1 - y2)
    ratio = area1 / area2
    return (
        overlap / (area1 * ratio) >= overlap_threshold
        and overlap / (area2 * ratio) >= overlap_threshold
    )


def merge_rectangles(rects: Sequence[RectLike], overlap: float = REGIONS_OVERLAP) -> List[DetectionResult]:
    """Cluster overlapping rectangles and average each cluster.

    Every field of a result is floor(sum / count + 0.5) over the cluster
    members and `total` is the member count. Results come out in the order
    of each cluster's first member.
    """
    n = len(rects)
    disjoint_set = DisjointSet(n)
    for i in range(n):
        r1 = rects[i]
        for j in range(n):
            if _should_join(r1, rects[j], overlap):
                disjoint_set.union(i, j)

    # representative -> [count, x, y, width, height]
    clusters: Dict[int, List[int]] = {}
    for k in range(n):
        rep = disjoint_set.find(k)
        r = rects[k]
        acc = clusters.get(rep)
        if acc is None:
            clusters[rep] = [1, r.x, r.y, r.width, r.height]
            continue
        acc[0] += 1
        acc[1] += r.x
        acc[2] += r.y
        acc[3] += r.width
        acc[4] += r.height

    results: List[DetectionResult] = []
    for count, sx, sy, sw, sh in clusters.values():
        results.append(
            DetectionResult(
                x=math.floor(sx / count + 0.5),
                y=math.floor(sy / count + 0.5),
                width=math.floor(sw / count + 0.5),
                height=math.floor(sh / count + 0.5),
                total=count,
            )
        )
    return results


__all__ = ["REGIONS_OVERLAP", "intersect_rect", "merge_rectangles"]
