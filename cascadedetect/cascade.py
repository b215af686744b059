"""Cascade evaluation for a single window.

A window is rejected as soon as one stage sum falls below its threshold
(early exit) and accepted only when every stage passes. Feature rectangles
are scaled and rounded with floor(v + 0.5); trained blobs depend on that
exact rounding.
"""

from __future__ import annotations

import math
from typing import Dict, List, Optional, Tuple

from .classifier import Cascade
from .errors import ConfigError
from .types import IntegralTables, Rect


# (x * scale, y * scale, rounded width, rounded height, weight)
ScaledRect = Tuple[float, float, int, int, float]
# (tilted, rects, threshold, left, right)
ScaledNode = Tuple[bool, Tuple[ScaledRect, ...], float, float, float]
ScaledStage = Tuple[float, Tuple[ScaledNode, ...]]


def _round_half_up(v: float) -> int:
    return math.floor(v + 0.5)


def _lookup(table: List[List[int]], row: int, col: int, max_row: int, max_col: int) -> int:
    if row <= 0 or col <= 0:
        return 0
    if row > max_row:
        row = max_row
    if col > max_col:
        col = max_col
    return table[row][col]


class CascadeEvaluator:
    """Evaluate one cascade over the integral tables of one frame.

    Built once per detection call. The per-scale memo of rounded feature
    sizes belongs to this instance only.
    """

    def __init__(self, tables: IntegralTables, cascade: Cascade, edges_density: float = 0.0):
        if tables.sum is None or tables.square is None:
            raise ConfigError("Cascade evaluation needs the sum and square integral tables")
        if edges_density > 0 and tables.sobel is None:
            raise ConfigError("Edge density rejection needs the sobel integral table")
        if tables.tilted is None and any(n.tilted for s in cascade.stages for n in s.nodes):
            raise ConfigError("Classifier has tilted features but no tilted integral table was built")
        self.cascade = cascade
        self.edges_density = float(edges_density)
        self._sum = tables.sum.tolist()
        self._square = tables.square.tolist()
        self._tilted = tables.tilted.tolist() if tables.tilted is not None else None
        self._sobel = tables.sobel.tolist() if tables.sobel is not None else None
        self._max_row = tables.height
        self._max_col = tables.width
        if tables.tilted is not None:
            # The tilted table extends past the image by its black margin
            self._tilted_max_row = tables.tilted.shape[0] - 1
            self._tilted_max_col = tables.tilted.shape[1] - 1
        self._scaled: Dict[float, Tuple[ScaledStage, ...]] = {}

    def scaled_stages(self, scale: float) -> Tuple[ScaledStage, ...]:
        stages = self._scaled.get(scale)
        if stages is None:
            stages = tuple(
                (
                    stage.threshold,
                    tuple(
                        (
                            node.tilted,
                            tuple(
                                (
                                    r.x * scale,
                                    r.y * scale,
                                    _round_half_up(r.width * scale),
                                    _round_half_up(r.height * scale),
                                    r.weight,
                                )
                                for r in node.rects
                            ),
                            node.threshold,
                            node.left,
                            node.right,
                        )
                        for node in stage.nodes
                    ),
                )
                for stage in self.cascade.stages
            )
            self._scaled[scale] = stages
        return stages

    @staticmethod
    def _window_sum(table: List[List[int]], i: int, j: int, w: int, h: int) -> int:
        return table[i][j] - table[i][j + w] - table[i + h][j] + table[i + h][j + w]

    def _rect_sum(self, top: int, left: int, w: int, h: int) -> int:
        t, mr, mc = self._sum, self._max_row, self._max_col
        return (
            _lookup(t, top, left, mr, mc)
            - _lookup(t, top, left + w, mr, mc)
            - _lookup(t, top + h, left, mr, mc)
            + _lookup(t, top + h, left + w, mr, mc)
        )

    def _rsat(self, x: int, y: int) -> int:
        return _lookup(self._tilted, y + 1, x + 1, self._tilted_max_row, self._tilted_max_col)

    def _tilted_sum(self, x: int, y: int, w: int, h: int) -> int:
        rsat = self._rsat
        return (
            rsat(x - h + w, y + w + h - 1)
            + rsat(x, y - 1)
            - rsat(x - h, y + h - 1)
            - rsat(x + w, y + w - 1)
        )

    def passes_edge_density(self, i: int, j: int, block_width: int, block_height: int) -> bool:
        if self.edges_density <= 0:
            return True
        area = block_width * block_height
        density = self._window_sum(self._sobel, i, j, block_width, block_height) / (area * 255)
        return density >= self.edges_density

    def evaluate(
        self,
        i: int,
        j: int,
        block_width: int,
        block_height: int,
        scale: float,
        stage_sums: Optional[List[float]] = None,
    ) -> bool:
        """Run the cascade on the window with origin row i, column j.

        When `stage_sums` is given, the sum of every evaluated stage is
        appended to it.
        """
        if not self.passes_edge_density(i, j, block_width, block_height):
            return False

        inverse_area = 1.0 / (block_width * block_height)
        mean = self._window_sum(self._sum, i, j, block_width, block_height) * inverse_area
        variance = self._window_sum(self._square, i, j, block_width, block_height) * inverse_area - mean * mean
        standard_deviation = 1.0
        if variance > 0:
            standard_deviation = math.sqrt(variance)

        floor = math.floor
        for stage_threshold, nodes in self.scaled_stages(scale):
            stage_sum = 0.0
            for tilted, rects, node_threshold, left, right in nodes:
                rects_sum = 0.0
                for rx, ry, rw, rh, weight in rects:
                    rect_left = floor(j + rx + 0.5)
                    rect_top = floor(i + ry + 0.5)
                    if tilted:
                        rects_sum += self._tilted_sum(rect_left, rect_top, rw, rh) * weight
                    else:
                        rects_sum += self._rect_sum(rect_top, rect_left, rw, rh) * weight
                if rects_sum * inverse_area < node_threshold * standard_deviation:
                    stage_sum += left
                else:
                    stage_sum += right
            if stage_sums is not None:
                stage_sums.append(stage_sum)
            if stage_sum < stage_threshold:
                return False
        return True

    def evaluate_rect(self, rect: Rect, scale: float) -> bool:
        return self.evaluate(rect.y, rect.x, rect.width, rect.height, scale)


__all__ = ["CascadeEvaluator"]
