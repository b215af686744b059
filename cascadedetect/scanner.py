from __future__ import annotations

import logging
import math
from typing import Callable, Iterator, List, Optional, Tuple

from .cascade import CascadeEvaluator
from .classifier import Cascade
from .errors import ConfigError
from .types import IntegralTables, Rect, ScanParams

logger = logging.getLogger(__name__)


def check_scan_params(params: ScanParams) -> ScanParams:
    """Validate scan parameters, raising ConfigError on the first bad value."""
    if not params.initial_scale > 0:
        raise ConfigError(f"initial_scale must be positive, got {params.initial_scale}")
    if not params.scale_factor > 1:
        raise ConfigError(f"scale_factor must be greater than 1, got {params.scale_factor}")
    if not params.step_size > 0:
        raise ConfigError(f"step_size must be positive, got {params.step_size}")
    if not params.edges_density >= 0:
        raise ConfigError(f"edges_density must be non-negative, got {params.edges_density}")
    if not 0 < params.overlap <= 1:
        raise ConfigError(f"overlap must be in (0, 1], got {params.overlap}")
    return params


class MultiScaleScanner:
    """Slide the cascade window over every position and scale of a frame.

    Candidates are produced in row-major order, smallest scale first.
    """

    def __init__(self, cascade: Cascade, params: Optional[ScanParams] = None):
        self.cascade = cascade
        self.params = check_scan_params(params or ScanParams())

    def window_sizes(self, width: int, height: int) -> Iterator[Tuple[float, int, int]]:
        """Yield (scale, block_width, block_height) while the window fits the frame."""
        p = self.params
        scale = p.initial_scale * p.scale_factor
        block_width = math.floor(scale * self.cascade.window_width)
        block_height = math.floor(scale * self.cascade.window_height)
        while block_width <= width and block_height <= height:
            if block_width > 0 and block_height > 0:
                yield scale, block_width, block_height
            scale *= p.scale_factor
            block_width = math.floor(scale * self.cascade.window_width)
            block_height = math.floor(scale * self.cascade.window_height)

    def scan(
        self,
        tables: IntegralTables,
        should_cancel: Optional[Callable[[], bool]] = None,
    ) -> List[Rect]:
        """Return every window accepted by the cascade.

        `should_cancel` is polled between scales only; once it returns True
        the candidates found so far are returned.
        """
        width, height = tables.width, tables.height
        evaluator = CascadeEvaluator(tables, self.cascade, self.params.edges_density)
        evaluate = evaluator.evaluate
        rects: List[Rect] = []
        for scale, block_width, block_height in self.window_sizes(width, height):
            if should_cancel is not None and should_cancel():
                logger.debug("Scan cancelled before scale %.4f", scale)
                break
            step = max(1, math.floor(scale * self.params.step_size + 0.5))
            for i in range(0, height - block_height + 1, step):
                for j in range(0, width - block_width + 1, step):
                    if evaluate(i, j, block_width, block_height, scale):
                        rects.append(Rect(x=j, y=i, width=block_width, height=block_height))
        return rects


__all__ = ["check_scan_params", "MultiScaleScanner"]
