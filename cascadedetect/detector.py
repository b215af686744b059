from __future__ import annotations

import logging
import math
from typing import Callable, List, Optional

from .classifier import BlobLike, Cascade, parse_classifier
from .integral import TILTED_MARGIN, PixelsLike, compute_integral_images
from .merge import REGIONS_OVERLAP, merge_rectangles
from .scanner import MultiScaleScanner
from .types import DetectionResult, IntegralTables, Rect, ScanParams

logger = logging.getLogger(__name__)


class Detector:
    """Cascade object detector for RGBA pixel buffers.

    Usage:
        det = Detector(registry.get("face"), ScanParams(edges_density=0.1))
        faces = det.detect(pixels, width, height)

    The parsed classifier is read-only and can be shared by detectors running
    in several threads; every call builds its own tables and merge state.
    """

    def __init__(self, classifier: BlobLike, params: Optional[ScanParams] = None):
        self.cascade: Cascade = parse_classifier(classifier)
        self.scanner = MultiScaleScanner(self.cascade, params)

    @property
    def params(self) -> ScanParams:
        return self.scanner.params

    def _has_tilted(self) -> bool:
        return any(node.tilted for stage in self.cascade.stages for node in stage.nodes)

    def _tilted_margin(self, width: int, height: int) -> int:
        """Black margin the tilted table needs for features reaching past the window."""
        cw, ch = self.cascade.window_width, self.cascade.window_height
        reach = 0
        for stage in self.cascade.stages:
            for node in stage.nodes:
                if not node.tilted:
                    continue
                for r in node.rects:
                    reach = max(reach, r.x + r.width - cw, r.y + r.width + r.height - ch)
        largest_scale = min(width / cw, height / ch)
        return TILTED_MARGIN + math.ceil(reach * largest_scale)

    def integral_tables(self, pixels: PixelsLike, width: int, height: int) -> IntegralTables:
        return compute_integral_images(
            pixels,
            width,
            height,
            sum=True,
            square=True,
            tilted=self._has_tilted(),
            sobel=self.params.edges_density > 0,
            tilted_margin=self._tilted_margin(width, height),
        )

    def candidates(
        self,
        pixels: PixelsLike,
        width: int,
        height: int,
        should_cancel: Optional[Callable[[], bool]] = None,
    ) -> List[Rect]:
        """Raw accepted windows before merging."""
        tables = self.integral_tables(pixels, width, height)
        return self.scanner.scan(tables, should_cancel=should_cancel)

    def detect(
        self,
        pixels: PixelsLike,
        width: int,
        height: int,
        should_cancel: Optional[Callable[[], bool]] = None,
    ) -> List[DetectionResult]:
        rects = self.candidates(pixels, width, height, should_cancel=should_cancel)
        results = merge_rectangles(rects, self.params.overlap)
        logger.debug("%dx%d frame: %d candidates -> %d detections", width, height, len(rects), len(results))
        return results


def detect(
    pixels: PixelsLike,
    width: int,
    height: int,
    initial_scale: float,
    scale_factor: float,
    step_size: float,
    edges_density: float,
    classifier: BlobLike,
    overlap: float = REGIONS_OVERLAP,
) -> List[DetectionResult]:
    """One-shot detection with explicit scan parameters."""
    params = ScanParams(
        initial_scale=initial_scale,
        scale_factor=scale_factor,
        step_size=step_size,
        edges_density=edges_density,
        overlap=overlap,
    )
    return Detector(classifier, params).detect(pixels, width, height)


__all__ = ["Detector", "detect"]
