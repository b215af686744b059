from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np


@dataclass(frozen=True)
class Rect:
    """Raw window accepted by every cascade stage (source pixel coordinates)."""

    x: int
    y: int
    width: int
    height: int


@dataclass(frozen=True)
class DetectionResult:
    x: int
    y: int
    width: int
    height: int
    # Number of raw windows merged into this detection
    total: int = 1

    def to_dict(self) -> dict:
        return {
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "total": self.total,
        }


@dataclass
class IntegralTables:
    """Summed-area tables of one frame.

    Every table is zero padded to shape (height + 1, width + 1): entry
    [y + 1, x + 1] holds the value at pixel (x, y). The tilted table also
    spans its black margin rows and columns.
    """

    width: int
    height: int
    sum: Optional[np.ndarray] = None
    square: Optional[np.ndarray] = None
    tilted: Optional[np.ndarray] = None
    sobel: Optional[np.ndarray] = None


@dataclass(frozen=True)
class ScanParams:
    initial_scale: float = 1.0
    scale_factor: float = 1.25
    step_size: float = 1.5
    # 0 disables the edge density fast reject
    edges_density: float = 0.2
    # Merge threshold for the overlap ratios
    overlap: float = 0.5


@dataclass
class TrackEvent:
    type: str = "track"
    data: List[DetectionResult] = field(default_factory=list)


@dataclass
class ImageMeta:
    path: str
    width: int
    height: int
    channels: Optional[int] = None
    ext: Optional[str] = None
