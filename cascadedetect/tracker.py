from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import replace
from numbers import Number
from typing import Iterable, List, Optional, Sequence, Union

import numpy as np

from .classifier import BlobLike, Cascade, ClassifierRegistry, parse_classifier
from .detector import Detector
from .errors import ConfigError
from .integral import PixelsLike
from .scanner import check_scan_params
from .types import DetectionResult, ScanParams, TrackEvent

logger = logging.getLogger(__name__)


class Tracker(ABC):
    """Anything that turns one RGBA frame into a TrackEvent."""

    @abstractmethod
    def track(self, pixels: PixelsLike, width: int, height: int) -> TrackEvent:
        ...


def _as_cascades(classifiers: Union[BlobLike, Sequence[BlobLike]]) -> List[Cascade]:
    if isinstance(classifiers, Cascade):
        return [classifiers]
    if isinstance(classifiers, np.ndarray):
        if classifiers.ndim == 1:
            return [parse_classifier(classifiers)]
        return [parse_classifier(c) for c in classifiers]
    items = list(classifiers) if classifiers is not None else []
    if items and isinstance(items[0], Number):
        return [parse_classifier(items)]
    return [parse_classifier(c) for c in items]


class ObjectTracker(Tracker):
    """Cascade tracker over one or more classifiers (e.g. face and eye).

    Detections of every classifier are concatenated in classifier order.
    """

    def __init__(self, classifiers: Union[BlobLike, Sequence[BlobLike]], params: Optional[ScanParams] = None):
        self.cascades = _as_cascades(classifiers)
        if not self.cascades:
            raise ConfigError("ObjectTracker needs at least one classifier")
        self._params = check_scan_params(params or ScanParams())

    @classmethod
    def from_registry(
        cls,
        registry: ClassifierRegistry,
        names: Iterable[str],
        params: Optional[ScanParams] = None,
    ) -> "ObjectTracker":
        return cls(registry.select(names), params)

    @property
    def params(self) -> ScanParams:
        return self._params

    def _update(self, **changes) -> None:
        self._params = check_scan_params(replace(self._params, **changes))

    @property
    def initial_scale(self) -> float:
        return self._params.initial_scale

    @initial_scale.setter
    def initial_scale(self, value: float) -> None:
        self._update(initial_scale=value)

    @property
    def scale_factor(self) -> float:
        return self._params.scale_factor

    @scale_factor.setter
    def scale_factor(self, value: float) -> None:
        self._update(scale_factor=value)

    @property
    def step_size(self) -> float:
        return self._params.step_size

    @step_size.setter
    def step_size(self, value: float) -> None:
        self._update(step_size=value)

    @property
    def edges_density(self) -> float:
        return self._params.edges_density

    @edges_density.setter
    def edges_density(self, value: float) -> None:
        self._update(edges_density=value)

    def track(self, pixels: PixelsLike, width: int, height: int) -> TrackEvent:
        results: List[DetectionResult] = []
        for cascade in self.cascades:
            results.extend(Detector(cascade, self._params).detect(pixels, width, height))
        logger.debug("Tracked %d objects with %d classifiers", len(results), len(self.cascades))
        return TrackEvent(type="track", data=results)


__all__ = ["Tracker", "ObjectTracker"]
