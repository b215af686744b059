"""Cascade object detection over integral images.

Evaluates boosted Haar-like cascades (face, eye, mouth, ...) on RGBA pixel
buffers at every scale and position, then merges overlapping windows into
final detections.
"""

from . import config as config
from . import types as types
from . import utils as utils
from .classifier import Cascade, ClassifierRegistry, load_classifier, parse_classifier
from .detector import Detector, detect
from .errors import ConfigError
from .tracker import ObjectTracker, Tracker
from .types import DetectionResult, Rect, ScanParams, TrackEvent

__all__ = [
    "config",
    "types",
    "utils",
    "Cascade",
    "ClassifierRegistry",
    "load_classifier",
    "parse_classifier",
    "Detector",
    "detect",
    "ConfigError",
    "ObjectTracker",
    "Tracker",
    "DetectionResult",
    "Rect",
    "ScanParams",
    "TrackEvent",
]
