"""Classifier blob parsing, file loading and the caller-owned registry.

A classifier blob is a flat float64 record:

    [0] min window width, [1] min window height, then stage records
    stageThreshold, nodeCount,
      nodeCount x (tiltedFlag, rectCount, rectCount x (x, y, w, h, weight),
                   nodeThreshold, leftValue, rightValue)

Parsing turns it into an immutable Cascade that can be shared read-only
between concurrent detection calls.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

import cv2
import numpy as np

from .errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FeatureRect:
    x: float
    y: float
    width: float
    height: float
    weight: float


@dataclass(frozen=True)
class Node:
    tilted: bool
    rects: Tuple[FeatureRect, ...]
    threshold: float
    left: float
    right: float


@dataclass(frozen=True)
class Stage:
    threshold: float
    nodes: Tuple[Node, ...]


@dataclass(frozen=True)
class Cascade:
    window_width: float
    window_height: float
    stages: Tuple[Stage, ...]

    @property
    def node_count(self) -> int:
        return sum(len(s.nodes) for s in self.stages)

    def to_blob(self) -> np.ndarray:
        """Flatten back into the positional float64 record."""
        out: List[float] = [self.window_width, self.window_height]
        for stage in self.stages:
            out.extend([stage.threshold, len(stage.nodes)])
            for node in stage.nodes:
                out.extend([1.0 if node.tilted else 0.0, len(node.rects)])
                for r in node.rects:
                    out.extend([r.x, r.y, r.width, r.height, r.weight])
                out.extend([node.threshold, node.left, node.right])
        return np.asarray(out, dtype=np.float64)


BlobLike = Union[Cascade, Sequence[float], np.ndarray]


def _count(value: float, what: str, offset: int) -> int:
    if value < 0 or value != int(value):
        raise ConfigError(f"Malformed classifier: {what} at offset {offset} must be a non-negative integer, got {value}")
    return int(value)


def _need(data: np.ndarray, pos: int, n: int, what: str) -> None:
    if pos + n > data.size:
        raise ConfigError(f"Malformed classifier: truncated {what} at offset {pos}")


def parse_classifier(blob: BlobLike) -> Cascade:
    """Parse and validate a flat classifier blob.

    Passing an already parsed Cascade returns it unchanged.
    """
    if isinstance(blob, Cascade):
        return blob
    if blob is None:
        raise ConfigError("Classifier blob is missing")
    try:
        data = np.asarray(blob, dtype=np.float64).reshape(-1)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Classifier blob is not numeric: {e}") from e
    if data.size < 2:
        raise ConfigError("Classifier blob is empty or lacks the window header")
    if not np.all(np.isfinite(data)):
        raise ConfigError("Classifier blob contains non-finite values")

    window_width, window_height = float(data[0]), float(data[1])
    if window_width <= 0 or window_height <= 0:
        raise ConfigError(f"Classifier window must be positive, got {window_width}x{window_height}")

    stages: List[Stage] = []
    pos = 2
    while pos < data.size:
        _need(data, pos, 2, "stage header")
        stage_threshold = float(data[pos])
        node_count = _count(data[pos + 1], "node count", pos + 1)
        pos += 2
        nodes: List[Node] = []
        for _ in range(node_count):
            _need(data, pos, 2, "node header")
            flag = data[pos]
            if flag not in (0.0, 1.0):
                raise ConfigError(f"Malformed classifier: tilted flag at offset {pos} must be 0 or 1, got {flag}")
            rect_count = _count(data[pos + 1], "rect count", pos + 1)
            if rect_count == 0:
                raise ConfigError(f"Malformed classifier: node at offset {pos} has no rectangles")
            pos += 2
            _need(data, pos, rect_count * 5 + 3, "node body")
            rects = tuple(
                FeatureRect(*(float(v) for v in data[pos + 5 * k: pos + 5 * k + 5]))
                for k in range(rect_count)
            )
            pos += rect_count * 5
            nodes.append(
                Node(
                    tilted=bool(flag),
                    rects=rects,
                    threshold=float(data[pos]),
                    left=float(data[pos + 1]),
                    right=float(data[pos + 2]),
                )
            )
            pos += 3
        stages.append(Stage(threshold=stage_threshold, nodes=tuple(nodes)))

    if not stages:
        raise ConfigError("Classifier blob has no stages")
    return Cascade(window_width=window_width, window_height=window_height, stages=tuple(stages))


def _seq(node) -> List[float]:
    return [node.at(k).real() for k in range(node.size())]


def _from_opencv_xml(path: Path) -> Cascade:
    """Read an OpenCV (2.4+ format) HAAR cascade made of decision stumps."""
    fs = cv2.FileStorage(str(path), cv2.FILE_STORAGE_READ)
    try:
        if not fs.isOpened():
            raise ConfigError(f"Unable to open cascade XML: {path}")
        root = fs.getNode("cascade")
        if root.empty():
            raise ConfigError(f"Not a new-format OpenCV cascade: {path}")
        feature_type = root.getNode("featureType").string()
        if feature_type and feature_type.upper() != "HAAR":
            raise ConfigError(f"Only HAAR cascades are supported, got {feature_type}")

        features_node = root.getNode("features")
        features: List[Tuple[bool, Tuple[FeatureRect, ...]]] = []
        for f in range(features_node.size()):
            feat = features_node.at(f)
            rects_node = feat.getNode("rects")
            rects = tuple(FeatureRect(*_seq(rects_node.at(k))[:5]) for k in range(rects_node.size()))
            tilted_node = feat.getNode("tilted")
            tilted = (not tilted_node.empty()) and int(tilted_node.real()) != 0
            features.append((tilted, rects))

        stages: List[Stage] = []
        stages_node = root.getNode("stages")
        for s in range(stages_node.size()):
            st = stages_node.at(s)
            weak = st.getNode("weakClassifiers")
            nodes: List[Node] = []
            for w in range(weak.size()):
                wc = weak.at(w)
                internal = _seq(wc.getNode("internalNodes"))
                leaves = _seq(wc.getNode("leafValues"))
                if len(internal) != 4 or len(leaves) != 2:
                    raise ConfigError(f"Only stump cascades are supported (stage {s}, node {w})")
                tilted, rects = features[int(internal[2])]
                nodes.append(Node(tilted=tilted, rects=rects, threshold=internal[3], left=leaves[0], right=leaves[1]))
            stages.append(Stage(threshold=st.getNode("stageThreshold").real(), nodes=tuple(nodes)))

        width = root.getNode("width").real()
        height = root.getNode("height").real()
    finally:
        fs.release()
    if not stages:
        raise ConfigError(f"Cascade XML has no stages: {path}")
    return Cascade(window_width=float(width), window_height=float(height), stages=tuple(stages))


def load_classifier(path: str | Path) -> Cascade:
    """Load a classifier from .json, .npy, .txt/.csv or OpenCV .xml."""
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Classifier file not found: {p}")
    ext = p.suffix.lower()
    if ext == ".xml":
        cascade = _from_opencv_xml(p)
    elif ext == ".json":
        with p.open("r", encoding="utf-8") as f:
            data = json.load(f)
        if isinstance(data, dict):
            data = data.get("data")
        cascade = parse_classifier(data)
    elif ext == ".npy":
        cascade = parse_classifier(np.load(p))
    elif ext in (".txt", ".csv"):
        text = p.read_text(encoding="utf-8").replace(",", " ")
        try:
            values = [float(tok) for tok in text.split()]
        except ValueError as e:
            raise ConfigError(f"Malformed classifier text file {p}: {e}") from e
        cascade = parse_classifier(values)
    else:
        raise ConfigError(f"Unsupported classifier file type: {p.suffix}")
    logger.debug("Loaded classifier %s: %d stages, %d nodes", p, len(cascade.stages), cascade.node_count)
    return cascade


class ClassifierRegistry:
    """Caller-owned map from a name (face, eye, mouth, ...) to a parsed Cascade."""

    def __init__(self, classifiers: Optional[Mapping[str, BlobLike]] = None):
        self._items: Dict[str, Cascade] = {}
        for name, blob in (classifiers or {}).items():
            self.register(name, blob)

    @classmethod
    def from_config(cls, paths: Mapping[str, str | Path]) -> "ClassifierRegistry":
        reg = cls()
        for name, path in (paths or {}).items():
            reg.load(name, path)
        return reg

    def register(self, name: str, classifier: BlobLike) -> Cascade:
        cascade = parse_classifier(classifier)
        self._items[name] = cascade
        return cascade

    def load(self, name: str, path: str | Path) -> Cascade:
        cascade = load_classifier(path)
        self._items[name] = cascade
        logger.info("Registered classifier '%s' from %s", name, path)
        return cascade

    def get(self, name: str) -> Cascade:
        try:
            return self._items[name]
        except KeyError:
            raise ConfigError(f"Unknown classifier '{name}' (known: {', '.join(self.names()) or '-'})") from None

    def select(self, names: Iterable[str]) -> List[Cascade]:
        return [self.get(n) for n in names]

    def names(self) -> List[str]:
        return list(self._items)

    def __contains__(self, name: object) -> bool:
        return name in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)


__all__ = [
    "FeatureRect",
    "Node",
    "Stage",
    "Cascade",
    "parse_classifier",
    "load_classifier",
    "ClassifierRegistry",
]
