"""Output writers.

Collects per-image detection records and writes a JSON index plus a
summary YAML. Images that could not be processed are kept in a separate
failure list.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml

from .types import DetectionResult, ImageMeta
from .utils import ensure_dir

logger = logging.getLogger(__name__)


def build_record(
    meta: ImageMeta,
    detections: Mapping[str, Sequence[DetectionResult]],
    error: Optional[str] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Record for one image; `detections` maps classifier name -> results."""
    rec: Dict[str, Any] = {
        "file": meta.path,
        "width": meta.width,
        "height": meta.height,
        "detections": {name: [d.to_dict() for d in dets] for name, dets in detections.items()},
        "count": sum(len(dets) for dets in detections.values()),
        "error": error,
    }
    if extra:
        rec.update(extra)
    return rec


class ResultsWriter:
    def __init__(self, output_dir: str | Path, cfg: Optional[Dict[str, Any]] = None):
        self.output_dir = Path(output_dir)
        ensure_dir(self.output_dir)
        self.cfg = cfg or {}
        self.records: List[Dict[str, Any]] = []
        self.failed: List[Dict[str, Any]] = []

    def add(self, record: Dict[str, Any]) -> None:
        if record.get("error"):
            self.failed.append(record)
        else:
            self.records.append(record)

    def _write_json(self, path: Path, data: List[Dict[str, Any]]):
        with path.open("w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)

    def finalize(self) -> Dict[str, Any]:
        out_dir = self.output_dir
        ensure_dir(out_dir)

        self._write_json(out_dir / "detections.json", self.records)
        if self.failed:
            self._write_json(out_dir / "failed.json", self.failed)

        per_classifier: Dict[str, int] = {}
        for rec in self.records:
            for name, dets in rec["detections"].items():
                per_classifier[name] = per_classifier.get(name, 0) + len(dets)

        summary = {
            "counts": {
                "images": len(self.records),
                "failed": len(self.failed),
                "with_detections": sum(1 for r in self.records if r["count"] > 0),
                "detections": per_classifier,
            },
            "scan": (self.cfg or {}).get("scan", {}),
            "classifiers": (self.cfg or {}).get("classifiers", {}),
            "paths": (self.cfg or {}).get("paths", {}),
        }
        with (out_dir / "summary.yaml").open("w", encoding="utf-8") as f:
            yaml.safe_dump(summary, f, sort_keys=False, allow_unicode=True)
        logger.info("Wrote %d records to %s", len(self.records), out_dir)
        return summary


__all__ = [
    "build_record",
    "ResultsWriter",
]
