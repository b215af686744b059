from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, MutableMapping

import yaml

from .errors import ConfigError
from .scanner import check_scan_params
from .types import ScanParams

logger = logging.getLogger(__name__)


DEFAULTS: Dict[str, Any] = {
    "paths": {
        "input_dir": "images",
        "output_dir": "outputs",
    },
    "scan": {
        # First evaluated scale is initial_scale * scale_factor
        "initial_scale": 1.0,
        "scale_factor": 1.25,
        # Per-scale pixel step multiplier
        "step_size": 1.5,
        # Minimum Sobel edge density of a window; 0 disables the fast reject
        "edges_density": 0.2,
        # Merge threshold for the asymmetric overlap ratios
        "overlap": 0.5,
    },
    # name -> classifier file (.json, .npy, .txt, .csv or OpenCV .xml)
    "classifiers": {},
    "runtime": {
        "workers": 0,  # 0 => single-thread; >0 => process pool size
        "max_files": None,
        "log_level": "INFO",
    },
}


def _deep_merge(base: MutableMapping[str, Any], override: Mapping[str, Any]) -> MutableMapping[str, Any]:
    for k, v in override.items():
        if k in base and isinstance(base[k], MutableMapping) and isinstance(v, Mapping):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def load_yaml(path: str | Path | None) -> Dict[str, Any]:
    if not path:
        return {}
    p = Path(path)
    if not p.exists():
        logger.warning("YAML config not found: %s", p)
        return {}
    with p.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError("Top-level of YAML must be a mapping/dict")
    return data


def merge_config(yaml_cfg: Mapping[str, Any] | None = None, cli_overrides: Mapping[str, Any] | None = None) -> Dict[str, Any]:
    cfg: Dict[str, Any] = copy.deepcopy(DEFAULTS)
    if yaml_cfg:
        _deep_merge(cfg, dict(yaml_cfg))
    if cli_overrides:
        _deep_merge(cfg, dict(cli_overrides))
    return cfg


def load_and_merge(yaml_path: str | Path | None, cli_overrides: Mapping[str, Any] | None = None) -> Dict[str, Any]:
    yaml_cfg = load_yaml(yaml_path)
    return merge_config(yaml_cfg, cli_overrides)


def scan_params_from_config(cfg: Mapping[str, Any]) -> ScanParams:
    scan = dict(DEFAULTS["scan"])
    scan.update(cfg.get("scan") or {})
    try:
        params = ScanParams(
            initial_scale=float(scan["initial_scale"]),
            scale_factor=float(scan["scale_factor"]),
            step_size=float(scan["step_size"]),
            edges_density=float(scan["edges_density"]),
            overlap=float(scan["overlap"]),
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid scan settings: {e}") from e
    return check_scan_params(params)


def parse_classifier_specs(specs) -> Dict[str, str]:
    """Turn ["face=models/face.json", ...] into {"face": "models/face.json"}.

    A bare path is registered under its file stem.
    """
    out: Dict[str, str] = {}
    for spec in specs or []:
        name, sep, path = spec.partition("=")
        if not sep:
            name, path = Path(spec).stem, spec
        if not name or not path:
            raise ConfigError(f"Invalid classifier spec: {spec!r} (expected NAME=PATH)")
        out[name] = path
    return out


__all__ = [
    "DEFAULTS",
    "load_yaml",
    "merge_config",
    "load_and_merge",
    "scan_params_from_config",
    "parse_classifier_specs",
]
