import argparse
import logging
from pathlib import Path
from concurrent.futures import ProcessPoolExecutor, as_completed

import cv2
from tqdm import tqdm

from cascadedetect.classifier import ClassifierRegistry
from cascadedetect.config import load_and_merge, parse_classifier_specs, scan_params_from_config
from cascadedetect.detector import Detector
from cascadedetect.errors import ConfigError
from cascadedetect.loader import ImageLoader
from cascadedetect.utils import setup_logging
from cascadedetect.writers import ResultsWriter, build_record

logger = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Cascade object detection pipeline")
    # Single-image mode
    p.add_argument("--image", help="Path to a single image (PNG/JPG)")
    p.add_argument("--save-debug", default=None, help="Optional path to save a detection overlay (single-image mode)")
    # Batch mode
    p.add_argument("--input-dir", help="Directory of images to process (batch mode)")
    p.add_argument("--output-dir", help="Directory to write outputs (JSON + summary)")
    p.add_argument("--max-files", type=int, default=None, help="Optional max files to process (for testing)")
    p.add_argument("--workers", type=int, default=None, help="Number of worker processes (0=single-thread)")
    # Classifiers and scan
    p.add_argument("--classifier", action="append", default=[], help="Classifier as NAME=PATH (repeatable)")
    p.add_argument("--initial-scale", type=float, default=None)
    p.add_argument("--scale-factor", type=float, default=None)
    p.add_argument("--step-size", type=float, default=None)
    p.add_argument("--edges-density", type=float, default=None, help="0 disables the edge density fast reject")
    p.add_argument("--overlap", type=float, default=None, help="Merge overlap threshold")
    # Config
    p.add_argument("--config", default=None, help="Optional YAML config path")
    p.add_argument("--log-level", default=None, help="Override log level (e.g., INFO, WARNING)")
    return p.parse_args()


def draw_debug(image_rgba, detections, out_path: str):
    vis = cv2.cvtColor(image_rgba, cv2.COLOR_RGBA2BGR)
    colors = [(0, 0, 255), (0, 255, 0), (255, 0, 0), (0, 255, 255)]
    for k, (name, dets) in enumerate(detections.items()):
        color = colors[k % len(colors)]
        for d in dets:
            cv2.rectangle(vis, (d.x, d.y), (d.x + d.width, d.y + d.height), color, 2)
            cv2.putText(vis, name, (d.x, max(0, d.y - 4)), cv2.FONT_HERSHEY_SIMPLEX, 0.4, color, 1)
    cv2.imwrite(out_path, vis)


def build_detectors(cfg: dict) -> dict:
    registry = ClassifierRegistry.from_config(cfg.get("classifiers", {}))
    params = scan_params_from_config(cfg)
    return {name: Detector(registry.get(name), params) for name in registry.names()}


def process_one_path(path_str: str, detectors: dict) -> dict:
    # Local imports to ensure picklability in multiprocessing environments
    from cascadedetect.loader import ImageLoader
    from cascadedetect.types import ImageMeta as IMeta

    loader = ImageLoader(input_dir=Path(path_str).parent)
    img, meta, err = loader.read_image(path_str)
    if err or img is None or meta is None:
        meta_fallback = meta if meta is not None else IMeta(path=str(path_str), width=0, height=0)
        return build_record(meta_fallback, {}, error=err or "unreadable")

    detections = {name: det.detect(img, meta.width, meta.height) for name, det in detectors.items()}
    return build_record(meta, detections)


def main():
    args = parse_args()

    # Build CLI overrides for config merging
    cli_overrides = {"paths": {}, "runtime": {}, "scan": {}, "classifiers": {}}
    if args.input_dir:
        cli_overrides["paths"]["input_dir"] = args.input_dir
    if args.output_dir:
        cli_overrides["paths"]["output_dir"] = args.output_dir
    if args.max_files is not None:
        cli_overrides["runtime"]["max_files"] = args.max_files
    if args.workers is not None:
        cli_overrides["runtime"]["workers"] = args.workers
    if args.log_level:
        cli_overrides["runtime"]["log_level"] = args.log_level
    for key in ("initial_scale", "scale_factor", "step_size", "edges_density", "overlap"):
        value = getattr(args, key)
        if value is not None:
            cli_overrides["scan"][key] = value

    try:
        cli_overrides["classifiers"] = parse_classifier_specs(args.classifier)
        cfg = load_and_merge(args.config, cli_overrides)
        setup_logging(cfg.get("runtime", {}).get("log_level", "INFO"))
        if not cfg.get("classifiers"):
            raise ConfigError("No classifiers configured (use --classifier NAME=PATH or the config file)")
        # Fail fast on bad classifiers or scan settings before touching any image
        detectors = build_detectors(cfg)
    except ConfigError as e:
        raise SystemExit(f"Configuration error: {e}")

    # Single-image mode
    if args.image and not args.input_dir:
        loader = ImageLoader(input_dir=Path(args.image).parent)
        image, meta, err = loader.read_image(args.image)
        if err or image is None or meta is None:
            raise SystemExit(f"Failed to read image: {args.image} ({err})")

        detections = {name: det.detect(image, meta.width, meta.height) for name, det in detectors.items()}
        for name, dets in detections.items():
            print(f"{name}: {len(dets)} detection(s)")
            for d in dets:
                print("  x=%d y=%d w=%d h=%d total=%d" % (d.x, d.y, d.width, d.height, d.total))

        if args.save_debug:
            out_path = str(args.save_debug)
            draw_debug(image, detections, out_path)
            print("Saved debug overlay:", out_path)
        return

    # Batch mode
    input_dir = cfg.get("paths", {}).get("input_dir")
    output_dir = cfg.get("paths", {}).get("output_dir")
    if not input_dir or not output_dir:
        raise SystemExit("Batch mode requires --input-dir and --output-dir (or set in config)")

    loader = ImageLoader(input_dir=input_dir, max_files=cfg.get("runtime", {}).get("max_files"))
    paths = list(loader.enumerate())
    if not paths:
        print("No images found in", input_dir)
        return

    writer = ResultsWriter(output_dir, cfg)

    workers = int(cfg.get("runtime", {}).get("workers", 0) or 0)
    if workers <= 0:
        for p in tqdm(paths, desc="Detecting", unit="img"):
            writer.add(process_one_path(str(p), detectors))
    else:
        with ProcessPoolExecutor(max_workers=workers) as ex:
            futures = {ex.submit(process_one_path, str(p), detectors): p for p in paths}
            for fut in tqdm(as_completed(futures), total=len(futures), desc="Detecting", unit="img"):
                try:
                    writer.add(fut.result())
                except Exception as e:
                    logger.warning("Worker failed on %s: %s", futures[fut], e)

    summary = writer.finalize()
    print("Summary:", summary["counts"])


if __name__ == "__main__":
    main()
