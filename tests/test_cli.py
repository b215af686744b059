import json
import logging
import sys
from concurrent.futures import ThreadPoolExecutor

import cv2
import numpy as np
import yaml

import main

from _helpers import always_pass_blob


def test_batch_logs_worker_failures_and_continues(tmp_path, monkeypatch, caplog):
    images = tmp_path / "images"
    images.mkdir()
    for name in ("a.png", "b.png"):
        cv2.imwrite(str(images / name), np.full((24, 24, 3), 90, dtype=np.uint8))
    model = tmp_path / "face.json"
    model.write_text(json.dumps(always_pass_blob()), encoding="utf-8")
    out_dir = tmp_path / "out"

    process = main.process_one_path

    def flaky(path_str, detectors):
        if path_str.endswith("b.png"):
            raise RuntimeError("worker crashed")
        return process(path_str, detectors)

    monkeypatch.setattr(main, "ProcessPoolExecutor", ThreadPoolExecutor)
    monkeypatch.setattr(main, "process_one_path", flaky)
    monkeypatch.setattr(sys, "argv", [
        "main.py",
        "--input-dir", str(images),
        "--output-dir", str(out_dir),
        "--classifier", f"face={model}",
        "--initial-scale", "0.8",
        "--edges-density", "0",
        "--workers", "2",
    ])
    caplog.set_level(logging.WARNING)

    main.main()

    assert any("Worker failed" in r.getMessage() and "b.png" in r.getMessage() for r in caplog.records)
    summary = yaml.safe_load((out_dir / "summary.yaml").read_text(encoding="utf-8"))
    assert summary["counts"]["images"] == 1
    assert summary["counts"]["detections"] == {"face": 1}
