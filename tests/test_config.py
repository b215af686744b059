import pytest
import yaml

from cascadedetect.config import (
    DEFAULTS,
    load_and_merge,
    load_yaml,
    merge_config,
    parse_classifier_specs,
    scan_params_from_config,
)
from cascadedetect.errors import ConfigError
from cascadedetect.types import ScanParams


def test_defaults_give_conventional_scan_params():
    assert scan_params_from_config(merge_config()) == ScanParams(
        initial_scale=1.0, scale_factor=1.25, step_size=1.5, edges_density=0.2, overlap=0.5
    )


def test_precedence_defaults_yaml_cli(tmp_path):
    path = tmp_path / "cfg.yaml"
    path.write_text(
        yaml.safe_dump({"scan": {"scale_factor": 1.1, "step_size": 2.0}, "classifiers": {"face": "face.json"}}),
        encoding="utf-8",
    )
    cfg = load_and_merge(path, {"scan": {"step_size": 3.0}})
    params = scan_params_from_config(cfg)
    assert params.scale_factor == 1.1
    assert params.step_size == 3.0
    assert params.edges_density == 0.2
    assert cfg["classifiers"] == {"face": "face.json"}


def test_merge_does_not_mutate_defaults():
    merge_config({"scan": {"edges_density": 0.0}, "classifiers": {"eye": "eye.json"}})
    assert DEFAULTS["scan"]["edges_density"] == 0.2
    assert DEFAULTS["classifiers"] == {}


def test_load_yaml_missing_and_invalid(tmp_path):
    assert load_yaml(None) == {}
    assert load_yaml(tmp_path / "nope.yaml") == {}
    bad = tmp_path / "list.yaml"
    bad.write_text("- 1\n- 2\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_yaml(bad)


@pytest.mark.parametrize("scan", [{"scale_factor": 1.0}, {"step_size": -1}, {"initial_scale": "big"}])
def test_invalid_scan_settings(scan):
    with pytest.raises(ConfigError):
        scan_params_from_config(merge_config({"scan": scan}))


def test_parse_classifier_specs():
    assert parse_classifier_specs(["face=models/face.json", "models/eye.xml"]) == {
        "face": "models/face.json",
        "eye": "models/eye.xml",
    }
    assert parse_classifier_specs(None) == {}
    with pytest.raises(ConfigError):
        parse_classifier_specs(["face="])
