import pytest

from cascadedetect.classifier import parse_classifier
from cascadedetect.errors import ConfigError
from cascadedetect.integral import compute_integral_images
from cascadedetect.scanner import MultiScaleScanner, check_scan_params
from cascadedetect.types import ScanParams

from _helpers import always_pass_blob, random_rgba


def _tables(width, height, seed=0):
    return compute_integral_images(random_rgba(width, height, seed), width, height, sum=True, square=True)


def test_window_sizes_on_100px_image():
    scanner = MultiScaleScanner(parse_classifier(always_pass_blob()), ScanParams(initial_scale=1.0, scale_factor=1.25))
    sizes = [(w, h) for _, w, h in scanner.window_sizes(100, 100)]
    assert sizes == [(25, 25), (31, 31), (39, 39), (48, 48), (61, 61), (76, 76), (95, 95)]


def test_scan_visits_scales_in_ascending_order():
    params = ScanParams(initial_scale=1.0, scale_factor=1.25, step_size=1.5, edges_density=0.0)
    scanner = MultiScaleScanner(parse_classifier(always_pass_blob()), params)
    rects = scanner.scan(_tables(100, 100))
    widths = []
    for r in rects:
        if not widths or widths[-1] != r.width:
            widths.append(r.width)
    assert widths == [25, 31, 39, 48, 61, 76, 95]


def test_candidates_are_row_major_and_repeatable():
    params = ScanParams(initial_scale=1.0, scale_factor=1.5, step_size=2.0, edges_density=0.0)
    scanner = MultiScaleScanner(parse_classifier(always_pass_blob()), params)
    tables = _tables(64, 48)
    rects = scanner.scan(tables)
    assert rects == sorted(rects, key=lambda r: (r.width, r.y, r.x))
    assert rects == scanner.scan(tables)

    first_scale = [r for r in rects if r.width == 30]
    step = 3  # floor(1.5 * 2.0 + 0.5)
    assert {r.x for r in first_scale} == set(range(0, 64 - 30 + 1, step))
    assert {r.y for r in first_scale} == set(range(0, 48 - 30 + 1, step))
    assert all(r.x + r.width <= 64 and r.y + r.height <= 48 for r in rects)


def test_window_larger_than_image_scans_nothing():
    scanner = MultiScaleScanner(parse_classifier(always_pass_blob()), ScanParams(edges_density=0.0))
    assert list(scanner.window_sizes(24, 24)) == []
    assert scanner.scan(_tables(24, 24)) == []


def test_cancel_between_scales():
    params = ScanParams(initial_scale=1.0, scale_factor=1.25, edges_density=0.0)
    scanner = MultiScaleScanner(parse_classifier(always_pass_blob()), params)
    calls = []

    def should_cancel():
        calls.append(1)
        return len(calls) > 1

    rects = scanner.scan(_tables(100, 100), should_cancel=should_cancel)
    assert rects
    assert {r.width for r in rects} == {25}
    assert len(calls) == 2


@pytest.mark.parametrize(
    "params",
    [
        ScanParams(initial_scale=0.0),
        ScanParams(initial_scale=-1.0),
        ScanParams(scale_factor=1.0),
        ScanParams(scale_factor=0.5),
        ScanParams(step_size=0.0),
        ScanParams(edges_density=-0.1),
        ScanParams(overlap=0.0),
        ScanParams(overlap=1.5),
    ],
)
def test_invalid_scan_params(params):
    with pytest.raises(ConfigError):
        check_scan_params(params)
    with pytest.raises(ConfigError):
        MultiScaleScanner(parse_classifier(always_pass_blob()), params)
