import numpy as np
import pytest

from cascadedetect.errors import ConfigError
from cascadedetect.integral import TILTED_MARGIN, compute_integral_images, luma, rect_sum, sobel_magnitude

from _helpers import luma_of, random_rgba, uniform_rgba


def _naive_sat(values):
    h, w = len(values), len(values[0])
    sat = {}

    def at(x, y):
        return sat.get((x, y), 0) if x >= 0 and y >= 0 else 0

    for y in range(h):
        for x in range(w):
            sat[(x, y)] = at(x, y - 1) + at(x - 1, y) + values[y][x] - at(x - 1, y - 1)
    return sat


def _naive_rsat(values):
    h, w = len(values), len(values[0])
    rsat = {}

    def at(x, y):
        if x < 0 or y < 0 or x >= w:
            return 0
        return rsat.get((x, y), 0)

    def px(x, y):
        return values[y][x] if y >= 0 else 0

    for y in range(h):
        for x in range(w):
            rsat[(x, y)] = at(x - 1, y - 1) + at(x + 1, y - 1) - at(x, y - 2) + px(x, y) + px(x, y - 1)
    return rsat


def test_luma_truncates():
    img = uniform_rgba(2, 2, rgb=(100, 0, 0))
    assert luma(img, 2, 2).tolist() == [[29, 29], [29, 29]]


def test_bottom_right_is_total_luma():
    img = random_rgba(7, 5, seed=3)
    tables = compute_integral_images(img, 7, 5)
    expected = sum(sum(row) for row in luma_of(img))
    assert tables.sum.shape == (6, 8)
    assert int(tables.sum[5, 7]) == expected


def test_all_zero_image_gives_zero_tables():
    img = np.zeros((6, 9, 4), dtype=np.uint8)
    tables = compute_integral_images(img, 9, 6, sum=True, square=True, tilted=True, sobel=True)
    for table in (tables.sum, tables.square, tables.tilted, tables.sobel):
        assert not table.any()


def test_tables_match_recurrences():
    img = random_rgba(6, 5, seed=11)
    values = luma_of(img)
    tables = compute_integral_images(img, 6, 5, sum=True, square=True, tilted=True)

    sat = _naive_sat(values)
    sq = _naive_sat([[v * v for v in row] for row in values])
    # the tilted recurrence runs over the image plus its black margin
    extended = [row + [0] * TILTED_MARGIN for row in values] + [[0] * (6 + TILTED_MARGIN)] * TILTED_MARGIN
    rsat = _naive_rsat(extended)
    assert tables.tilted.shape == (5 + TILTED_MARGIN + 1, 6 + TILTED_MARGIN + 1)
    for y in range(5):
        for x in range(6):
            assert tables.sum[y + 1, x + 1] == sat[(x, y)]
            assert tables.square[y + 1, x + 1] == sq[(x, y)]
    for y in range(5 + TILTED_MARGIN):
        for x in range(6 + TILTED_MARGIN):
            assert tables.tilted[y + 1, x + 1] == rsat[(x, y)]
    assert not tables.sum[0].any() and not tables.sum[:, 0].any()


def test_only_requested_tables_are_built():
    img = random_rgba(4, 4)
    tables = compute_integral_images(img, 4, 4, sum=False, square=True)
    assert tables.sum is None
    assert tables.square is not None
    assert tables.tilted is None and tables.sobel is None


def test_requesting_no_table_is_config_error():
    img = random_rgba(4, 4)
    with pytest.raises(ConfigError):
        compute_integral_images(img, 4, 4, sum=False)


def test_buffer_length_mismatch():
    with pytest.raises(ConfigError):
        compute_integral_images(bytes(4 * 4 * 4 - 1), 4, 4)
    with pytest.raises(ConfigError):
        compute_integral_images(bytes(16), 0, 4)


def test_accepts_raw_bytes():
    img = random_rgba(5, 3, seed=5)
    from_bytes = compute_integral_images(img.tobytes(), 5, 3)
    from_array = compute_integral_images(img, 5, 3)
    assert np.array_equal(from_bytes.sum, from_array.sum)


def test_rect_sum_matches_direct_sum():
    img = random_rgba(8, 6, seed=7)
    values = np.array(luma_of(img))
    tables = compute_integral_images(img, 8, 6)
    assert rect_sum(tables.sum, 1, 2, 4, 3) == int(values[1:4, 2:6].sum())
    assert rect_sum(tables.sum, 0, 0, 8, 6) == int(values.sum())
    # Pixels outside the image count as zero
    assert rect_sum(tables.sum, 4, 5, 10, 10) == int(values[4:, 5:].sum())


def test_sobel_flat_and_edge():
    flat = uniform_rgba(6, 6, rgb=(200, 200, 200))
    assert not sobel_magnitude(flat, 6, 6).any()

    edge = uniform_rgba(6, 6, rgb=(0, 0, 0))
    edge[:, 3:, :3] = 255
    mag = sobel_magnitude(edge, 6, 6)
    assert mag[:, 2:4].min() > 0
    assert not mag[:, 0].any() and not mag[:, 5].any()

    tables = compute_integral_images(edge, 6, 6, sum=False, sobel=True)
    assert int(tables.sobel[6, 6]) == int(mag.sum())


def test_negative_tilted_margin_is_config_error():
    img = random_rgba(4, 4)
    with pytest.raises(ConfigError):
        compute_integral_images(img, 4, 4, tilted=True, tilted_margin=-1)
