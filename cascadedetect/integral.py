"""Integral image builder.

Builds the summed-area tables consumed by the cascade evaluator from an RGBA
pixel buffer:
  - sum:    SAT(x,y) = SAT(x,y-1) + SAT(x-1,y) + I(x,y) - SAT(x-1,y-1)
  - square: the same recurrence over I(x,y)^2
  - tilted: RSAT(x,y) = RSAT(x-1,y-1) + RSAT(x+1,y-1) - RSAT(x,y-2) + I(x,y) + I(x,y-1)
  - sobel:  the plain recurrence over the Sobel edge magnitude

All tables are zero padded to (height + 1, width + 1) so that rectangle sums
never need bounds checks on the top/left side. The tilted table is built over
the image extended by `tilted_margin` black rows and columns, so rotated
features touching the right or bottom edge sum as on a black-padded image.
"""

from __future__ import annotations

from typing import Union

import cv2
import numpy as np

from .errors import ConfigError
from .types import IntegralTables

PixelsLike = Union[bytes, bytearray, memoryview, np.ndarray]

SOBEL_SIGN = np.array([-1.0, 0.0, 1.0], dtype=np.float64)
SOBEL_SCALE = np.array([1.0, 2.0, 1.0], dtype=np.float64)

# Black rows/columns appended before the tilted recurrence; covers the
# rounding overshoot of rotated features that end on the window edge
TILTED_MARGIN = 2


def as_rgba_array(pixels: PixelsLike, width: int, height: int) -> np.ndarray:
    """Return a read-only (height, width, 4) uint8 view of `pixels`.

    Raises ConfigError when the dimensions are not positive integers or the
    buffer length is not width * height * 4.
    """
    if not isinstance(width, (int, np.integer)) or not isinstance(height, (int, np.integer)):
        raise ConfigError(f"Image dimensions must be integers, got {width!r}x{height!r}")
    if width <= 0 or height <= 0:
        raise ConfigError(f"Image dimensions must be positive, got {width}x{height}")
    if isinstance(pixels, np.ndarray):
        if pixels.dtype != np.uint8:
            raise ConfigError(f"Pixel array must be uint8, got {pixels.dtype}")
        arr = pixels.reshape(-1)
    else:
        arr = np.frombuffer(pixels, dtype=np.uint8)
    expected = int(width) * int(height) * 4
    if arr.size != expected:
        raise ConfigError(
            f"Pixel buffer has {arr.size} bytes, expected {expected} for {width}x{height} RGBA"
        )
    view = arr.reshape(int(height), int(width), 4)
    if view.flags.writeable:
        view = view.view()
        view.flags.writeable = False
    return view


def luma(pixels: PixelsLike, width: int, height: int) -> np.ndarray:
    """Integer luma I = trunc(0.299R + 0.587G + 0.114B), shape (height, width)."""
    rgba = as_rgba_array(pixels, width, height).astype(np.float64)
    # Keep the left-to-right evaluation order of the weighted sum
    value = rgba[:, :, 0] * 0.299 + rgba[:, :, 1] * 0.587 + rgba[:, :, 2] * 0.114
    return value.astype(np.int64)


def _padded(values: np.ndarray) -> np.ndarray:
    h, w = values.shape
    out = np.zeros((h + 1, w + 1), dtype=np.int64)
    out[1:, 1:] = values
    return out


def _sat(values: np.ndarray) -> np.ndarray:
    return _padded(np.cumsum(np.cumsum(values, axis=0, dtype=np.int64), axis=1, dtype=np.int64))


def _rsat(gray: np.ndarray, margin: int = TILTED_MARGIN) -> np.ndarray:
    gray = np.pad(gray, ((0, margin), (0, margin)))
    h, w = gray.shape
    # One guard column on each side reads as 0 for x-1 < 0 and x+1 >= w
    rows = np.zeros((h, w + 2), dtype=np.int64)
    for y in range(h):
        cur = gray[y].copy()
        if y >= 1:
            cur += gray[y - 1]
            cur += rows[y - 1, 0:w] + rows[y - 1, 2:w + 2]
        if y >= 2:
            cur -= rows[y - 2, 1:w + 1]
        rows[y, 1:w + 1] = cur
    return _padded(rows[:, 1:w + 1])


def sobel_magnitude(pixels: PixelsLike, width: int, height: int) -> np.ndarray:
    """Truncated Sobel edge magnitude sqrt(h^2 + v^2) of the grayscale image."""
    gray = luma(pixels, width, height).astype(np.float64)
    vertical = cv2.sepFilter2D(
        gray, cv2.CV_64F, SOBEL_SIGN, SOBEL_SCALE, borderType=cv2.BORDER_REPLICATE
    )
    horizontal = cv2.sepFilter2D(
        gray, cv2.CV_64F, SOBEL_SCALE, SOBEL_SIGN, borderType=cv2.BORDER_REPLICATE
    )
    magnitude = np.sqrt(horizontal * horizontal + vertical * vertical)
    return magnitude.astype(np.int64)


def compute_integral_images(
    pixels: PixelsLike,
    width: int,
    height: int,
    *,
    sum: bool = True,
    square: bool = False,
    tilted: bool = False,
    sobel: bool = False,
    tilted_margin: int = TILTED_MARGIN,
) -> IntegralTables:
    """Build the requested summed-area tables of an RGBA buffer.

    At least one table must be requested. The tilted table has shape
    (height + tilted_margin + 1, width + tilted_margin + 1).
    """
    if not (sum or square or tilted or sobel):
        raise ConfigError("At least one integral table must be requested")
    if tilted and (not isinstance(tilted_margin, (int, np.integer)) or tilted_margin < 0):
        raise ConfigError(f"tilted_margin must be a non-negative integer, got {tilted_margin!r}")
    gray = luma(pixels, width, height)
    tables = IntegralTables(width=int(width), height=int(height))
    if sum:
        tables.sum = _sat(gray)
    if square:
        tables.square = _sat(gray * gray)
    if tilted:
        tables.tilted = _rsat(gray, int(tilted_margin))
    if sobel:
        tables.sobel = _sat(sobel_magnitude(pixels, width, height))
    return tables


def rect_sum(table: np.ndarray, top: int, left: int, width: int, height: int) -> int:
    """Sum of the pixels [left, left+width) x [top, top+height).

    Corners past the bottom/right edge are clamped, i.e. pixels outside the
    image count as zero.
    """
    rows, cols = table.shape
    bottom = min(max(top + height, 0), rows - 1)
    right = min(max(left + width, 0), cols - 1)
    top = min(max(top, 0), rows - 1)
    left = min(max(left, 0), cols - 1)
    return int(table[bottom, right] - table[top, right] - table[bottom, left] + table[top, left])


__all__ = [
    "TILTED_MARGIN",
    "as_rgba_array",
    "luma",
    "sobel_magnitude",
    "compute_integral_images",
    "rect_sum",
]
