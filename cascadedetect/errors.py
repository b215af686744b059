from __future__ import annotations


class ConfigError(ValueError):
    """Invalid caller input detected before any scanning starts.

    Covers bad image dimensions, mismatched pixel buffer lengths, empty or
    malformed classifier blobs and out-of-range scan parameters.
    """


__all__ = ["ConfigError"]
