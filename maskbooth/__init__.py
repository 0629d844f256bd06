"""
Core package init for maskbooth.

Makes the `maskbooth` modules importable without requiring an editable install.
"""

__all__ = [
    "config",
    "geometry",
    "io_utils",
    "pipeline",
    "replay",
    "smoothing",
    "tracking",
    "types",
]
