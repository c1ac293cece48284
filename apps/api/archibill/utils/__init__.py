"""Utility modules."""

from archibill.utils.normalization import (
    is_valid_email,
    is_valid_timezone,
    normalize_email,
    sanitize_input,
    slugify,
)

__all__ = [
    "is_valid_email",
    "is_valid_timezone",
    "normalize_email",
    "sanitize_input",
    "slugify",
]
