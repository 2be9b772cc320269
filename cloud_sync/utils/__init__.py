"""Utility functions for cloud-sync."""

from .formatters import (
    format_bytes,
    format_date,
    format_duration,
    format_relative_time,
    truncate_string,
)

__all__ = [
    "format_bytes",
    "format_date",
    "format_duration",
    "format_relative_time",
    "truncate_string",
]
