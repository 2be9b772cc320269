"""Formatting utilities for the cloud-sync screens."""

from datetime import datetime, timedelta
from typing import Optional, Union

_UNITS = "KMGTPE"


def format_bytes(size_bytes: int) -> str:
    """Format a byte count in human readable binary units.

    Args:
        size_bytes: Size in bytes.

    Returns:
        Human readable size string such as ``"1.5 MB"``.
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"

    div, exp = 1024, 0
    n = size_bytes // 1024
    while n >= 1024 and exp < len(_UNITS) - 1:
        div *= 1024
        exp += 1
        n //= 1024
    return f"{size_bytes / div:.1f} {_UNITS[exp]}B"


def format_date(dt: Optional[datetime], short: bool = False) -> str:
    """Format datetime for display.

    Args:
        dt: Datetime to format, ``None`` renders as ``"Never"``.
        short: If True, use short format.

    Returns:
        Formatted date string.
    """
    if dt is None:
        return "Never"
    if short:
        return dt.strftime('%Y-%m-%d %H:%M')
    return dt.strftime('%Y-%m-%d %H:%M:%S')


def format_duration(duration: Union[timedelta, float]) -> str:
    """Format a duration as ``1h 2m 3s``, ``2m 3s`` or ``3s``.

    Args:
        duration: A timedelta or a number of seconds.

    Returns:
        Compact duration string.
    """
    if isinstance(duration, timedelta):
        seconds = duration.total_seconds()
    else:
        seconds = float(duration)
    total = max(0, int(round(seconds)))

    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours > 0:
        return f"{hours}h {minutes}m {secs}s"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def format_relative_time(delta: timedelta) -> str:
    """Describe how long ago something happened.

    Args:
        delta: Time elapsed since the event.

    Returns:
        Phrase such as ``"just now"``, ``"5 mins ago"`` or ``"1 day ago"``.
    """
    seconds = delta.total_seconds()
    if seconds < 60:
        return "just now"
    if seconds < 3600:
        mins = int(seconds // 60)
        return "1 min ago" if mins == 1 else f"{mins} mins ago"
    if seconds < 86400:
        hours = int(seconds // 3600)
        return "1 hour ago" if hours == 1 else f"{hours} hours ago"
    days = int(seconds // 86400)
    return "1 day ago" if days == 1 else f"{days} days ago"


def truncate_string(text: str, max_length: int, suffix: str = "...") -> str:
    """Truncate string to maximum length.

    Args:
        text: Text to truncate.
        max_length: Maximum length.
        suffix: Suffix to add when truncating.

    Returns:
        Truncated string.
    """
    if len(text) <= max_length:
        return text

    return text[:max_length - len(suffix)] + suffix
