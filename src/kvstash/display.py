"""Display formatting for cache sizes and expiration times.

Used by the command-line interface to render ``FileCache.read()`` and
``FileCache.get_stats()`` results for humans.
"""

import time
from datetime import datetime
from typing import Optional

SIZE_UNITS = ["B", "KB", "MB", "GB", "TB"]


def format_filesize(size_bytes: int) -> str:
    """Format file size in bytes to human-readable string.

    Args:
        size_bytes: File size in bytes

    Returns:
        Human-readable file size string (e.g., "1.5 MB", "23.4 KB")

    Examples:
        >>> format_filesize(1024)
        '1.0 KB'
        >>> format_filesize(1536000)
        '1.5 MB'
    """
    if size_bytes < 1024:
        return f"{int(size_bytes)} B"

    size = float(size_bytes)
    for unit in SIZE_UNITS[1:]:
        size /= 1024
        if size < 1024 or unit == SIZE_UNITS[-1]:
            break
    return f"{size:.1f} {unit}"


def format_usage(size_bytes: int, max_size: int) -> str:
    """Format cache usage against its ceiling.

    Examples:
        >>> format_usage(512, 1024)
        '512 B of 1.0 KB (50%)'
    """
    percent = 100 * size_bytes / max_size if max_size > 0 else 0
    return f"{format_filesize(size_bytes)} of {format_filesize(max_size)} ({percent:.0f}%)"


def format_duration(seconds: int) -> str:
    """Format a number of seconds as a compact duration.

    Examples:
        >>> format_duration(45)
        '45s'
        >>> format_duration(3725)
        '1h 2m'
    """
    if seconds < 60:
        return f"{seconds}s"
    minutes, _ = divmod(seconds, 60)
    if minutes < 60:
        return f"{minutes}m"
    hours, minutes = divmod(minutes, 60)
    if hours < 24:
        return f"{hours}h {minutes}m"
    days, hours = divmod(hours, 24)
    return f"{days}d {hours}h"


def format_expiration(expires_at: Optional[float], now: Optional[float] = None) -> str:
    """Format an expiration timestamp relative to now, in local time.

    Args:
        expires_at: UNIX timestamp, or None for entries that never expire
        now: Reference time (defaults to the current time)

    Returns:
        "never", "expired at ...", or "... (in 5m)"
    """
    if expires_at is None:
        return "never"

    if now is None:
        now = time.time()

    when = datetime.fromtimestamp(expires_at).astimezone()
    time_str = when.strftime("%Y-%m-%d %H:%M:%S %Z").strip()

    if expires_at <= now:
        return f"expired at {time_str}"
    return f"{time_str} (in {format_duration(int(expires_at - now))})"
