"""Validity checks for cache entries and cache keys."""

import math
from enum import Enum
from typing import Optional

# Longest suffix appended to a key on disk (".cache.gz.tmp")
_MAX_SUFFIX_LENGTH = 13

# Most filesystems cap a single path component at 255 bytes
MAX_KEY_BYTES = 255 - _MAX_SUFFIX_LENGTH


class Validity(Enum):
    """Validity state of a cache key against the metadata index.

    States:
        ABSENT: Key is not in the index
        VALID: Key is indexed and has not expired (or never expires)
        STALE: Key is indexed but its expiration time has passed
    """

    ABSENT = "absent"
    VALID = "valid"
    STALE = "stale"

    @property
    def is_present(self) -> bool:
        """Whether the key is indexed, regardless of expiration."""
        return self is not Validity.ABSENT


def get_validity(expires_at: Optional[float], now: float) -> Validity:
    """Classify an indexed entry as valid or stale.

    Args:
        expires_at: Absolute UNIX timestamp, or None for never expires
        now: Current UNIX timestamp

    Returns:
        Validity.VALID or Validity.STALE
    """
    if expires_at is None:
        return Validity.VALID
    return Validity.VALID if expires_at > now else Validity.STALE


def compute_expiration(ttl: Optional[float], now: float) -> Optional[float]:
    """Turn a time-to-live into an absolute expiration timestamp.

    Args:
        ttl: Time-to-live in seconds. None or 0 means never expire.
        now: Current UNIX timestamp

    Returns:
        Expiration timestamp, or None if the entry never expires

    Raises:
        ValueError: If ttl is negative or not finite

    Examples:
        >>> compute_expiration(60, 1000.0)
        1060.0
        >>> compute_expiration(0, 1000.0) is None
        True
    """
    if ttl is None or ttl == 0:
        return None
    if isinstance(ttl, bool) or not isinstance(ttl, (int, float)):
        raise TypeError(f"TTL must be a number of seconds, got {type(ttl).__name__}")
    if ttl < 0 or not math.isfinite(ttl):
        raise ValueError(f"TTL must be a non-negative number of seconds, got {ttl}")
    return now + ttl


def get_ttl_remaining(expires_at: Optional[float], now: float) -> Optional[int]:
    """Get remaining seconds until an entry expires.

    Args:
        expires_at: Absolute UNIX timestamp, or None for never expires
        now: Current UNIX timestamp

    Returns:
        Seconds remaining (0 once expired), or None if never expires
    """
    if expires_at is None:
        return None
    return max(0, int(expires_at - now))


def validate_cache_key(key: str) -> None:
    """Validate that a cache key can be used as a file name.

    Keys become a single path component inside the cache directory, so
    separators, relative components and NUL bytes are rejected.

    Args:
        key: Cache key to validate

    Raises:
        TypeError: If key is not a string
        ValueError: If key is empty or not filesystem-safe

    Examples:
        >>> validate_cache_key("user-42")  # OK
        >>> validate_cache_key("a/b")
        Traceback (most recent call last):
            ...
        ValueError: Cache key 'a/b' cannot contain path separators
    """
    if not isinstance(key, str):
        raise TypeError(f"Cache key must be a string, got {type(key).__name__}")

    if not key:
        raise ValueError("Cache key cannot be empty")

    if key != key.strip():
        raise ValueError(f"Cache key '{key}' cannot have leading or trailing whitespace")

    if "/" in key or "\\" in key:
        raise ValueError(f"Cache key '{key}' cannot contain path separators")

    if key in (".", ".."):
        raise ValueError(f"Cache key '{key}' is not a valid file name")

    if "\x00" in key:
        raise ValueError("Cache key cannot contain NUL characters")

    if len(key.encode("utf-8")) > MAX_KEY_BYTES:
        raise ValueError(
            f"Cache key '{key[:20]}...' is too long (max {MAX_KEY_BYTES} bytes)"
        )
