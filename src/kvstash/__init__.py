"""kvstash: Disk-backed key/value cache with per-entry expiration."""

__version__ = "0.1.0"

from kvstash.cache import CacheConfig, FileCache

__all__ = ["FileCache", "CacheConfig", "__version__"]
