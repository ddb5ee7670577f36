"""Exceptions raised by the file cache."""


class CacheError(Exception):
    """Base exception for cache-related errors."""

    pass


class CacheConfigurationError(CacheError):
    """Raised when a cache cannot be constructed with the given settings."""

    pass


class CachePermissionError(CacheConfigurationError):
    """Raised when cache directory permissions are insufficient."""

    pass


class CompressionUnavailableError(CacheConfigurationError):
    """Raised when compression is requested but zlib is not available."""

    pass


class CacheCapacityError(CacheError):
    """Raised when a write would exceed the maximum cache size."""

    pass


class CacheStorageError(CacheError):
    """Raised on unexpected I/O failures or index/store divergence."""

    pass


class CacheDirectoryMissingError(CacheStorageError):
    """Raised when the cache directory disappears underneath the cache."""

    pass


class CacheWriteError(CacheStorageError):
    """Raised when a value file cannot be written."""

    pass
