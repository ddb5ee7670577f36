"""File cache engine combining the metadata index and the value store."""

import dataclasses
import logging
import os
import threading
import time
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from kvstash.cache.config import CacheConfig
from kvstash.cache.errors import (
    CacheCapacityError,
    CacheConfigurationError,
    CacheError,
    CachePermissionError,
    CacheStorageError,
    CompressionUnavailableError,
)
from kvstash.cache.index import MetadataIndex
from kvstash.cache.interface import CacheInterface
from kvstash.cache.store import ValueStore, has_zlib
from kvstash.cache.validation import (
    Validity,
    compute_expiration,
    get_ttl_remaining,
    get_validity,
    validate_cache_key,
)

logger = logging.getLogger(__name__)


class SetResult(Enum):
    """Outcome of a successful ``FileCache.set`` call.

    OVERWRITTEN means an entry (valid or stale) was replaced. It is
    informational only; both outcomes mean the value was stored.
    """

    STORED = "stored"
    OVERWRITTEN = "overwritten"


class FileCache(CacheInterface):
    """Disk-backed key/value cache with per-entry TTL.

    Each value lives in its own file inside the cache directory. An in-memory
    metadata index maps keys to expiration times and is written back to the
    directory by ``persist()`` or ``close()``; use the cache as a context
    manager so the index is always saved.

    Expired entries are removed lazily by ``get``, by ``freshen()`` and by
    ``set`` when the cache would otherwise exceed ``max_size``. Entries that
    have not expired are never evicted to make room: a write that does not fit
    raises ``CacheCapacityError``.

    All public methods are serialized by an in-process lock. Sharing one
    cache directory between processes is not supported.

    Examples:
        >>> with FileCache("/tmp/my_cache", use_compression=True) as cache:
        ...     cache.set("greeting", {"text": "hello"}, ttl=60)
        ...     cache.get("greeting")
        <SetResult.STORED: 'stored'>
        {'text': 'hello'}
    """

    def __init__(
        self,
        cache_dir: Optional[Union[str, Path]] = None,
        use_compression: Optional[bool] = None,
        max_size: Optional[int] = None,
        config: Optional[CacheConfig] = None,
    ):
        """Initialize the cache, creating its directory and loading the index.

        Args:
            cache_dir: Cache directory; overrides config.cache_dir
            use_compression: DEFLATE-compress values; overrides config
            max_size: Maximum cache size in bytes; overrides config
            config: Base configuration (defaults to CacheConfig())

        Raises:
            CachePermissionError: If the directory cannot be created or written
            CompressionUnavailableError: If compression is requested without zlib
            CacheConfigurationError: If the directory holds entries written in
                the other compression mode, or for any other invalid setting
        """
        self.config = self._resolve_config(config, cache_dir, use_compression, max_size)
        self.cache_dir = self.config.cache_dir
        self.use_compression = self.config.use_compression
        self.max_size = self.config.max_size

        self._ensure_writable_directory()

        if self.use_compression and not has_zlib():
            raise CompressionUnavailableError(
                "zlib is not available; cannot use file compression"
            )

        self._lock = threading.RLock()
        self._closed = False
        self._hits = 0
        self._misses = 0

        self.store = ValueStore(
            self.cache_dir,
            use_compression=self.use_compression,
            compression_level=self.config.compression_level,
        )
        self.index = MetadataIndex(self.cache_dir, use_compression=self.use_compression)
        self.index.load()
        self._check_compression_mode()
        self._reconcile()

    @staticmethod
    def _resolve_config(
        config: Optional[CacheConfig],
        cache_dir: Optional[Union[str, Path]],
        use_compression: Optional[bool],
        max_size: Optional[int],
    ) -> CacheConfig:
        """Merge explicit constructor arguments over a base configuration."""
        config = config or CacheConfig()

        overrides: Dict[str, Any] = {}
        if cache_dir is not None and str(cache_dir).strip():
            overrides["cache_dir"] = Path(cache_dir)
        if use_compression is not None:
            overrides["use_compression"] = bool(use_compression)
        if max_size is not None:
            overrides["max_size"] = max_size

        try:
            return dataclasses.replace(config, **overrides)
        except (TypeError, ValueError) as e:
            raise CacheConfigurationError(f"Invalid cache configuration: {e}") from e

    def _ensure_writable_directory(self) -> None:
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
        except PermissionError as e:
            raise CachePermissionError(
                f"Cannot create cache directory at {self.cache_dir}: {e}"
            ) from e
        except OSError as e:
            raise CacheConfigurationError(
                f"Cannot access cache directory at {self.cache_dir}: {e}"
            ) from e

        if not os.access(self.cache_dir, os.W_OK | os.X_OK):
            raise CachePermissionError(
                f"Could not write to cache directory {self.cache_dir}"
            )

    def _check_compression_mode(self) -> None:
        """Refuse to open an index whose entries were written in the other mode.

        Reconciling such an index would drop every entry, and closing the
        cache would then save the loss.
        """
        stored = self.index.stored_compression
        if stored is None or stored == self.use_compression or len(self.index) == 0:
            return

        def mode(flag: bool) -> str:
            return "on" if flag else "off"

        raise CacheConfigurationError(
            f"Cache at {self.cache_dir} holds {len(self.index)} entries written "
            f"with compression {mode(stored)}; reopen it with compression "
            f"{mode(stored)} or flush it first"
        )

    def _reconcile(self) -> None:
        """Drop index entries that no longer have a usable value file."""
        dropped = []
        for key in self.index.keys():
            try:
                validate_cache_key(key)
            except (TypeError, ValueError):
                dropped.append(key)
                continue
            if not self.store.exists(key):
                dropped.append(key)

        for key in dropped:
            self.index.remove(key)

        if dropped:
            logger.warning(
                f"Dropped {len(dropped)} index entries without value files "
                f"in {self.cache_dir}: {', '.join(dropped[:5])}"
            )

    @staticmethod
    def _now() -> float:
        return time.time()

    def _check_open(self) -> None:
        if self._closed:
            raise CacheError(f"Cache at {self.cache_dir} is closed")

    def _autosave(self) -> None:
        if self.config.autosave:
            self.index.persist()

    # =========================================================================
    # Core operations
    # =========================================================================

    def get(self, key: str, default: Any = None) -> Any:
        """Return the cached value for a key.

        Expired entries are evicted as a side effect.

        Args:
            key: Cache key
            default: Returned when the key is absent or expired

        Returns:
            The stored value, or default

        Raises:
            CacheDirectoryMissingError: If the cache directory has disappeared
            CacheStorageError: If the value file is missing or unreadable
        """
        with self._lock:
            self._check_open()
            validity = self.index.validity(key, self._now())

            if validity is Validity.VALID:
                value = self.store.load(key)
                self._hits += 1
                return value

            if validity is Validity.STALE:
                logger.debug(f"Evicting expired key '{key}' on read")
                self._evict(key)

            self._misses += 1
            return default

    def set(self, key: str, value: Any, ttl: Optional[float] = 0) -> SetResult:
        """Store a value under a key.

        Any existing entry for the key is evicted first. If the new payload
        does not fit under max_size, expired entries are swept and the size is
        checked again before giving up.

        Args:
            key: Cache key (a single filesystem-safe name)
            value: Any object joblib can pickle
            ttl: Time-to-live in seconds; 0 or None never expires

        Returns:
            SetResult.OVERWRITTEN if an entry was replaced, else SetResult.STORED

        Raises:
            ValueError: If the key or TTL is invalid
            CacheCapacityError: If the value does not fit even after freshening
            CacheStorageError: If the value file cannot be written
        """
        validate_cache_key(key)

        with self._lock:
            self._check_open()
            now = self._now()
            expires_at = compute_expiration(ttl, now)
            payload = self.store.encode(value)

            result = SetResult.STORED
            if self.index.validity(key, now).is_present:
                self._evict(key)
                result = SetResult.OVERWRITTEN

            self._ensure_capacity(key, len(payload))
            self.store.write(key, payload)

            self.index.set(key, expires_at)
            self._autosave()
            return result

    def _ensure_capacity(self, key: str, payload_size: int) -> None:
        if self.store.directory_size() + payload_size <= self.max_size:
            return

        logger.info(
            f"Writing '{key}' ({payload_size} bytes) would exceed max cache size "
            f"of {self.max_size} bytes; freshening"
        )
        self._freshen(self._now())

        current_size = self.store.directory_size()
        if current_size + payload_size > self.max_size:
            raise CacheCapacityError(
                f"Cache is full: storing '{key}' needs {payload_size} bytes but only "
                f"{max(0, self.max_size - current_size)} of {self.max_size} are free. "
                f"Remove some cached items or increase max_size."
            )

    def expire(self, key: str) -> bool:
        """Remove a key and its value file.

        Args:
            key: Cache key

        Returns:
            True if the key was cached, False if it was not

        Raises:
            CacheStorageError: If the value file exists but cannot be deleted
        """
        with self._lock:
            self._check_open()
            return self._evict(key)

    def _evict(self, key: str, save: bool = True) -> bool:
        if key not in self.index:
            return False

        if not self.store.delete(key):
            logger.warning(f"Value file for '{key}' was already missing; evicting anyway")
        self.index.remove(key)
        logger.debug(f"Evicted '{key}'")

        if save:
            self._autosave()
        return True

    def freshen(self) -> int:
        """Evict every expired entry.

        Entries that are still valid are never touched.

        Returns:
            Number of evicted entries
        """
        with self._lock:
            self._check_open()
            return self._freshen(self._now())

    def _freshen(self, now: float) -> int:
        evicted = 0
        for key, expires_at in self.index.items():
            if get_validity(expires_at, now) is Validity.STALE:
                self._evict(key, save=False)
                evicted += 1

        if evicted:
            logger.debug(f"Freshen evicted {evicted} expired entries")
            self._autosave()
        return evicted

    def read(self, key: str) -> Optional[Dict[str, Any]]:
        """Get information about a cached entry.

        Unlike ``get``, an expired entry is reported (with ``stale=True``) and
        left in place.

        Args:
            key: Cache key

        Returns:
            Dict with expires_at, size_bytes, cache_dir, filename, stale and
            ttl_remaining, or None if the key is not cached

        Raises:
            CacheStorageError: If the value file for an indexed key is missing
        """
        with self._lock:
            self._check_open()
            now = self._now()
            validity = self.index.validity(key, now)
            if validity is Validity.ABSENT:
                return None

            expires_at = self.index.expires_at(key)
            return {
                "expires_at": expires_at,
                "size_bytes": self.store.file_size(key),
                "cache_dir": str(self.cache_dir),
                "filename": self.store.filename(key),
                "stale": validity is Validity.STALE,
                "ttl_remaining": get_ttl_remaining(expires_at, now),
            }

    def flush_cache(self) -> int:
        """Evict every entry, expired or not.

        Value files the index does not know about and leftover temp files
        are removed as well.

        Returns:
            Number of indexed entries evicted
        """
        with self._lock:
            self._check_open()
            evicted = 0
            for key in self.index.keys():
                self._evict(key, save=False)
                evicted += 1

            for path in self.store.stray_files(self.index.keys()):
                try:
                    path.unlink()
                except FileNotFoundError:
                    continue
                except OSError as e:
                    raise CacheStorageError(f"Cannot remove stray file {path}: {e}") from e
                logger.debug(f"Removed stray cache file {path.name}")

            self._autosave()
            return evicted

    # =========================================================================
    # Size reporting
    # =========================================================================

    def get_cache_size(self) -> int:
        """Current on-disk size of the cache directory in bytes."""
        with self._lock:
            self._check_open()
            return self.store.directory_size()

    def get_cache_max_size(self) -> int:
        """Configured maximum cache size in bytes."""
        return self.max_size

    def get_cache_type(self) -> str:
        return "FileCache"

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics.

        Returns:
            Statistics dict
        """
        with self._lock:
            self._check_open()
            now = self._now()
            stale = sum(
                1 for _, expires_at in self.index.items()
                if get_validity(expires_at, now) is Validity.STALE
            )
            total_requests = self._hits + self._misses
            return {
                "cache_type": self.get_cache_type(),
                "cache_dir": str(self.cache_dir),
                "compression": self.use_compression,
                "entries": len(self.index),
                "valid_entries": len(self.index) - stale,
                "stale_entries": stale,
                "size_bytes": self.store.directory_size(),
                "max_size_bytes": self.max_size,
                "cache_hits": self._hits,
                "cache_misses": self._misses,
                "cache_hit_rate": (
                    self._hits / total_requests if total_requests > 0 else 0.0
                ),
            }

    # =========================================================================
    # Index lifecycle
    # =========================================================================

    def keys(self) -> List[str]:
        """All indexed keys, including expired ones not yet evicted."""
        with self._lock:
            return self.index.keys()

    def persist(self) -> None:
        """Write the metadata index to disk now."""
        with self._lock:
            self._check_open()
            self.index.persist()

    def close(self) -> None:
        """Persist the index and release the cache.

        Calling close more than once is a no-op. Any other operation on a
        closed cache raises CacheError.
        """
        with self._lock:
            if self._closed:
                return
            try:
                self.index.persist()
            finally:
                self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> "FileCache":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return (
                isinstance(key, str)
                and self.index.validity(key, self._now()) is Validity.VALID
            )

    def __len__(self) -> int:
        return len(self.index)

    def __repr__(self) -> str:
        return (
            f"FileCache(cache_dir={str(self.cache_dir)!r}, "
            f"use_compression={self.use_compression}, max_size={self.max_size})"
        )
