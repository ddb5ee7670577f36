"""Value store keeping one file per cache key.

Values are serialized with joblib and, when compression is enabled, wrapped in
a raw DEFLATE stream (no zlib or gzip header). Files live directly in the
cache directory as ``<key>.cache`` or ``<key>.cache.gz``.

Value files are unpickled on read, so a cache directory must only ever be
shared with trusted writers.
"""

import errno
import io
import logging
import os
from pathlib import Path
from typing import Any, Iterable, List

import joblib

from kvstash.cache.errors import (
    CacheDirectoryMissingError,
    CacheStorageError,
    CacheWriteError,
)

try:
    import zlib
except ImportError:  # interpreter built without zlib
    zlib = None

logger = logging.getLogger(__name__)

VALUE_SUFFIX = ".cache"
COMPRESSED_SUFFIX = ".cache.gz"
TEMP_SUFFIX = ".tmp"


def has_zlib() -> bool:
    """Check whether DEFLATE compression is available in this interpreter."""
    return zlib is not None


class ValueStore:
    """Reads and writes encoded cache values on the local filesystem.

    The store knows nothing about expiration; it only maps keys to files.

    Examples:
        >>> store = ValueStore(Path("/tmp/cache"), use_compression=True)
        >>> store.filename("report")
        'report.cache.gz'
        >>> payload = store.encode({"rows": 3})
        >>> store.write("report", payload)
        >>> store.load("report")
        {'rows': 3}
    """

    def __init__(
        self,
        cache_dir: Path,
        use_compression: bool = False,
        compression_level: int = 6,
    ):
        """Initialize value store.

        Args:
            cache_dir: Directory holding the value files
            use_compression: DEFLATE-compress payloads on disk
            compression_level: zlib level from 0 (none) to 9 (best)
        """
        self.cache_dir = Path(cache_dir)
        self.use_compression = use_compression
        self.compression_level = compression_level

    @property
    def suffix(self) -> str:
        """File suffix for value files written by this store."""
        return COMPRESSED_SUFFIX if self.use_compression else VALUE_SUFFIX

    def filename(self, key: str) -> str:
        """Get the value file name for a key, relative to the cache directory."""
        return f"{key}{self.suffix}"

    def path(self, key: str) -> Path:
        """Get the full value file path for a key."""
        return self.cache_dir / self.filename(key)

    # =========================================================================
    # Encoding
    # =========================================================================

    def encode(self, value: Any) -> bytes:
        """Serialize a value, compressing it if enabled.

        Args:
            value: Any object joblib can pickle

        Returns:
            Payload bytes as they will be stored on disk
        """
        buffer = io.BytesIO()
        joblib.dump(value, buffer)
        data = buffer.getvalue()

        if self.use_compression:
            compressor = zlib.compressobj(
                self.compression_level, zlib.DEFLATED, -zlib.MAX_WBITS
            )
            data = compressor.compress(data) + compressor.flush()

        return data

    def decode(self, payload: bytes) -> Any:
        """Inverse of ``encode``.

        Raises:
            CacheStorageError: If the payload cannot be inflated or unpickled
        """
        if self.use_compression:
            try:
                payload = zlib.decompress(payload, -zlib.MAX_WBITS)
            except zlib.error as e:
                raise CacheStorageError(f"Cannot decompress cached value: {e}") from e

        try:
            return joblib.load(io.BytesIO(payload))
        except Exception as e:
            raise CacheStorageError(f"Cannot deserialize cached value: {e}") from e

    # =========================================================================
    # File I/O
    # =========================================================================

    def _check_directory(self) -> None:
        if not self.cache_dir.is_dir():
            raise CacheDirectoryMissingError(
                f"Cache directory {self.cache_dir} does not exist"
            )

    def exists(self, key: str) -> bool:
        """Check whether the value file for a key exists."""
        return self.path(key).is_file()

    def write(self, key: str, payload: bytes) -> None:
        """Write a payload for a key, replacing any existing file atomically.

        The payload goes to ``<file>.tmp`` first and is renamed over the final
        name, so readers never see a partially written value.

        Args:
            key: Cache key
            payload: Encoded bytes from ``encode``

        Raises:
            CacheDirectoryMissingError: If the cache directory is gone
            CacheWriteError: If the file cannot be written
        """
        self._check_directory()

        cache_path = self.path(key)
        temp_path = cache_path.with_name(cache_path.name + TEMP_SUFFIX)

        try:
            with open(temp_path, "wb") as f:
                f.write(payload)
            os.replace(temp_path, cache_path)
        except OSError as e:
            self._discard_temp(temp_path)
            if e.errno == errno.ENOSPC:
                raise CacheWriteError(f"Disk full while writing '{key}' to cache") from e
            logger.error(f"OS error writing cache file {cache_path}: {e}")
            raise CacheWriteError(f"Cannot write cache file for '{key}': {e}") from e

    def _discard_temp(self, temp_path: Path) -> None:
        try:
            temp_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Failed to clean up temp file {temp_path}: {e}")

    def read(self, key: str) -> bytes:
        """Read the raw payload for a key.

        Raises:
            CacheDirectoryMissingError: If the cache directory is gone
            CacheStorageError: If the value file is missing or unreadable
        """
        self._check_directory()

        cache_path = self.path(key)
        try:
            with open(cache_path, "rb") as f:
                return f.read()
        except FileNotFoundError as e:
            raise CacheStorageError(
                f"Value file {cache_path.name} is missing for indexed key '{key}'"
            ) from e
        except OSError as e:
            logger.error(f"OS error reading cache file {cache_path}: {e}")
            raise CacheStorageError(f"Cannot read cache file for '{key}': {e}") from e

    def load(self, key: str) -> Any:
        """Read and decode the value stored for a key."""
        return self.decode(self.read(key))

    def delete(self, key: str) -> bool:
        """Delete the value file for a key.

        Returns:
            True if a file was removed, False if it was already gone

        Raises:
            CacheStorageError: On any failure other than a missing file
        """
        cache_path = self.path(key)
        try:
            cache_path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.error(f"OS error deleting cache file {cache_path}: {e}")
            raise CacheStorageError(f"Cannot delete cache file for '{key}': {e}") from e
        return True

    def file_size(self, key: str) -> int:
        """Size in bytes of the value file for a key.

        Raises:
            CacheStorageError: If the file cannot be stat'ed
        """
        cache_path = self.path(key)
        try:
            return cache_path.stat().st_size
        except OSError as e:
            raise CacheStorageError(
                f"Cannot stat value file {cache_path.name} for '{key}': {e}"
            ) from e

    def directory_size(self) -> int:
        """Total size in bytes of every file under the cache directory.

        Counts files the index does not know about as well, so the result is
        the real on-disk usage.
        """
        total = 0
        for root, _dirs, files in os.walk(self.cache_dir):
            for name in files:
                try:
                    total += os.stat(os.path.join(root, name), follow_symlinks=False).st_size
                except FileNotFoundError:
                    # Removed between listing and stat
                    continue
        return total

    def stray_files(self, known_keys: Iterable[str]) -> List[Path]:
        """Find value and temp files that no indexed key accounts for.

        Args:
            known_keys: Keys currently in the metadata index

        Returns:
            Paths of orphaned value files and leftover temp files
        """
        if not self.cache_dir.is_dir():
            return []

        known = {self.filename(key) for key in known_keys}
        strays = []
        for entry in self.cache_dir.iterdir():
            if not entry.is_file():
                continue
            name = entry.name
            is_value = name.endswith(VALUE_SUFFIX) or name.endswith(COMPRESSED_SUFFIX)
            is_temp = name.endswith(VALUE_SUFFIX + TEMP_SUFFIX) or name.endswith(
                COMPRESSED_SUFFIX + TEMP_SUFFIX
            )
            if is_temp:
                strays.append(entry)
            elif is_value and name not in known:
                strays.append(entry)
        return strays
