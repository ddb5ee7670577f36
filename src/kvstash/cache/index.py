"""Metadata index mapping cache keys to expiration times."""

import logging
import os
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import orjson

from kvstash.cache.errors import CacheStorageError
from kvstash.cache.validation import Validity, get_validity

logger = logging.getLogger(__name__)

INDEX_FILENAME = "cache_contents.json"
SCHEMA_VERSION = "1.0"


class MetadataIndex:
    """In-memory table of cache key to expiration timestamp.

    The index is the single source of truth for whether a key exists and
    whether it is still valid. It is mirrored to one JSON file inside the
    cache directory::

        {
            "schema_version": "1.0",
            "use_compression": false,
            "entries": {"key": 1718000000.0, "other": null}
        }

    A ``null`` expiration means the entry never expires. ``use_compression``
    records the mode the value files were written in; after ``load()``,
    ``stored_compression`` holds the recorded mode, or None if the file has
    none. The file is read by ``load()`` and replaced as a whole by
    ``persist()``; nothing is written incrementally.
    """

    def __init__(
        self,
        cache_dir: Path,
        filename: str = INDEX_FILENAME,
        use_compression: bool = False,
    ):
        """Initialize an empty index.

        Args:
            cache_dir: Directory holding the index file
            filename: Name of the index file inside cache_dir
            use_compression: Compression mode recorded by persist()
        """
        self.cache_dir = Path(cache_dir)
        self.index_path = self.cache_dir / filename
        self.use_compression = use_compression
        self.stored_compression: Optional[bool] = None
        self._entries: Dict[str, Optional[float]] = {}

    def load(self) -> None:
        """Load entries from the index file, replacing the in-memory table.

        A missing file yields an empty index. A corrupted file is logged and
        also treated as empty; malformed entries are skipped individually.
        """
        self._entries = {}
        self.stored_compression = None
        if not self.index_path.exists():
            return

        try:
            with open(self.index_path, "rb") as f:
                data = orjson.loads(f.read())
        except (orjson.JSONDecodeError, OSError) as e:
            logger.warning(f"Ignoring unreadable cache index {self.index_path}: {e}")
            return

        if not isinstance(data, dict):
            data = {}
        if isinstance(data.get("use_compression"), bool):
            self.stored_compression = data["use_compression"]

        entries = data.get("entries")
        if not isinstance(entries, dict):
            logger.warning(f"Cache index {self.index_path} has no entries table")
            return

        for key, expires_at in entries.items():
            if expires_at is not None and (
                isinstance(expires_at, bool) or not isinstance(expires_at, (int, float))
            ):
                logger.warning(f"Skipping malformed index entry for '{key}'")
                continue
            self._entries[key] = None if expires_at is None else float(expires_at)

    def persist(self) -> None:
        """Write the whole index to disk.

        The file is written to a temporary sibling and renamed into place so
        a crash never leaves a half-written index behind. The cache directory
        is recreated if it has been removed.

        Raises:
            CacheStorageError: If the index file cannot be written
        """
        content = orjson.dumps(
            {
                "schema_version": SCHEMA_VERSION,
                "use_compression": self.use_compression,
                "entries": self._entries,
            },
            option=orjson.OPT_INDENT_2,
        )
        temp_path = self.index_path.with_suffix(self.index_path.suffix + ".tmp")
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            with open(temp_path, "wb") as f:
                f.write(content)
            os.replace(temp_path, self.index_path)
        except OSError as e:
            logger.error(f"Error writing cache index {self.index_path}: {e}")
            try:
                temp_path.unlink()
            except FileNotFoundError:
                pass
            except OSError as cleanup_error:
                logger.warning(f"Failed to clean up temp file: {cleanup_error}")
            raise CacheStorageError(f"Cannot write cache index: {e}") from e

    def validity(self, key: str, now: float) -> Validity:
        """Classify a key as absent, valid or stale at time ``now``.

        Args:
            key: Cache key
            now: Current UNIX timestamp

        Returns:
            Validity of the key
        """
        if key not in self._entries:
            return Validity.ABSENT
        return get_validity(self._entries[key], now)

    def expires_at(self, key: str) -> Optional[float]:
        """Get the expiration timestamp of an indexed key.

        Raises:
            KeyError: If key is not indexed
        """
        return self._entries[key]

    def set(self, key: str, expires_at: Optional[float]) -> None:
        """Record the expiration of a key."""
        self._entries[key] = expires_at

    def remove(self, key: str) -> bool:
        """Drop a key from the index.

        Returns:
            True if the key was indexed
        """
        return self._entries.pop(key, _MISSING) is not _MISSING

    def keys(self) -> List[str]:
        """Snapshot of indexed keys, safe to iterate while mutating the index."""
        return list(self._entries)

    def items(self) -> List[Tuple[str, Optional[float]]]:
        """Snapshot of ``(key, expires_at)`` pairs."""
        return list(self._entries.items())

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


_MISSING = object()
