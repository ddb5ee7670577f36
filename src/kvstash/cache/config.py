"""Cache configuration management."""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

DEFAULT_CACHE_DIR = Path.home() / ".kvstash_cache"
DEFAULT_MAX_SIZE = 64 * 1024 * 1024  # 64 MiB


@dataclass
class CacheConfig:
    """Configuration for a file cache instance.

    Attributes:
        cache_dir: Directory holding value files and the index file. Created
            on construction of the cache if it does not exist.
        use_compression: DEFLATE-compress stored values
        compression_level: zlib compression level (0-9)
        max_size: Maximum total size of the cache directory in bytes
        autosave: Persist the index after every mutation instead of only on
            close. Trades write amplification for crash safety.
    """

    cache_dir: Path = DEFAULT_CACHE_DIR
    use_compression: bool = False
    compression_level: int = 6
    max_size: int = DEFAULT_MAX_SIZE
    autosave: bool = False

    def __post_init__(self):
        """Normalize cache_dir and check numeric limits."""
        if self.cache_dir is None:
            self.cache_dir = DEFAULT_CACHE_DIR
        self.cache_dir = Path(self.cache_dir).expanduser()

        if self.max_size is None:
            self.max_size = DEFAULT_MAX_SIZE
        if self.max_size <= 0:
            raise ValueError(f"max_size must be positive, got {self.max_size}")

        if not 0 <= self.compression_level <= 9:
            raise ValueError(
                f"compression_level must be between 0 and 9, got {self.compression_level}"
            )

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "CacheConfig":
        """Load configuration from file.

        Args:
            config_path: Path to config file. If None, uses default location.

        Returns:
            CacheConfig instance
        """
        if config_path is None:
            config_path = DEFAULT_CACHE_DIR / "config.json"

        if not config_path.exists():
            return cls()

        with open(config_path, "r") as f:
            data = json.load(f)

        if "cache_dir" in data:
            data["cache_dir"] = Path(data["cache_dir"])

        return cls(**data)

    def save(self, config_path: Optional[Path] = None) -> None:
        """Save configuration to file.

        Args:
            config_path: Path to config file. If None, uses cache_dir/config.json.
        """
        if config_path is None:
            config_path = self.cache_dir / "config.json"

        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "cache_dir": str(self.cache_dir),
            "use_compression": self.use_compression,
            "compression_level": self.compression_level,
            "max_size": self.max_size,
            "autosave": self.autosave,
        }

        with open(config_path, "w") as f:
            json.dump(data, f, indent=2)

    @classmethod
    def from_env(cls) -> "CacheConfig":
        """Create configuration from environment variables.

        Environment variables:
            KVSTASH_CACHE_DIR: Cache directory path
            KVSTASH_COMPRESSION: Enable compression (true/false)
            KVSTASH_COMPRESSION_LEVEL: zlib level (0-9)
            KVSTASH_MAX_SIZE: Maximum cache size in bytes
            KVSTASH_AUTOSAVE: Persist index after every mutation (true/false)

        Returns:
            CacheConfig instance
        """
        config = cls()

        if os.getenv("KVSTASH_CACHE_DIR"):
            config.cache_dir = Path(os.getenv("KVSTASH_CACHE_DIR")).expanduser()

        if os.getenv("KVSTASH_COMPRESSION"):
            config.use_compression = os.getenv("KVSTASH_COMPRESSION", "").lower() == "true"

        if os.getenv("KVSTASH_COMPRESSION_LEVEL"):
            config.compression_level = int(os.getenv("KVSTASH_COMPRESSION_LEVEL"))

        if os.getenv("KVSTASH_MAX_SIZE"):
            config.max_size = int(os.getenv("KVSTASH_MAX_SIZE"))

        if os.getenv("KVSTASH_AUTOSAVE"):
            config.autosave = os.getenv("KVSTASH_AUTOSAVE", "").lower() == "true"

        # Re-run checks on values read from the environment
        config.__post_init__()
        return config
