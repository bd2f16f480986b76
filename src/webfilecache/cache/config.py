"""Cache configuration management."""

import json
import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Optional


def default_cache_dir() -> Path:
    """Get the XDG user cache directory for webfilecache."""
    xdg = os.getenv("XDG_CACHE_HOME")
    base = Path(xdg).expanduser() if xdg else Path.home() / ".cache"
    return base / "webfilecache"


@dataclass
class CacheConfig:
    """Configuration for a web file cache.

    Attributes:
        cache_dir: Root directory shared by all caches
        namespace: Directory under cache_dir used by this cache
        source_uri: Base URI that source keys are appended to
        validity_seconds: How long a local copy is fresh (1 hour)
        not_modified_extension_seconds: How far a not-modified answer moves
            the stored time forward; 0 resets it to now
        request_timeout: Transport timeout in seconds
        max_workers: Size of the fetch thread pool. Fetches beyond this many
            wait in the pool queue until a worker is free
        future_check_interval: Seconds between completion polls (watch mode)
        validity_check_interval: Seconds between validity scans (watch mode)
        track_stats: Keep a statistics file next to the store directory
    """

    cache_dir: Optional[Path] = None
    namespace: str = "default"
    source_uri: str = ""
    validity_seconds: int = 3600  # 1 hour
    not_modified_extension_seconds: int = 0
    request_timeout: float = 30.0
    max_workers: int = 8
    future_check_interval: float = 1.0
    validity_check_interval: float = 60.0
    track_stats: bool = True

    def __post_init__(self):
        """Ensure cache_dir is an expanded Path object."""
        if self.cache_dir is None:
            self.cache_dir = default_cache_dir()
        else:
            self.cache_dir = Path(self.cache_dir).expanduser()
        if self.validity_seconds < 0:
            raise ValueError(
                f"validity_seconds must not be negative, got {self.validity_seconds}"
            )
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {self.max_workers}")

    @property
    def validity(self) -> timedelta:
        return timedelta(seconds=self.validity_seconds)

    @property
    def not_modified_extension(self) -> timedelta:
        return timedelta(seconds=self.not_modified_extension_seconds)

    @property
    def stats_path(self) -> Path:
        """Statistics file, kept outside the store directory."""
        return self.cache_dir / f"{self.namespace}.meta.json"

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "CacheConfig":
        """Load configuration from file.

        Args:
            config_path: Path to config file. If None, uses default location.

        Returns:
            CacheConfig instance (defaults if the file does not exist)
        """
        if config_path is None:
            config_path = default_cache_dir() / "config.json"

        if not Path(config_path).exists():
            return cls()

        with open(config_path, "r") as f:
            data = json.load(f)

        # Convert cache_dir string to Path
        if "cache_dir" in data:
            data["cache_dir"] = Path(data["cache_dir"])

        return cls(**data)

    def save(self, config_path: Optional[Path] = None) -> None:
        """Save configuration to file.

        Args:
            config_path: Path to config file. If None, uses default location.
        """
        if config_path is None:
            config_path = self.cache_dir / "config.json"

        config_path = Path(config_path)
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "cache_dir": str(self.cache_dir),
            "namespace": self.namespace,
            "source_uri": self.source_uri,
            "validity_seconds": self.validity_seconds,
            "not_modified_extension_seconds": self.not_modified_extension_seconds,
            "request_timeout": self.request_timeout,
            "max_workers": self.max_workers,
            "future_check_interval": self.future_check_interval,
            "validity_check_interval": self.validity_check_interval,
            "track_stats": self.track_stats,
        }

        with open(config_path, "w") as f:
            json.dump(data, f, indent=2)

    @classmethod
    def from_env(cls) -> "CacheConfig":
        """Create configuration from environment variables.

        Environment variables:
            WEBFILECACHE_DIR: Cache root directory
            WEBFILECACHE_NAMESPACE: Cache namespace
            WEBFILECACHE_SOURCE: Source URI
            WEBFILECACHE_VALIDITY: Validity window in seconds
            WEBFILECACHE_TIMEOUT: Request timeout in seconds
            WEBFILECACHE_MAX_WORKERS: Maximum concurrent fetches

        Returns:
            CacheConfig instance
        """
        config = cls()

        if os.getenv("WEBFILECACHE_DIR"):
            config.cache_dir = Path(os.getenv("WEBFILECACHE_DIR")).expanduser()

        if os.getenv("WEBFILECACHE_NAMESPACE"):
            config.namespace = os.getenv("WEBFILECACHE_NAMESPACE")

        if os.getenv("WEBFILECACHE_SOURCE"):
            config.source_uri = os.getenv("WEBFILECACHE_SOURCE")

        if os.getenv("WEBFILECACHE_VALIDITY"):
            config.validity_seconds = int(os.getenv("WEBFILECACHE_VALIDITY"))

        if os.getenv("WEBFILECACHE_TIMEOUT"):
            config.request_timeout = float(os.getenv("WEBFILECACHE_TIMEOUT"))

        if os.getenv("WEBFILECACHE_MAX_WORKERS"):
            config.max_workers = int(os.getenv("WEBFILECACHE_MAX_WORKERS"))

        return config


# Global cache configuration instance
_global_config: Optional[CacheConfig] = None


def get_global_config() -> CacheConfig:
    """Get global cache configuration.

    Returns:
        Global CacheConfig instance
    """
    global _global_config
    if _global_config is None:
        # Try loading from file, then env, then defaults
        config_path = default_cache_dir() / "config.json"
        try:
            if config_path.exists():
                _global_config = CacheConfig.load(config_path)
        except (OSError, ValueError, TypeError):
            pass
        if _global_config is None:
            _global_config = CacheConfig.from_env()
    return _global_config


def set_global_config(config: Optional[CacheConfig]) -> None:
    """Set global cache configuration.

    Args:
        config: CacheConfig instance to use globally, or None to reset
    """
    global _global_config
    _global_config = config
