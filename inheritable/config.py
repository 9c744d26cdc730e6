"""
Configuration module for Inheritable.

Centralizes all configuration with environment variable support,
validation, and caching for file-backed snapshots.
"""

import os
import json
import threading
import time
from typing import Dict, Any, Optional
from pathlib import Path

# ============================================================
# Environment Configuration
# ============================================================

ENV = os.getenv("INHERITABLE_ENV", "dev")  # dev|stage|prod

# Number of most recent blocks whose hashes the host chain exposes natively.
# A property of the host chain, not of this verifier.
RECENT_BLOCK_WINDOW = int(os.getenv("INHERITABLE_RECENT_BLOCK_WINDOW", "256"))

# Minimum header field count accepted (legacy header, through the seal nonce)
MIN_HEADER_FIELDS = int(os.getenv("INHERITABLE_MIN_HEADER_FIELDS", "15"))

# Paths
DB_PATH = os.getenv("INHERITABLE_DB_PATH", "data/inheritable.db")
ORACLE_PATH = os.getenv("INHERITABLE_ORACLE_PATH", "trust/block_hashes.json")

# Logging
LOG_LEVEL = os.getenv("INHERITABLE_LOG_LEVEL", "INFO")
LOG_JSON = os.getenv("INHERITABLE_LOG_JSON", "1").lower() in ("1", "true", "yes")
LOG_FILE = os.getenv("INHERITABLE_LOG_FILE", "")

# Cache TTL (seconds)
CONFIG_CACHE_TTL = int(os.getenv("CONFIG_CACHE_TTL", "60"))


# ============================================================
# Cached Configuration Loaders
# ============================================================

class CachedConfig:
    """
    Thread-safe cached JSON loader.
    Reloads files periodically based on TTL.
    """

    def __init__(self, ttl_seconds: int = 60):
        self._cache: Dict[str, Any] = {}
        self._timestamps: Dict[str, float] = {}
        self._lock = threading.RLock()
        self._ttl = ttl_seconds

    def _is_stale(self, key: str) -> bool:
        if key not in self._timestamps:
            return True
        return (time.time() - self._timestamps[key]) > self._ttl

    def get_json(self, path: str, force_reload: bool = False) -> Dict[str, Any]:
        """
        Load JSON file with caching.
        Returns cached version if within TTL, otherwise reloads.
        """
        with self._lock:
            if not force_reload and path in self._cache and not self._is_stale(path):
                return self._cache[path]

            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)

            self._cache[path] = data
            self._timestamps[path] = time.time()
            return data

    def invalidate(self, path: Optional[str] = None) -> None:
        """Invalidate cache for a specific path or all paths."""
        with self._lock:
            if path:
                self._cache.pop(path, None)
                self._timestamps.pop(path, None)
            else:
                self._cache.clear()
                self._timestamps.clear()


# Global cached config instance
_config_cache = CachedConfig(ttl_seconds=CONFIG_CACHE_TTL)


def load_json_cached(path: str) -> Dict[str, Any]:
    """Load JSON file with caching."""
    return _config_cache.get_json(path)


def invalidate_config_cache(path: Optional[str] = None) -> None:
    """Invalidate cached configuration."""
    _config_cache.invalidate(path)


# ============================================================
# Validation
# ============================================================

def validate_config() -> Dict[str, bool]:
    """
    Validate configured values.
    Returns dict of check name -> ok.
    """
    return {
        "recent_block_window": RECENT_BLOCK_WINDOW > 0,
        "min_header_fields": MIN_HEADER_FIELDS >= 12,
        "oracle_snapshot": Path(ORACLE_PATH).exists(),
        "db_dir": Path(DB_PATH).parent.exists() or not is_production(),
    }


# ============================================================
# Feature Flags
# ============================================================

def is_production() -> bool:
    """Check if running in production mode."""
    return ENV == "prod"


def is_debug() -> bool:
    """Check if debug mode is enabled."""
    return os.getenv("INHERITABLE_DEBUG", "").lower() in ("1", "true", "yes")
