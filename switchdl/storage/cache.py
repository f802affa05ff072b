"""
A file-based JSON cache for remote catalog documents such as the
latest-versions list. Entries expire after a configurable number of days.
"""

import hashlib
import json
import logging
import os
import time
from pathlib import Path
from typing import Any

log = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400


class CacheManager:
    """
    Stores one JSON file per key under `<config dir>/cache`. An entry is
    fresh while its stored timestamp is younger than `max_age_days`; a max
    age of 0 turns every read into a miss.
    """

    def __init__(self, cache_dir_path: Path, max_age_days: int = 1):
        self.cache_dir = cache_dir_path / "cache"
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.max_age_seconds = max_age_days * SECONDS_PER_DAY

    def _entry_path(self, key: str) -> Path:
        digest = hashlib.md5(key.encode("utf-8")).hexdigest()  # noqa: S324
        return self.cache_dir / f"{digest}.json"

    def _read_entry(self, key: str) -> dict | None:
        entry_path = self._entry_path(key)
        if not entry_path.is_file():
            return None
        try:
            with open(entry_path, encoding="utf-8") as f:
                entry = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            log.debug(f"Discarding unreadable cache entry '{key}': {e}")
            self.invalidate(key)
            return None
        if not isinstance(entry, dict) or entry.get("key") != key:
            return None
        return entry

    def age(self, key: str) -> float | None:
        """Seconds since `key` was stored, or None if there is no entry."""
        entry = self._read_entry(key)
        if entry is None:
            return None
        return max(0.0, time.time() - float(entry.get("timestamp", 0)))

    def get(self, key: str) -> Any | None:
        """Returns the cached value, or None when missing or expired."""
        entry = self._read_entry(key)
        if entry is None:
            return None
        if time.time() - float(entry.get("timestamp", 0)) >= self.max_age_seconds:
            log.debug(f"Cache entry '{key}' expired.")
            self.invalidate(key)
            return None
        return entry.get("value")

    def set(self, key: str, value: Any) -> bool:
        """Stores `value`, replacing any previous entry atomically."""
        entry_path = self._entry_path(key)
        temp_path = entry_path.with_suffix(".tmp")
        payload = {"key": key, "timestamp": time.time(), "value": value}
        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(payload, f)
            os.replace(temp_path, entry_path)
            return True
        except (TypeError, OSError) as e:
            log.warning(f"Cache write failed for key '{key}': {e}")
            return False

    def invalidate(self, key: str) -> None:
        try:
            self._entry_path(key).unlink(missing_ok=True)
        except OSError as e:
            log.debug(f"Could not remove cache entry '{key}': {e}")

    def clear(self) -> bool:
        """Removes all entries."""
        log.info("Clearing all cache entries...")
        try:
            for entry_path in self.cache_dir.glob("*.json"):
                entry_path.unlink()
            return True
        except OSError as e:
            log.error(f"Failed to clear cache: {e}")
            return False
