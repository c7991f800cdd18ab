"""
File-based key-value cache for movie bundles, filmographies and settings.

Provides:
- Atomic file writes (temp file + rename)
- File locking for concurrent access
- Directory sharding for filesystem performance
- Clear with an allow-list of keys that survive

Entries never expire. Bundles and filmographies are treated as immutable once
fetched; the only way to refresh them is an explicit clear.
"""

import json
import hashlib
import logging
import os
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Dict, Any, List, Iterable

from constants import PERSON_KEY_PREFIX

logger = logging.getLogger(__name__)

# Try to import fcntl for file locking (Unix only)
try:
    import fcntl
    HAS_FCNTL = True
except ImportError:
    HAS_FCNTL = False
    logger.debug("fcntl not available, file locking disabled")


class FileCache:
    """
    File-based JSON key-value store.

    Each key lives in its own file holding {"key", "value", "stored_at"}.
    A file that cannot be decoded is deleted and read as a miss.

    Usage:
        cache = FileCache("./cache")
        bundle = cache.get("Alien (1979)")
        if bundle is None:
            cache.set("Alien (1979)", build_it())
    """

    def __init__(self, cache_dir: str = None):
        """
        Initialize the file cache.

        Args:
            cache_dir: Directory for cache files. Defaults to CACHE_DIR env var or ./cache
        """
        self._cache_dir = Path(
            cache_dir or os.environ.get("CACHE_DIR", "./cache")
        )
        self._cache_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    @property
    def cache_dir(self) -> Path:
        return self._cache_dir

    def _get_cache_path(self, key: str) -> Path:
        """
        Get cache file path for a key.

        Uses hash-based directory sharding; the readable prefix of the
        filename is only for humans browsing the directory.
        """
        key_hash = hashlib.sha256(key.encode()).hexdigest()

        shard_dir = self._cache_dir / key_hash[:2]
        shard_dir.mkdir(exist_ok=True)

        safe_key = "".join(
            c if c.isalnum() or c in '-_' else '_'
            for c in key
        )[:80]

        return shard_dir / f"{safe_key}_{key_hash[:12]}.json"

    def _iter_files(self) -> Iterable[Path]:
        for item in self._cache_dir.iterdir():
            if item.is_dir() and len(item.name) == 2:
                yield from item.glob("*.json")

    def _lock_file(self, file_handle, exclusive: bool = False) -> None:
        """Apply a non-blocking file lock if available."""
        if HAS_FCNTL:
            try:
                lock_type = fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH
                fcntl.flock(file_handle.fileno(), lock_type | fcntl.LOCK_NB)
            except OSError:
                # Lock not available, proceed anyway
                pass

    def _unlock_file(self, file_handle) -> None:
        """Release file lock if available."""
        if HAS_FCNTL:
            try:
                fcntl.flock(file_handle.fileno(), fcntl.LOCK_UN)
            except OSError:
                pass

    def _read_file(self, cache_path: Path) -> Dict[str, Any]:
        with open(cache_path, 'r', encoding='utf-8') as f:
            self._lock_file(f, exclusive=False)
            try:
                return json.load(f)
            finally:
                self._unlock_file(f)

    def get(self, key: str) -> Optional[Any]:
        """
        Read a value from the cache.

        Args:
            key: Cache key

        Returns:
            The stored value, or None if absent or unreadable
        """
        cache_path = self._get_cache_path(key)
        if not cache_path.exists():
            return None

        try:
            data = self._read_file(cache_path)
            return data["value"]
        except (json.JSONDecodeError, TypeError, KeyError) as e:
            logger.warning(f"Invalid cache entry {key}: {e}")
            self._delete_file(cache_path)
            return None
        except OSError as e:
            logger.warning(f"Cache read error for {key}: {e}")
            return None

    def set(self, key: str, value: Any) -> bool:
        """
        Write a value to the cache atomically.

        Args:
            key: Cache key
            value: JSON-serializable value

        Returns:
            True if write succeeded
        """
        cache_path = self._get_cache_path(key)
        temp_path = cache_path.with_suffix('.tmp')

        entry = {
            "key": key,
            "value": value,
            "stored_at": datetime.now(timezone.utc).isoformat(),
        }

        try:
            with self._lock:
                with open(temp_path, 'w', encoding='utf-8') as f:
                    self._lock_file(f, exclusive=True)
                    try:
                        json.dump(entry, f, ensure_ascii=False)
                    finally:
                        self._unlock_file(f)

                temp_path.replace(cache_path)
            return True

        except (OSError, TypeError, ValueError) as e:
            logger.warning(f"Cache write error for {key}: {e}")
            try:
                temp_path.unlink(missing_ok=True)
            except OSError:
                pass
            return False

    def _delete_file(self, cache_path: Path) -> None:
        try:
            cache_path.unlink(missing_ok=True)
        except OSError:
            pass

    def delete(self, key: str) -> bool:
        """
        Delete a specific cache entry.

        Returns:
            True if entry was deleted
        """
        cache_path = self._get_cache_path(key)
        if cache_path.exists():
            self._delete_file(cache_path)
            return True
        return False

    def clear(self, preserve: Iterable[str] = ()) -> int:
        """
        Clear all cache entries except the preserved keys.

        Args:
            preserve: Keys to keep (e.g. the API token and saved filter)

        Returns:
            Number of files deleted
        """
        keep = {self._get_cache_path(key) for key in preserve}
        count = 0
        try:
            for cache_file in list(self._iter_files()):
                if cache_file in keep:
                    continue
                self._delete_file(cache_file)
                count += 1
        except OSError as e:
            logger.warning(f"Cache clear error: {e}")

        logger.info(f"Cleared {count} cache entries (preserved {len(keep)} keys)")
        return count

    def keys(self) -> List[str]:
        """Return all stored keys, read from the entries themselves."""
        keys = []
        try:
            for cache_file in self._iter_files():
                try:
                    keys.append(self._read_file(cache_file)["key"])
                except (OSError, json.JSONDecodeError, KeyError, TypeError):
                    continue
        except OSError:
            pass
        return sorted(keys)

    def stats(self) -> Dict[str, Any]:
        """
        Get cache statistics.

        Returns:
            Dict with entry counts by kind and total size
        """
        total_size = 0
        people = 0
        movies = 0
        settings = 0
        for key in self.keys():
            if key.startswith(PERSON_KEY_PREFIX):
                people += 1
            elif key.endswith(")"):
                movies += 1
            else:
                settings += 1
        try:
            for cache_file in self._iter_files():
                total_size += cache_file.stat().st_size
        except OSError:
            pass

        return {
            "total_entries": people + movies + settings,
            "movie_entries": movies,
            "person_entries": people,
            "other_entries": settings,
            "total_size_mb": round(total_size / 1024 / 1024, 2),
        }
