"""
Settings store for the TMDB credential and the priority filter.

Both settings live in the same FileCache as the movie data, under keys that
a cache clear preserves. The credential falls back to the TMDB_API_TOKEN
environment variable when none has been saved.
"""

import logging
import threading
from typing import Optional

from cache import FileCache
from constants import API_TOKEN_KEY, PRIORITY_FILTER_KEY, PRESERVED_KEYS, TMDB_API_TOKEN
from models import PriorityFilter
from text_utils import mask_token

logger = logging.getLogger(__name__)

# TMDB v4 read access tokens are JWTs
TOKEN_PREFIX = "eyJ"


class SettingsStore:
    """
    Reads and writes user settings kept in the cache.

    Usage:
        settings = SettingsStore(cache)
        settings.set_priority_filter(PriorityFilter(genres=("Horror",)))
        token = settings.api_token
    """

    def __init__(self, cache: FileCache):
        self._cache = cache
        self._lock = threading.RLock()

    @property
    def api_token(self) -> Optional[str]:
        """Saved token, else the TMDB_API_TOKEN environment variable, else None."""
        with self._lock:
            token = self._cache.get(API_TOKEN_KEY)
        return token or TMDB_API_TOKEN or None

    @property
    def masked_token(self) -> str:
        return mask_token(self.api_token or "")

    def set_api_token(self, token: str) -> None:
        """
        Save the TMDB credential.

        Raises:
            ValueError: Blank value, a masked value, or not a read access token
        """
        token = (token or "").strip()
        if not token or token.endswith("..."):
            raise ValueError("Please enter a valid API key")
        if not token.startswith(TOKEN_PREFIX):
            raise ValueError(
                "This doesn't look like a TMDB Read Access Token. "
                "Make sure you're using the token, not the API key."
            )
        with self._lock:
            self._cache.set(API_TOKEN_KEY, token)
        logger.info(f"Saved TMDB token {mask_token(token, 6)}")

    def get_priority_filter(self) -> PriorityFilter:
        with self._lock:
            data = self._cache.get(PRIORITY_FILTER_KEY)
        try:
            return PriorityFilter.from_dict(data)
        except (TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Ignoring unreadable priority filter {data!r}: {e}")
            return PriorityFilter()

    def set_priority_filter(self, priority_filter: PriorityFilter) -> None:
        with self._lock:
            self._cache.set(PRIORITY_FILTER_KEY, priority_filter.to_dict())
        logger.info(f"Priority filter: {priority_filter.describe() or 'none'}")

    def clear_priority_filter(self) -> None:
        self.set_priority_filter(PriorityFilter())

    def clear_cache(self) -> int:
        """Drop all cached movies and people, keeping the token and filter."""
        with self._lock:
            return self._cache.clear(preserve=PRESERVED_KEYS)
