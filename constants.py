"""
Shared constants, enums, and configuration for the Cine2Nerdle helper.

This module centralizes all magic strings/numbers (game rules, TMDB genre
table, cache key names) and the settings that can be overridden through
environment variables.
"""

import os
from enum import Enum
from typing import Dict, Final, Tuple


def _get_bool_env(key: str, default: bool = False) -> bool:
    """Get boolean from environment variable."""
    value = os.environ.get(key, "").lower()
    if value in ("true", "1", "yes", "on"):
        return True
    if value in ("false", "0", "no", "off"):
        return False
    return default


def _get_float_env(key: str, default: float) -> float:
    """Get float from environment variable, ignoring unparseable values."""
    try:
        return float(os.environ.get(key, default))
    except ValueError:
        return default


# =============================================================================
# Enums
# =============================================================================

class Role(str, Enum):
    """
    How a person is credited on the bundle's movie.

    Inherits from str for JSON serialization compatibility.
    """
    CAST = "cast"
    CREW = "crew"
    BOTH = "both"


# =============================================================================
# Helper Identity
# =============================================================================

HELPER_NAME: Final = "Cine2Nerdle Helper"
HELPER_VERSION: Final = "1.0.0"


# =============================================================================
# Game Rules
# =============================================================================

# Approximates the unpublished "top 5000 films" cutoff used during setup.
TOP_5000_POPULARITY_THRESHOLD: float = _get_float_env(
    "CINE_HELPER_POPULARITY_THRESHOLD", 8.0
)
SETUP_PHASE_MAX_PLAYED: Final = 3  # Setup lasts while <= 3 movies are on the board
MAX_LINK_USES: Final = 3  # A connection is retired after 3 uses


# =============================================================================
# Bundle Building
# =============================================================================

MAX_PEOPLE: Final = 30  # Caps filmography fetches per movie

RELEVANT_JOBS: Final[Tuple[str, ...]] = (
    "Director",
    "Writer",
    "Screenplay",
    "Director of Photography",
    "Original Music Composer",
    "Music",
)


# =============================================================================
# TMDB Genres
# =============================================================================

GENRES: Final[Dict[int, str]] = {
    28: "Action",
    12: "Adventure",
    16: "Animation",
    35: "Comedy",
    80: "Crime",
    99: "Documentary",
    18: "Drama",
    10751: "Family",
    14: "Fantasy",
    36: "History",
    27: "Horror",
    10402: "Music",
    9648: "Mystery",
    10749: "Romance",
    878: "Sci-Fi",
    10770: "TV Movie",
    53: "Thriller",
    10752: "War",
    37: "Western",
}

GENRE_IDS: Final[Dict[str, int]] = {name: gid for gid, name in GENRES.items()}

DECADES: Final[Tuple[int, ...]] = (1950, 1960, 1970, 1980, 1990, 2000, 2010, 2020)


# =============================================================================
# Cache Keys
# =============================================================================

API_TOKEN_KEY: Final = "tmdb_api_key"
PRIORITY_FILTER_KEY: Final = "priorityFilters"
PERSON_KEY_PREFIX: Final = "person_"

# Keys that survive a full cache clear
PRESERVED_KEYS: Final[Tuple[str, ...]] = (API_TOKEN_KEY, PRIORITY_FILTER_KEY)


# =============================================================================
# Rate Limits
# =============================================================================

# Minimum spacing between TMDB calls (TMDB allows 40 requests per 10s)
REQUEST_SPACING_SECONDS: Final = 0.25
REQUEST_TIMEOUT_SECONDS: Final = 30.0


# =============================================================================
# Polling / Display
# =============================================================================

POLL_INTERVAL_SECONDS: float = _get_float_env("CINE_HELPER_POLL_INTERVAL", 0.5)
MAX_PRIORITY_DISPLAY: Final = 20
MAX_OTHER_DISPLAY: Final = 30


# =============================================================================
# External URLs
# =============================================================================

TMDB_API_BASE: Final = "https://api.themoviedb.org/3"
TMDB_LANGUAGE: Final = "en-US"


# =============================================================================
# Service Configuration (configurable via environment)
# =============================================================================

TMDB_API_TOKEN: str = os.environ.get("TMDB_API_TOKEN", "")
CACHE_DIR: str = os.environ.get("CACHE_DIR", "./cache")
PORT: int = int(os.environ.get("PORT", 5200))
LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO").upper()
STRUCTURED_LOGGING: bool = _get_bool_env("STRUCTURED_LOGGING", False)
