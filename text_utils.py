"""
Text utilities for board parsing, name matching and display.

Handles the "Title (YYYY)" strings the game board shows, person name
normalization for link usage counting, and small display helpers.
"""

import re
import unicodedata
from typing import Iterable, Optional, Tuple

from constants import GENRES

# "Movie Title (1999)" with optional surrounding whitespace
MOVIE_TITLE_PATTERN = re.compile(r'^(.+?)\s*\((\d{4})\)$')

# Board placeholder such as "+2 more links"
MORE_LINKS_MARKER = "more link"


# =============================================================================
# Normalization
# =============================================================================

def collapse_whitespace(text: str) -> str:
    """Collapse runs of whitespace (including NBSP) to single spaces and strip."""
    if not text:
        return ""
    text = unicodedata.normalize('NFKC', text)
    return re.sub(r'\s+', ' ', text).strip()


def normalize_name(name: str) -> str:
    """Normalize a person name for link usage lookups (trimmed, lowercase)."""
    return collapse_whitespace(name).lower()


def normalize_movie_key(key: str) -> str:
    """Normalize a 'Title (Year)' string for played-set comparisons."""
    return collapse_whitespace(key).lower()


# =============================================================================
# Parsing
# =============================================================================

def parse_movie_title(text: str) -> Optional[Tuple[str, int]]:
    """
    Parse a board movie string into title and year.

    Args:
        text: String like "The Thing (1982)"

    Returns:
        (title, year) tuple, or None if the text has no trailing year
    """
    match = MOVIE_TITLE_PATTERN.match(collapse_whitespace(text))
    if not match:
        return None
    return match.group(1).strip(), int(match.group(2))


def is_connection_name(text: str) -> bool:
    """True for a real connection name, False for blanks and 'N more links' placeholders."""
    text = normalize_name(text)
    return bool(text) and MORE_LINKS_MARKER not in text


# =============================================================================
# Display
# =============================================================================

def format_genres(genre_ids: Iterable[int], limit: int = 3) -> str:
    """Render up to `limit` known genre names, comma separated."""
    names = [GENRES[gid] for gid in genre_ids if gid in GENRES]
    return ", ".join(names[:limit])


def mask_token(token: str, visible: int = 20) -> str:
    """Show only the start of a credential."""
    if not token:
        return ""
    return f"{token[:visible]}..."
