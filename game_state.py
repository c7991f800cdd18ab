"""
Game state snapshots and the board markup parser.

The connection engine only ever sees a GameState: an immutable snapshot of
what is observable on the battle board at one poll tick. parse_board()
builds one from the page HTML using the same markup hooks the game exposes:

    .battle-board-movie       one box per movie on the board
    .battle-board-game-over   marks the final box once the game has ended
    .connection-name          one element per connection already used
    .battle-input             present only while it is the user's turn
    .battle-over              end-of-game banner
"""

import logging
from collections import Counter
from dataclasses import dataclass
from datetime import date
from typing import Dict, FrozenSet, Optional, Tuple

from bs4 import BeautifulSoup

from constants import SETUP_PHASE_MAX_PLAYED
from text_utils import (
    collapse_whitespace,
    is_connection_name,
    normalize_movie_key,
    normalize_name,
    parse_movie_title,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GameState:
    """
    One observation of the battle board.

    played includes the starting movie and the movie currently in play.
    used_connections keeps repeats: a name listed twice has been used twice.
    """
    current_movie: Optional[Tuple[str, int]] = None
    played: Tuple[str, ...] = ()
    used_connections: Tuple[str, ...] = ()
    is_player_turn: bool = True
    is_game_over: bool = False
    current_year: Optional[int] = None

    @property
    def played_count(self) -> int:
        return len(self.played)

    @property
    def played_keys(self) -> FrozenSet[str]:
        """Lowercased 'title (year)' strings for case-insensitive lookups."""
        return frozenset(normalize_movie_key(p) for p in self.played)

    @property
    def is_setup_phase(self) -> bool:
        return self.played_count <= SETUP_PHASE_MAX_PLAYED

    @property
    def link_usage(self) -> Dict[str, int]:
        """Times each lowercase person name has been used as a connection."""
        return dict(Counter(
            normalize_name(name)
            for name in self.used_connections
            if is_connection_name(name)
        ))

    @property
    def year(self) -> int:
        """The calendar year releases are compared against."""
        return self.current_year if self.current_year is not None else date.today().year


def _own_text(tag) -> str:
    """Text directly inside a tag, excluding text of child elements."""
    return collapse_whitespace("".join(tag.find_all(string=True, recursive=False)))


def parse_board(html: str, current_year: Optional[int] = None) -> GameState:
    """
    Build a GameState from battle page markup.

    Args:
        html: Page (or board fragment) HTML
        current_year: Override for the calendar year (defaults to today)

    Returns:
        GameState snapshot; an unrecognizable page yields an empty board
    """
    soup = BeautifulSoup(html or "", 'html.parser')

    current_movie = None
    first_seen = False
    played = []
    for box in soup.select('.battle-board-movie'):
        if 'battle-board-game-over' in (box.get('class') or []):
            continue
        text = _own_text(box)
        if not text:
            continue
        played.append(text)
        # The first box is the movie in play, even when its text is unreadable
        if not first_seen:
            first_seen = True
            current_movie = parse_movie_title(text)

    used = tuple(
        el.get_text(strip=True)
        for el in soup.select('.connection-name')
        if is_connection_name(el.get_text(strip=True))
    )

    state = GameState(
        current_movie=current_movie,
        played=tuple(played),
        used_connections=used,
        is_player_turn=soup.select_one('.battle-input') is not None,
        is_game_over=(
            soup.select_one('.battle-over') is not None
            or soup.select_one('.battle-board-game-over') is not None
        ),
        current_year=current_year,
    )

    logger.debug(
        f"Board: current={current_movie}, played={state.played_count}, "
        f"links={len(used)}, turn={state.is_player_turn}, over={state.is_game_over}"
    )
    return state
