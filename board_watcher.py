"""
Board watcher: the poll loop that keeps recommendations current.

Each tick re-reads the board, loads a new bundle when the movie in play
changes, and re-ranks against the live state. Ticks run one after another;
a bundle build blocks the loop until it finishes, so a result always belongs
to the movie that triggered it.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from bundle_builder import MovieBundleBuilder
from connection_engine import rank
from constants import POLL_INTERVAL_SECONDS
from game_state import GameState
from logging_config import set_eval_id
from metrics import metrics
from models import MovieBundle, Option, make_local_key
from settings import SettingsStore
from tmdb_client import ProviderError

logger = logging.getLogger(__name__)


@dataclass
class TickResult:
    """What the presentation layer should show after one poll."""
    status: str
    is_error: bool = False
    is_setup_phase: bool = False
    options: List[Option] = field(default_factory=list)
    bundle: Optional[MovieBundle] = None


class BoardWatcher:
    """
    Polls a game state source and produces ranked options.

    Usage:
        watcher = BoardWatcher(builder, settings, lambda: parse_board(read_html()))
        watcher.run()
    """

    def __init__(
        self,
        builder: MovieBundleBuilder,
        settings: SettingsStore,
        read_state: Callable[[], GameState] = None,
        on_result: Callable[[TickResult], None] = None,
    ):
        self.builder = builder
        self.settings = settings
        self.read_state = read_state
        self.on_result = on_result
        self.current_key: Optional[str] = None
        self.bundle: Optional[MovieBundle] = None
        self.error: Optional[str] = None
        self._error_token: Optional[str] = None

    def reset(self) -> None:
        """Forget the current movie (used between games)."""
        self.current_key = None
        self.bundle = None
        self.error = None
        self._error_token = None

    def _load(self, title: str, year: int) -> None:
        """
        Load the bundle for a new movie.

        A failure is remembered for this movie and not retried until the
        movie in play or the saved token changes.
        """
        local_key = make_local_key(title, year)
        logger.info(f"Loading: {local_key}...")
        self.current_key = local_key
        self.bundle = None
        self.error = None
        # Pick up a token saved since the last build
        token = self.settings.api_token
        self.builder.client.api_token = token
        try:
            self.bundle = self.builder.build(title, year)
        except ProviderError as e:
            logger.warning(f"Error loading {local_key}: {e}")
            metrics.inc("watcher_errors", labels={"error": type(e).__name__})
            self.error = f"Error: {e}"
            self._error_token = token

    def _token_changed(self) -> bool:
        return self.error is not None and self.settings.api_token != self._error_token

    def evaluate(self, state: GameState) -> TickResult:
        """Evaluate one game state snapshot."""
        if state.is_game_over:
            self.reset()
            return TickResult(status="Game over")

        if not state.is_player_turn:
            return TickResult(status="Opponent's turn...")

        if state.current_movie is None:
            return TickResult(status="Waiting for movie...")

        title, year = state.current_movie
        if make_local_key(title, year) != self.current_key or self._token_changed():
            self._load(title, year)
        if self.error:
            return TickResult(status=self.error, is_error=True)

        options = rank(self.bundle, state, self.settings.get_priority_filter())
        metrics.observe("rank_options", len(options))
        return TickResult(
            status=f"Loaded: {len(self.bundle.people)} cast/crew",
            is_setup_phase=state.is_setup_phase,
            options=options,
            bundle=self.bundle,
        )

    def tick(self) -> TickResult:
        """Read the board once and evaluate it."""
        set_eval_id()
        result = self.evaluate(self.read_state())
        if self.on_result:
            self.on_result(result)
        return result

    def run(self, interval: float = POLL_INTERVAL_SECONDS, max_ticks: int = None) -> None:
        """
        Poll until interrupted (or for max_ticks ticks).

        Args:
            interval: Seconds to sleep between ticks
            max_ticks: Stop after this many ticks (None runs forever)
        """
        ticks = 0
        while max_ticks is None or ticks < max_ticks:
            self.tick()
            ticks += 1
            if max_ticks is None or ticks < max_ticks:
                time.sleep(interval)
