"""Unit tests for the board watcher poll loop."""

from unittest.mock import MagicMock

import pytest

from board_watcher import BoardWatcher
from bundle_builder import MovieBundleBuilder
from game_state import GameState
from models import PriorityFilter
from settings import SettingsStore
from tmdb_client import AuthMissing, NotFound


@pytest.fixture
def bundle(bundle_factory, credit_factory):
    return bundle_factory([
        (1, "Sigourney Weaver", [credit_factory(679, "Aliens", 1986, genres=[28, 878])], 60),
        (2, "Ridley Scott", [credit_factory(98, "Gladiator", 2000, genres=[28, 18])], 30),
    ], movie_id=348, title="Alien", year=1979)


@pytest.fixture
def builder(bundle):
    builder = MagicMock(spec=MovieBundleBuilder)
    builder.client = MagicMock()
    builder.build.return_value = bundle
    return builder


@pytest.fixture
def watcher(builder, cache):
    return BoardWatcher(builder, SettingsStore(cache))


def _state(**overrides):
    data = {
        "current_movie": ("Alien", 1979),
        "played": ("Alien (1979)",),
        "current_year": 2025,
    }
    data.update(overrides)
    return GameState(**data)


def test_loads_bundle_and_ranks(watcher, builder):
    result = watcher.evaluate(_state())

    assert not result.is_error
    assert result.status == "Loaded: 2 cast/crew"
    assert result.is_setup_phase
    assert [o.movie.title for o in result.options] == ["Aliens", "Gladiator"]
    builder.build.assert_called_once_with("Alien", 1979)


def test_bundle_built_once_per_movie(watcher, builder):
    watcher.evaluate(_state())
    watcher.evaluate(_state(used_connections=("Sigourney Weaver",)))

    assert builder.build.call_count == 1


def test_live_state_changes_ranking(watcher):
    retired = ("Sigourney Weaver",) * 3

    result = watcher.evaluate(_state(used_connections=retired))

    assert [o.movie.title for o in result.options] == ["Gladiator"]


def test_uses_saved_priority_filter(watcher):
    watcher.settings.set_priority_filter(PriorityFilter(genres=("Drama",)))

    result = watcher.evaluate(_state())

    assert result.options[0].movie.title == "Gladiator"
    assert result.options[0].is_priority


def test_waiting_states(watcher, builder):
    assert watcher.evaluate(_state(is_player_turn=False)).status == "Opponent's turn..."
    assert watcher.evaluate(_state(current_movie=None)).status == "Waiting for movie..."
    builder.build.assert_not_called()


def test_game_over_resets(watcher, builder):
    watcher.evaluate(_state())
    assert watcher.evaluate(_state(is_game_over=True)).status == "Game over"
    assert watcher.current_key is None

    watcher.evaluate(_state())
    assert builder.build.call_count == 2


def test_error_is_reported_and_not_retried_for_same_movie(watcher, builder):
    builder.build.side_effect = NotFound("Alien", 1979)

    first = watcher.evaluate(_state())
    second = watcher.evaluate(_state())

    assert first.is_error
    assert first.status == "Error: Movie not found: Alien (1979)"
    assert second.is_error
    assert builder.build.call_count == 1


def test_new_movie_after_error_is_loaded(watcher, builder, bundle):
    builder.build.side_effect = [AuthMissing(), bundle]

    assert watcher.evaluate(_state()).is_error
    result = watcher.evaluate(_state(current_movie=("Aliens", 1986)))

    assert not result.is_error
    assert builder.build.call_count == 2


def test_saved_token_reaches_client(watcher, builder):
    watcher.settings.set_api_token("eyJsaved")

    watcher.evaluate(_state())

    assert builder.client.api_token == "eyJsaved"


def test_tick_reads_state_and_reports(builder, cache):
    seen = []
    watcher = BoardWatcher(builder, SettingsStore(cache), read_state=_state, on_result=seen.append)

    watcher.run(interval=0, max_ticks=2)

    assert len(seen) == 2
    assert seen[-1].options


def test_retries_same_movie_after_token_saved(watcher, builder, bundle):
    builder.build.side_effect = [AuthMissing(), bundle]

    assert watcher.evaluate(_state()).is_error
    watcher.settings.set_api_token("eyJsaved")
    result = watcher.evaluate(_state())

    assert not result.is_error
    assert builder.build.call_count == 2
