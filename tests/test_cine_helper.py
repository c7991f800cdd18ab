"""Unit tests for the command line."""

from unittest.mock import MagicMock

import pytest

import cine_helper
from tmdb_client import NotFound, TMDBClient


@pytest.fixture
def tmdb(monkeypatch):
    client = MagicMock(spec=TMDBClient)
    client.__enter__ = MagicMock(return_value=client)
    client.__exit__ = MagicMock(return_value=None)
    client.search_movie.return_value = {"id": 348, "title": "Alien", "genre_ids": [27]}
    client.get_movie_credits.return_value = {
        "cast": [{"id": 10205, "name": "Sigourney Weaver", "popularity": 30.0}],
    }
    client.get_person_credits.return_value = {"cast": [
        {"id": 679, "title": "Aliens", "release_date": "1986-07-18", "genre_ids": [28], "popularity": 40},
    ]}
    monkeypatch.setattr(cine_helper, "TMDBClient", MagicMock(return_value=client))
    return client


def test_rank_from_command_line(tmdb, tmp_path, capsys):
    code = cine_helper.main([
        "Alien", "--year", "1979", "--played", "Alien (1979)", "--cache-dir", str(tmp_path),
    ])

    out = capsys.readouterr().out
    assert code == 0
    assert "Loaded: 1 cast/crew" in out
    assert "Aliens (1986)" in out
    assert "via Sigourney Weaver (1 credits)" in out


def test_not_found_exits_nonzero(tmdb, tmp_path, capsys):
    tmdb.search_movie.side_effect = NotFound("Nope", 1900)

    code = cine_helper.main(["Nope", "--year", "1900", "--cache-dir", str(tmp_path)])

    assert code == 1
    assert "Movie not found: Nope (1900)" in capsys.readouterr().err


def test_settings_commands(tmdb, tmp_path, capsys):
    assert cine_helper.main(["--set-token", "eyJtoken", "--cache-dir", str(tmp_path)]) == 0
    assert cine_helper.main([
        "--genre", "Horror", "--decade", "1980", "--save-filter", "--cache-dir", str(tmp_path),
    ]) == 0

    out = capsys.readouterr().out
    assert "API key saved!" in out
    assert "Priority filter saved: Horror • 1980s" in out

    assert cine_helper.main(["--set-token", "nope", "--cache-dir", str(tmp_path)]) == 1
