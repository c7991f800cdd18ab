"""Shared pytest fixtures for unit tests."""

from pathlib import Path
from typing import Any, Callable, Dict, List
from unittest.mock import MagicMock
import sys

import pytest

# Ensure project root is importable when tests run from repository root.
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from cache import FileCache
from metrics import metrics
from models import Credit, Filmography, MovieBundle, Person, make_local_key
from tmdb_client import TMDBClient
import settings as settings_module


@pytest.fixture(autouse=True)
def reset_metrics():
    metrics.reset()
    yield


@pytest.fixture(autouse=True)
def no_env_token(monkeypatch):
    monkeypatch.setattr(settings_module, "TMDB_API_TOKEN", "")


@pytest.fixture
def cache(tmp_path) -> FileCache:
    return FileCache(str(tmp_path / "cache"))


@pytest.fixture
def credit_factory() -> Callable[..., Credit]:
    """Return a factory for released, popular credits with optional overrides."""

    def _factory(id: int, title: str, year: int, **overrides: Any) -> Credit:
        data: Dict[str, Any] = {
            "genres": [18],
            "popularity": 10.0,
            "role": "cast",
        }
        data.update(overrides)
        return Credit(id=id, title=title, year=year, **data)

    return _factory


@pytest.fixture
def bundle_factory(credit_factory) -> Callable[..., MovieBundle]:
    """
    Return a factory that builds a complete bundle.

    people is a list of (person_id, name, credits, credit_count) tuples.
    When credit_count exceeds len(credits) the filmography is padded with
    unreleased films, which the engine always skips.
    """

    def _factory(people: List[tuple], movie_id: int = 1, title: str = "Start", year: int = 2000) -> MovieBundle:
        persons = []
        filmographies = {}
        for person_id, name, credits, credit_count in people:
            padded = list(credits)
            for i in range(credit_count - len(credits)):
                padded.append(credit_factory(900000 + person_id * 1000 + i, f"Future {i}", 2099))
            persons.append(Person(id=person_id, name=name, credit_count=credit_count))
            filmographies[person_id] = Filmography(person_id=person_id, name=name, credits=padded)
        return MovieBundle(
            id=movie_id,
            title=title,
            year=year,
            local_key=make_local_key(title, year),
            people=persons,
            filmographies=filmographies,
            complete=True,
        )

    return _factory


@pytest.fixture
def mock_client() -> MagicMock:
    """A TMDBClient stand-in with a token set; configure return values per test."""
    client = MagicMock(spec=TMDBClient)
    client.api_token = "eyJtest"
    return client


def tmdb_response(status: int = 200, payload: Any = None) -> MagicMock:
    """Fake requests.Response."""
    response = MagicMock()
    response.status_code = status
    response.ok = 200 <= status < 400
    response.json.return_value = payload if payload is not None else {}
    return response
