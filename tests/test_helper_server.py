"""Unit tests for the helper Flask service."""

from unittest.mock import MagicMock

import pytest

from helper_server import create_app
from tmdb_client import NotFound, TMDBClient, UpstreamError

ALIEN = {"id": 348, "title": "Alien", "genre_ids": [27, 878]}
CREDITS = {
    "cast": [{"id": 10205, "name": "Sigourney Weaver", "popularity": 30.0}],
    "crew": [{"id": 578, "name": "Ridley Scott", "job": "Director", "popularity": 20.0}],
}
FILMOGRAPHIES = {
    10205: {"cast": [
        {"id": 679, "title": "Aliens", "release_date": "1986-07-18", "genre_ids": [28, 878], "popularity": 40},
        {"id": 348, "title": "Alien", "release_date": "1979-05-25", "genre_ids": [27, 878], "popularity": 50},
        {"id": 9, "title": "Obscure", "release_date": "1991-01-01", "genre_ids": [27], "popularity": 1},
    ], "crew": []},
    578: {"cast": [], "crew": [
        {"id": 98, "title": "Gladiator", "release_date": "2000-05-01", "genre_ids": [28, 18],
         "popularity": 60, "job": "Director"},
    ]},
}

BOARD = """
<div class="battle-board-movie"><span>poster</span>Alien (1979)</div>
<input class="battle-input">
"""


@pytest.fixture
def client_mock():
    tmdb = MagicMock(spec=TMDBClient)
    tmdb.api_token = None
    tmdb.search_movie.return_value = ALIEN
    tmdb.get_movie_credits.return_value = CREDITS
    tmdb.get_person_credits.side_effect = lambda pid: FILMOGRAPHIES[pid]
    return tmdb


@pytest.fixture
def app(tmp_path, client_mock):
    app = create_app(cache_dir=str(tmp_path / "cache"), client=client_mock)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def http(app):
    client = app.test_client()
    client.put("/token", json={"token": "eyJtesttoken"})
    return client


def test_health(http):
    body = http.get("/health").get_json()
    assert body["status"] == "healthy"
    assert body["token_configured"] is True


def test_genres(http):
    body = http.get("/genres").get_json()
    assert body["genres"]["27"] == "Horror"
    assert 1980 in body["decades"]


def test_options_ranks_and_splits_sections(http, client_mock):
    response = http.post("/options", json={
        "title": "Alien", "year": 1979, "played": ["Alien (1979)"], "current_year": 2025,
    })

    body = response.get_json()
    assert response.status_code == 200
    assert body["is_setup_phase"] is True
    assert body["movie"] == "Alien (1979)"
    assert [o["movie"]["title"] for o in body["other"]] == ["Aliens", "Gladiator"]
    assert body["priority"] == []
    assert client_mock.api_token == "eyJtesttoken"


def test_options_with_inline_filter(http):
    body = http.post("/options", json={
        "title": "Alien", "year": 1979, "current_year": 2025,
        "played": ["Alien (1979)", "A (1990)", "B (1991)", "C (1992)"],
        "filter": {"genres": ["Horror"], "decade": 1990},
    }).get_json()

    assert [o["movie"]["title"] for o in body["priority"]] == ["Obscure"]
    assert body["active_filter"] == "Horror • 1990s"
    assert body["total"] == 3


def test_saved_filter_is_used(http):
    assert http.put("/filter", json={"genres": ["Action"], "decade": 2000}).status_code == 200
    assert http.get("/filter").get_json()["filter"] == {"genres": ["Action"], "decade": 2000}

    body = http.post("/options", json={"title": "Alien", "year": 1979, "current_year": 2025}).get_json()
    assert [o["movie"]["title"] for o in body["priority"]] == ["Gladiator"]

    http.delete("/filter")
    assert http.get("/filter").get_json()["filter"] == {"genres": [], "decade": None}


def test_invalid_filter_rejected(http):
    response = http.put("/filter", json={"genres": ["Giallo"]})
    assert response.status_code == 400
    assert "Giallo" in response.get_json()["error"]

    assert http.put("/filter", json={"decade": 1985}).status_code == 400


def test_bundle_endpoint(http):
    body = http.post("/bundle", json={"title": "Alien", "year": 1979}).get_json()

    assert body["success"] is True
    assert body["data"]["local_key"] == "Alien (1979)"
    assert len(body["data"]["people"]) == 2


def test_bundle_requires_title_and_year(http):
    assert http.post("/bundle", json={"title": "Alien"}).status_code == 400
    assert http.post("/bundle", json={"year": 1979}).status_code == 400


@pytest.mark.parametrize("error,status", [
    (NotFound("Alien", 1979), 404),
    (UpstreamError("search", status=500), 502),
])
def test_provider_errors_map_to_status(http, client_mock, error, status):
    client_mock.search_movie.side_effect = error

    response = http.post("/bundle", json={"title": "Alien", "year": 1979})

    assert response.status_code == status
    assert response.get_json() == {"success": False, "error": str(error)}


def test_auth_missing_is_401(app, client_mock):
    from tmdb_client import AuthMissing
    client_mock.search_movie.side_effect = AuthMissing()

    response = app.test_client().post("/bundle", json={"title": "Alien", "year": 1979})

    assert response.status_code == 401


def test_board_endpoint(http):
    body = http.post("/board", json={"html": BOARD, "current_year": 2025}).get_json()

    assert body["status"] == "Loaded: 2 cast/crew"
    assert body["movie"] == "Alien (1979)"
    assert [o["movie"]["title"] for o in body["other"]] == ["Aliens", "Gladiator"]


def test_board_endpoint_accepts_raw_html(http):
    response = http.post("/board", data=BOARD.replace("battle-input", "other"),
                         content_type="text/html")

    assert response.get_json()["status"] == "Opponent's turn..."


def test_token_validation(app):
    http = app.test_client()
    response = http.put("/token", json={"token": "not-a-jwt"})
    assert response.status_code == 400
    assert http.get("/token").get_json()["configured"] is False


def test_cache_clear_keeps_settings(http, app):
    http.post("/bundle", json={"title": "Alien", "year": 1979})
    http.put("/filter", json={"genres": ["Horror"]})

    body = http.post("/cache/clear").get_json()

    assert body["cleared"] == 3  # bundle + two people
    stats = http.get("/cache/stats").get_json()
    assert stats["movie_entries"] == 0
    assert stats["other_entries"] == 2
    assert http.get("/token").get_json()["configured"] is True


def test_request_id_echoed(http):
    response = http.get("/health", headers={"X-Request-ID": "abc123"})
    assert response.headers["X-Request-ID"] == "abc123"


def test_metrics_endpoint(http):
    http.post("/options", json={"title": "Alien", "year": 1979, "current_year": 2025})

    stats = http.get("/metrics").get_json()
    assert stats["histograms"]["rank_options"]["count"] == 1


def test_board_recovers_after_token_is_saved(app, client_mock):
    from tmdb_client import AuthMissing

    def search(title, year):
        if not client_mock.api_token:
            raise AuthMissing()
        return ALIEN

    client_mock.search_movie.side_effect = search
    http = app.test_client()

    first = http.post("/board", json={"html": BOARD, "current_year": 2025}).get_json()
    assert first["status"].startswith("Error: TMDB API key not configured")

    assert http.put("/token", json={"token": "eyJtesttoken"}).status_code == 200

    second = http.post("/board", json={"html": BOARD, "current_year": 2025}).get_json()
    assert second["status"] == "Loaded: 2 cast/crew"


@pytest.mark.parametrize("payload", [
    {"played": "Alien (1979)"},
    {"used_connections": "Sigourney Weaver"},
    {"played": ["Alien (1979)", 7]},
])
def test_options_rejects_non_list_state(http, client_mock, payload):
    response = http.post("/options", json={"title": "Alien", "year": 1979, **payload})

    assert response.status_code == 400
    assert "must be a list" in response.get_json()["error"]
    client_mock.search_movie.assert_not_called()
