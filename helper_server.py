#!/usr/bin/env python3
"""
Cine2Nerdle Helper Service

A local JSON service that recommends connection moves for Cine2Nerdle
Battle. A browser userscript (or anything else that can see the board)
posts the board markup or the movie in play; the service answers with
ranked options.

Endpoints:
    POST /board          board HTML -> status + ranked options (stateful, one game)
    POST /bundle         {title, year} -> movie bundle
    POST /options        {title, year, played, used_connections} -> ranked options
    GET|PUT|DELETE /filter   priority filter
    GET|PUT /token       TMDB read access token
    POST /cache/clear    drop cached movies/people, keep token and filter
    GET /cache/stats, /genres, /health, /metrics

Environment Variables:
    PORT: Server port (default: 5200)
    LOG_LEVEL: Logging level (default: INFO)
    STRUCTURED_LOGGING: JSON log lines when "true"
    CACHE_DIR: Cache directory (default: ./cache)
    TMDB_API_TOKEN: TMDB read access token used when none has been saved
"""

import logging
from typing import Any, Dict, Optional, Tuple

from flask import Flask, jsonify, request

from board_watcher import BoardWatcher
from bundle_builder import MovieBundleBuilder
from cache import FileCache
from connection_engine import rank
from constants import (
    CACHE_DIR,
    DECADES,
    GENRE_IDS,
    GENRES,
    HELPER_NAME,
    HELPER_VERSION,
    LOG_LEVEL,
    PORT,
    STRUCTURED_LOGGING,
)
from game_state import GameState, parse_board
from logging_config import configure_logging, setup_flask_eval_id
from metrics import metrics
from models import PriorityFilter
from presentation import options_payload
from settings import SettingsStore
from tmdb_client import AuthMissing, NotFound, ProviderError, TMDBClient, UpstreamError

logger = logging.getLogger(__name__)


class InvalidRequest(ValueError):
    """Invalid request payload."""


def _error(message: str, status: int):
    return jsonify({"success": False, "error": message}), status


def _provider_error(e: ProviderError):
    if isinstance(e, NotFound):
        return _error(str(e), 404)
    if isinstance(e, AuthMissing):
        return _error(str(e), 401)
    if isinstance(e, UpstreamError):
        return _error(str(e), 502)
    return _error(str(e), 500)


def _json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidRequest("Expected a JSON object")
    return data


def _title_year(data: Dict[str, Any]) -> Tuple[str, int]:
    title = (data.get("title") or "").strip()
    if not title:
        raise InvalidRequest("Missing 'title'")
    try:
        year = int(data.get("year"))
    except (TypeError, ValueError):
        raise InvalidRequest("Missing or invalid 'year'")
    return title, year


def _optional_year(value: Any) -> Optional[int]:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidRequest(f"Invalid year: {value!r}")


def _string_list(data: Dict[str, Any], field: str) -> Tuple[str, ...]:
    values = data.get(field) or []
    if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
        raise InvalidRequest(f"'{field}' must be a list of strings")
    return tuple(values)


def parse_filter(data: Dict[str, Any]) -> PriorityFilter:
    """Validate a filter payload such as {"genres": ["Horror"], "decade": 1980}."""
    genres = data.get("genres") or []
    if not isinstance(genres, list):
        raise InvalidRequest("'genres' must be a list")
    unknown = [g for g in genres if g not in GENRE_IDS]
    if unknown:
        raise InvalidRequest(f"Unknown genres: {', '.join(map(str, unknown))}")

    decade = _optional_year(data.get("decade"))
    if decade is not None and decade % 10:
        raise InvalidRequest(f"Decade must be a multiple of 10, got {decade}")

    return PriorityFilter(genres=tuple(genres), decade=decade)


def create_app(
    cache_dir: str = None,
    client: TMDBClient = None,
) -> Flask:
    """
    Create the helper Flask app.

    Args:
        cache_dir: Cache directory (defaults to CACHE_DIR)
        client: TMDB client to use (a new one is created if omitted)

    Returns:
        Configured Flask app
    """
    app = Flask(__name__)
    setup_flask_eval_id(app)

    cache = FileCache(cache_dir or CACHE_DIR)
    settings = SettingsStore(cache)
    builder = MovieBundleBuilder(client or TMDBClient(), cache)
    watcher = BoardWatcher(builder, settings)

    app.config["HELPER_CACHE"] = cache
    app.config["HELPER_SETTINGS"] = settings
    app.config["HELPER_WATCHER"] = watcher

    def build_bundle(title: str, year: int):
        builder.client.api_token = settings.api_token
        return builder.build(title, year)

    @app.errorhandler(InvalidRequest)
    def handle_bad_request(e):
        return _error(str(e), 400)

    @app.errorhandler(ProviderError)
    def handle_provider_error(e):
        logger.warning(f"Provider error: {e}")
        return _provider_error(e)

    # =========================================================================
    # Recommendations
    # =========================================================================

    @app.route('/board', methods=['POST'])
    def board():
        """Evaluate a board snapshot (JSON {"html": ...} or raw HTML body)."""
        data = request.get_json(silent=True)
        if isinstance(data, dict):
            html = data.get("html") or ""
            current_year = _optional_year(data.get("current_year"))
        else:
            html = request.get_data(as_text=True)
            current_year = None

        state = parse_board(html, current_year=current_year)
        result = watcher.evaluate(state)

        body = {
            "success": not result.is_error,
            "status": result.status,
            "is_error": result.is_error,
        }
        if result.bundle is not None and not result.is_error:
            body.update(options_payload(
                result.options, result.is_setup_phase, settings.get_priority_filter()
            ))
            body["movie"] = result.bundle.local_key
        return jsonify(body)

    @app.route('/bundle', methods=['POST'])
    def bundle():
        """Build (or load from cache) the bundle for a movie."""
        title, year = _title_year(_json_body())
        result = build_bundle(title, year)
        return jsonify({"success": True, "data": result.to_dict()})

    @app.route('/options', methods=['POST'])
    def options():
        """Rank options for a movie against an explicit game state."""
        data = _json_body()
        title, year = _title_year(data)

        if "filter" in data:
            priority_filter = parse_filter(data.get("filter") or {})
        else:
            priority_filter = settings.get_priority_filter()

        state = GameState(
            current_movie=(title, year),
            played=_string_list(data, "played"),
            used_connections=_string_list(data, "used_connections"),
            current_year=_optional_year(data.get("current_year")),
        )

        result = build_bundle(title, year)
        ranked = rank(result, state, priority_filter)
        metrics.observe("rank_options", len(ranked))

        body = options_payload(ranked, state.is_setup_phase, priority_filter)
        body["movie"] = result.local_key
        return jsonify(body)

    # =========================================================================
    # Settings
    # =========================================================================

    @app.route('/filter', methods=['GET'])
    def get_filter():
        current = settings.get_priority_filter()
        return jsonify({"filter": current.to_dict(), "active_filter": current.describe()})

    @app.route('/filter', methods=['PUT'])
    def put_filter():
        new_filter = parse_filter(_json_body())
        settings.set_priority_filter(new_filter)
        return jsonify({"success": True, "filter": new_filter.to_dict(),
                        "active_filter": new_filter.describe()})

    @app.route('/filter', methods=['DELETE'])
    def delete_filter():
        settings.clear_priority_filter()
        return jsonify({"success": True, "filter": PriorityFilter().to_dict()})

    @app.route('/token', methods=['GET'])
    def get_token():
        return jsonify({"configured": bool(settings.api_token), "token": settings.masked_token})

    @app.route('/token', methods=['PUT'])
    def put_token():
        try:
            settings.set_api_token(_json_body().get("token"))
        except ValueError as e:
            return _error(str(e), 400)
        watcher.reset()
        return jsonify({"success": True, "token": settings.masked_token})

    # =========================================================================
    # Cache
    # =========================================================================

    @app.route('/cache/clear', methods=['POST'])
    def cache_clear():
        count = settings.clear_cache()
        watcher.reset()
        return jsonify({"success": True, "cleared": count})

    @app.route('/cache/stats', methods=['GET'])
    def cache_stats():
        return jsonify(cache.stats())

    # =========================================================================
    # Info
    # =========================================================================

    @app.route('/genres', methods=['GET'])
    def genres():
        return jsonify({
            "success": True,
            "genres": {str(gid): name for gid, name in GENRES.items()},
            "decades": list(DECADES),
        })

    @app.route('/health', methods=['GET'])
    def health_check():
        return jsonify({
            "status": "healthy",
            "name": HELPER_NAME,
            "version": HELPER_VERSION,
            "token_configured": bool(settings.api_token),
        })

    @app.route('/metrics', methods=['GET'])
    def metrics_endpoint():
        return jsonify(metrics.get_stats())

    return app


def main():
    configure_logging(level=LOG_LEVEL, structured=STRUCTURED_LOGGING)
    app = create_app()
    logger.info(f"Starting {HELPER_NAME} v{HELPER_VERSION} on port {PORT}")
    logger.info(f"Cache directory: {CACHE_DIR}")
    app.run(host="127.0.0.1", port=PORT, debug=False)


if __name__ == "__main__":
    main()
