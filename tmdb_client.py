"""
TMDB API client.

Four read-only calls back the helper: movie search, movie credits, person
movie credits (the filmography) and movie details. All of them authenticate
with a v4 read access token sent as a bearer credential and go through the
shared rate-limited session, so no two TMDB calls are issued closer than the
configured spacing.

Failures are raised, never swallowed:
    AuthMissing    - no token configured
    UpstreamError  - non-success response or transport failure
    NotFound       - a search returned no results (raised by search_movie)
"""

import logging
from typing import Any, Dict, Optional

import requests

from constants import REQUEST_TIMEOUT_SECONDS, TMDB_API_BASE, TMDB_LANGUAGE
from http_client import RateLimitedSession, SessionAwareComponent
from metrics import metrics

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """Base class for metadata provider failures."""


class AuthMissing(ProviderError):
    """Raised when no TMDB credential has been configured."""

    def __init__(self, message: str = None):
        super().__init__(
            message or "TMDB API key not configured. Please add your TMDB read access token."
        )


class NotFound(ProviderError):
    """Raised when a movie search yields no results."""

    def __init__(self, title: str, year: Optional[int]):
        self.title = title
        self.year = year
        super().__init__(f"Movie not found: {title} ({year})")


class UpstreamError(ProviderError):
    """Raised on a non-success TMDB response (status is None for transport errors)."""

    def __init__(self, what: str, status: Optional[int] = None, detail: str = None):
        self.status = status
        message = f"TMDB {what} failed: {status if status is not None else detail}"
        super().__init__(message)


class TMDBClient(SessionAwareComponent):
    """
    Client for the TMDB v3 REST API.

    Usage:
        with TMDBClient(api_token=token) as tmdb:
            results = tmdb.search_movie("Alien", 1979)
    """

    def __init__(self, api_token: str = None, session: RateLimitedSession = None):
        """
        Initialize TMDB client.

        Args:
            api_token: TMDB v4 read access token. Checked on every call, so a
                client can be created before the user has configured one.
            session: Optional shared session for connection pooling.
        """
        self.api_token = api_token
        self.init_session(session, timeout=REQUEST_TIMEOUT_SECONDS)

    def _get(self, endpoint: str, what: str, params: Dict[str, Any] = None) -> Dict[str, Any]:
        """
        Make an authenticated GET request to the TMDB API.

        Args:
            endpoint: Path below the API base, e.g. "/movie/348/credits"
            what: Short label used in errors and metrics
            params: Extra query parameters

        Returns:
            Decoded JSON body

        Raises:
            AuthMissing: No token configured
            UpstreamError: Non-success status or transport failure
        """
        if not self.api_token:
            raise AuthMissing()

        query = {"language": TMDB_LANGUAGE}
        query.update(params or {})
        headers = {"Authorization": f"Bearer {self.api_token}"}

        url = f"{TMDB_API_BASE}{endpoint}"
        try:
            response = self.session.get(url, params=query, headers=headers)
        except requests.RequestException as e:
            metrics.inc("tmdb_requests", labels={"endpoint": what, "status": "error"})
            logger.warning(f"TMDB {what} transport error: {e}")
            raise UpstreamError(what, detail=str(e)) from e

        metrics.inc("tmdb_requests", labels={"endpoint": what, "status": response.status_code})

        if not response.ok:
            logger.warning(f"TMDB {what} returned {response.status_code} for {endpoint}")
            raise UpstreamError(what, status=response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(what, status=response.status_code, detail="invalid JSON") from e

    def search_movie(self, title: str, year: Optional[int]) -> Dict[str, Any]:
        """
        Search movies by title and release year.

        Returns:
            The first search result

        Raises:
            NotFound: The search returned no results
        """
        params = {"query": title, "include_adult": "false"}
        if year:
            params["year"] = year

        data = self._get("/search/movie", "search", params)
        results = data.get("results") or []
        if not results:
            raise NotFound(title, year)

        logger.debug(f"TMDB search '{title}' ({year}): {len(results)} results, using id {results[0].get('id')}")
        return results[0]

    def get_movie_credits(self, movie_id: int) -> Dict[str, Any]:
        """Get full cast and crew for a movie."""
        return self._get(f"/movie/{movie_id}/credits", "credits")

    def get_person_credits(self, person_id: int) -> Dict[str, Any]:
        """Get a person's movie credits (cast and crew)."""
        return self._get(f"/person/{person_id}/movie_credits", "person credits")

    def get_movie_details(self, movie_id: int) -> Dict[str, Any]:
        """Get movie details (genres, release date, ...)."""
        return self._get(f"/movie/{movie_id}", "movie details")

    def __enter__(self) -> "TMDBClient":
        return self

    def __exit__(self, *args) -> None:
        self.close()
