"""
Movie bundle builder.

Turns a board movie ("Title", year) into a MovieBundle: the movie's relevant
cast and crew plus every one of their filmographies.

Build Strategy:
    1. Return the cached bundle for "Title (Year)" if it is complete
    2. Search TMDB and take the first result (no disambiguation)
    3. Collect all cast and the crew whose job matters for connections
    4. Merge into one record per person, sort by popularity, keep MAX_PEOPLE
    5. For each person, one at a time: cached filmography or fetch + cache
    6. Cache the finished bundle

A failed filmography fetch only drops that person; search and credits
failures abort the build.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from cache import FileCache
from constants import MAX_PEOPLE, PERSON_KEY_PREFIX, RELEVANT_JOBS, Role
from metrics import metrics
from models import Credit, Filmography, MovieBundle, Person, make_local_key
from tmdb_client import TMDBClient, UpstreamError

logger = logging.getLogger(__name__)


def person_cache_key(person_id: int) -> str:
    return f"{PERSON_KEY_PREFIX}{person_id}"


def _release_year(release_date: Optional[str]) -> Optional[int]:
    if not release_date:
        return None
    try:
        return int(release_date[:4])
    except ValueError:
        return None


def collect_people(credits: Dict[str, Any]) -> List[Person]:
    """
    Merge a movie's cast and relevant crew into one record per person.

    Someone credited in both lists becomes role "both" and keeps the crew
    job. Crew members with several relevant jobs keep the last one listed.

    Args:
        credits: TMDB /movie/{id}/credits response

    Returns:
        People in first-seen order (cast first)
    """
    people: Dict[int, Person] = {}

    for member in credits.get("cast") or []:
        if member.get("id") is None or member["id"] in people:
            continue
        people[member["id"]] = Person(
            id=member["id"],
            name=member.get("name", ""),
            role=Role.CAST.value,
            popularity=member.get("popularity") or 0.0,
        )

    for member in credits.get("crew") or []:
        if member.get("job") not in RELEVANT_JOBS or member.get("id") is None:
            continue
        existing = people.get(member["id"])
        if existing is None:
            people[member["id"]] = Person(
                id=member["id"],
                name=member.get("name", ""),
                role=Role.CREW.value,
                job=member["job"],
                popularity=member.get("popularity") or 0.0,
            )
        else:
            if existing.role == Role.CAST.value:
                existing.role = Role.BOTH.value
            existing.job = member["job"]

    return list(people.values())


def parse_filmography(person: Person, data: Dict[str, Any]) -> Filmography:
    """
    Build a Filmography from a TMDB /person/{id}/movie_credits response.

    Only credits with a release date count. Cast credits come first; a crew
    credit (relevant jobs only) is added when the film is not already there.
    """
    credits: List[Credit] = []
    seen = set()

    for entry in data.get("cast") or []:
        year = _release_year(entry.get("release_date"))
        if year is None or entry.get("id") is None or entry["id"] in seen:
            continue
        seen.add(entry["id"])
        credits.append(Credit(
            id=entry["id"],
            title=entry.get("title") or entry.get("original_title") or "",
            year=year,
            genres=list(entry.get("genre_ids") or []),
            popularity=entry.get("popularity") or 0.0,
            role=Role.CAST.value,
        ))

    for entry in data.get("crew") or []:
        if entry.get("job") not in RELEVANT_JOBS:
            continue
        year = _release_year(entry.get("release_date"))
        if year is None or entry.get("id") is None or entry["id"] in seen:
            continue
        seen.add(entry["id"])
        credits.append(Credit(
            id=entry["id"],
            title=entry.get("title") or entry.get("original_title") or "",
            year=year,
            genres=list(entry.get("genre_ids") or []),
            popularity=entry.get("popularity") or 0.0,
            role=entry["job"],
        ))

    return Filmography(person_id=person.id, name=person.name, credits=credits)


class MovieBundleBuilder:
    """
    Builds and caches MovieBundles.

    Usage:
        builder = MovieBundleBuilder(TMDBClient(api_token=token), FileCache())
        bundle = builder.build("Alien", 1979)
    """

    def __init__(self, client: TMDBClient, cache: FileCache, max_people: int = MAX_PEOPLE):
        self.client = client
        self.cache = cache
        self.max_people = max_people

    def _cached_bundle(self, local_key: str) -> Optional[MovieBundle]:
        data = self.cache.get(local_key)
        if not data or not data.get("complete"):
            return None
        try:
            return MovieBundle.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Discarding unreadable cached bundle {local_key}: {e}")
            return None

    def _movie_genres(self, movie: Dict[str, Any]) -> List[int]:
        genres = movie.get("genre_ids")
        if genres:
            return list(genres)
        try:
            details = self.client.get_movie_details(movie["id"])
        except UpstreamError as e:
            logger.warning(f"No genres for movie {movie['id']}: {e}")
            return []
        return [g["id"] for g in details.get("genres") or [] if "id" in g]

    def get_filmography(self, person: Person) -> Filmography:
        """
        Return a person's filmography from cache, fetching it on a miss.

        Raises:
            UpstreamError: The fetch failed
        """
        key = person_cache_key(person.id)
        cached = self.cache.get(key)
        if cached:
            try:
                filmography = Filmography.from_dict(cached)
                metrics.inc("cache_lookups", labels={"kind": "person", "result": "hit"})
                return filmography
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Discarding unreadable cached filmography {key}: {e}")

        metrics.inc("cache_lookups", labels={"kind": "person", "result": "miss"})
        data = self.client.get_person_credits(person.id)
        filmography = parse_filmography(person, data)
        self.cache.set(key, filmography.to_dict())
        return filmography

    def build(self, title: str, year: Optional[int]) -> MovieBundle:
        """
        Build (or load) the bundle for a board movie.

        Args:
            title: Movie title as shown on the board
            year: Release year as shown on the board

        Returns:
            Complete MovieBundle

        Raises:
            NotFound: TMDB has no match for the title/year
            AuthMissing: No TMDB token configured
            UpstreamError: The search or credits call failed
        """
        local_key = make_local_key(title, year)

        cached = self._cached_bundle(local_key)
        if cached:
            logger.info(f"Cache hit for {local_key}", extra={"movie": local_key, "cache_hit": True})
            metrics.inc("cache_lookups", labels={"kind": "movie", "result": "hit"})
            return cached
        metrics.inc("cache_lookups", labels={"kind": "movie", "result": "miss"})

        logger.info(f"Processing movie: {local_key}", extra={"movie": local_key, "cache_hit": False})

        with metrics.timer("bundle_build_ms"):
            movie = self.client.search_movie(title, year)
            movie_id = movie["id"]
            genres = self._movie_genres(movie)

            credits = self.client.get_movie_credits(movie_id)
            people = collect_people(credits)
            # Stable sort: equal popularity keeps cast-then-crew order
            people.sort(key=lambda p: p.popularity, reverse=True)
            people = people[:self.max_people]

            filmographies: Dict[int, Filmography] = {}
            for person in people:
                try:
                    filmography = self.get_filmography(person)
                except UpstreamError as e:
                    logger.error(
                        f"Failed to get credits for {person.name}: {e}",
                        extra={"person_id": person.id},
                    )
                    metrics.inc("filmography_failures")
                    continue
                filmographies[person.id] = filmography
                person.credit_count = filmography.credit_count

            bundle = MovieBundle(
                id=movie_id,
                title=movie.get("title") or title,
                year=year,
                local_key=local_key,
                genres=genres,
                people=people,
                filmographies=filmographies,
                complete=True,
                cached_at=datetime.now(timezone.utc).isoformat(),
            )

        self.cache.set(local_key, bundle.to_dict())
        logger.info(
            f"Processed {local_key}: {len(people)} people, {len(filmographies)} filmographies",
            extra={"movie": local_key},
        )
        return bundle
