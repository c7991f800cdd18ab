"""
Connection engine: ranks the movies reachable from the current one.

rank() is a pure function of a MovieBundle, a GameState snapshot and the
active PriorityFilter. It never raises; anything it cannot use is skipped.

Ranking rules:
    - people used MAX_LINK_USES times are retired
    - played, unreleased and self-referencing credits are skipped
    - during the setup phase only credits at or above the popularity
      threshold are valid moves
    - score is the connecting person's filmography size: more credits
      means more ways out of the next movie
    - priority matches first, then score descending, ties in encounter order
    - each film is listed once, via its best connection
"""

import logging
from typing import List, Optional

from constants import MAX_LINK_USES, TOP_5000_POPULARITY_THRESHOLD
from game_state import GameState
from models import MovieBundle, Option, PriorityFilter
from text_utils import normalize_movie_key, normalize_name

logger = logging.getLogger(__name__)


def _collect_options(
    bundle: MovieBundle,
    state: GameState,
    priority_filter: PriorityFilter,
    popularity_threshold: float,
) -> List[Option]:
    played = state.played_keys
    usage = state.link_usage
    setup_phase = state.is_setup_phase
    current_year = state.year

    options = []
    for person in bundle.people:
        filmography = bundle.filmographies.get(person.id)
        if filmography is None:
            continue

        times_used = usage.get(normalize_name(person.name), 0)
        if times_used >= MAX_LINK_USES:
            continue

        score = filmography.credit_count
        for credit in filmography.credits:
            if credit.year is None:
                continue
            if normalize_movie_key(credit.local_key) in played:
                continue
            if credit.year >= current_year:
                continue
            if credit.id == bundle.id:
                continue

            is_top5000 = (credit.popularity or 0.0) >= popularity_threshold
            if setup_phase and not is_top5000:
                continue

            options.append(Option(
                movie=credit,
                via=person,
                score=score,
                is_priority=priority_filter.matches(credit.genres, credit.year),
                is_top5000=is_top5000,
                times_used=times_used,
            ))
    return options


def rank(
    bundle: Optional[MovieBundle],
    state: GameState,
    priority_filter: Optional[PriorityFilter] = None,
    popularity_threshold: float = TOP_5000_POPULARITY_THRESHOLD,
) -> List[Option]:
    """
    Rank candidate next movies for the bundle's movie.

    Args:
        bundle: Movie bundle for the movie in play (None yields no options)
        state: Current game state snapshot
        priority_filter: Active priority filter (None means no filter)
        popularity_threshold: Setup-phase popularity cutoff

    Returns:
        Options ordered best first, one per film
    """
    if bundle is None or not bundle.filmographies:
        return []

    try:
        options = _collect_options(
            bundle, state, priority_filter or PriorityFilter(), popularity_threshold
        )
    except (TypeError, AttributeError, ValueError) as e:
        logger.warning(f"Malformed bundle {getattr(bundle, 'local_key', '?')}, no options: {e}")
        return []

    # sorted() is stable, so equal scores keep encounter order
    options = sorted(options, key=lambda o: (not o.is_priority, -o.score))

    seen = set()
    ranked = []
    for option in options:
        if option.movie.id in seen:
            continue
        seen.add(option.movie.id)
        ranked.append(option)

    logger.debug(
        f"Ranked {len(ranked)} options for {bundle.local_key} "
        f"({len(options)} before dedupe, setup={state.is_setup_phase})",
        extra={"movie": bundle.local_key, "options": len(ranked)},
    )
    return ranked
