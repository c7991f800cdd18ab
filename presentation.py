"""
Rendering of ranked options for the service and the CLI.
"""

from typing import Any, Dict, List, Tuple

from constants import MAX_LINK_USES, MAX_OTHER_DISPLAY, MAX_PRIORITY_DISPLAY
from models import Option, PriorityFilter
from text_utils import format_genres


def split_sections(options: List[Option]) -> Tuple[List[Option], List[Option]]:
    """Split ranked options into (priority, other), preserving order."""
    priority = [o for o in options if o.is_priority]
    other = [o for o in options if not o.is_priority]
    return priority, other


def options_payload(
    options: List[Option],
    is_setup_phase: bool,
    priority_filter: PriorityFilter,
) -> Dict[str, Any]:
    """JSON body for a ranking: both sections trimmed to their display limits."""
    priority, other = split_sections(options)
    return {
        "success": True,
        "is_setup_phase": is_setup_phase,
        "filter": priority_filter.to_dict(),
        "active_filter": priority_filter.describe(),
        "total": len(options),
        "priority_total": len(priority),
        "other_total": len(other),
        "priority": [o.to_dict() for o in priority[:MAX_PRIORITY_DISPLAY]],
        "other": [o.to_dict() for o in other[:MAX_OTHER_DISPLAY]],
    }


def render_option(option: Option) -> str:
    """Two-line text rendering of one option."""
    movie = option.movie
    warning = ""
    if option.times_used == MAX_LINK_USES - 1:
        warning = f" ! {option.times_used}/{MAX_LINK_USES}"
    genres = format_genres(movie.genres)
    return (
        f"{movie.title} ({movie.year})  [{genres or '-'}]  pop {movie.popularity:.1f}\n"
        f"    via {option.via.name} ({option.score} credits){warning}"
    )


def render_options(options: List[Option], is_setup_phase: bool) -> str:
    """Text rendering of a ranking with its section headers."""
    lines = []
    if is_setup_phase:
        lines.append("SETUP PHASE - Top 5000 films only")

    if not options:
        lines.append("No connections found")
        return "\n".join(lines)

    priority, other = split_sections(options)
    if priority:
        lines.append(f"Priority Matches ({len(priority)})")
        lines.extend(render_option(o) for o in priority[:MAX_PRIORITY_DISPLAY])
    if other:
        lines.append(f"Other Connections ({len(other)})")
        lines.extend(render_option(o) for o in other[:MAX_OTHER_DISPLAY])
    return "\n".join(lines)
