"""
Shared data models for the connection helper.

This module contains the data classes passed between the TMDB client, the
bundle builder, the connection engine and the presentation layer, kept
separate to avoid circular imports between modules.

Everything that ends up in the cache has a to_dict()/from_dict() pair so it
can be stored as plain JSON.
"""

from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any

from constants import GENRE_IDS, Role


def make_local_key(title: str, year: Optional[int]) -> str:
    """Build the composite 'Title (Year)' key used by the game board."""
    return f"{title} ({year})"


@dataclass
class Person:
    """A cast or crew member of a bundle's movie."""
    id: int
    name: str
    role: str = Role.CAST.value
    job: Optional[str] = None  # Crew job label, kept when role is "both"
    popularity: float = 0.0
    credit_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            'id': self.id,
            'name': self.name,
            'role': self.role,
            'job': self.job,
            'popularity': self.popularity,
            'credit_count': self.credit_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Person":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            role=data.get("role", Role.CAST.value),
            job=data.get("job"),
            popularity=data.get("popularity") or 0.0,
            credit_count=data.get("credit_count", 0),
        )


@dataclass
class Credit:
    """One film in a person's filmography."""
    id: int
    title: str
    year: int
    genres: List[int] = field(default_factory=list)  # TMDB genre ids
    popularity: float = 0.0
    role: str = Role.CAST.value  # "cast" or the crew job

    @property
    def local_key(self) -> str:
        return make_local_key(self.title, self.year)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            'id': self.id,
            'title': self.title,
            'year': self.year,
            'genres': self.genres,
            'popularity': self.popularity,
            'role': self.role,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Credit":
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            year=data["year"],
            genres=list(data.get("genres") or []),
            popularity=data.get("popularity") or 0.0,
            role=data.get("role", Role.CAST.value),
        )


@dataclass
class Filmography:
    """
    A person's deduplicated movie credits.

    credit_count is the connection engine's ranking signal: a person with
    more credits offers more ways out of the next movie.
    """
    person_id: int
    name: str
    credits: List[Credit] = field(default_factory=list)

    @property
    def credit_count(self) -> int:
        return len(self.credits)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            'id': self.person_id,
            'name': self.name,
            'credit_count': self.credit_count,
            'credits': [c.to_dict() for c in self.credits],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Filmography":
        return cls(
            person_id=data["id"],
            name=data.get("name", ""),
            credits=[Credit.from_dict(c) for c in data.get("credits") or []],
        )


@dataclass
class MovieBundle:
    """
    Everything needed to rank connections out of one movie.

    Created on first request for a local key, cached, and never rebuilt
    until the cache is cleared.
    """
    id: int
    title: str
    year: Optional[int]
    local_key: str
    genres: List[int] = field(default_factory=list)
    people: List[Person] = field(default_factory=list)
    filmographies: Dict[int, Filmography] = field(default_factory=dict)
    complete: bool = False
    cached_at: Optional[str] = None  # ISO format timestamp

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            'id': self.id,
            'title': self.title,
            'year': self.year,
            'local_key': self.local_key,
            'genres': self.genres,
            'people': [p.to_dict() for p in self.people],
            # JSON object keys are strings; from_dict converts them back
            'filmographies': {
                str(pid): f.to_dict() for pid, f in self.filmographies.items()
            },
            'complete': self.complete,
            'cached_at': self.cached_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MovieBundle":
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            year=data.get("year"),
            local_key=data.get("local_key") or make_local_key(
                data.get("title", ""), data.get("year")
            ),
            genres=list(data.get("genres") or []),
            people=[Person.from_dict(p) for p in data.get("people") or []],
            filmographies={
                int(pid): Filmography.from_dict(f)
                for pid, f in (data.get("filmographies") or {}).items()
            },
            complete=data.get("complete", False),
            cached_at=data.get("cached_at"),
        )


@dataclass(frozen=True)
class PriorityFilter:
    """
    Genre/decade conjunction used to surface training-relevant options.

    A filter with no criteria matches nothing.
    """
    genres: tuple = ()  # Genre names, e.g. ("Horror", "Thriller")
    decade: Optional[int] = None  # e.g. 1980

    @property
    def is_empty(self) -> bool:
        return not self.genres and self.decade is None

    def matches(self, genre_ids: List[int], year: Optional[int]) -> bool:
        """Return True if a film with these genres and year satisfies every criterion."""
        if self.is_empty:
            return False

        for name in self.genres:
            genre_id = GENRE_IDS.get(name)
            if genre_id is None or genre_id not in genre_ids:
                return False

        if self.decade is not None:
            if year is None or (year // 10) * 10 != self.decade:
                return False

        return True

    def describe(self) -> str:
        """Short label such as 'Horror + Thriller • 1980s'."""
        parts = []
        if self.genres:
            parts.append(" + ".join(self.genres))
        if self.decade is not None:
            parts.append(f"{self.decade}s")
        return " • ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        return {'genres': list(self.genres), 'decade': self.decade}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "PriorityFilter":
        if not data:
            return cls()
        decade = data.get("decade")
        return cls(
            genres=tuple(data.get("genres") or ()),
            decade=int(decade) if decade not in (None, "") else None,
        )


@dataclass
class Option:
    """A ranked candidate next move."""
    movie: Credit
    via: Person
    score: int
    is_priority: bool = False
    is_top5000: bool = False
    times_used: int = 0  # How often `via` has already been used as a link

    def to_dict(self) -> Dict[str, Any]:
        return {
            'movie': self.movie.to_dict(),
            'via': {
                'id': self.via.id,
                'name': self.via.name,
                'credit_count': self.score,
                'times_used': self.times_used,
            },
            'score': self.score,
            'is_priority': self.is_priority,
            'is_top5000': self.is_top5000,
        }
