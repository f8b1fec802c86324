"""Type definitions for TMDb payloads and transient pipeline records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from .validation import coerce_release_date


DIRECTOR_JOB = "Director"


@dataclass(frozen=True, slots=True)
class PersonRecord:
    """A cast or crew member as reported by the catalog API."""

    external_id: int
    name: str
    gender: int = 0


@dataclass(slots=True)
class MovieRecord:
    """Movie stub decoded from a discovery page and enriched in place."""

    external_id: int
    title: str
    release_date: date | None = None
    vote_average: float = 0.0
    genre_codes: list[int] = field(default_factory=list)
    cast: list[PersonRecord] = field(default_factory=list)
    directors: list[PersonRecord] = field(default_factory=list)


class DiscoverMovie(BaseModel):
    """Single entry of the ``results`` array on a discovery page."""

    id: int
    original_title: str
    release_date: Optional[date] = None
    vote_average: float = 0.0
    genre_ids: List[int] = Field(default_factory=list)

    @field_validator("release_date", mode="before")
    @classmethod
    def _parse_release_date(cls, value: object) -> date | None:
        try:
            return coerce_release_date(value)
        except TypeError as exc:
            raise ValueError(str(exc)) from exc

    @field_validator("vote_average", mode="before")
    @classmethod
    def _default_vote_average(cls, value: object) -> object:
        return 0.0 if value is None else value

    def to_record(self) -> MovieRecord:
        return MovieRecord(
            external_id=self.id,
            title=self.original_title,
            release_date=self.release_date,
            vote_average=float(self.vote_average),
            genre_codes=list(self.genre_ids),
        )


class DiscoverPage(BaseModel):
    """Decoded ``/discover/movie`` response."""

    page: int = 1
    total_pages: int = 1
    total_results: int = 0
    results: List[DiscoverMovie]

    def records(self) -> list[MovieRecord]:
        """Return the page's movies as transient records in API order."""

        return [movie.to_record() for movie in self.results]


class CastMember(BaseModel):
    id: int
    name: str
    gender: Optional[int] = None
    character: Optional[str] = None
    order: Optional[int] = None

    def to_person(self) -> PersonRecord:
        return PersonRecord(
            external_id=self.id, name=self.name, gender=self.gender or 0
        )


class CrewMember(BaseModel):
    id: int
    name: str
    job: Optional[str] = None
    department: Optional[str] = None
    gender: Optional[int] = None

    def to_person(self) -> PersonRecord:
        return PersonRecord(
            external_id=self.id, name=self.name, gender=self.gender or 0
        )


class MovieCredits(BaseModel):
    """Cast and raw crew lists from the credits sub-resource."""

    cast: List[CastMember] = Field(default_factory=list)
    crew: List[CrewMember] = Field(default_factory=list)

    @field_validator("cast", "crew", mode="before")
    @classmethod
    def _null_as_empty(cls, value: object) -> object:
        return [] if value is None else value

    def directors(self) -> list[CrewMember]:
        """Return crew entries whose job is ``Director`` in source order."""

        return [member for member in self.crew if member.job == DIRECTOR_JOB]

    @property
    def is_empty(self) -> bool:
        return not self.cast and not self.crew


class MovieDetails(BaseModel):
    """``/movie/{id}?append_to_response=credits`` response subset."""

    id: int
    credits: MovieCredits


__all__ = [
    "DIRECTOR_JOB",
    "PersonRecord",
    "MovieRecord",
    "DiscoverMovie",
    "DiscoverPage",
    "CastMember",
    "CrewMember",
    "MovieCredits",
    "MovieDetails",
]
