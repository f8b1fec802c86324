"""Read-side convenience queries over persisted movies."""

from __future__ import annotations

from datetime import date
from typing import List, Literal, Optional

from pydantic import BaseModel, Field
from sqlalchemy import Select, func, select
from sqlalchemy.orm import selectinload

from ..common.validation import require_positive
from .gateway import StorageGateway
from .models import Movie, MovieCast, MovieDirector, MovieGenre, Person

PersonRole = Literal["cast", "director"]


class MovieSummary(BaseModel):
    """Flattened view of a stored movie for listings."""

    external_id: int
    title: str
    release_date: Optional[date] = None
    vote_average: float = 0.0
    genres: List[str] = Field(default_factory=list)
    cast: List[str] = Field(default_factory=list)
    directors: List[str] = Field(default_factory=list)

    @classmethod
    def from_row(cls, movie: Movie) -> "MovieSummary":
        return cls(
            external_id=movie.external_id,
            title=movie.title,
            release_date=movie.release_date,
            vote_average=movie.vote_average,
            genres=[genre.name for genre in movie.genres],
            cast=[person.name for person in movie.cast],
            directors=[person.name for person in movie.directors],
        )

    def __str__(self) -> str:
        released = self.release_date.isoformat() if self.release_date else "unknown"
        return f"{self.title} ({released}) rating={self.vote_average:.1f}"


def _with_associations(statement: Select) -> Select:
    return statement.options(
        selectinload(Movie.genre_links).selectinload(MovieGenre.genre),
        selectinload(Movie.cast_links).selectinload(MovieCast.person),
        selectinload(Movie.director_links).selectinload(MovieDirector.person),
    )


def _fetch(gateway: StorageGateway, statement: Select) -> list[MovieSummary]:
    with gateway.session() as session:
        rows = session.scalars(_with_associations(statement)).all()
        return [MovieSummary.from_row(row) for row in rows]


def sorted_by_title(gateway: StorageGateway) -> list[MovieSummary]:
    return _fetch(gateway, select(Movie).order_by(Movie.title, Movie.external_id))


def sorted_by_release_date(gateway: StorageGateway) -> list[MovieSummary]:
    """Return movies oldest first; movies without a release date sort last."""

    return _fetch(
        gateway,
        select(Movie).order_by(
            Movie.release_date.is_(None), Movie.release_date, Movie.title
        ),
    )


def movies_by_title(gateway: StorageGateway, title: str) -> list[MovieSummary]:
    """Return movies whose title equals *title* exactly."""

    return _fetch(
        gateway,
        select(Movie).where(Movie.title == title).order_by(Movie.external_id),
    )


def top_rated(gateway: StorageGateway, limit: int = 10) -> list[MovieSummary]:
    limit = require_positive(limit, name="limit")
    return _fetch(
        gateway,
        select(Movie).order_by(Movie.vote_average.desc(), Movie.title).limit(limit),
    )


def lowest_rated(gateway: StorageGateway, limit: int = 10) -> list[MovieSummary]:
    limit = require_positive(limit, name="limit")
    return _fetch(
        gateway,
        select(Movie).order_by(Movie.vote_average.asc(), Movie.title).limit(limit),
    )


def average_rating(gateway: StorageGateway) -> float:
    """Return the mean vote average over all movies, ``0.0`` when empty."""

    with gateway.session() as session:
        value = session.scalar(select(func.avg(Movie.vote_average)))
    return float(value) if value is not None else 0.0


def movies_with_person(
    gateway: StorageGateway, external_id: int, *, role: PersonRole = "cast"
) -> list[MovieSummary]:
    """Return movies crediting the person with *external_id* in *role*."""

    link = MovieCast if role == "cast" else MovieDirector
    statement = (
        select(Movie)
        .join(link, link.movie_id == Movie.id)
        .join(Person, Person.id == link.person_id)
        .where(Person.external_id == external_id)
        .order_by(Movie.title)
    )
    return _fetch(gateway, statement)


__all__ = [
    "MovieSummary",
    "sorted_by_title",
    "sorted_by_release_date",
    "movies_by_title",
    "top_rated",
    "lowest_rated",
    "average_rating",
    "movies_with_person",
]
