"""Relational schema for persisted movies, people, and genres."""

from __future__ import annotations

from datetime import date

from sqlalchemy import Date, Float, ForeignKey, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


class MovieGenre(Base):
    """Association between a movie and one of its genres."""

    __tablename__ = "movie_genres"

    movie_id: Mapped[int] = mapped_column(
        ForeignKey("movies.id", ondelete="CASCADE"), primary_key=True
    )
    genre_id: Mapped[int] = mapped_column(
        ForeignKey("genres.id", ondelete="CASCADE"), primary_key=True, index=True
    )
    position: Mapped[int] = mapped_column(Integer, default=0)

    movie: Mapped[Movie] = relationship(back_populates="genre_links")
    genre: Mapped[Genre] = relationship(back_populates="movie_links")


class MovieCast(Base):
    """Association between a movie and a cast member, in billing order."""

    __tablename__ = "movie_cast"

    movie_id: Mapped[int] = mapped_column(
        ForeignKey("movies.id", ondelete="CASCADE"), primary_key=True
    )
    person_id: Mapped[int] = mapped_column(
        ForeignKey("people.id", ondelete="CASCADE"), primary_key=True, index=True
    )
    position: Mapped[int] = mapped_column(Integer, default=0)

    movie: Mapped[Movie] = relationship(back_populates="cast_links")
    person: Mapped[Person] = relationship(back_populates="cast_credits")


class MovieDirector(Base):
    """Association between a movie and one of its directors."""

    __tablename__ = "movie_directors"

    movie_id: Mapped[int] = mapped_column(
        ForeignKey("movies.id", ondelete="CASCADE"), primary_key=True
    )
    person_id: Mapped[int] = mapped_column(
        ForeignKey("people.id", ondelete="CASCADE"), primary_key=True, index=True
    )
    position: Mapped[int] = mapped_column(Integer, default=0)

    movie: Mapped[Movie] = relationship(back_populates="director_links")
    person: Mapped[Person] = relationship(back_populates="directing_credits")


class Movie(Base):
    __tablename__ = "movies"

    id: Mapped[int] = mapped_column(primary_key=True)
    external_id: Mapped[int] = mapped_column(unique=True, index=True)
    title: Mapped[str] = mapped_column(String(500))
    release_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    vote_average: Mapped[float] = mapped_column(Float, default=0.0)

    genre_links: Mapped[list[MovieGenre]] = relationship(
        back_populates="movie",
        cascade="all, delete-orphan",
        order_by="MovieGenre.position",
    )
    cast_links: Mapped[list[MovieCast]] = relationship(
        back_populates="movie",
        cascade="all, delete-orphan",
        order_by="MovieCast.position",
    )
    director_links: Mapped[list[MovieDirector]] = relationship(
        back_populates="movie",
        cascade="all, delete-orphan",
        order_by="MovieDirector.position",
    )

    @property
    def genres(self) -> list[Genre]:
        return [link.genre for link in self.genre_links]

    @property
    def cast(self) -> list[Person]:
        return [link.person for link in self.cast_links]

    @property
    def directors(self) -> list[Person]:
        return [link.person for link in self.director_links]

    def __repr__(self) -> str:
        return f"<Movie(external_id={self.external_id}, title={self.title!r})>"


class Person(Base):
    """Actor or director, shared across every movie that credits them."""

    __tablename__ = "people"

    id: Mapped[int] = mapped_column(primary_key=True)
    external_id: Mapped[int] = mapped_column(unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255))
    gender: Mapped[int] = mapped_column(Integer, default=0)

    cast_credits: Mapped[list[MovieCast]] = relationship(
        back_populates="person", cascade="all, delete-orphan"
    )
    directing_credits: Mapped[list[MovieDirector]] = relationship(
        back_populates="person", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Person(external_id={self.external_id}, name={self.name!r})>"


class Genre(Base):
    __tablename__ = "genres"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(50), unique=True)

    movie_links: Mapped[list[MovieGenre]] = relationship(
        back_populates="genre", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Genre(id={self.id}, name={self.name!r})>"


__all__ = [
    "Base",
    "Movie",
    "Person",
    "Genre",
    "MovieGenre",
    "MovieCast",
    "MovieDirector",
]
