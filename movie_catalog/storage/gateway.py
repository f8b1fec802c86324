"""Transaction-scoped create/find primitives over the relational store.

Every primitive takes the caller's :class:`~sqlalchemy.orm.Session` so the
caller decides the transaction boundary.  The loader opens one transaction per
movie and one short transaction per shared reference row (genre or person);
sessions are never handed to another task.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Sequence

from sqlalchemy import create_engine, event, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload, sessionmaker

from ..common.errors import DuplicateEntityError, MovieCatalogError, PersistenceError
from ..common.types import MovieRecord, PersonRecord
from .models import (
    Base,
    Genre,
    Movie,
    MovieCast,
    MovieDirector,
    MovieGenre,
    Person,
)

LOGGER = logging.getLogger("movie_catalog.storage")


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str, *, echo: bool = False) -> Engine:
    """Create an engine for *database_url* with SQLite foreign keys enforced."""

    connect_args: dict[str, Any] = {}
    is_sqlite = database_url.startswith("sqlite")
    if is_sqlite:
        connect_args["check_same_thread"] = False
    engine = create_engine(database_url, echo=echo, connect_args=connect_args)
    if is_sqlite:
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def _unique_in_order(values: Sequence[int]) -> list[int]:
    return list(dict.fromkeys(values))


_UNIQUE_SQLITE_ERRORS = frozenset(
    {"SQLITE_CONSTRAINT_UNIQUE", "SQLITE_CONSTRAINT_PRIMARYKEY"}
)
_UNIQUE_SQLSTATE = "23505"


def _is_unique_violation(exc: IntegrityError) -> bool:
    orig = exc.orig
    sqlite_name = getattr(orig, "sqlite_errorname", None)
    if sqlite_name is not None:
        return sqlite_name in _UNIQUE_SQLITE_ERRORS
    # psycopg exposes ``sqlstate``; psycopg2 exposes ``pgcode``.
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate is not None:
        return sqlstate == _UNIQUE_SQLSTATE
    return "unique" in str(orig).lower()


class StorageGateway:
    """Create/find primitives for movies, people, and genres."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._session_factory = sessionmaker(engine, expire_on_commit=False)

    @classmethod
    def from_url(cls, database_url: str) -> "StorageGateway":
        return cls(build_engine(database_url))

    @property
    def engine(self) -> Engine:
        return self._engine

    def create_schema(self) -> None:
        """Create any missing tables."""

        Base.metadata.create_all(self._engine)

    def dispose(self) -> None:
        self._engine.dispose()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Yield a session bound to a single transaction.

        The transaction commits when the block exits cleanly and rolls back
        otherwise.  A unique-key collision raised at commit surfaces as
        :class:`DuplicateEntityError`, any other storage failure as
        :class:`PersistenceError`; errors already in the ``movie_catalog``
        taxonomy pass through.
        """

        try:
            with self._session_factory.begin() as session:
                yield session
        except MovieCatalogError:
            raise
        except IntegrityError as exc:
            if _is_unique_violation(exc):
                raise DuplicateEntityError("row", str(exc.orig)) from exc
            raise PersistenceError(f"Transaction failed: {exc.orig}") from exc
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Transaction failed: {exc}") from exc

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Yield a session for reads; callers must not commit through it."""

        with self._session_factory() as session:
            yield session

    # -- movies -------------------------------------------------------------

    def create_movie(
        self,
        session: Session,
        movie: MovieRecord,
        *,
        genre_ids: Sequence[int] = (),
        cast_ids: Sequence[int] = (),
        director_ids: Sequence[int] = (),
    ) -> int:
        """Insert *movie* with its associations and return the stored row id.

        Raises :class:`DuplicateEntityError` when a movie with the same
        external id already exists.
        """

        existing = session.scalar(
            select(Movie.id).where(Movie.external_id == movie.external_id)
        )
        if existing is not None:
            raise DuplicateEntityError("movie", movie.external_id)

        row = Movie(
            external_id=movie.external_id,
            title=movie.title,
            release_date=movie.release_date,
            vote_average=movie.vote_average,
        )
        row.genre_links = [
            MovieGenre(genre_id=genre_id, position=position)
            for position, genre_id in enumerate(_unique_in_order(genre_ids))
        ]
        row.cast_links = [
            MovieCast(person_id=person_id, position=position)
            for position, person_id in enumerate(_unique_in_order(cast_ids))
        ]
        row.director_links = [
            MovieDirector(person_id=person_id, position=position)
            for position, person_id in enumerate(_unique_in_order(director_ids))
        ]
        session.add(row)
        try:
            session.flush()
        except IntegrityError as exc:
            if _is_unique_violation(exc):
                raise DuplicateEntityError("movie", movie.external_id) from exc
            raise PersistenceError(
                f"Could not create movie {movie.external_id}: {exc.orig}"
            ) from exc
        except SQLAlchemyError as exc:
            raise PersistenceError(
                f"Could not create movie {movie.external_id}: {exc}"
            ) from exc
        LOGGER.debug(
            "Created movie %s (%s) with %d genre(s), %d cast, %d director(s).",
            movie.external_id,
            movie.title,
            len(row.genre_links),
            len(row.cast_links),
            len(row.director_links),
        )
        return row.id

    def get_movie(self, session: Session, external_id: int) -> Movie | None:
        """Return the stored movie for *external_id* with associations loaded."""

        return session.scalar(
            select(Movie)
            .where(Movie.external_id == external_id)
            .options(
                selectinload(Movie.genre_links).selectinload(MovieGenre.genre),
                selectinload(Movie.cast_links).selectinload(MovieCast.person),
                selectinload(Movie.director_links).selectinload(
                    MovieDirector.person
                ),
            )
        )

    # -- genres -------------------------------------------------------------

    def find_genre_by_name(self, session: Session, name: str) -> Genre | None:
        return session.scalar(select(Genre).where(Genre.name == name))

    def create_genre(self, session: Session, name: str) -> Genre:
        row = Genre(name=name)
        session.add(row)
        try:
            session.flush()
        except IntegrityError as exc:
            if _is_unique_violation(exc):
                raise DuplicateEntityError("genre", name) from exc
            raise PersistenceError(f"Could not create genre {name!r}: {exc.orig}") from exc
        return row

    # -- people -------------------------------------------------------------

    def find_person_by_external_id(
        self, session: Session, external_id: int
    ) -> Person | None:
        return session.scalar(select(Person).where(Person.external_id == external_id))

    def create_person(self, session: Session, person: PersonRecord) -> Person:
        row = Person(
            external_id=person.external_id, name=person.name, gender=person.gender
        )
        session.add(row)
        try:
            session.flush()
        except IntegrityError as exc:
            if _is_unique_violation(exc):
                raise DuplicateEntityError("person", person.external_id) from exc
            raise PersistenceError(
                f"Could not create person {person.external_id}: {exc.orig}"
            ) from exc
        return row


__all__ = ["StorageGateway", "build_engine"]
