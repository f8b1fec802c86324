"""Persistence stage: one transaction per movie, shared references by id."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Sequence

from ...common.errors import DuplicateEntityError, PersistenceError
from ...common.types import MovieRecord
from ...storage.gateway import StorageGateway
from ..genres import GenreHandle
from ..identity import SharedPerson


@dataclass(slots=True)
class ResolvedMovie:
    """A movie whose genres and people point at shared handles."""

    movie: MovieRecord
    genres: list[GenreHandle] = field(default_factory=list)
    cast: list[SharedPerson] = field(default_factory=list)
    directors: list[SharedPerson] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class PersistOutcome:
    """Result of persisting a single movie."""

    movie: MovieRecord
    movie_id: int | None = None
    error: str | None = None

    @property
    def persisted(self) -> bool:
        return self.movie_id is not None


class PersistenceStage:
    """Write resolved movies to the store, isolating failures per movie."""

    def __init__(
        self,
        *,
        gateway: StorageGateway,
        on_movie_complete: Callable[[PersistOutcome], None] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._gateway = gateway
        self._on_movie_complete = on_movie_complete
        self._logger = logger or logging.getLogger("movie_catalog.loader.persistence")
        self._people_created = 0

    @property
    def logger(self) -> logging.Logger:
        """Logger used by the persistence stage."""

        return self._logger

    @property
    def gateway(self) -> StorageGateway:
        return self._gateway

    @property
    def people_created(self) -> int:
        """Number of person rows inserted by :meth:`bind_person`."""

        return self._people_created

    def bind_person(self, handle: SharedPerson) -> SharedPerson:
        """Find or create the stored row for *handle* and bind its id.

        Runs in its own short transaction.  A person stored by an earlier run
        is reused rather than duplicated.
        """

        if handle.is_bound:
            return handle
        try:
            with self._gateway.transaction() as session:
                row = self._gateway.find_person_by_external_id(
                    session, handle.external_id
                )
                created = row is None
                if row is None:
                    row = self._gateway.create_person(session, handle.to_record())
                stored_id = row.id
        except DuplicateEntityError:
            with self._gateway.transaction() as session:
                row = self._gateway.find_person_by_external_id(
                    session, handle.external_id
                )
                if row is None:
                    raise PersistenceError(
                        f"Person {handle.external_id} collided on insert but could not be found"
                    )
                stored_id = row.id
            created = False
        handle.bind(stored_id)
        if created:
            self._people_created += 1
        return handle

    def persist(self, resolved: ResolvedMovie) -> int:
        """Persist *resolved* in a fresh transaction and return the row id."""

        cast_ids = [
            person.stored_id
            for person in resolved.cast
            if person.stored_id is not None
        ]
        director_ids = [
            person.stored_id
            for person in resolved.directors
            if person.stored_id is not None
        ]
        with self._gateway.transaction() as session:
            return self._gateway.create_movie(
                session,
                resolved.movie,
                genre_ids=[genre.id for genre in resolved.genres],
                cast_ids=cast_ids,
                director_ids=director_ids,
            )

    async def run(
        self,
        movies: Sequence[ResolvedMovie],
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> list[PersistOutcome]:
        """Persist each movie in turn; a failure only skips that movie."""

        self._logger.info("Starting persistence stage for %d movie(s).", len(movies))
        outcomes: list[PersistOutcome] = []
        for resolved in movies:
            if cancel_event is not None and cancel_event.is_set():
                self._logger.info(
                    "Persistence cancelled with %d movie(s) remaining.",
                    len(movies) - len(outcomes),
                )
                break
            movie = resolved.movie
            try:
                movie_id = self.persist(resolved)
            except DuplicateEntityError as exc:
                self._logger.warning("Skipping movie %s: %s", movie.external_id, exc)
                outcome = PersistOutcome(movie=movie, error=f"duplicate: {exc}")
            except PersistenceError as exc:
                self._logger.error(
                    "Could not persist movie %s: %s", movie.external_id, exc
                )
                outcome = PersistOutcome(movie=movie, error=f"persistence: {exc}")
            else:
                self._logger.info(
                    "Persisted movie %s (%s).", movie.external_id, movie.title
                )
                outcome = PersistOutcome(movie=movie, movie_id=movie_id)
            outcomes.append(outcome)
            if self._on_movie_complete is not None:
                self._on_movie_complete(outcome)
            # Storage calls block; yield so cancellation can be observed.
            await asyncio.sleep(0)
        return outcomes


__all__ = ["ResolvedMovie", "PersistOutcome", "PersistenceStage"]
