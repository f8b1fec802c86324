"""Genre code resolution and shared genre rows."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from ..common.errors import DuplicateEntityError, PersistenceError, UnmappedGenreError
from ..storage.gateway import StorageGateway

LOGGER = logging.getLogger("movie_catalog.loader.genres")

# Closed set of TMDb movie genre codes.
GENRE_NAMES: Mapping[int, str] = MappingProxyType(
    {
        28: "ACTION",
        12: "ADVENTURE",
        16: "ANIMATION",
        35: "COMEDY",
        80: "CRIME",
        99: "DOCUMENTARY",
        18: "DRAMA",
        10751: "FAMILY",
        14: "FANTASY",
        36: "HISTORY",
        27: "HORROR",
        10402: "MUSIC",
        9648: "MYSTERY",
        10749: "ROMANCE",
        878: "SCIENCE_FICTION",
        10770: "TV_MOVIE",
        53: "THRILLER",
        10752: "WAR",
        37: "WESTERN",
    }
)


@dataclass(frozen=True, slots=True)
class GenreHandle:
    """Reference to a persisted, shared genre row."""

    id: int
    name: str


class GenreCatalog:
    """Resolve genre codes to shared genre rows, creating each name at most once."""

    def __init__(self, gateway: StorageGateway) -> None:
        self._gateway = gateway
        self._handles: dict[str, GenreHandle] = {}
        self._lock = threading.Lock()
        self._created = 0

    @staticmethod
    def name_for(code: int) -> str:
        """Return the canonical genre name for *code*."""

        try:
            return GENRE_NAMES[code]
        except KeyError:
            raise UnmappedGenreError(code) from None

    @property
    def created_count(self) -> int:
        """Number of genre rows this catalog inserted."""

        return self._created

    def __len__(self) -> int:
        return len(self._handles)

    def resolve(self, code: int) -> GenreHandle:
        return self.resolve_or_create(self.name_for(code))

    def resolve_or_create(self, name: str) -> GenreHandle:
        """Return the stored genre named *name*, creating it if missing.

        The cache lookup, store lookup, and insert run under one lock so
        concurrent callers observe a single row.  A unique-key collision means
        another process inserted the row first; the row is then re-read.
        """

        with self._lock:
            handle = self._handles.get(name)
            if handle is not None:
                return handle
            handle = self._find_or_create(name)
            self._handles[name] = handle
            return handle

    def _find_or_create(self, name: str) -> GenreHandle:
        try:
            with self._gateway.transaction() as session:
                row = self._gateway.find_genre_by_name(session, name)
                if row is None:
                    row = self._gateway.create_genre(session, name)
                    created = True
                else:
                    created = False
                handle = GenreHandle(id=row.id, name=row.name)
        except DuplicateEntityError:
            LOGGER.debug("Genre %s was inserted concurrently; re-reading.", name)
            with self._gateway.transaction() as session:
                row = self._gateway.find_genre_by_name(session, name)
                if row is None:
                    raise PersistenceError(
                        f"Genre {name!r} collided on insert but could not be found"
                    )
                return GenreHandle(id=row.id, name=row.name)
        if created:
            self._created += 1
            LOGGER.info("Created genre %s (id=%d).", name, handle.id)
        return handle


__all__ = ["GENRE_NAMES", "GenreHandle", "GenreCatalog"]
