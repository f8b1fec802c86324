"""Exception hierarchy for the ingestion pipeline and storage gateway."""

from __future__ import annotations


class MovieCatalogError(Exception):
    """Base class for all errors raised by ``movie_catalog``."""


class TransportError(MovieCatalogError):
    """The catalog API could not be reached, timed out, or returned an error status."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DecodeError(MovieCatalogError):
    """A response body was not well-formed JSON or lacked required fields."""


class UnmappedGenreError(MovieCatalogError):
    """A genre code is outside the closed TMDb genre table."""

    def __init__(self, code: int) -> None:
        super().__init__(f"No genre found with code {code}")
        self.code = code


class DuplicateEntityError(MovieCatalogError):
    """An entity with the same unique key already exists in the store."""

    def __init__(self, entity: str, key: object) -> None:
        super().__init__(f"{entity} {key!r} already exists")
        self.entity = entity
        self.key = key


class PersistenceError(MovieCatalogError):
    """Any storage failure other than a unique-key collision."""


class IngestionAbortedError(MovieCatalogError):
    """The run could not proceed at all (e.g. the first page is unreachable)."""


__all__ = [
    "MovieCatalogError",
    "TransportError",
    "DecodeError",
    "UnmappedGenreError",
    "DuplicateEntityError",
    "PersistenceError",
    "IngestionAbortedError",
]
