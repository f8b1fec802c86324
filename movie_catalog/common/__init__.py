"""Shared types, errors, and validation helpers."""

from __future__ import annotations

from .errors import (
    DecodeError,
    DuplicateEntityError,
    IngestionAbortedError,
    MovieCatalogError,
    PersistenceError,
    TransportError,
    UnmappedGenreError,
)
from .types import MovieRecord, PersonRecord
from .validation import require_positive

__all__ = [
    "DecodeError",
    "DuplicateEntityError",
    "IngestionAbortedError",
    "MovieCatalogError",
    "PersistenceError",
    "TransportError",
    "UnmappedGenreError",
    "MovieRecord",
    "PersonRecord",
    "require_positive",
]
