"""Relational storage for ingested movies."""

from __future__ import annotations

from .gateway import StorageGateway, build_engine
from .models import Base, Genre, Movie, Person

__all__ = ["StorageGateway", "build_engine", "Base", "Genre", "Movie", "Person"]
