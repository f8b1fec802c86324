"""Batch containers and queue helpers shared across loader stages.

The enrichment work queue carries one :class:`MovieRecord` per item and is
closed with one :data:`ENRICH_DONE` sentinel per worker.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Final, Literal, TypeAlias, TypeVar

from ...common.types import MovieRecord

T = TypeVar("T")


ENRICH_DONE: Final = object()
EnrichSentinel: TypeAlias = Literal[ENRICH_DONE]
"""Sentinel object telling an enrichment worker to exit."""


@dataclass(slots=True)
class PageBatch:
    """Movies decoded from one discovery page."""

    page: int
    total_pages: int
    movies: list[MovieRecord] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class PageFailure:
    """A requested page that produced no movies."""

    page: int
    reason: str


EnrichmentQueueItem: TypeAlias = MovieRecord | EnrichSentinel
EnrichmentQueue: TypeAlias = asyncio.Queue[EnrichmentQueueItem]


async def enqueue_nowait(queue: asyncio.Queue[T], item: T) -> None:
    """Place *item* onto *queue* using ``put_nowait`` with fallback backpressure."""

    try:
        queue.put_nowait(item)
    except asyncio.QueueFull:
        await queue.put(item)


__all__ = [
    "ENRICH_DONE",
    "EnrichSentinel",
    "PageBatch",
    "PageFailure",
    "EnrichmentQueue",
    "EnrichmentQueueItem",
    "enqueue_nowait",
]
