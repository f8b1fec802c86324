"""Enrichment stage: attach cast and directors to every movie on a page.

Credits are fetched by a fixed number of worker tasks draining a bounded
queue.  :meth:`EnrichmentScheduler.enrich` is a barrier: it returns only after
every dispatched movie has been handled, so persistence never overlaps with
enrichment of the same movies.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from typing import Sequence

from ...common.types import MovieCredits, MovieRecord
from ...common.validation import require_positive
from ..tmdb import CreditsFetcher
from .channels import ENRICH_DONE, EnrichmentQueue, enqueue_nowait


@dataclass(slots=True)
class EnrichmentSummary:
    """Counters describing one :meth:`EnrichmentScheduler.enrich` call."""

    dispatched: int = 0
    enriched: int = 0
    without_credits: int = 0
    abandoned: int = 0
    cancelled: bool = False


def apply_credits(movie: MovieRecord, credits: MovieCredits) -> None:
    """Write cast and directors from *credits* onto *movie* in source order."""

    movie.cast = [member.to_person() for member in credits.cast]
    movie.directors = [member.to_person() for member in credits.directors()]


class EnrichmentScheduler:
    """Fan credits lookups out over a bounded pool of worker tasks."""

    def __init__(
        self,
        *,
        credits_fetcher: CreditsFetcher,
        worker_count: int,
        queue_size: int,
        logger: logging.Logger | None = None,
    ) -> None:
        self._credits_fetcher = credits_fetcher
        self._worker_count = require_positive(int(worker_count), name="worker_count")
        self._queue_size = require_positive(int(queue_size), name="queue_size")
        self._logger = logger or logging.getLogger("movie_catalog.loader.enrichment")

    @property
    def logger(self) -> logging.Logger:
        """Logger used by the enrichment stage."""

        return self._logger

    @property
    def worker_count(self) -> int:
        return self._worker_count

    @property
    def queue_size(self) -> int:
        return self._queue_size

    async def enrich(
        self,
        movies: Sequence[MovieRecord],
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> EnrichmentSummary:
        """Enrich *movies* in place and return once all of them are handled."""

        summary = EnrichmentSummary()
        if not movies:
            return summary
        if cancel_event is None:
            cancel_event = asyncio.Event()

        queue: EnrichmentQueue = asyncio.Queue(maxsize=self._queue_size)
        worker_count = min(self._worker_count, len(movies))
        self._logger.info(
            "Enriching %d movie(s) with %d worker(s) (queue size=%d).",
            len(movies),
            worker_count,
            self._queue_size,
        )
        async with asyncio.TaskGroup() as group:
            for worker_id in range(worker_count):
                group.create_task(
                    self._worker(worker_id, queue, cancel_event, summary)
                )
            for movie in movies:
                if cancel_event.is_set():
                    break
                await enqueue_nowait(queue, movie)
                summary.dispatched += 1
            for _ in range(worker_count):
                await enqueue_nowait(queue, ENRICH_DONE)

        summary.cancelled = cancel_event.is_set()
        self._logger.info(
            "Enrichment finished: %d enriched, %d without credits, %d abandoned.",
            summary.enriched,
            summary.without_credits,
            summary.abandoned,
        )
        return summary

    async def _worker(
        self,
        worker_id: int,
        queue: EnrichmentQueue,
        cancel_event: asyncio.Event,
        summary: EnrichmentSummary,
    ) -> None:
        while True:
            item = await queue.get()
            try:
                if item is ENRICH_DONE:
                    self._logger.debug("Enrichment worker %d finished.", worker_id)
                    return
                credits = await self._fetch_unless_cancelled(
                    item.external_id, cancel_event
                )
                if credits is None:
                    summary.abandoned += 1
                    continue
                apply_credits(item, credits)
                summary.enriched += 1
                if credits.is_empty:
                    summary.without_credits += 1
                self._logger.debug(
                    "Worker %d enriched movie %s with %d cast and %d director(s).",
                    worker_id,
                    item.external_id,
                    len(item.cast),
                    len(item.directors),
                )
            finally:
                queue.task_done()

    async def _fetch_unless_cancelled(
        self, external_id: int, cancel_event: asyncio.Event
    ) -> MovieCredits | None:
        """Fetch credits, returning ``None`` if the run is cancelled first."""

        if cancel_event.is_set():
            return None
        fetch_task = asyncio.create_task(self._credits_fetcher.fetch(external_id))
        cancel_task = asyncio.create_task(cancel_event.wait())
        try:
            await asyncio.wait(
                {fetch_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            for task in (fetch_task, cancel_task):
                if not task.done():
                    task.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await task
        if cancel_event.is_set() or fetch_task.cancelled():
            self._logger.debug(
                "Discarding credits for movie %s after cancellation.", external_id
            )
            return None
        return fetch_task.result()


__all__ = ["EnrichmentScheduler", "EnrichmentSummary", "apply_credits"]
