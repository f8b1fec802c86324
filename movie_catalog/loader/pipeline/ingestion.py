"""Ingestion stage: fetch discovery pages in order."""
from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator

from ...common.errors import DecodeError, IngestionAbortedError, TransportError
from ...common.validation import require_positive
from ..tmdb import PageFetcher
from .channels import PageBatch, PageFailure


class IngestionStage:
    """Request pages ``1..page_count`` from the discovery endpoint sequentially.

    Pages are fetched in increasing order because the API is ordered.  A page
    that cannot be fetched or decoded is reported as a :class:`PageFailure`
    and the stage moves on, except when the very first page cannot be reached
    at all: with no data to process the run is aborted.
    """

    def __init__(
        self,
        *,
        page_fetcher: PageFetcher,
        page_count: int,
        logger: logging.Logger | None = None,
    ) -> None:
        self._page_fetcher = page_fetcher
        self._page_count = require_positive(int(page_count), name="page_count")
        self._logger = logger or logging.getLogger("movie_catalog.loader.ingestion")
        self._pages_fetched = 0
        self._items_ingested = 0

    @property
    def logger(self) -> logging.Logger:
        """Logger used by the ingestion stage."""

        return self._logger

    @property
    def page_count(self) -> int:
        return self._page_count

    @property
    def pages_fetched(self) -> int:
        return self._pages_fetched

    @property
    def items_ingested(self) -> int:
        return self._items_ingested

    async def run(
        self, cancel_event: asyncio.Event | None = None
    ) -> AsyncIterator[PageBatch | PageFailure]:
        """Yield one result per requested page until done or cancelled."""

        last_page = self._page_count
        page = 1
        self._logger.info("Starting ingestion stage for %d page(s).", last_page)
        while page <= last_page:
            if cancel_event is not None and cancel_event.is_set():
                self._logger.info("Ingestion cancelled before page %d.", page)
                return
            try:
                decoded = await self._page_fetcher.fetch(page)
            except TransportError as exc:
                if page == 1:
                    raise IngestionAbortedError(
                        f"Could not reach the discovery endpoint: {exc}"
                    ) from exc
                self._logger.warning("Skipping page %d: %s", page, exc)
                yield PageFailure(page=page, reason=str(exc))
                page += 1
                continue
            except DecodeError as exc:
                self._logger.warning("Skipping page %d: %s", page, exc)
                yield PageFailure(page=page, reason=str(exc))
                page += 1
                continue

            if decoded.total_pages < last_page:
                self._logger.info(
                    "API reports %d page(s); requested %d. Stopping early.",
                    decoded.total_pages,
                    last_page,
                )
                last_page = decoded.total_pages

            batch = PageBatch(
                page=page, total_pages=decoded.total_pages, movies=decoded.records()
            )
            self._pages_fetched += 1
            self._items_ingested += len(batch.movies)
            self._logger.info(
                "Fetched page %d with %d movie(s) (total items=%d).",
                page,
                len(batch.movies),
                self._items_ingested,
            )
            yield batch
            page += 1

        self._logger.info(
            "Ingestion stage finished after %d page(s) covering %d movie(s).",
            self._pages_fetched,
            self._items_ingested,
        )


__all__ = ["IngestionStage"]
