import asyncio
import logging

import httpx
import pytest

from movie_catalog.common.errors import IngestionAbortedError
from movie_catalog.loader.pipeline.channels import PageBatch, PageFailure
from movie_catalog.loader.pipeline.ingestion import IngestionStage
from movie_catalog.loader.tmdb import PageFetcher


def _collect(fake_tmdb, page_count: int, cancel_event: asyncio.Event | None = None):
    async def scenario():
        async with fake_tmdb.client() as client:
            stage = IngestionStage(
                page_fetcher=PageFetcher(client, api_key="key"),
                page_count=page_count,
            )
            results = [result async for result in stage.run(cancel_event)]
            return stage, results

    return asyncio.run(scenario())


def test_ingestion_stage_logger_name(fake_tmdb) -> None:
    stage = IngestionStage(page_fetcher=object(), page_count=1)  # type: ignore[arg-type]
    assert stage.logger.name == "movie_catalog.loader.ingestion"


def test_ingestion_stage_requires_positive_page_count() -> None:
    with pytest.raises(ValueError, match="page_count must be positive"):
        IngestionStage(page_fetcher=object(), page_count=0)  # type: ignore[arg-type]


def test_ingestion_stage_fetches_pages_in_order(fake_tmdb) -> None:
    fake_tmdb.add_page(1, [fake_tmdb.movie(1), fake_tmdb.movie(2)], total_pages=5)
    fake_tmdb.add_page(2, [fake_tmdb.movie(3)], total_pages=5)
    fake_tmdb.add_page(3, [fake_tmdb.movie(4)], total_pages=5)

    stage, results = _collect(fake_tmdb, 3)

    assert fake_tmdb.page_requests() == [1, 2, 3]
    assert all(isinstance(result, PageBatch) for result in results)
    assert [[movie.external_id for movie in result.movies] for result in results] == [
        [1, 2],
        [3],
        [4],
    ]
    assert stage.pages_fetched == 3
    assert stage.items_ingested == 4


def test_ingestion_stage_stops_at_reported_total(fake_tmdb) -> None:
    fake_tmdb.add_page(1, [fake_tmdb.movie(1)], total_pages=2)
    fake_tmdb.add_page(2, [fake_tmdb.movie(2)], total_pages=2)

    _, results = _collect(fake_tmdb, 5)

    assert fake_tmdb.page_requests() == [1, 2]
    assert len(results) == 2


def test_ingestion_stage_first_page_unreachable_aborts(fake_tmdb) -> None:
    fake_tmdb.pages[1] = httpx.ConnectError("down")

    with pytest.raises(IngestionAbortedError, match="discovery endpoint"):
        _collect(fake_tmdb, 3)
    assert fake_tmdb.page_requests() == [1]


def test_ingestion_stage_skips_later_failed_pages(fake_tmdb, caplog) -> None:
    fake_tmdb.add_page(1, [fake_tmdb.movie(1)], total_pages=3)
    fake_tmdb.pages[2] = httpx.Response(500)
    fake_tmdb.add_page(3, [fake_tmdb.movie(3)], total_pages=3)

    with caplog.at_level(logging.WARNING, logger="movie_catalog.loader.ingestion"):
        _, results = _collect(fake_tmdb, 3)

    assert isinstance(results[1], PageFailure)
    assert results[1].page == 2
    assert "HTTP 500" in results[1].reason
    assert [movie.external_id for movie in results[2].movies] == [3]
    assert "Skipping page 2" in caplog.text


def test_ingestion_stage_undecodable_first_page_is_skipped(fake_tmdb) -> None:
    fake_tmdb.pages[1] = {"page": 1}
    fake_tmdb.add_page(2, [fake_tmdb.movie(2)], total_pages=2)

    _, results = _collect(fake_tmdb, 2)

    assert isinstance(results[0], PageFailure)
    assert isinstance(results[1], PageBatch)


def test_ingestion_stage_honours_cancellation(fake_tmdb) -> None:
    fake_tmdb.add_page(1, [fake_tmdb.movie(1)], total_pages=3)
    cancel_event = asyncio.Event()
    cancel_event.set()

    _, results = _collect(fake_tmdb, 3, cancel_event)

    assert results == []
    assert fake_tmdb.requests == []
