import asyncio
import sys
from pathlib import Path
from typing import Any, Callable, Iterable

import httpx
import pytest

# Ensure package root is importable when tests are executed directly
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from movie_catalog.storage.gateway import StorageGateway  # noqa: E402


TMDB_TEST_URL = "https://tmdb.test/3"


class FakeTMDb:
    """In-memory stand-in for the discovery and movie-details endpoints."""

    def __init__(self) -> None:
        self.pages: dict[int, Any] = {}
        self.credits: dict[int, Any] = {}
        self.requests: list[httpx.Request] = []
        self.credits_delay = 0.0
        self.on_credits_request: Callable[[int], None] | None = None
        self.in_flight = 0
        self.max_in_flight = 0

    @staticmethod
    def movie(
        external_id: int,
        title: str | None = None,
        *,
        genres: Iterable[int] = (),
        release_date: str | None = "2020-01-01",
        vote_average: float | None = 7.0,
    ) -> dict[str, Any]:
        return {
            "id": external_id,
            "original_title": title or f"Movie {external_id}",
            "release_date": release_date,
            "vote_average": vote_average,
            "genre_ids": list(genres),
        }

    def add_page(
        self, page: int, movies: list[dict[str, Any]], *, total_pages: int = 1
    ) -> None:
        self.pages[page] = {
            "page": page,
            "total_pages": total_pages,
            "total_results": len(movies),
            "results": movies,
        }

    def add_credits(
        self,
        movie_id: int,
        *,
        cast: Iterable[tuple[int, str]] = (),
        directors: Iterable[tuple[int, str]] = (),
        crew: Iterable[dict[str, Any]] = (),
    ) -> None:
        crew_entries = [
            {"id": pid, "name": name, "job": "Director", "department": "Directing"}
            for pid, name in directors
        ]
        crew_entries.extend(crew)
        self.credits[movie_id] = {
            "id": movie_id,
            "credits": {
                "cast": [
                    {"id": pid, "name": name, "order": order}
                    for order, (pid, name) in enumerate(cast)
                ],
                "crew": crew_entries,
            },
        }

    def page_requests(self) -> list[int]:
        return [
            int(request.url.params["page"])
            for request in self.requests
            if request.url.path.endswith("/discover/movie")
        ]

    def credits_requests(self) -> list[int]:
        return [
            int(request.url.path.rsplit("/", 1)[1])
            for request in self.requests
            if "/movie/" in request.url.path
        ]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.endswith("/discover/movie"):
            payload = self.pages.get(int(request.url.params["page"]))
        else:
            movie_id = int(path.rsplit("/", 1)[1])
            if self.on_credits_request is not None:
                self.on_credits_request(movie_id)
            payload = self.credits.get(
                movie_id, {"id": movie_id, "credits": {"cast": [], "crew": []}}
            )
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
            try:
                await asyncio.sleep(self.credits_delay)
            finally:
                self.in_flight -= 1
        if isinstance(payload, Exception):
            raise payload
        if isinstance(payload, httpx.Response):
            return payload
        if payload is None:
            return httpx.Response(404, json={"status_message": "not found"})
        return httpx.Response(200, json=payload)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=httpx.MockTransport(self.handler), base_url=TMDB_TEST_URL
        )


@pytest.fixture
def fake_tmdb() -> FakeTMDb:
    return FakeTMDb()


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'catalog.db'}"


@pytest.fixture
def gateway(database_url: str):
    store = StorageGateway.from_url(database_url)
    store.create_schema()
    yield store
    store.dispose()
