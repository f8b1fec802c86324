"""TMDb discovery and credits fetchers used by the loader pipeline."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Mapping

import httpx
from pydantic import ValidationError

from ..common.errors import DecodeError, TransportError
from ..common.types import DiscoverPage, MovieCredits, MovieDetails
from ..common.validation import require_positive

LOGGER = logging.getLogger("movie_catalog.loader.tmdb")

DEFAULT_TMDB_BASE_URL = "https://api.themoviedb.org/3"
CREDITS_LANGUAGE = "en-US"


@dataclass(frozen=True, slots=True)
class DiscoverFilter:
    """Fixed discovery filter applied to every requested page."""

    language: str = "da"
    release_date_gte: date = date(2019, 1, 1)
    sort_by: str = "primary_release_date.desc"

    def as_params(self) -> dict[str, str]:
        return {
            "with_original_language": self.language,
            "primary_release_date.gte": self.release_date_gte.isoformat(),
            "sort_by": self.sort_by,
        }


def build_http_client(
    *, base_url: str = DEFAULT_TMDB_BASE_URL, timeout: float = 10.0
) -> httpx.AsyncClient:
    """Return an HTTP client configured for the TMDb API."""

    return httpx.AsyncClient(
        base_url=base_url,
        timeout=httpx.Timeout(timeout),
        headers={"Accept": "application/json"},
    )


async def _get_json(
    client: httpx.AsyncClient, path: str, params: Mapping[str, Any]
) -> Any:
    """Issue ``GET path`` and return the decoded JSON body.

    Connection failures, timeouts, and non-success statuses raise
    :class:`TransportError`; an unparsable body raises :class:`DecodeError`.
    """

    try:
        response = await client.get(path, params=dict(params))
    except httpx.TimeoutException as exc:
        raise TransportError(f"Timed out requesting {path}") from exc
    except httpx.HTTPError as exc:
        raise TransportError(f"HTTP error requesting {path}: {exc}") from exc
    if not response.is_success:
        raise TransportError(
            f"{path} returned HTTP {response.status_code}",
            status_code=response.status_code,
        )
    try:
        return response.json()
    except ValueError as exc:
        raise DecodeError(f"{path} returned a body that is not JSON") from exc


class PageFetcher:
    """Fetch and decode discovery pages."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        api_key: str,
        discover_filter: DiscoverFilter | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("api_key must be provided")
        self._client = client
        self._api_key = api_key
        self._filter = discover_filter or DiscoverFilter()

    @property
    def discover_filter(self) -> DiscoverFilter:
        return self._filter

    async def fetch(self, page: int) -> DiscoverPage:
        """Return the decoded discovery *page* (1-based)."""

        page = require_positive(page, name="page")
        params = {"api_key": self._api_key, **self._filter.as_params(), "page": page}
        payload = await _get_json(self._client, "/discover/movie", params)
        try:
            decoded = DiscoverPage.model_validate(payload)
        except ValidationError as exc:
            raise DecodeError(
                f"Discovery page {page} is missing required fields: "
                f"{exc.error_count()} validation error(s)"
            ) from exc
        LOGGER.debug(
            "Decoded discovery page %d/%d with %d movie(s).",
            page,
            decoded.total_pages,
            len(decoded.results),
        )
        return decoded


class CreditsFetcher:
    """Fetch the cast and raw crew list for a single movie."""

    def __init__(self, client: httpx.AsyncClient, *, api_key: str) -> None:
        if not api_key:
            raise ValueError("api_key must be provided")
        self._client = client
        self._api_key = api_key

    async def fetch_strict(self, external_id: int) -> MovieCredits:
        """Return the credits for *external_id*, raising on any failure."""

        params = {
            "api_key": self._api_key,
            "language": CREDITS_LANGUAGE,
            "append_to_response": "credits",
        }
        payload = await _get_json(self._client, f"/movie/{external_id}", params)
        try:
            details = MovieDetails.model_validate(payload)
        except ValidationError as exc:
            raise DecodeError(
                f"Credits for movie {external_id} are malformed: "
                f"{exc.error_count()} validation error(s)"
            ) from exc
        return details.credits

    async def fetch(self, external_id: int) -> MovieCredits:
        """Return the credits for *external_id*, or empty credits on failure."""

        try:
            return await self.fetch_strict(external_id)
        except (TransportError, DecodeError) as exc:
            LOGGER.warning(
                "Could not fetch credits for movie %s; continuing without cast/crew: %s",
                external_id,
                exc,
            )
            return MovieCredits()


__all__ = [
    "DEFAULT_TMDB_BASE_URL",
    "DiscoverFilter",
    "PageFetcher",
    "CreditsFetcher",
    "build_http_client",
]
