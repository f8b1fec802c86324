"""Loader pipeline wiring TMDb discovery and credits into the movie store."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable

import httpx

from ..common.validation import require_positive
from ..config import Settings
from ..storage.gateway import StorageGateway
from .genres import GenreCatalog
from .identity import IdentityDeduplicator
from .pipeline.enrichment import EnrichmentScheduler
from .pipeline.ingestion import IngestionStage
from .pipeline.orchestrator import IngestionOrchestrator, IngestionReport, RunState
from .pipeline.persistence import PersistenceStage, PersistOutcome
from .tmdb import (
    DEFAULT_TMDB_BASE_URL,
    CreditsFetcher,
    DiscoverFilter,
    PageFetcher,
    build_http_client,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGES = 5
DEFAULT_ENRICHMENT_WORKERS = 8
DEFAULT_ENRICHMENT_QUEUE_SIZE = 32


@dataclass(frozen=True, slots=True)
class LoaderConfig:
    """Explicit configuration for one ingestion run."""

    tmdb_api_key: str | None
    database_url: str = "sqlite:///movie_catalog.db"
    tmdb_base_url: str = DEFAULT_TMDB_BASE_URL
    pages: int = DEFAULT_PAGES
    enrichment_workers: int = DEFAULT_ENRICHMENT_WORKERS
    enrichment_queue_size: int = DEFAULT_ENRICHMENT_QUEUE_SIZE
    http_timeout: float = 10.0
    discover_filter: DiscoverFilter = DiscoverFilter()

    @classmethod
    def from_settings(cls, settings: Settings) -> "LoaderConfig":
        api_key = settings.tmdb_api_key
        return cls(
            tmdb_api_key=api_key.get_secret_value() if api_key is not None else None,
            database_url=settings.database_url,
            tmdb_base_url=settings.tmdb_base_url,
            pages=settings.pages,
            enrichment_workers=settings.enrichment_workers,
            enrichment_queue_size=settings.enrichment_queue_size,
            http_timeout=settings.http_timeout,
            discover_filter=DiscoverFilter(
                language=settings.language,
                release_date_gte=settings.release_date_gte,
                sort_by=settings.sort_by,
            ),
        )

    def validate(self) -> None:
        if not self.tmdb_api_key:
            raise RuntimeError("TMDB_API_KEY must be provided")
        require_positive(self.pages, name="pages")
        require_positive(self.enrichment_workers, name="enrichment_workers")
        require_positive(self.enrichment_queue_size, name="enrichment_queue_size")
        if self.http_timeout <= 0:
            raise ValueError("http_timeout must be positive")


def build_orchestrator(
    config: LoaderConfig,
    *,
    client: httpx.AsyncClient,
    gateway: StorageGateway,
    cancel_event: asyncio.Event | None = None,
    on_movie_complete: Callable[[PersistOutcome], None] | None = None,
) -> IngestionOrchestrator:
    """Wire the staged loader pipeline for one run."""

    api_key = config.tmdb_api_key or ""
    ingestion_stage = IngestionStage(
        page_fetcher=PageFetcher(
            client, api_key=api_key, discover_filter=config.discover_filter
        ),
        page_count=config.pages,
    )
    enrichment_scheduler = EnrichmentScheduler(
        credits_fetcher=CreditsFetcher(client, api_key=api_key),
        worker_count=config.enrichment_workers,
        queue_size=config.enrichment_queue_size,
    )
    return IngestionOrchestrator(
        ingestion_stage=ingestion_stage,
        enrichment_scheduler=enrichment_scheduler,
        genre_catalog=GenreCatalog(gateway),
        deduplicator=IdentityDeduplicator(),
        persistence_stage=PersistenceStage(
            gateway=gateway, on_movie_complete=on_movie_complete
        ),
        cancel_event=cancel_event,
    )


async def run(
    config: LoaderConfig,
    *,
    client: httpx.AsyncClient | None = None,
    gateway: StorageGateway | None = None,
    cancel_event: asyncio.Event | None = None,
    on_movie_complete: Callable[[PersistOutcome], None] | None = None,
) -> IngestionReport:
    """Core execution logic for the CLI.

    *client* and *gateway* default to ones built from *config* and are closed
    afterwards; caller-supplied instances are left open.  *on_movie_complete*
    receives one :class:`PersistOutcome` per movie, stored or skipped.
    """

    config.validate()
    owns_gateway = gateway is None
    if gateway is None:
        gateway = StorageGateway.from_url(config.database_url)
    owns_client = client is None
    if client is None:
        client = build_http_client(
            base_url=config.tmdb_base_url, timeout=config.http_timeout
        )
    try:
        gateway.create_schema()
        orchestrator = build_orchestrator(
            config,
            client=client,
            gateway=gateway,
            cancel_event=cancel_event,
            on_movie_complete=on_movie_complete,
        )
        logger.info("Starting ingestion of %d page(s)", config.pages)
        return await orchestrator.run()
    finally:
        if owns_client:
            await client.aclose()
        if owns_gateway:
            gateway.dispose()


__all__ = [
    "LoaderConfig",
    "IngestionReport",
    "RunState",
    "build_orchestrator",
    "run",
]
