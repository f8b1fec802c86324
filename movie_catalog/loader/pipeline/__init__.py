"""Expose the concrete loader pipeline stages and shared channel helpers."""

from __future__ import annotations

from .channels import (
    ENRICH_DONE,
    EnrichmentQueue,
    PageBatch,
    PageFailure,
    enqueue_nowait,
)
from .enrichment import EnrichmentScheduler, EnrichmentSummary
from .ingestion import IngestionStage
from .orchestrator import IngestionOrchestrator, IngestionReport, RunState
from .persistence import PersistenceStage, PersistOutcome, ResolvedMovie

__all__ = [
    "IngestionStage",
    "EnrichmentScheduler",
    "EnrichmentSummary",
    "PersistenceStage",
    "PersistOutcome",
    "ResolvedMovie",
    "IngestionOrchestrator",
    "IngestionReport",
    "RunState",
    "PageBatch",
    "PageFailure",
    "EnrichmentQueue",
    "ENRICH_DONE",
    "enqueue_nowait",
]
