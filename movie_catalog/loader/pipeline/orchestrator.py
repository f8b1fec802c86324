"""Coordinating logic tying the loader pipeline stages together."""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Awaitable, TypeVar

from ...common.errors import PersistenceError, UnmappedGenreError
from ...common.types import MovieRecord, PersonRecord
from ..genres import GenreCatalog, GenreHandle
from ..identity import IdentityDeduplicator, SharedPerson
from .channels import PageBatch, PageFailure
from .enrichment import EnrichmentScheduler
from .ingestion import IngestionStage
from .persistence import PersistenceStage, PersistOutcome, ResolvedMovie

LOGGER = logging.getLogger("movie_catalog.loader.orchestrator")

T = TypeVar("T")


class RunState(str, enum.Enum):
    IDLE = "idle"
    FETCHING_PAGES = "fetching_pages"
    ENRICHING = "enriching"
    RESOLVING_REFERENCE_DATA = "resolving_reference_data"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class SkippedMovie:
    external_id: int
    title: str
    reason: str


@dataclass(slots=True)
class IngestionReport:
    """What a run persisted, what it skipped, and why."""

    pages_requested: int
    state: RunState = RunState.IDLE
    pages_fetched: int = 0
    failed_pages: list[PageFailure] = field(default_factory=list)
    persisted: list[tuple[int, str]] = field(default_factory=list)
    skipped: list[SkippedMovie] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    genres_resolved: int = 0
    people_admitted: int = 0
    people_created: int = 0
    cancelled: bool = False
    failure: str | None = None

    def summary(self) -> str:
        status = "cancelled" if self.cancelled else self.state.value
        return (
            f"Ingestion {status}: {len(self.persisted)} movie(s) persisted, "
            f"{len(self.skipped)} skipped, {len(self.failed_pages)} page(s) failed, "
            f"{self.genres_resolved} genre(s), {self.people_admitted} "
            f"distinct people ({self.people_created} new)."
        )


@dataclass(frozen=True, slots=True)
class _StageSpec:
    """Descriptor for a running pipeline stage."""

    role: str


class _StageFailure(Exception):
    """Wrapper exception capturing the originating stage failure."""

    def __init__(self, spec: _StageSpec, error: BaseException) -> None:
        super().__init__(str(error))
        self.spec = spec
        self.error = error


class IngestionOrchestrator:
    """Drive pages → enrichment → reference data → persistence for one run.

    ``IDLE → FETCHING_PAGES ⇄ ENRICHING → RESOLVING_REFERENCE_DATA →
    PERSISTING → DONE``; ``FAILED`` is reachable from every state.  Genre and
    person registries are only touched in the resolve phase, after every
    enrichment task has joined, so abandoned fetches cannot leave them
    half-updated.
    """

    def __init__(
        self,
        *,
        ingestion_stage: IngestionStage,
        enrichment_scheduler: EnrichmentScheduler,
        genre_catalog: GenreCatalog,
        deduplicator: IdentityDeduplicator,
        persistence_stage: PersistenceStage,
        cancel_event: asyncio.Event | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._ingestion_stage = ingestion_stage
        self._enrichment_scheduler = enrichment_scheduler
        self._genre_catalog = genre_catalog
        self._deduplicator = deduplicator
        self._persistence_stage = persistence_stage
        self._cancel_event = cancel_event or asyncio.Event()
        self._logger = logger or LOGGER
        self._state = RunState.IDLE
        self._state_history: list[RunState] = [RunState.IDLE]
        self._report = IngestionReport(pages_requested=ingestion_stage.page_count)

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def state_history(self) -> list[RunState]:
        return list(self._state_history)

    @property
    def report(self) -> IngestionReport:
        return self._report

    @property
    def cancel_event(self) -> asyncio.Event:
        return self._cancel_event

    def cancel(self) -> None:
        """Request cancellation; in-flight fetches are abandoned."""

        self._cancel_event.set()

    async def run(self) -> IngestionReport:
        """Execute one ingestion run and return its report.

        Unrecoverable errors move the run to ``FAILED`` and are re-raised after
        being recorded on :attr:`report`.
        """

        if self._state is not RunState.IDLE:
            raise RuntimeError("An orchestrator can only run once")
        report = self._report
        self._logger.info(
            "Launching ingestion run for %d page(s).", report.pages_requested
        )
        try:
            movies = await self._run_stage(
                _StageSpec(role="ingestion"), self._fetch_and_enrich()
            )
            if self._cancelled():
                return self._finish_cancelled()

            self._transition(RunState.RESOLVING_REFERENCE_DATA)
            resolved = await self._run_stage(
                _StageSpec(role="reference data"), self._resolve_all(movies)
            )
            if self._cancelled():
                return self._finish_cancelled()

            self._transition(RunState.PERSISTING)
            outcomes = await self._run_stage(
                _StageSpec(role="persistence"),
                self._persistence_stage.run(resolved, cancel_event=self._cancel_event),
            )
            self._record_outcomes(outcomes)
            if self._cancelled():
                return self._finish_cancelled()
        except _StageFailure as failure:
            self._handle_failure(failure)
            raise failure.error

        self._transition(RunState.DONE)
        self._logger.info(report.summary(), extra={"event": "ingestion_summary"})
        return report

    async def _run_stage(self, spec: _StageSpec, work: Awaitable[T]) -> T:
        """Await *work* and wrap unexpected exceptions with stage metadata."""

        try:
            return await work
        except asyncio.CancelledError:
            self._logger.debug("%s cancelled.", self._describe_stage(spec))
            raise
        except Exception as exc:
            raise _StageFailure(spec, exc) from exc

    async def _fetch_and_enrich(self) -> list[MovieRecord]:
        report = self._report
        movies: list[MovieRecord] = []
        self._transition(RunState.FETCHING_PAGES)
        async for result in self._ingestion_stage.run(self._cancel_event):
            if isinstance(result, PageFailure):
                report.failed_pages.append(result)
                continue
            report.pages_fetched += 1
            await self._enrich_page(result)
            movies.extend(result.movies)
            if not self._cancelled():
                self._transition(RunState.FETCHING_PAGES)
        return movies

    async def _enrich_page(self, batch: PageBatch) -> None:
        self._transition(RunState.ENRICHING)
        summary = await self._enrichment_scheduler.enrich(
            batch.movies, cancel_event=self._cancel_event
        )
        if summary.without_credits:
            self._report.warnings.append(
                f"page {batch.page}: {summary.without_credits} movie(s) persisted without credits"
            )

    async def _resolve_all(self, movies: list[MovieRecord]) -> list[ResolvedMovie]:
        resolved: list[ResolvedMovie] = []
        for movie in movies:
            resolved.append(self._resolve_movie(movie))
            await asyncio.sleep(0)
            if self._cancelled():
                break
        self._report.genres_resolved = len(self._genre_catalog)
        self._report.people_admitted = len(self._deduplicator)
        self._report.people_created = self._persistence_stage.people_created
        self._logger.info(
            "Resolved reference data: %d genre(s), %d distinct people.",
            self._report.genres_resolved,
            self._report.people_admitted,
        )
        return resolved

    def _resolve_movie(self, movie: MovieRecord) -> ResolvedMovie:
        resolved = ResolvedMovie(movie=movie)
        for code in movie.genre_codes:
            handle = self._resolve_genre(movie, code, resolved.warnings)
            if handle is not None and handle not in resolved.genres:
                resolved.genres.append(handle)
        resolved.cast = self._share_people(movie, movie.cast, resolved.warnings)
        resolved.directors = self._share_people(
            movie, movie.directors, resolved.warnings
        )
        self._report.warnings.extend(resolved.warnings)
        return resolved

    def _resolve_genre(
        self, movie: MovieRecord, code: int, warnings: list[str]
    ) -> GenreHandle | None:
        try:
            return self._genre_catalog.resolve(code)
        except UnmappedGenreError as exc:
            message = f"movie {movie.external_id}: {exc}; genre not attached"
        except PersistenceError as exc:
            message = f"movie {movie.external_id}: genre {code} unavailable: {exc}"
        self._logger.warning(message)
        warnings.append(message)
        return None

    def _share_people(
        self,
        movie: MovieRecord,
        people: list[PersonRecord],
        warnings: list[str],
    ) -> list[SharedPerson]:
        """Map each credited person to the run's shared handle, keeping all entries."""

        shared: list[SharedPerson] = []
        for person in people:
            admission = self._deduplicator.admit(person)
            handle = admission.handle
            if admission.is_first:
                try:
                    self._persistence_stage.bind_person(handle)
                except PersistenceError as exc:
                    self._logger.warning(
                        "Could not store person %s: %s", person.external_id, exc
                    )
            if not handle.is_bound:
                warnings.append(
                    f"movie {movie.external_id}: person {person.external_id} "
                    "could not be stored; credit dropped"
                )
                continue
            shared.append(handle)
        return shared

    def _record_outcomes(self, outcomes: list[PersistOutcome]) -> None:
        for outcome in outcomes:
            movie = outcome.movie
            if outcome.persisted:
                self._report.persisted.append((movie.external_id, movie.title))
            else:
                self._report.skipped.append(
                    SkippedMovie(
                        external_id=movie.external_id,
                        title=movie.title,
                        reason=outcome.error or "unknown",
                    )
                )

    def _cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def _finish_cancelled(self) -> IngestionReport:
        self._report.cancelled = True
        self._report.failure = "cancelled"
        self._transition(RunState.FAILED)
        self._logger.warning(
            self._report.summary(), extra={"event": "ingestion_summary"}
        )
        return self._report

    def _handle_failure(self, failure: _StageFailure) -> None:
        self._report.failure = str(failure.error)
        self._transition(RunState.FAILED)
        self._logger.error(
            "%s failed: %s",
            self._describe_stage(failure.spec),
            failure.error,
            exc_info=failure.error,
        )

    def _transition(self, state: RunState) -> None:
        if state is self._state:
            return
        self._logger.debug("Run state %s -> %s.", self._state.value, state.value)
        self._state = state
        self._state_history.append(state)
        self._report.state = state

    def _describe_stage(self, spec: _StageSpec) -> str:
        """Return a human-friendly name for *spec*."""

        return f"{spec.role.capitalize()} stage"


__all__ = [
    "IngestionOrchestrator",
    "IngestionReport",
    "RunState",
    "SkippedMovie",
]
