"""Command-line interface for the loader pipeline."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from datetime import datetime
from typing import Any

import click
from pydantic import ValidationError

from .. import loader
from ..common.errors import MovieCatalogError
from ..config import Settings
from ..storage import queries
from ..storage.gateway import StorageGateway
from .pipeline.orchestrator import IngestionReport, RunState
from .pipeline.persistence import PersistOutcome

LOG_LEVELS = ["critical", "error", "warning", "info", "debug", "notset"]


def _configure_logging(log_level: str) -> None:
    logging.basicConfig(level=getattr(logging, log_level.upper(), logging.INFO))


def _load_settings(**overrides: Any) -> Settings:
    """Build :class:`Settings` from the environment with CLI overrides applied."""

    values = {key: value for key, value in overrides.items() if value is not None}
    try:
        return Settings(**values)
    except ValidationError as exc:
        raise click.BadParameter(str(exc)) from exc


def _echo_outcome(outcome: PersistOutcome) -> None:
    movie = outcome.movie
    if outcome.persisted:
        click.echo(f"  stored {movie.external_id} ({movie.title})")
    else:
        click.echo(f"  not stored {movie.external_id} ({movie.title})")


async def _ingest(
    config: loader.LoaderConfig, *, progress: bool = False
) -> IngestionReport:
    cancel_event = asyncio.Event()
    event_loop = asyncio.get_running_loop()
    # Signal handlers are only available on the main thread of Unix loops.
    with contextlib.suppress(NotImplementedError, RuntimeError):
        event_loop.add_signal_handler(signal.SIGINT, cancel_event.set)
    try:
        return await loader.run(
            config,
            cancel_event=cancel_event,
            on_movie_complete=_echo_outcome if progress else None,
        )
    finally:
        with contextlib.suppress(NotImplementedError, RuntimeError):
            event_loop.remove_signal_handler(signal.SIGINT)


def _echo_report(report: IngestionReport) -> None:
    click.echo(report.summary())
    for failure in report.failed_pages:
        click.echo(f"  page {failure.page} failed: {failure.reason}")
    for skipped in report.skipped:
        click.echo(
            f"  skipped {skipped.external_id} ({skipped.title}): {skipped.reason}"
        )
    for warning in report.warnings:
        click.echo(f"  warning: {warning}", err=True)


def _echo_movies(movies: list[queries.MovieSummary]) -> None:
    for movie in movies:
        click.echo(str(movie))
        if movie.genres:
            click.echo(f"    genres: {', '.join(movie.genres)}")
        if movie.directors:
            click.echo(f"    directors: {', '.join(movie.directors)}")
        if movie.cast:
            click.echo(f"    cast: {', '.join(movie.cast)}")


@click.group()
def main() -> None:
    """Ingest TMDb movies into a relational catalog and query it."""


@main.command()
@click.option(
    "--tmdb-api-key",
    envvar="TMDB_API_KEY",
    show_envvar=True,
    required=False,
    help="TMDb API key",
)
@click.option(
    "--pages",
    type=int,
    required=False,
    help="Number of discovery pages to request [env var: INGEST_PAGES]",
)
@click.option(
    "--workers",
    type=int,
    required=False,
    help="Number of concurrent credits workers [env var: ENRICHMENT_WORKERS]",
)
@click.option(
    "--queue-size",
    type=int,
    required=False,
    help="Capacity of the enrichment work queue [env var: ENRICHMENT_QUEUE_SIZE]",
)
@click.option(
    "--language",
    required=False,
    help="Original language filter [env var: DISCOVER_LANGUAGE]",
)
@click.option(
    "--release-date-gte",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    required=False,
    help="Earliest primary release date [env var: DISCOVER_RELEASE_DATE_GTE]",
)
@click.option(
    "--database-url",
    required=False,
    help="SQLAlchemy database URL [env var: DATABASE_URL]",
)
@click.option(
    "--list/--no-list",
    "list_movies",
    default=False,
    show_default=True,
    help="Print the stored movies sorted by title after the run",
)
@click.option(
    "--progress/--no-progress",
    default=False,
    show_default=True,
    help="Print a line as each movie is stored or skipped",
)
@click.option(
    "--log-level",
    envvar="LOG_LEVEL",
    show_envvar=True,
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="info",
    show_default=True,
    help="Logging level for console output",
)
def ingest(
    tmdb_api_key: str | None,
    pages: int | None,
    workers: int | None,
    queue_size: int | None,
    language: str | None,
    release_date_gte: datetime | None,
    database_url: str | None,
    list_movies: bool,
    progress: bool,
    log_level: str,
) -> None:
    """Run one ingestion and print what was persisted and skipped."""

    _configure_logging(log_level)
    settings = _load_settings(
        TMDB_API_KEY=tmdb_api_key,
        INGEST_PAGES=pages,
        ENRICHMENT_WORKERS=workers,
        ENRICHMENT_QUEUE_SIZE=queue_size,
        DISCOVER_LANGUAGE=language,
        DISCOVER_RELEASE_DATE_GTE=(
            release_date_gte.date() if release_date_gte is not None else None
        ),
        DATABASE_URL=database_url,
    )
    config = loader.LoaderConfig.from_settings(settings)
    try:
        report = asyncio.run(_ingest(config, progress=progress))
    except (MovieCatalogError, RuntimeError, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc

    _echo_report(report)
    if list_movies:
        gateway = StorageGateway.from_url(config.database_url)
        try:
            _echo_movies(queries.sorted_by_title(gateway))
        finally:
            gateway.dispose()
    if report.state is RunState.FAILED:
        raise click.exceptions.Exit(1)


@main.command("list")
@click.option(
    "--database-url",
    required=False,
    help="SQLAlchemy database URL [env var: DATABASE_URL]",
)
@click.option(
    "--sort",
    type=click.Choice(["title", "release-date"]),
    default="title",
    show_default=True,
    help="Sort order of the listing",
)
@click.option("--top", type=int, default=None, help="Only the N best rated movies")
@click.option("--bottom", type=int, default=None, help="Only the N worst rated movies")
@click.option(
    "--person",
    type=int,
    default=None,
    help="Only movies crediting the person with this TMDb id",
)
@click.option(
    "--role",
    type=click.Choice(["cast", "director"]),
    default="cast",
    show_default=True,
    help="Credit role used with --person",
)
@click.option("--title", default=None, help="Only movies with exactly this title")
def list_command(
    database_url: str | None,
    sort: str,
    top: int | None,
    bottom: int | None,
    person: int | None,
    role: str,
    title: str | None,
) -> None:
    """List stored movies."""

    selections = [value for value in (top, bottom, person, title) if value is not None]
    if len(selections) > 1:
        raise click.UsageError(
            "--top, --bottom, --person and --title are mutually exclusive"
        )
    for name, value in (("--top", top), ("--bottom", bottom)):
        if value is not None and value <= 0:
            raise click.BadParameter("must be positive", param_hint=name)

    settings = _load_settings(DATABASE_URL=database_url)
    gateway = StorageGateway.from_url(settings.database_url)
    try:
        gateway.create_schema()
        if top is not None:
            movies = queries.top_rated(gateway, top)
        elif bottom is not None:
            movies = queries.lowest_rated(gateway, bottom)
        elif person is not None:
            movies = queries.movies_with_person(gateway, person, role=role)
        elif title is not None:
            movies = queries.movies_by_title(gateway, title)
        elif sort == "release-date":
            movies = queries.sorted_by_release_date(gateway)
        else:
            movies = queries.sorted_by_title(gateway)
        _echo_movies(movies)
        click.echo(
            f"{len(movies)} movie(s); average rating "
            f"{queries.average_rating(gateway):.2f}"
        )
    finally:
        gateway.dispose()


if __name__ == "__main__":
    main()
