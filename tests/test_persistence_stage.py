import asyncio

import pytest
from sqlalchemy import func, select

from movie_catalog.common.errors import DuplicateEntityError, PersistenceError
from movie_catalog.common.types import MovieRecord, PersonRecord
from movie_catalog.loader.genres import GenreCatalog
from movie_catalog.loader.identity import SharedPerson
from movie_catalog.loader.pipeline.persistence import (
    PersistenceStage,
    PersistOutcome,
    ResolvedMovie,
)
from movie_catalog.storage.models import Movie, Person


def _shared(stage: PersistenceStage, external_id: int, name: str) -> SharedPerson:
    return stage.bind_person(SharedPerson.from_record(PersonRecord(external_id, name)))


def test_persistence_stage_logger_name(gateway) -> None:
    stage = PersistenceStage(gateway=gateway)
    assert stage.logger.name == "movie_catalog.loader.persistence"
    assert stage.gateway is gateway


def test_bind_person_creates_then_reuses_rows(gateway) -> None:
    stage = PersistenceStage(gateway=gateway)
    first = _shared(stage, 7, "Director")
    assert first.is_bound
    assert stage.people_created == 1

    again = PersistenceStage(gateway=gateway)
    reused = _shared(again, 7, "Director")
    assert reused.stored_id == first.stored_id
    assert again.people_created == 0
    assert stage.bind_person(first) is first

    with gateway.session() as session:
        assert session.scalar(select(func.count()).select_from(Person)) == 1


def test_run_persists_each_movie_with_shared_references(gateway) -> None:
    stage = PersistenceStage(gateway=gateway)
    drama = GenreCatalog(gateway).resolve(18)
    director = _shared(stage, 7, "Director")
    actor = _shared(stage, 8, "Actor")
    resolved = [
        ResolvedMovie(
            movie=MovieRecord(1, "A"), genres=[drama], cast=[actor], directors=[director]
        ),
        ResolvedMovie(movie=MovieRecord(2, "B"), genres=[drama], directors=[director]),
    ]
    completed: list[PersistOutcome] = []
    stage = PersistenceStage(gateway=gateway, on_movie_complete=completed.append)

    outcomes = asyncio.run(stage.run(resolved))

    assert [outcome.persisted for outcome in outcomes] == [True, True]
    assert completed == outcomes
    with gateway.session() as session:
        first = gateway.get_movie(session, 1)
        second = gateway.get_movie(session, 2)
        assert first.directors[0].id == second.directors[0].id == director.stored_id
        assert [genre.name for genre in second.genres] == ["DRAMA"]
        assert [person.name for person in first.cast] == ["Actor"]


def test_run_isolates_duplicate_movie(gateway) -> None:
    stage = PersistenceStage(gateway=gateway)
    resolved = [
        ResolvedMovie(movie=MovieRecord(1, "First")),
        ResolvedMovie(movie=MovieRecord(1, "Again")),
        ResolvedMovie(movie=MovieRecord(2, "Sibling")),
    ]

    outcomes = asyncio.run(stage.run(resolved))

    assert [outcome.persisted for outcome in outcomes] == [True, False, True]
    assert outcomes[1].error.startswith("duplicate:")
    with gateway.session() as session:
        titles = sorted(session.scalars(select(Movie.title)))
    assert titles == ["First", "Sibling"]


def test_run_maps_storage_failure_to_skip(gateway, monkeypatch) -> None:
    stage = PersistenceStage(gateway=gateway)
    original = stage.persist

    def flaky(resolved: ResolvedMovie) -> int:
        if resolved.movie.external_id == 1:
            raise PersistenceError("disk full")
        return original(resolved)

    monkeypatch.setattr(stage, "persist", flaky)

    outcomes = asyncio.run(
        stage.run([ResolvedMovie(movie=MovieRecord(1, "A")), ResolvedMovie(movie=MovieRecord(2, "B"))])
    )

    assert outcomes[0].error == "persistence: disk full"
    assert outcomes[1].persisted


def test_run_stops_between_movies_when_cancelled(gateway) -> None:
    cancel_event = asyncio.Event()

    def cancel_after_first(_outcome: PersistOutcome) -> None:
        cancel_event.set()

    stage = PersistenceStage(gateway=gateway, on_movie_complete=cancel_after_first)
    resolved = [ResolvedMovie(movie=MovieRecord(movie_id, f"M{movie_id}")) for movie_id in (1, 2, 3)]

    outcomes = asyncio.run(stage.run(resolved, cancel_event=cancel_event))

    assert len(outcomes) == 1
    with gateway.session() as session:
        assert session.scalar(select(func.count()).select_from(Movie)) == 1


def test_unbound_people_are_not_linked(gateway) -> None:
    stage = PersistenceStage(gateway=gateway)
    ghost = SharedPerson.from_record(PersonRecord(99, "Ghost"))
    movie_id = stage.persist(ResolvedMovie(movie=MovieRecord(5, "E"), cast=[ghost]))
    assert movie_id > 0
    with gateway.session() as session:
        assert gateway.get_movie(session, 5).cast == []


def test_persist_requires_fresh_transaction_per_movie(gateway) -> None:
    stage = PersistenceStage(gateway=gateway)
    stage.persist(ResolvedMovie(movie=MovieRecord(1, "A")))
    with pytest.raises(DuplicateEntityError):
        stage.persist(ResolvedMovie(movie=MovieRecord(1, "A")))
    stage.persist(ResolvedMovie(movie=MovieRecord(2, "B")))
    with gateway.session() as session:
        assert session.scalar(select(func.count()).select_from(Movie)) == 2
