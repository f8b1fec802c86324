from datetime import date

import pytest

from movie_catalog.common.types import MovieRecord, PersonRecord
from movie_catalog.storage import queries


@pytest.fixture
def catalog(gateway):
    with gateway.transaction() as session:
        actor = gateway.create_person(session, PersonRecord(1, "Actor")).id
        director = gateway.create_person(session, PersonRecord(2, "Director")).id
        drama = gateway.create_genre(session, "DRAMA").id
    rows = [
        (MovieRecord(10, "Bravo", date(2021, 1, 1), 6.0), [actor], [director]),
        (MovieRecord(11, "Alpha", date(2019, 6, 1), 8.5), [actor], []),
        (MovieRecord(12, "Charlie", None, 4.0), [], [director]),
    ]
    for movie, cast_ids, director_ids in rows:
        with gateway.transaction() as session:
            gateway.create_movie(
                session,
                movie,
                genre_ids=[drama],
                cast_ids=cast_ids,
                director_ids=director_ids,
            )
    return gateway


def test_sorted_by_title(catalog):
    movies = queries.sorted_by_title(catalog)
    assert [movie.title for movie in movies] == ["Alpha", "Bravo", "Charlie"]
    assert movies[0].genres == ["DRAMA"]
    assert movies[0].cast == ["Actor"]


def test_sorted_by_release_date_puts_unknown_last(catalog):
    movies = queries.sorted_by_release_date(catalog)
    assert [movie.title for movie in movies] == ["Alpha", "Bravo", "Charlie"]
    assert movies[-1].release_date is None
    assert str(movies[-1]) == "Charlie (unknown) rating=4.0"


def test_top_and_lowest_rated(catalog):
    assert [movie.title for movie in queries.top_rated(catalog, 2)] == [
        "Alpha",
        "Bravo",
    ]
    assert [movie.title for movie in queries.lowest_rated(catalog, 1)] == ["Charlie"]
    with pytest.raises(ValueError):
        queries.top_rated(catalog, 0)


def test_average_rating(catalog, gateway):
    assert queries.average_rating(catalog) == pytest.approx((6.0 + 8.5 + 4.0) / 3)


def test_average_rating_empty(gateway):
    assert queries.average_rating(gateway) == 0.0
    assert queries.sorted_by_title(gateway) == []


def test_movies_with_person_by_role(catalog):
    acted = queries.movies_with_person(catalog, 1)
    directed = queries.movies_with_person(catalog, 2, role="director")
    assert [movie.title for movie in acted] == ["Alpha", "Bravo"]
    assert [movie.title for movie in directed] == ["Bravo", "Charlie"]
    assert queries.movies_with_person(catalog, 3) == []


def test_movies_by_title_is_exact(catalog):
    assert [movie.title for movie in queries.movies_by_title(catalog, "Alpha")] == [
        "Alpha"
    ]
    assert queries.movies_by_title(catalog, "alpha") == []
    assert queries.movies_by_title(catalog, "Alph") == []
