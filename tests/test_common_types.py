from datetime import date

import pytest
from pydantic import ValidationError

from movie_catalog.common.types import (
    DiscoverPage,
    MovieCredits,
    MovieDetails,
    PersonRecord,
)


def test_discover_page_records_keep_api_order():
    page = DiscoverPage.model_validate(
        {
            "page": 1,
            "total_pages": 4,
            "results": [
                {
                    "id": 2,
                    "original_title": "B",
                    "release_date": "2020-02-02",
                    "vote_average": 6.5,
                    "genre_ids": [18, 35],
                },
                {
                    "id": 1,
                    "original_title": "A",
                    "release_date": "",
                    "vote_average": None,
                },
            ],
        }
    )
    records = page.records()
    assert [record.external_id for record in records] == [2, 1]
    assert records[0].release_date == date(2020, 2, 2)
    assert records[0].genre_codes == [18, 35]
    assert records[1].release_date is None
    assert records[1].vote_average == 0.0
    assert records[1].cast == [] and records[1].directors == []
    assert page.total_pages == 4


def test_discover_page_requires_results():
    with pytest.raises(ValidationError):
        DiscoverPage.model_validate({"page": 1, "total_pages": 1})


def test_movie_credits_directors_filters_crew_in_order():
    credits = MovieCredits.model_validate(
        {
            "cast": [{"id": 5, "name": "Actor", "gender": 2}],
            "crew": [
                {"id": 7, "name": "First", "job": "Director"},
                {"id": 8, "name": "Writer", "job": "Screenplay"},
                {"id": 9, "name": "Second", "job": "Director"},
            ],
        }
    )
    assert [member.id for member in credits.directors()] == [7, 9]
    assert credits.cast[0].to_person() == PersonRecord(5, "Actor", 2)
    assert not credits.is_empty


def test_movie_credits_missing_or_null_lists_are_empty():
    assert MovieCredits.model_validate({"crew": []}).cast == []
    credits = MovieCredits.model_validate({"cast": None, "crew": None})
    assert credits.is_empty


def test_movie_details_requires_credits():
    with pytest.raises(ValidationError):
        MovieDetails.model_validate({"id": 1})
