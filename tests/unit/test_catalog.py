from __future__ import annotations

import asyncio

import httpx
import pytest

from api.core.catalog import CatalogError, SearchOptions, TMDBCatalog, build_discover_params
from etl.tmdb_mapping import map_work_payload


class StubTMDBClient:
    def __init__(self, results=None, details=None, error=None):
        self.results = results or []
        self.detail_payload = details or {}
        self.error = error
        self.discover_calls = []
        self.closed = False

    async def discover_movies(self, params, pages=1):
        self.discover_calls.append((params, pages))
        if self.error is not None:
            raise self.error
        return list(self.results)

    async def details(self, tmdb_id):
        if self.error is not None:
            raise self.error
        return self.detail_payload

    async def search(self, query, year=None):
        if self.error is not None:
            raise self.error
        return {"results": list(self.results)}

    async def aclose(self):
        self.closed = True


def test_discover_params_defaults_to_original_language_and_popularity():
    params = build_discover_params(28, SearchOptions())

    assert params == {
        "with_genres": "28",
        "sort_by": "popularity.desc",
        "include_adult": "false",
        "with_original_language": "en",
    }


def test_discover_params_carry_every_filter():
    options = SearchOptions(
        include_foreign_language=True,
        keyword_ids=tuple(range(1, 11)),
        min_votes=100,
        min_rating=7.0,
        start_year=1990,
        end_year=1999,
        sort_by="vote_average.desc",
        platforms=("netflix", "Max"),
    )

    params = build_discover_params(18, options)

    assert "with_original_language" not in params
    assert params["with_keywords"] == "1|2|3|4|5|6|7|8"
    assert params["primary_release_date.gte"] == "1990-01-01"
    assert params["primary_release_date.lte"] == "1999-12-31"
    assert params["vote_count.gte"] == 100
    assert params["vote_average.gte"] == 7.0
    assert params["sort_by"] == "vote_average.desc"
    assert params["with_watch_providers"] == "8|1899"
    assert params["watch_region"] == "US"


def test_discover_params_carry_vote_ceiling():
    options = SearchOptions(min_votes=100, max_votes=5000, min_rating=7.0)

    params = build_discover_params(28, options)

    assert params["vote_count.gte"] == 100
    assert params["vote_count.lte"] == 5000
    assert "vote_count.lte" not in build_discover_params(28, SearchOptions(min_votes=100))


def test_search_by_genre_maps_and_caches():
    client = StubTMDBClient(
        results=[
            {"id": 1, "title": "A", "release_date": "2012-05-01", "genre_ids": [28, 12]},
            {"id": 1, "title": "A again"},
            {"title": "no id"},
            {"id": 2, "title": "B", "release_date": ""},
        ]
    )
    catalog = TMDBCatalog(client)
    options = SearchOptions(pages=3)

    async def scenario():
        first = await catalog.search_by_genre(28, options)
        second = await catalog.search_by_genre(28, options)
        return first, second

    first, second = asyncio.run(scenario())

    assert [w.id for w in first] == [1, 2]
    assert first[0].release_year == 2012
    assert first[1].release_year is None
    assert second == first
    assert len(client.discover_calls) == 1
    assert client.discover_calls[0][1] == 3


def test_http_errors_become_catalog_errors():
    catalog = TMDBCatalog(StubTMDBClient(error=httpx.ConnectError("down")))

    with pytest.raises(CatalogError):
        asyncio.run(catalog.search_by_genre(28, SearchOptions()))
    with pytest.raises(CatalogError):
        asyncio.run(catalog.fetch_work_meta(5))
    with pytest.raises(CatalogError):
        asyncio.run(catalog.search_title("Heat", 1995))


def test_search_title_returns_first_match_or_none():
    found = asyncio.run(
        TMDBCatalog(StubTMDBClient(results=[{"id": 949, "title": "Heat"}])).search_title("Heat")
    )
    missing = asyncio.run(TMDBCatalog(StubTMDBClient()).search_title("Nothing"))

    assert found.id == 949
    assert missing is None


def test_aclose_closes_client():
    client = StubTMDBClient()
    asyncio.run(TMDBCatalog(client).aclose())
    assert client.closed


def test_details_payload_maps_people_and_keywords():
    payload = {
        "id": 949,
        "title": "Heat",
        "release_date": "1995-12-15",
        "runtime": 170,
        "genres": [{"id": 28, "name": "Action"}, {"id": 80, "name": "Crime"}],
        "vote_average": "7.9",
        "vote_count": None,
        "original_language": "en",
        "poster_path": "/heat.jpg",
        "keywords": {"keywords": [{"id": 10051}, {"id": None}]},
        "credits": {
            "cast": [{"id": 1158}, {"id": 380}],
            "crew": [
                {"id": 638, "job": "Director"},
                {"id": 638, "job": "Screenplay"},
                {"id": 1104, "job": "Director of Photography"},
                {"id": 99, "job": "Editor"},
            ],
        },
    }

    work = map_work_payload(payload)

    assert work.genre_ids == [28, 80]
    assert work.release_year == 1995
    assert work.runtime == 170
    assert work.vote_average == 7.9
    assert work.vote_count == 0
    assert work.keyword_ids == [10051]
    assert work.top_cast_ids == [1158, 380]
    assert work.director_ids == [638]
    assert work.writer_ids == [638]
    assert work.cinematographer_ids == [1104]
    assert work.poster_url == "https://image.tmdb.org/t/p/w500/heat.jpg"
