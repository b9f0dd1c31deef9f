from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

import httpx
from cachetools import TTLCache

from api.config import DEFAULT_LANGUAGE, TMDB_CACHE_TTL, WATCH_REGION
from api.core.platforms import provider_ids
from api.core.works import CandidateWork
from etl.tmdb_client import TMDBClient
from etl.tmdb_mapping import map_work_payload

logger = logging.getLogger(__name__)

MAX_KEYWORDS = 8


class CatalogError(RuntimeError):
    pass


@dataclass(frozen=True)
class SearchOptions:
    include_foreign_language: bool = False
    keyword_ids: Tuple[int, ...] = ()
    min_votes: Optional[int] = None
    max_votes: Optional[int] = None
    min_rating: Optional[float] = None
    start_year: Optional[int] = None
    end_year: Optional[int] = None
    sort_by: Optional[str] = None
    platforms: Tuple[str, ...] = ()
    pages: int = 1

    def without_keywords(self) -> "SearchOptions":
        return replace(self, keyword_ids=())

    def with_foreign_language(self) -> "SearchOptions":
        return replace(self, include_foreign_language=True)


class CatalogProvider(Protocol):
    async def search_by_genre(
        self, genre_id: int, options: SearchOptions
    ) -> List[CandidateWork]: ...

    async def fetch_work_meta(self, work_id: int) -> CandidateWork: ...


def build_discover_params(
    genre_id: int, options: SearchOptions, language: str = DEFAULT_LANGUAGE
) -> Dict[str, Any]:
    params: Dict[str, Any] = {
        "with_genres": str(genre_id),
        "sort_by": options.sort_by or "popularity.desc",
        "include_adult": "false",
    }
    if not options.include_foreign_language:
        params["with_original_language"] = language
    if options.keyword_ids:
        # pipe = OR; a comma would require every keyword at once
        params["with_keywords"] = "|".join(
            str(k) for k in options.keyword_ids[:MAX_KEYWORDS]
        )
    if options.start_year:
        params["primary_release_date.gte"] = f"{options.start_year}-01-01"
    if options.end_year:
        params["primary_release_date.lte"] = f"{options.end_year}-12-31"
    if options.min_votes:
        params["vote_count.gte"] = options.min_votes
    if options.max_votes:
        params["vote_count.lte"] = options.max_votes
    if options.min_rating:
        params["vote_average.gte"] = options.min_rating
    providers = provider_ids(options.platforms)
    if providers:
        params["with_watch_providers"] = "|".join(str(p) for p in providers)
        params["watch_region"] = WATCH_REGION
    return params


class TMDBCatalog:
    """TMDB-backed catalog provider with a short-lived search cache."""

    def __init__(self, client: TMDBClient, cache_ttl: int = TMDB_CACHE_TTL):
        self.client = client
        self._cache: TTLCache[Tuple[int, SearchOptions], List[CandidateWork]] = TTLCache(
            maxsize=256, ttl=cache_ttl
        )

    async def search_by_genre(
        self, genre_id: int, options: SearchOptions
    ) -> List[CandidateWork]:
        key = (genre_id, options)
        cached = self._cache.get(key)
        if cached is not None:
            return list(cached)
        params = build_discover_params(genre_id, options)
        try:
            raw = await self.client.discover_movies(params, pages=max(1, options.pages))
        except httpx.HTTPError as exc:
            raise CatalogError(f"TMDB discover failed for genre {genre_id}: {exc}") from exc
        works = _map_results(raw)
        logger.debug(
            "TMDB discover | genre=%s params=%s -> %d works", genre_id, params, len(works)
        )
        self._cache[key] = works
        return list(works)

    async def fetch_work_meta(self, work_id: int) -> CandidateWork:
        try:
            data = await self.client.details(work_id)
        except httpx.HTTPError as exc:
            raise CatalogError(f"TMDB details failed for work {work_id}: {exc}") from exc
        return map_work_payload(data)

    async def search_title(
        self, title: str, year: int | None = None
    ) -> Optional[CandidateWork]:
        try:
            data = await self.client.search(title, year=year)
        except httpx.HTTPError as exc:
            raise CatalogError(f"TMDB search failed for '{title}': {exc}") from exc
        results = _map_results(data.get("results") or [])
        return results[0] if results else None

    async def aclose(self) -> None:
        await self.client.aclose()


def _map_results(raw: Sequence[Dict[str, Any]]) -> List[CandidateWork]:
    works: List[CandidateWork] = []
    seen: set[int] = set()
    for payload in raw:
        if payload.get("id") is None:
            continue
        work = map_work_payload(payload)
        if work.id in seen:
            continue
        seen.add(work.id)
        works.append(work)
    return works
