from __future__ import annotations
import asyncio
import time
from typing import Any, Dict, List
import httpx

TMDB_BASE = "https://api.themoviedb.org/3"


class TMDBClient:
    def __init__(self, api_key: str, timeout: float = 15.0, rate_per_sec: float = 3.0):
        self.api_key = api_key
        self.timeout = timeout
        self.rate = rate_per_sec
        self._last = 0.0
        self._client = httpx.AsyncClient(timeout=self.timeout)

    async def _throttle(self):
        dt = time.time() - self._last
        min_gap = 1.0 / max(self.rate, 1e-6)
        if dt < min_gap:
            await asyncio.sleep(min_gap - dt)
        self._last = time.time()

    async def _get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        await self._throttle()
        q = dict(params)
        q["api_key"] = self.api_key
        r = await self._client.get(f"{TMDB_BASE}{path}", params=q)
        r.raise_for_status()
        return r.json()

    async def discover_movies(
        self, params: Dict[str, Any], pages: int = 1
    ) -> List[Dict[str, Any]]:
        """
        /discover/movie across `pages` pages (~20 results each). Stops early when
        TMDB reports no further pages.
        """
        results: List[Dict[str, Any]] = []
        for page in range(1, pages + 1):
            data = await self._get("/discover/movie", {**params, "page": page})
            results.extend(data.get("results", []))
            if page >= int(data.get("total_pages") or 1):
                break
        return results

    async def details(self, tmdb_id: int) -> Dict[str, Any]:
        return await self._get(
            f"/movie/{tmdb_id}",
            {"language": "en-US", "append_to_response": "credits,keywords"},
        )

    async def search(self, query: str, year: int | None = None) -> Dict[str, Any]:
        params: Dict[str, Any] = {"query": query}
        if year:
            params["year"] = year
        return await self._get("/search/movie", params)

    async def aclose(self):
        await self._client.aclose()
