from __future__ import annotations

import asyncio
import logging
from collections import Counter
from typing import List, Optional, Protocol, Sequence, Tuple

from api.core.taste_blend import TasteProfile, TasteWeights
from api.core.works import CandidateWork, decade_of
from etl.letterboxd_import import HistoryEntry

logger = logging.getLogger(__name__)

LOVED_MIN_RATING = 4.0
MAX_LOVED_WORKS = 10
PREFERRED_DECADES = 2
DEFAULT_AVERAGE_RATING = 3.0


class TitleResolver(Protocol):
    async def search_title(
        self, title: str, year: int | None = None
    ) -> Optional[CandidateWork]: ...


def loved_entries(entries: Sequence[HistoryEntry]) -> List[HistoryEntry]:
    return [e for e in entries if e.rating >= LOVED_MIN_RATING][:MAX_LOVED_WORKS]


def preferred_decades(entries: Sequence[HistoryEntry]) -> List[int]:
    counts = Counter(decade_of(e.year) for e in entries if e.year)
    return [decade for decade, _ in counts.most_common(PREFERRED_DECADES)]


async def _resolve(
    resolver: TitleResolver, entries: Sequence[HistoryEntry]
) -> List[Tuple[HistoryEntry, CandidateWork]]:
    found = await asyncio.gather(
        *(resolver.search_title(e.title, year=e.year) for e in entries),
        return_exceptions=True,
    )
    works: List[Tuple[HistoryEntry, CandidateWork]] = []
    for entry, outcome in zip(entries, found):
        if isinstance(outcome, Exception):
            logger.warning("Could not resolve '%s' (%s): %s", entry.title, entry.year, outcome)
            continue
        if outcome is None:
            logger.info("No catalog match for '%s' (%s)", entry.title, entry.year)
            continue
        works.append((entry, outcome))
    return works


async def build_taste_profile(
    entries: Sequence[HistoryEntry],
    resolver: Optional[TitleResolver] = None,
    weights: Optional[TasteWeights] = None,
) -> TasteProfile:
    """
    Derive a taste profile from an imported rating history.

    Loved titles are resolved to catalog works when a resolver is given; the
    blend needs their genres, so without one the profile carries no loved works.
    Every imported title counts as watched: resolved works by id, the rest by
    lowercased title.
    """
    rated = [e.rating for e in entries if e.rating > 0]
    average = round(sum(rated) / len(rated), 1) if rated else DEFAULT_AVERAGE_RATING
    profile = TasteProfile(
        average_rating=average,
        preferred_decades=preferred_decades(entries),
        total_rated=len(rated),
        weights=weights.copy() if weights is not None else TasteWeights(),
    )

    loved = loved_entries(entries)
    resolved_titles: set[str] = set()
    if resolver is not None and loved:
        for entry, work in await _resolve(resolver, loved):
            resolved_titles.add(entry.title)
            if work.id in profile.loved_work_genres:
                continue
            profile.loved_work_ids.append(work.id)
            profile.loved_work_genres[work.id] = list(work.genre_ids)
            profile.watched_work_ids.append(work.id)
    for entry in entries:
        title = entry.title.strip().lower()
        if entry.title in resolved_titles or not title or title in profile.watched_titles:
            continue
        profile.watched_titles.append(title)
    logger.info(
        "Built taste profile: %d rated, avg %.1f, %d/%d loved resolved, %d watched titles, decades=%s",
        profile.total_rated,
        profile.average_rating,
        len(profile.loved_work_ids),
        len(loved),
        len(profile.watched_titles),
        profile.preferred_decades,
    )
    return profile
