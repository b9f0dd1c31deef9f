from __future__ import annotations

import asyncio
import random
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from api.core.catalog import CatalogError, SearchOptions
from api.core.works import CandidateWork
from api.db.models import UserPreferences


def make_work(
    work_id: int,
    genre_ids: Sequence[int] = (28,),
    *,
    year: Optional[int] = 2015,
    popularity: float = 10.0,
    vote_average: float = 7.0,
    vote_count: int = 1000,
    language: str = "en",
    **extra: Any,
) -> CandidateWork:
    return CandidateWork(
        id=work_id,
        title=extra.pop("title", f"Work {work_id}"),
        release_year=year,
        genre_ids=list(genre_ids),
        vote_average=vote_average,
        vote_count=vote_count,
        popularity=popularity,
        original_language=language,
        **extra,
    )


class ScriptedRandom(random.Random):
    """
    Random source with scripted draws for deterministic tier tests.

    `random()` pops from `draws` (then repeats the last value), `randrange`
    returns `index` clamped to the range and `choice` returns the first item.
    """

    def __init__(self, draws: Iterable[float] = (0.5,), index: int = 0):
        super().__init__(0)
        self.draws = list(draws)
        self.index = index
        self.randrange_calls: List[int] = []

    def random(self) -> float:
        if len(self.draws) > 1:
            return self.draws.pop(0)
        return self.draws[0]

    def randrange(self, start, stop=None, step=1):  # type: ignore[override]
        upper = start if stop is None else stop
        self.randrange_calls.append(upper)
        return min(self.index, upper - 1)

    def choice(self, seq):  # type: ignore[override]
        return seq[0]


class FakeCatalog:
    """
    In-memory catalog provider honouring the discover filters the engine sends.

    Works are returned per genre id, in the order given, filtered by language,
    year range, vote bounds and rating floor. With `page_size` set the results
    are sorted the way discover sorts them and capped at `page_size * pages`.
    """

    def __init__(
        self,
        by_genre: Optional[Dict[int, List[CandidateWork]]] = None,
        *,
        details: Optional[Dict[int, CandidateWork]] = None,
        titles: Optional[Dict[str, CandidateWork]] = None,
        error: Optional[Exception] = None,
        delay: float = 0.0,
        empty_with_keywords: bool = False,
        default_language: str = "en",
        page_size: Optional[int] = None,
    ):
        self.by_genre = by_genre or {}
        self.details = details or {}
        self.titles = titles or {}
        self.error = error
        self.delay = delay
        self.empty_with_keywords = empty_with_keywords
        self.default_language = default_language
        self.page_size = page_size
        self.calls: List[Tuple[int, SearchOptions]] = []

    async def search_by_genre(
        self, genre_id: int, options: SearchOptions
    ) -> List[CandidateWork]:
        self.calls.append((genre_id, options))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if self.empty_with_keywords and options.keyword_ids:
            return []
        works = list(self.by_genre.get(genre_id, []))
        if not options.include_foreign_language:
            works = [w for w in works if w.original_language == self.default_language]
        if options.start_year:
            works = [w for w in works if w.release_year and w.release_year >= options.start_year]
        if options.end_year:
            works = [w for w in works if w.release_year and w.release_year <= options.end_year]
        if options.min_votes:
            works = [w for w in works if w.vote_count >= options.min_votes]
        if options.max_votes:
            works = [w for w in works if w.vote_count <= options.max_votes]
        if options.min_rating:
            works = [w for w in works if w.vote_average >= options.min_rating]
        if self.page_size:
            key = "vote_average" if options.sort_by == "vote_average.desc" else "popularity"
            works.sort(key=lambda w: getattr(w, key), reverse=True)
            works = works[: self.page_size * options.pages]
        return works

    async def fetch_work_meta(self, work_id: int) -> CandidateWork:
        if work_id not in self.details:
            raise CatalogError(f"unknown work {work_id}")
        return self.details[work_id]

    async def search_title(
        self, title: str, year: int | None = None
    ) -> Optional[CandidateWork]:
        outcome = self.titles.get(title)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class _PreferencesQuery:
    def __init__(self, session: "FakeSession"):
        self._session = session
        self._user_id: Optional[str] = None

    def filter(self, *criteria: Any, **kwargs: Any) -> "_PreferencesQuery":
        for criterion in criteria:
            right = getattr(getattr(criterion, "right", None), "value", None)
            if right is not None:
                self._user_id = str(right)
        return self

    def one_or_none(self) -> Optional[UserPreferences]:
        if self._user_id is None:
            return None
        return self._session.preferences.get(self._user_id)


class FakeSession:
    """
    Lightweight stub to emulate SQLAlchemy session behaviour for unit tests.
    """

    def __init__(self, rows: Iterable[UserPreferences] = ()):
        self.preferences: Dict[str, UserPreferences] = {
            str(row.user_id): row for row in rows
        }
        self.added: List[Any] = []
        self.commits = 0

    # SQLAlchemy API stubs -------------------------------------------------
    def query(self, *entities: Any):
        if len(entities) == 1 and entities[0] is UserPreferences:
            return _PreferencesQuery(self)
        raise AssertionError(f"Unsupported query entities: {entities!r}")

    def add(self, obj: Any) -> None:
        self.added.append(obj)
        if isinstance(obj, UserPreferences):
            self.preferences[str(obj.user_id)] = obj

    def commit(self) -> None:
        self.commits += 1

    def close(self) -> None:
        pass
