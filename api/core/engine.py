from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import replace
from datetime import UTC, datetime
from typing import (
    Callable,
    Collection,
    Dict,
    FrozenSet,
    List,
    Optional,
    Sequence,
    Tuple,
)

from api.config import (
    DEFAULT_LANGUAGE,
    TMDB_FETCH_RETRIES,
    TMDB_FETCH_TIMEOUT,
    TMDB_SAFE_PAGES,
)
from api.core.catalog import CatalogError, CatalogProvider, SearchOptions
from api.core.exclusion import allowed_genres, filter_candidates
from api.core.genre_scores import compute_genre_scores
from api.core.platforms import normalize_platforms
from api.core.recent_window import RecentlyShownWindow
from api.core.scoring_tables import ScoringTables
from api.core.taste_blend import TasteProfile, blend_with_taste, profile_strength
from api.core.tiers import (
    STRETCH_MIN_VOTES,
    WILD_CLASSIC,
    WILD_CLASSIC_BEFORE,
    WILD_CULT,
    WILD_CULT_MAX_VOTES,
    WILD_CULT_MIN_RATING,
    WILD_CULT_MIN_VOTES,
    WILD_FOREIGN,
    WILD_GENRE_SURPRISE,
    StretchPlan,
    TierPick,
    dedupe_works,
    plan_stretch,
    select_safe,
    select_stretch,
    select_wild,
    select_wild_branch,
    wild_branch_filter,
)
from api.core.works import (
    TIER_SAFE,
    TIER_STRETCH,
    TIER_WILD,
    TIERS,
    CandidateWork,
    GenreScore,
    MoodAnswers,
    RecommendationResult,
)

logger = logging.getLogger(__name__)

RESULT_COUNT = 3
STRETCH_PAGES = 2
WILD_PAGES = 2

PoolFilter = Callable[[List[CandidateWork]], List[CandidateWork]]


def _current_year() -> int:
    return datetime.now(UTC).year


class RecommendationEngine:
    """
    Runs one quiz through scoring, candidate retrieval and the three tiers.

    `catalog` may be None (no API key configured); every tier then degrades to
    the default works. Randomness comes only from `rng`, so a seeded
    `random.Random` gives reproducible runs.
    """

    def __init__(
        self,
        catalog: Optional[CatalogProvider],
        tables: ScoringTables,
        rng: Optional[random.Random] = None,
        *,
        fetch_timeout: float = TMDB_FETCH_TIMEOUT,
        fetch_retries: int = TMDB_FETCH_RETRIES,
        default_language: str = DEFAULT_LANGUAGE,
        current_year: Optional[int] = None,
    ):
        self.catalog = catalog
        self.tables = tables
        self.rng = rng or random.Random()
        self.fetch_timeout = fetch_timeout
        self.fetch_retries = max(0, fetch_retries)
        self.default_language = default_language
        self.current_year = current_year or _current_year()

    async def run_recommendation(
        self,
        answers: MoodAnswers,
        taste_profile: Optional[TasteProfile] = None,
        exclusions: Collection[int] = (),
        recent_window: Optional[RecentlyShownWindow] = None,
        platforms: Sequence[str] = (),
        strength: Optional[str] = None,
    ) -> List[RecommendationResult]:
        tables = self.tables
        excluded = {int(g) for g in exclusions or ()}
        allowed = allowed_genres(excluded, tables)

        ranking = blend_with_taste(compute_genre_scores(answers, tables), taste_profile)
        primary, secondary = self._choose_genres(ranking, allowed, taste_profile)
        keywords = tuple(tables.keywords_for(answers))
        strength = strength or profile_strength(taste_profile)
        recent: FrozenSet[int] = (
            recent_window.snapshot() if recent_window is not None else frozenset()
        )
        services = tuple(normalize_platforms(platforms))

        # rolls happen before any fetch so the tiers can be retrieved concurrently
        stretch_plan = plan_stretch(self.rng, strength, _preferred_decades(taste_profile))
        wild_branch = select_wild_branch(self.rng)
        wild_genres: List[Optional[int]] = [primary, secondary]
        if wild_branch == WILD_GENRE_SURPRISE:
            wild_genres = [self._surprise_genre(primary, allowed), primary]
        logger.info(
            "Recommendation run | primary=%s secondary=%s strength=%s stretch_decades=%s wild=%s excluded=%d",
            tables.genre_name(primary),
            tables.genre_name(secondary) if secondary is not None else None,
            strength,
            stretch_plan.decades,
            wild_branch,
            len(excluded),
        )

        safe_options = SearchOptions(
            keyword_ids=keywords, platforms=services, pages=TMDB_SAFE_PAGES
        )
        stretch_options = SearchOptions(
            keyword_ids=keywords,
            platforms=services,
            sort_by="vote_average.desc",
            min_votes=STRETCH_MIN_VOTES,
            pages=STRETCH_PAGES,
        )

        def wild_filter(pool: List[CandidateWork]) -> List[CandidateWork]:
            return wild_branch_filter(wild_branch, pool, self.default_language)

        fetched = await asyncio.gather(
            self._tier_pool(TIER_SAFE, [primary, secondary], safe_options, excluded),
            self._tier_pool(TIER_STRETCH, [primary, secondary], stretch_options, excluded),
            self._tier_pool(
                TIER_WILD,
                wild_genres,
                _wild_options(wild_branch),
                excluded,
                local_filter=wild_filter,
            ),
            *[
                self._tier_pool(
                    TIER_STRETCH,
                    [primary],
                    replace(
                        stretch_options,
                        keyword_ids=(),
                        start_year=decade,
                        end_year=decade + 9,
                        min_votes=stretch_plan.min_votes,
                    ),
                    excluded,
                    cascade=False,
                )
                for decade in stretch_plan.decades
            ],
        )
        pools: Dict[str, List[CandidateWork]] = dict(zip(TIERS, fetched[:3]))
        decade_pools: Dict[int, List[CandidateWork]] = dict(
            zip(stretch_plan.decades, fetched[3:])
        )
        pools, decade_pools = self._apply_recent_window(pools, decade_pools, recent)
        pools, decade_pools = self._drop_watched(pools, decade_pools, taste_profile)

        picks = self._pick_tiers(pools, decade_pools, stretch_plan, wild_branch)
        results = self._assemble(picks, pools, excluded)
        if recent_window is not None:
            recent_window.record(result.work.id for result in results)
        return results

    def _pick_tiers(
        self,
        pools: Dict[str, List[CandidateWork]],
        decade_pools: Dict[int, List[CandidateWork]],
        stretch_plan: StretchPlan,
        wild_branch: str,
    ) -> Dict[str, Optional[TierPick]]:
        return {
            TIER_SAFE: select_safe(pools[TIER_SAFE], self.rng, self.current_year),
            TIER_STRETCH: select_stretch(pools[TIER_STRETCH], stretch_plan, decade_pools),
            TIER_WILD: select_wild(wild_branch, pools[TIER_WILD]),
        }

    def _choose_genres(
        self,
        ranking: Sequence[GenreScore],
        allowed: Sequence[int],
        profile: Optional[TasteProfile],
    ) -> Tuple[int, Optional[int]]:
        allowed_set = set(allowed)
        ranked = [gs.genre_id for gs in ranking if gs.genre_id in allowed_set]
        if not ranked and profile is not None:
            learned = sorted(
                (
                    (weight, genre_id)
                    for genre_id, weight in profile.weights.genre_weights.items()
                    if weight > 0 and genre_id in allowed_set
                ),
                reverse=True,
            )
            ranked = [genre_id for _, genre_id in learned]
            if ranked:
                logger.info("No mood genres left; using learned genre weights.")
        if not ranked:
            ranked = list(allowed) or self.tables.all_genres[:1]
            logger.info("No scored genres; falling back to %s.", ranked[0])
        primary = ranked[0]
        secondary = ranked[1] if len(ranked) > 1 else None
        if secondary is None:
            secondary = next((g for g in allowed if g != primary), None)
        return primary, secondary

    def _surprise_genre(self, primary: int, allowed: Sequence[int]) -> int:
        options = [genre_id for genre_id in allowed if genre_id != primary]
        if not options:
            return primary
        return self.rng.choice(options)

    async def _tier_pool(
        self,
        tier: str,
        genres: Sequence[Optional[int]],
        options: SearchOptions,
        exclusions: Collection[int],
        local_filter: Optional[PoolFilter] = None,
        cascade: bool = True,
    ) -> List[CandidateWork]:
        attempts = _cascade(genres, options) if cascade else [("initial", genres[0], options)]
        for label, genre_id, attempt_options in attempts:
            if genre_id is None:
                continue
            fetched = await self._fetch(genre_id, attempt_options)
            if not fetched:
                continue
            kept = filter_candidates(fetched, exclusions, self.tables).candidates
            if local_filter is not None:
                kept = local_filter(kept)
            if kept:
                if label != "initial":
                    logger.info("%s tier: using %s fallback (%d candidates)", tier, label, len(kept))
                return kept
        if cascade:
            logger.warning("%s tier: catalog cascade produced no candidates", tier)
        return []

    async def _fetch(self, genre_id: int, options: SearchOptions) -> List[CandidateWork]:
        if self.catalog is None:
            return []
        attempts = self.fetch_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return await asyncio.wait_for(
                    self.catalog.search_by_genre(genre_id, options),
                    timeout=self.fetch_timeout,
                )
            except (CatalogError, asyncio.TimeoutError) as exc:
                logger.warning(
                    "Catalog fetch for genre %s failed (attempt %d/%d): %r",
                    genre_id,
                    attempt,
                    attempts,
                    exc,
                )
            except Exception:
                logger.exception("Unexpected catalog error for genre %s", genre_id)
                return []
        return []

    def _apply_recent_window(
        self,
        pools: Dict[str, List[CandidateWork]],
        decade_pools: Dict[int, List[CandidateWork]],
        recent: FrozenSet[int],
    ) -> Tuple[Dict[str, List[CandidateWork]], Dict[int, List[CandidateWork]]]:
        if not recent:
            return pools, decade_pools
        return _trim_pools(
            pools, decade_pools, lambda work: work.id in recent, "Recently-shown window"
        )

    def _drop_watched(
        self,
        pools: Dict[str, List[CandidateWork]],
        decade_pools: Dict[int, List[CandidateWork]],
        profile: Optional[TasteProfile],
    ) -> Tuple[Dict[str, List[CandidateWork]], Dict[int, List[CandidateWork]]]:
        if profile is None or not (profile.watched_work_ids or profile.watched_titles):
            return pools, decade_pools
        return _trim_pools(pools, decade_pools, profile.has_watched, "Watched-works filter")

    def _assemble(
        self,
        picks: Dict[str, Optional[TierPick]],
        pools: Dict[str, List[CandidateWork]],
        exclusions: Collection[int],
    ) -> List[RecommendationResult]:
        used: set[int] = set()
        results: List[RecommendationResult] = []
        shared = dedupe_works([work for tier in TIERS for work in pools.get(tier, [])])
        defaults = self._default_works(exclusions)

        for tier in TIERS:
            pick = picks.get(tier)
            work = pick.first_unused(used) if pick is not None else None
            rationale = pick.rationale if pick is not None else ""
            if work is None:
                work = _first_unused(shared, used)
                rationale = f"{tier} / shared-pool-fallback"
            if work is None:
                work = _first_unused(defaults, used)
                rationale = f"{tier} / default-fallback"
                logger.warning("%s tier: no candidates; substituting a default work.", tier)
            if work is None:
                logger.error("%s tier: default works exhausted.", tier)
                continue
            used.add(work.id)
            results.append(RecommendationResult(tier=tier, work=work, rationale=rationale))
        return results

    def _default_works(self, exclusions: Collection[int]) -> List[CandidateWork]:
        defaults = list(self.tables.default_works)
        fitting = filter_candidates(defaults, exclusions, self.tables).candidates
        fitting_ids = {work.id for work in fitting}
        return fitting + [work for work in defaults if work.id not in fitting_ids]


def _cascade(
    genres: Sequence[Optional[int]], options: SearchOptions
) -> List[Tuple[str, Optional[int], SearchOptions]]:
    """Fallback steps: keywords dropped, foreign language allowed, secondary genre."""
    primary = genres[0] if genres else None
    secondary = genres[1] if len(genres) > 1 else None
    broad = options.without_keywords()
    steps = [
        ("initial", primary, options),
        ("no-keywords", primary, broad),
        ("foreign-language", primary, broad.with_foreign_language()),
        ("secondary-genre", secondary, broad),
    ]
    unique: List[Tuple[str, Optional[int], SearchOptions]] = []
    seen: set[Tuple[Optional[int], SearchOptions]] = set()
    for label, genre_id, step_options in steps:
        key = (genre_id, step_options)
        if genre_id is None or key in seen:
            continue
        seen.add(key)
        unique.append((label, genre_id, step_options))
    return unique


def _wild_options(branch: str) -> SearchOptions:
    if branch == WILD_FOREIGN:
        return SearchOptions(include_foreign_language=True, pages=WILD_PAGES)
    if branch == WILD_CLASSIC:
        return SearchOptions(end_year=WILD_CLASSIC_BEFORE - 1, pages=WILD_PAGES)
    if branch == WILD_CULT:
        return SearchOptions(
            min_votes=WILD_CULT_MIN_VOTES,
            max_votes=WILD_CULT_MAX_VOTES,
            min_rating=WILD_CULT_MIN_RATING,
            sort_by="vote_average.desc",
            pages=WILD_PAGES,
        )
    return SearchOptions()


def _preferred_decades(profile: Optional[TasteProfile]) -> List[int]:
    if profile is None:
        return []
    if profile.preferred_decades:
        return list(profile.preferred_decades[:2])
    learned = sorted(
        (
            (weight, decade)
            for decade, weight in profile.weights.decade_weights.items()
            if weight > 0
        ),
        reverse=True,
    )
    return [decade for _, decade in learned[:2]]


def _trim_pools(
    pools: Dict[str, List[CandidateWork]],
    decade_pools: Dict[int, List[CandidateWork]],
    drop: Callable[[CandidateWork], bool],
    label: str,
) -> Tuple[Dict[str, List[CandidateWork]], Dict[int, List[CandidateWork]]]:
    """Remove works matching `drop`, unless fewer than RESULT_COUNT would remain."""
    trimmed = {tier: [w for w in pool if not drop(w)] for tier, pool in pools.items()}
    remaining = {work.id for pool in trimmed.values() for work in pool}
    if len(remaining) < RESULT_COUNT:
        logger.info(
            "%s would leave %d candidates; ignoring it for this run.", label, len(remaining)
        )
        return pools, decade_pools
    trimmed_decades = {
        decade: [w for w in pool if not drop(w)] for decade, pool in decade_pools.items()
    }
    return trimmed, trimmed_decades


def _first_unused(
    works: Sequence[CandidateWork], used: Collection[int]
) -> Optional[CandidateWork]:
    return next((work for work in works if work.id not in used), None)
