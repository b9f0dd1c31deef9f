from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Collection, Dict, List, Mapping, Optional, Sequence

from api.core.taste_blend import STRENGTH_MODERATE, STRENGTH_STRONG
from api.core.works import (
    TIER_SAFE,
    TIER_STRETCH,
    TIER_WILD,
    CandidateWork,
    decade_of,
)

logger = logging.getLogger(__name__)

SAFE_MODERN_WINDOW_YEARS = 25
SAFE_POOL_SIZE = 50

STRETCH_MIN_VOTES = 200
STRETCH_MIN_DECADE_CANDIDATES = 3
# strength -> (probability of restricting to a preferred decade, vote floor)
STRETCH_DECADE_POLICY: Dict[str, tuple[float, int]] = {
    STRENGTH_STRONG: (0.75, 500),
    STRENGTH_MODERATE: (0.45, 300),
}

WILD_FOREIGN = "foreign-language"
WILD_CLASSIC = "classic"
WILD_CULT = "cult"
WILD_GENRE_SURPRISE = "genre-surprise"
WILD_FOREIGN_MAX = 0.40
WILD_CLASSIC_MAX = 0.70
WILD_CULT_MAX = 0.90
WILD_CLASSIC_BEFORE = 1980
WILD_CULT_MIN_VOTES = 100
WILD_CULT_MAX_VOTES = 5000
WILD_CULT_MIN_RATING = 7.0


@dataclass
class TierPick:
    tier: str
    candidates: List[CandidateWork]
    index: int
    rationale: str

    @property
    def work(self) -> CandidateWork:
        return self.candidates[self.index]

    def first_unused(self, used_ids: Collection[int]) -> Optional[CandidateWork]:
        """The chosen work, or the next unused one after it (wrapping around)."""
        count = len(self.candidates)
        for offset in range(count):
            work = self.candidates[(self.index + offset) % count]
            if work.id not in used_ids:
                return work
        return None


@dataclass
class StretchPlan:
    decades: List[int] = field(default_factory=list)
    min_votes: int = STRETCH_MIN_VOTES

    @property
    def restricted(self) -> bool:
        return bool(self.decades)


def select_safe(
    pool: Sequence[CandidateWork], rng: random.Random, current_year: int
) -> Optional[TierPick]:
    """Random pick among the most popular recent releases."""
    if not pool:
        return None
    earliest = current_year - SAFE_MODERN_WINDOW_YEARS
    modern = [w for w in pool if w.release_year and w.release_year >= earliest]
    rationale = "safe / popular-modern-match"
    if not modern:
        logger.info("Safe tier: no releases since %d; using the whole pool.", earliest)
        modern = list(pool)
        rationale = "safe / popular-match"
    ranked = sorted(modern, key=lambda w: w.popularity, reverse=True)
    top = ranked[: min(SAFE_POOL_SIZE, len(ranked))]
    return TierPick(TIER_SAFE, top, rng.randrange(len(top)), rationale)


def plan_stretch(
    rng: random.Random, strength: str, preferred_decades: Sequence[int]
) -> StretchPlan:
    """Roll whether the stretch pick is pinned to the user's preferred decades."""
    policy = STRETCH_DECADE_POLICY.get(strength)
    if policy is None or not preferred_decades:
        return StretchPlan()
    probability, min_votes = policy
    if rng.random() >= probability:
        return StretchPlan()
    return StretchPlan(decades=list(preferred_decades[:2]), min_votes=min_votes)


def select_stretch(
    pool: Sequence[CandidateWork],
    plan: StretchPlan,
    decade_pools: Optional[Mapping[int, Sequence[CandidateWork]]] = None,
) -> Optional[TierPick]:
    """Pick a well-rated work a third of the way down the quality ranking."""
    decade_pools = decade_pools or {}
    for position, decade in enumerate(plan.decades):
        source = list(decade_pools.get(decade) or []) or list(pool)
        in_decade = [
            w
            for w in dedupe_works(source)
            if w.release_year
            and decade_of(w.release_year) == decade
            and w.vote_count >= plan.min_votes
        ]
        if len(in_decade) >= STRETCH_MIN_DECADE_CANDIDATES:
            label = "preferred-decade" if position == 0 else "second-decade"
            return _quality_pick(in_decade, f"stretch / {label}-{decade}s")
        logger.debug(
            "Stretch tier: only %d candidates for the %ds", len(in_decade), decade
        )

    if not pool:
        return None
    qualified = [w for w in pool if w.vote_count >= STRETCH_MIN_VOTES]
    rationale = "stretch / quality-match"
    if plan.restricted:
        rationale = "stretch / quality-match (decade relaxed)"
    if not qualified:
        qualified = list(pool)
    return _quality_pick(qualified, rationale)


def _quality_pick(candidates: Sequence[CandidateWork], rationale: str) -> TierPick:
    ranked = sorted(
        candidates, key=lambda w: (w.vote_average, w.vote_count), reverse=True
    )
    return TierPick(TIER_STRETCH, ranked, len(ranked) // 3, rationale)


def select_wild_branch(rng: random.Random) -> str:
    roll = rng.random()
    if roll < WILD_FOREIGN_MAX:
        return WILD_FOREIGN
    if roll < WILD_CLASSIC_MAX:
        return WILD_CLASSIC
    if roll < WILD_CULT_MAX:
        return WILD_CULT
    return WILD_GENRE_SURPRISE


def wild_branch_filter(
    branch: str, pool: Sequence[CandidateWork], default_language: str = "en"
) -> List[CandidateWork]:
    if branch == WILD_FOREIGN:
        return [
            w
            for w in pool
            if w.original_language and w.original_language != default_language
        ]
    if branch == WILD_CLASSIC:
        return [w for w in pool if w.release_year and w.release_year < WILD_CLASSIC_BEFORE]
    if branch == WILD_CULT:
        return [
            w
            for w in pool
            if WILD_CULT_MIN_VOTES <= w.vote_count <= WILD_CULT_MAX_VOTES
            and w.vote_average >= WILD_CULT_MIN_RATING
        ]
    # genre surprise works on a freshly fetched pool for another genre
    return list(pool)


def select_wild(branch: str, pool: Sequence[CandidateWork]) -> Optional[TierPick]:
    """Pick two thirds of the way down an already branch-filtered pool."""
    if not pool:
        return None
    candidates = list(pool)
    return TierPick(TIER_WILD, candidates, (2 * len(candidates)) // 3, f"wild / {branch}")


def dedupe_works(works: Sequence[CandidateWork]) -> List[CandidateWork]:
    seen: set[int] = set()
    unique: List[CandidateWork] = []
    for work in works:
        if work.id in seen:
            continue
        seen.add(work.id)
        unique.append(work)
    return unique
