from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from api.config import TASTE_BLEND_MOOD_WEIGHT
from api.core.works import CandidateWork, GenreScore

logger = logging.getLogger(__name__)

BLEND_TOP_N = 3
TASTE_SCALE = 10.0

STRENGTH_STRONG = "strong"
STRENGTH_MODERATE = "moderate"
STRENGTH_WEAK = "weak"
_STRONG_MIN_RATED = 100
_STRONG_MIN_LOVED = 10
_MODERATE_MIN_RATED = 25
_MODERATE_MIN_LOVED = 3


@dataclass
class TasteWeights:
    """Weight accumulators mutated by rating feedback."""

    genre_weights: Dict[int, float] = field(default_factory=dict)
    keyword_weights: Dict[int, float] = field(default_factory=dict)
    decade_weights: Dict[int, float] = field(default_factory=dict)
    cast_weights: Dict[int, float] = field(default_factory=dict)
    crew_weights: Dict[int, float] = field(default_factory=dict)

    def copy(self) -> "TasteWeights":
        return TasteWeights(
            genre_weights=dict(self.genre_weights),
            keyword_weights=dict(self.keyword_weights),
            decade_weights=dict(self.decade_weights),
            cast_weights=dict(self.cast_weights),
            crew_weights=dict(self.crew_weights),
        )

    def to_dict(self) -> Dict[str, Dict[str, float]]:
        # JSON object keys are strings
        return {
            name: {str(key): value for key, value in getattr(self, name).items()}
            for name in _WEIGHT_FIELDS
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "TasteWeights":
        data = data or {}
        kwargs = {}
        for name in _WEIGHT_FIELDS:
            raw = data.get(name) or {}
            kwargs[name] = {int(key): float(value) for key, value in raw.items()}
        return cls(**kwargs)


_WEIGHT_FIELDS = (
    "genre_weights",
    "keyword_weights",
    "decade_weights",
    "cast_weights",
    "crew_weights",
)


@dataclass
class TasteProfile:
    average_rating: float = 3.0
    loved_work_ids: List[int] = field(default_factory=list)
    preferred_decades: List[int] = field(default_factory=list)
    # genre ids for each loved work, resolved against the catalog
    loved_work_genres: Dict[int, List[int]] = field(default_factory=dict)
    total_rated: int = 0
    weights: TasteWeights = field(default_factory=TasteWeights)
    watched_work_ids: List[int] = field(default_factory=list)
    # imported titles the catalog could not resolve, lowercased
    watched_titles: List[str] = field(default_factory=list)

    def has_watched(self, work: CandidateWork) -> bool:
        if work.id in self.watched_work_ids:
            return True
        return bool(work.title) and work.title.strip().lower() in self.watched_titles

    def to_dict(self) -> Dict[str, Any]:
        return {
            "average_rating": self.average_rating,
            "loved_work_ids": list(self.loved_work_ids),
            "preferred_decades": list(self.preferred_decades),
            "loved_work_genres": {
                str(work_id): list(genres)
                for work_id, genres in self.loved_work_genres.items()
            },
            "total_rated": self.total_rated,
            "weights": self.weights.to_dict(),
            "watched_work_ids": list(self.watched_work_ids),
            "watched_titles": list(self.watched_titles),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "TasteProfile":
        data = data or {}
        return cls(
            average_rating=float(data.get("average_rating", 3.0)),
            loved_work_ids=[int(w) for w in data.get("loved_work_ids") or []],
            preferred_decades=[int(d) for d in data.get("preferred_decades") or []][:2],
            loved_work_genres={
                int(work_id): [int(g) for g in genres]
                for work_id, genres in (data.get("loved_work_genres") or {}).items()
            },
            total_rated=int(data.get("total_rated", 0)),
            weights=TasteWeights.from_dict(data.get("weights")),
            watched_work_ids=[int(w) for w in data.get("watched_work_ids") or []],
            watched_titles=[str(t).strip().lower() for t in data.get("watched_titles") or []],
        )


def blend_with_taste(
    ranking: Sequence[GenreScore],
    profile: Optional[TasteProfile],
    mood_weight: float | None = None,
) -> List[GenreScore]:
    """
    Re-rank the top mood genres using how often they appear among loved works.

    Only the top three mood genres are blended; the rest keep their mood score
    and follow in their original order.
    """
    if profile is None or not profile.loved_work_ids:
        return list(ranking)

    w_mood = TASTE_BLEND_MOOD_WEIGHT if mood_weight is None else mood_weight
    w_taste = 1.0 - w_mood

    counts: Dict[int, int] = {}
    for work_id in profile.loved_work_ids:
        for genre_id in profile.loved_work_genres.get(work_id, []):
            counts[genre_id] = counts.get(genre_id, 0) + 1

    head = list(ranking[:BLEND_TOP_N])
    tail = list(ranking[BLEND_TOP_N:])
    # normalized against the user's most-loved genre overall
    max_count = max(counts.values(), default=0)

    blended: List[GenreScore] = []
    for item in head:
        taste_score = 0.0
        if max_count > 0:
            taste_score = counts.get(item.genre_id, 0) / max_count * TASTE_SCALE
        combined = item.score * w_mood + taste_score * w_taste
        blended.append(GenreScore(genre_id=item.genre_id, score=combined))
        logger.debug(
            "Taste blend | genre=%s mood=%.2f taste=%.2f combined=%.2f",
            item.genre_id,
            item.score,
            taste_score,
            combined,
        )

    blended.sort(key=lambda gs: gs.score, reverse=True)
    return blended + tail


def profile_strength(profile: Optional[TasteProfile]) -> str:
    if profile is None:
        return STRENGTH_WEAK
    loved = len(profile.loved_work_ids)
    if profile.total_rated >= _STRONG_MIN_RATED and loved >= _STRONG_MIN_LOVED:
        return STRENGTH_STRONG
    if profile.total_rated >= _MODERATE_MIN_RATED and loved >= _MODERATE_MIN_LOVED:
        return STRENGTH_MODERATE
    return STRENGTH_WEAK
