from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional

from api.core.legends import legend_multiplier
from api.core.taste_blend import TasteProfile, TasteWeights
from api.core.works import CandidateWork, decade_of

logger = logging.getLogger(__name__)

RATING_INFLUENCE: Dict[float, float] = {
    0.5: -5.0,
    1.0: -4.0,
    1.5: -3.0,
    2.0: -2.0,
    2.5: -1.0,
    3.0: 0.0,
    3.5: 1.0,
    4.0: 2.0,
    4.5: 3.0,
    5.0: 5.0,
}

CAST_FACTOR = 0.10
DIRECTOR_FACTOR = 0.15
WRITER_FACTOR = 0.05
CINEMATOGRAPHER_FACTOR = 0.03
LOVED_MIN_RATING = 4.0


class InvalidRatingError(ValueError):
    """Raised for ratings outside the half-star scale 0.5..5.0."""


def rating_influence(rating: float) -> float:
    try:
        value = float(rating)
    except (TypeError, ValueError):
        raise InvalidRatingError(f"Rating must be a number, got {rating!r}")
    key = round(value * 2) / 2
    if abs(value - key) > 1e-9 or key not in RATING_INFLUENCE:
        raise InvalidRatingError(f"Rating must be a half-star value from 0.5 to 5.0, got {rating!r}")
    return RATING_INFLUENCE[key]


def _bump(weights: Dict[int, float], keys: Iterable[int], amount: float) -> None:
    for key in keys:
        weights[key] = weights.get(key, 0.0) + amount


def apply_rating(
    work: CandidateWork,
    rating: float,
    weights: Optional[TasteWeights] = None,
) -> TasteWeights:
    """
    Fold one rating into the taste weights and return the updated copy.

    Genres, keywords and the release decade move by the full influence. Cast
    and crew move by a fraction of it, scaled up for screen legends. A 3-star
    rating leaves everything unchanged. The input weights are not modified.
    """
    influence = rating_influence(rating)
    updated = weights.copy() if weights is not None else TasteWeights()
    if influence == 0:
        return updated

    _bump(updated.genre_weights, dict.fromkeys(work.genre_ids), influence)
    _bump(updated.keyword_weights, dict.fromkeys(work.keyword_ids), influence)
    if work.release_year:
        _bump(updated.decade_weights, [decade_of(work.release_year)], influence)

    for person_id in dict.fromkeys(work.top_cast_ids):
        amount = CAST_FACTOR * influence * legend_multiplier(person_id)
        _bump(updated.cast_weights, [person_id], amount)
    for person_id in dict.fromkeys(work.director_ids):
        amount = DIRECTOR_FACTOR * influence * legend_multiplier(person_id)
        _bump(updated.crew_weights, [person_id], amount)
    _bump(updated.crew_weights, dict.fromkeys(work.writer_ids), WRITER_FACTOR * influence)
    _bump(
        updated.crew_weights,
        dict.fromkeys(work.cinematographer_ids),
        CINEMATOGRAPHER_FACTOR * influence,
    )

    logger.debug(
        "Applied rating %.1f (influence %+.1f) to work %s: %d genres, %d keywords, %d tracked people",
        float(rating),
        influence,
        work.id,
        len(work.genre_ids),
        len(work.keyword_ids),
        len(updated.cast_weights) + len(updated.crew_weights),
    )
    return updated


def record_rating(
    profile: Optional[TasteProfile], work: CandidateWork, rating: float
) -> TasteProfile:
    """Apply a rating to a stored profile; the work becomes watched, and loved if rated 4+."""
    current = profile or TasteProfile()
    updated = TasteProfile.from_dict(current.to_dict())
    updated.weights = apply_rating(work, rating, current.weights)
    updated.total_rated += 1
    if work.id not in updated.watched_work_ids:
        updated.watched_work_ids.append(work.id)
    if float(rating) >= LOVED_MIN_RATING and work.id not in updated.loved_work_genres:
        updated.loved_work_ids.append(work.id)
        updated.loved_work_genres[work.id] = list(work.genre_ids)
    return updated
