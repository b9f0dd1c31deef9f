from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Collection, Dict, List, Sequence, Tuple

import numpy as np

from api.core.scoring_tables import ScoringTables
from api.core.works import CandidateWork

logger = logging.getLogger(__name__)

MODE_LIGHT = "light"
MODE_HEAVY = "heavy"

HEAVY_EXCLUSION_MAX_ALLOWED = 3
LIGHT_MIN_POSITION_SCORE = 3
TRAIT_WEIGHT = 0.7
POSITION_WEIGHT = 0.3


@dataclass
class FilterResult:
    mode: str
    allowed_genres: List[int]
    candidates: List[CandidateWork] = field(default_factory=list)
    scores: Dict[int, float] = field(default_factory=dict)


def allowed_genres(exclusions: Collection[int], tables: ScoringTables) -> List[int]:
    excluded = set(exclusions or ())
    return [genre_id for genre_id in tables.all_genres if genre_id not in excluded]


def position_score(genre_ids: Sequence[int], allowed: Collection[int]) -> float:
    """Salience-weighted count of allowed genres: 3 for the lead genre, 2, then 1."""
    score = 0
    for position, genre_id in enumerate(genre_ids):
        if genre_id in allowed:
            score += max(3 - position, 1)
    return float(score)


def trait_matrix(tables: ScoringTables) -> Tuple[np.ndarray, Dict[int, int]]:
    genre_index = {genre_id: idx for idx, genre_id in enumerate(tables.all_genres)}
    matrix = np.zeros((len(genre_index), len(tables.traits)), dtype="float32")
    trait_index = {trait: idx for idx, trait in enumerate(tables.traits)}
    for genre_id, affinities in tables.trait_affinity.items():
        row = genre_index.get(genre_id)
        if row is None:
            continue
        for trait, value in affinities.items():
            matrix[row, trait_index[trait]] = value
    return matrix, genre_index


def trait_vector(allowed: Sequence[int], tables: ScoringTables) -> np.ndarray:
    matrix, genre_index = trait_matrix(tables)
    rows = [genre_index[g] for g in allowed if g in genre_index]
    if not rows:
        return np.zeros(len(tables.traits), dtype="float32")
    return matrix[rows].sum(axis=0)


def filter_candidates(
    candidates: Sequence[CandidateWork],
    exclusions: Collection[int],
    tables: ScoringTables,
) -> FilterResult:
    """
    Drop candidates that do not fit the allowed genres.

    With light exclusion (more than three genres still allowed) a candidate is
    kept when its allowed genres reach a position score of 3. Once three or
    fewer genres remain, plain genre matching leaves almost nothing, so
    candidates are ranked by how well their genres' traits line up with the
    traits of the allowed genres instead.
    """
    allowed = allowed_genres(exclusions, tables)
    allowed_set = set(allowed)

    if len(allowed) > HEAVY_EXCLUSION_MAX_ALLOWED:
        result = FilterResult(mode=MODE_LIGHT, allowed_genres=allowed)
        for work in candidates:
            score = position_score(work.genre_ids, allowed_set)
            if score >= LIGHT_MIN_POSITION_SCORE:
                result.candidates.append(work)
                result.scores[work.id] = score
        logger.debug(
            "Light exclusion kept %d/%d candidates", len(result.candidates), len(candidates)
        )
        return result

    matrix, genre_index = trait_matrix(tables)
    target = trait_vector(allowed, tables)
    scored: List[Tuple[float, CandidateWork]] = []
    for work in candidates:
        rows = [genre_index[g] for g in work.genre_ids if g in genre_index]
        trait_score = float((matrix[rows] @ target).sum()) if rows else 0.0
        combined = TRAIT_WEIGHT * trait_score + POSITION_WEIGHT * position_score(
            work.genre_ids, allowed_set
        )
        if combined > 0:
            scored.append((combined, work))
    scored.sort(key=lambda pair: pair[0], reverse=True)

    result = FilterResult(mode=MODE_HEAVY, allowed_genres=allowed)
    for combined, work in scored:
        result.candidates.append(work)
        result.scores[work.id] = round(combined, 4)
    logger.info(
        "Heavy exclusion (%d genres allowed): trait scoring kept %d/%d candidates",
        len(allowed),
        len(result.candidates),
        len(candidates),
    )
    return result
