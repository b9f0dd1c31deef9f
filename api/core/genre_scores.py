from __future__ import annotations

import logging
from typing import Dict, List

from api.core.scoring_tables import ScoringTables, answer_ids
from api.core.works import GenreScore, MoodAnswers

logger = logging.getLogger(__name__)


def compute_genre_scores(answers: MoodAnswers, tables: ScoringTables) -> List[GenreScore]:
    """
    Turn quiz answers into a ranked genre preference.

    Each chosen answer awards its category's primary/secondary/tertiary points to
    the genres of its scoring entry. Answers without an entry are logged and
    skipped. Ties keep the order in which a genre first received points, with
    categories visited in quiz order so the result does not depend on the
    mapping's iteration order.
    """
    scores: Dict[int, float] = {}
    ordered = sorted(answers.items(), key=lambda kv: tables.category_rank(kv[0]))
    for category, answer in ordered:
        weight = tables.weight(category)
        if weight is None:
            logger.warning("No weight table for quiz category '%s'; skipping.", category)
            continue
        for answer_id in answer_ids(answer):
            entry = tables.entry(category, answer_id)
            if entry is None:
                logger.warning(
                    "No scoring entry for answer %s.%s; skipping.", category, answer_id
                )
                continue
            for slot, genre_id in entry.slots():
                points = getattr(weight, slot)
                if genre_id is None or points <= 0:
                    continue
                scores[genre_id] = scores.get(genre_id, 0.0) + points

    # sorted() is stable, so insertion order settles ties
    ranked = sorted(scores.items(), key=lambda kv: kv[1], reverse=True)
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            "Genre scores | %s",
            ", ".join(f"{tables.genre_name(g)}={s:g}" for g, s in ranked),
        )
    return [GenreScore(genre_id=genre_id, score=score) for genre_id, score in ranked]
