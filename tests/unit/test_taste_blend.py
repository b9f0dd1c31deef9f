from __future__ import annotations

import pytest

from api.core.taste_blend import (
    STRENGTH_MODERATE,
    STRENGTH_STRONG,
    STRENGTH_WEAK,
    TasteProfile,
    TasteWeights,
    blend_with_taste,
    profile_strength,
)
from api.core.works import GenreScore

MOOD = [
    GenreScore(28, 6.0),
    GenreScore(878, 5.0),
    GenreScore(53, 3.0),
    GenreScore(12, 1.0),
]


def _profile(**kwargs) -> TasteProfile:
    loved = {101: [18, 53], 102: [53], 103: [878]}
    defaults = dict(loved_work_ids=list(loved), loved_work_genres=loved, total_rated=30)
    defaults.update(kwargs)
    return TasteProfile(**defaults)


def test_without_profile_ranking_passes_through():
    assert blend_with_taste(MOOD, None) == MOOD


def test_profile_without_loved_works_passes_through():
    assert blend_with_taste(MOOD, TasteProfile(total_rated=50)) == MOOD


def test_blend_reranks_top_three_only():
    blended = blend_with_taste(MOOD, _profile(), mood_weight=0.6)

    # taste counts: Thriller 2, Science Fiction 1, Drama 1 -> normalised by 2
    assert [gs.genre_id for gs in blended] == [53, 878, 28, 12]
    assert blended[0].score == pytest.approx(3 * 0.6 + 10 * 0.4)
    assert blended[1].score == pytest.approx(5 * 0.6 + 5 * 0.4)
    assert blended[2].score == pytest.approx(6 * 0.6)
    assert blended[3] == GenreScore(12, 1.0)


def test_full_mood_weight_keeps_mood_order():
    blended = blend_with_taste(MOOD, _profile(), mood_weight=1.0)
    assert [gs.genre_id for gs in blended] == [28, 878, 53, 12]


def test_loved_works_without_known_genres_score_zero_taste():
    profile = TasteProfile(loved_work_ids=[1, 2], loved_work_genres={}, total_rated=5)
    blended = blend_with_taste(MOOD, profile, mood_weight=0.6)
    assert [gs.genre_id for gs in blended] == [28, 878, 53, 12]
    assert blended[0].score == pytest.approx(3.6)


def test_profile_strength_tiers():
    strong = TasteProfile(loved_work_ids=list(range(10)), total_rated=120)
    moderate = TasteProfile(loved_work_ids=[1, 2, 3], total_rated=25)
    weak = TasteProfile(loved_work_ids=[1, 2], total_rated=300)

    assert profile_strength(strong) == STRENGTH_STRONG
    assert profile_strength(moderate) == STRENGTH_MODERATE
    assert profile_strength(weak) == STRENGTH_WEAK
    assert profile_strength(None) == STRENGTH_WEAK


def test_profile_dict_round_trip_restores_int_keys():
    profile = _profile(
        preferred_decades=[1990, 2000],
        weights=TasteWeights(genre_weights={28: 2.5}, decade_weights={1990: -1.0}),
        watched_work_ids=[7],
        watched_titles=["heat"],
    )
    data = profile.to_dict()

    assert data["weights"]["genre_weights"] == {"28": 2.5}
    restored = TasteProfile.from_dict(data)
    assert restored.weights.genre_weights == {28: 2.5}
    assert restored.loved_work_genres[101] == [18, 53]
    assert restored.preferred_decades == [1990, 2000]
    assert restored.watched_work_ids == [7]
    assert restored.watched_titles == ["heat"]
