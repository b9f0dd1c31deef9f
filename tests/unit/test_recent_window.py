from __future__ import annotations

from api.core.recent_window import RecentlyShownWindow


def test_window_evicts_oldest_beyond_maxlen():
    window = RecentlyShownWindow(maxlen=3)
    window.record([1, 2, 3, 4])

    assert window.to_list() == [2, 3, 4]
    assert 1 not in window
    assert len(window) == 3


def test_recording_a_shown_id_moves_it_to_the_end():
    window = RecentlyShownWindow([1, 2, 3], maxlen=3)
    window.record([1, 5])

    assert window.to_list() == [3, 1, 5]


def test_snapshot_is_unaffected_by_later_writes():
    window = RecentlyShownWindow([7, 8])
    snapshot = window.snapshot()
    window.record([9])

    assert snapshot == frozenset({7, 8})
    assert 9 in window
