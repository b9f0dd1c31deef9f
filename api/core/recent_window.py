from __future__ import annotations

from collections import deque
from typing import FrozenSet, Iterable, List

from api.config import RECENT_WINDOW_SIZE


class RecentlyShownWindow:
    """
    Bounded FIFO of recently shown work ids.

    Read once per run through `snapshot()` and written once through `record()`
    after all tiers have picked.
    """

    def __init__(self, ids: Iterable[int] = (), maxlen: int = RECENT_WINDOW_SIZE):
        self._ids: deque[int] = deque(maxlen=maxlen)
        self.record(ids)

    @property
    def maxlen(self) -> int:
        return self._ids.maxlen or 0

    def snapshot(self) -> FrozenSet[int]:
        return frozenset(self._ids)

    def record(self, ids: Iterable[int]) -> None:
        for work_id in ids:
            work_id = int(work_id)
            if work_id in self._ids:
                self._ids.remove(work_id)
            self._ids.append(work_id)

    def to_list(self) -> List[int]:
        return list(self._ids)

    def __contains__(self, work_id: object) -> bool:
        return work_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)
