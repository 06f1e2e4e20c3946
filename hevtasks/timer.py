"""Millisecond sleep timers for tasks, ordered by expiry."""

from __future__ import annotations

import bisect
import itertools
import time
from typing import Any

_NS_PER_MS = 1_000_000


def _remaining_ms(now: int, expire: int) -> int:
    """Milliseconds from ``now`` until ``expire``, rounded up; never negative."""
    diff = expire - now
    if diff < 0:
        return 0
    return (diff + _NS_PER_MS - 1) // _NS_PER_MS


class Timer:
    """Keeps sleeping tasks sorted by expiry and wakes them when due.

    ``context`` must provide ``schedule(yield_type)`` to suspend the calling
    task and ``wakeup_task(task)`` to make a task runnable again.
    """

    def __init__(self, context: Any) -> None:
        self._context = context
        self._order: list[tuple[int, int]] = []
        self._tasks: dict[int, Any] = {}
        self._seq = itertools.count()

    def __len__(self) -> int:
        return len(self._order)

    def timeout(self) -> int:
        """Milliseconds until the earliest expiry, or -1 if nobody sleeps."""
        if not self._order:
            return -1
        return _remaining_ms(time.monotonic_ns(), self._order[0][0])

    def _wakeup(self, now: int) -> None:
        if not self._order:
            return
        expire, seq = self._order[0]
        if now < expire:
            return
        self._context.wakeup_task(self._tasks[seq])

    def wake(self) -> None:
        """Wake the earliest sleeper if its time has come."""
        if self._order:
            self._wakeup(time.monotonic_ns())

    def wait(self, milliseconds: int, task: Any) -> int:
        """Suspend ``task`` for up to ``milliseconds``.

        Returns zero when the time has elapsed, otherwise the milliseconds
        that were left when the task was woken early.
        """
        from .system import YieldType

        if milliseconds < 0:
            raise ValueError("milliseconds must not be negative")

        key = (time.monotonic_ns() + milliseconds * _NS_PER_MS, next(self._seq))
        index = bisect.bisect_left(self._order, key)
        self._order.insert(index, key)
        self._tasks[key[1]] = task
        leftmost = index == 0

        self._context.schedule(YieldType.WAITIO)

        index = bisect.bisect_left(self._order, key)
        if index == 0:
            leftmost = True
        del self._order[index]
        del self._tasks[key[1]]

        now = time.monotonic_ns()
        if leftmost:
            self._wakeup(now)

        return _remaining_ms(now, key[0])