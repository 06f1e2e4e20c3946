"""A mutual-exclusion lock for cooperative tasks."""

from __future__ import annotations

from typing import Any

from .system import YieldType
from .task import current, yield_now


class _Waiter:
    __slots__ = ("task",)

    def __init__(self, task: Any) -> None:
        self.task = task


class TaskMutex:
    """A lock that makes contending tasks wait instead of spinning.

    Waiters form a stack: the task that started waiting most recently is
    the one woken on unlock.
    """

    def __init__(self) -> None:
        self._locked = False
        self._waiters: list[_Waiter] = []

    @property
    def locked(self) -> bool:
        return self._locked

    def lock(self) -> None:
        """Take the lock, waiting inside the current task if it is held."""
        if self._locked:
            task = current()
            if task is None:
                raise RuntimeError("cannot wait for a mutex outside of a task")
            node = _Waiter(task)
            self._waiters.append(node)
            while True:
                yield_now(YieldType.WAITIO)
                if not self._locked and self._waiters[-1] is node:
                    break
            self._waiters.pop()
        self._locked = True

    def trylock(self) -> bool:
        """Take the lock if it is free; return whether it was taken."""
        if self._locked:
            return False
        self._locked = True
        return True

    def unlock(self) -> None:
        """Release the lock and wake the most recent waiter, if any."""
        self._locked = False
        if self._waiters:
            self._waiters[-1].task.wakeup()

    def __enter__(self) -> "TaskMutex":
        self.lock()
        return self

    def __exit__(self, *args) -> None:
        self.unlock()