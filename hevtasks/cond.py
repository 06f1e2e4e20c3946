"""A condition variable for cooperative tasks."""

from __future__ import annotations

from typing import Any

from .mutex import TaskMutex
from .system import YieldType
from .task import current, sleep, yield_now


class _Waiter:
    __slots__ = ("task",)

    def __init__(self, task: Any) -> None:
        self.task = task


class TaskCond:
    """Lets tasks wait, with a :class:`TaskMutex` held, until signalled.

    Waiters form a stack: :meth:`signal` wakes the most recent waiter.
    """

    def __init__(self) -> None:
        self._waiters: list[_Waiter] = []

    def _enqueue(self, mutex: TaskMutex) -> _Waiter:
        task = current()
        if task is None:
            raise RuntimeError("cannot wait on a condition outside of a task")
        node = _Waiter(task)
        self._waiters.append(node)
        mutex.unlock()
        return node

    def wait(self, mutex: TaskMutex) -> None:
        """Release ``mutex``, wait for a signal, then take ``mutex`` again."""
        node = self._enqueue(mutex)
        while True:
            yield_now(YieldType.WAITIO)
            if node.task is None:
                break
        mutex.lock()

    def timedwait(self, mutex: TaskMutex, milliseconds: int) -> bool:
        """Like :meth:`wait`, giving up after ``milliseconds``.

        Returns True when signalled, False when the time ran out. The mutex
        is held again on return in both cases.
        """
        node = self._enqueue(mutex)
        while milliseconds and node.task is not None:
            milliseconds = sleep(milliseconds)
        mutex.lock()

        if node.task is not None:
            self._waiters.remove(node)
            return False
        return True

    def signal(self) -> None:
        """Wake the most recent waiter, if there is one."""
        if self._waiters:
            node = self._waiters.pop()
            node.task.wakeup()
            node.task = None

    def broadcast(self) -> None:
        """Wake every waiter, most recent first."""
        while self._waiters:
            node = self._waiters.pop()
            node.task.wakeup()
            node.task = None