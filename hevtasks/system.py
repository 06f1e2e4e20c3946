"""The per-thread task system: run queue, scheduler and I/O polling.

Tasks run one at a time, each on its own thread; control is handed back
and forth explicitly, so exactly one of the kernel or a task is active.
A task object must provide ``entry``, ``data``, ``joiner``, ``state``,
``priority``, ``next_priority``, ``sched_key`` and ``unref()``. The data
registered with the reactor for a descriptor is the task to wake.
"""

from __future__ import annotations

import bisect
import enum
import itertools
import logging
import threading
from typing import Any

from .reactor import Reactor
from .timer import Timer

_log = logging.getLogger(__name__)

_MAX_EVENTS = 1024


class TaskState(enum.IntEnum):
    """Where a task is: nowhere, in the run queue, or waiting."""

    STOPPED = 0
    RUNNING = 1
    WAITING = 2


class YieldType(enum.IntEnum):
    """How a task gives up the processor."""

    YIELD = 1
    WAITIO = 2
    YIELD_COUNT = 3


RUN_SCHEDULER = YieldType.YIELD_COUNT
_SCHED_REMOVE = YieldType.YIELD_COUNT


class _TaskExit(BaseException):
    """Unwinds a task that is being killed."""


_local = threading.local()


class _Fiber:
    def __init__(self, context: "SystemContext", task: Any) -> None:
        self.context = context
        self.task = task
        self.resume = threading.Semaphore(0)
        self.thread = threading.Thread(
            target=self._main, name="hevtasks-task", daemon=True
        )
        self.started = False

    def switch(self) -> None:
        if self.started:
            self.resume.release()
        else:
            self.started = True
            self.thread.start()

    def _main(self) -> None:
        _local.context = self.context
        task = self.task
        try:
            task.entry(task.data)
            if task.joiner is not None:
                self.context.wakeup_task(task.joiner)
        except _TaskExit:
            pass
        except BaseException:
            _log.exception("task %r failed", task)
        self.context._hand_back(_SCHED_REMOVE)


class SystemContext:
    """Run queue, reactor and timer of one task system."""

    def __init__(self) -> None:
        self.total_task_count = 0
        self.running_task_count = 0
        self.current_task: Any = None
        self.all_tasks: list[Any] = []
        self.reactor = Reactor()
        self.timer = Timer(self)

        self._running: list[tuple[int, int]] = []
        self._keys: dict[int, tuple[int, int]] = {}
        self._by_seq: dict[int, Any] = {}
        self._seq = itertools.count()

        self._fibers: dict[int, _Fiber] = {}
        self._kernel_wake = threading.Semaphore(0)
        self._pending: YieldType | None = None
        self._kernel_active = False

    # run queue ---------------------------------------------------------

    def _tree_insert(self, task: Any) -> None:
        key = (task.sched_key, next(self._seq))
        bisect.insort(self._running, key)
        self._keys[id(task)] = key
        self._by_seq[key[1]] = task

    def _tree_erase(self, task: Any) -> None:
        key = self._keys.pop(id(task))
        del self._running[bisect.bisect_left(self._running, key)]
        del self._by_seq[key[1]]

    def _tree_first(self) -> Any:
        if not self._running:
            return None
        return self._by_seq[self._running[0][1]]

    def _min_sched_key(self) -> int:
        first = self._tree_first()
        return first.sched_key if first is not None else 0

    def _insert_task(self, task: Any) -> None:
        task.state = TaskState.RUNNING
        task.priority = task.next_priority
        self._tree_insert(task)
        self.running_task_count += 1

    def _update_sched_key(self) -> None:
        task = self.current_task
        task.sched_key += task.priority

    def _reinsert_current_task(self) -> None:
        task = self.current_task
        task.priority = task.next_priority
        self._tree_erase(task)
        self._tree_insert(task)

    def _remove_current_task(self, state: TaskState) -> None:
        task = self.current_task
        task.state = state
        self._tree_erase(task)
        self.running_task_count -= 1
        if state is TaskState.STOPPED:
            fiber = self._fibers.pop(id(task), None)
            if fiber is not None and fiber.started:
                fiber.thread.join()
            self.total_task_count -= 1
            task.unref()
        else:
            task.sched_key = task.next_priority

    # polling -----------------------------------------------------------

    def _io_poll(self, timeout: int) -> None:
        if timeout < 0:
            timeout = self.timer.timeout()
        for _events, task in self.reactor.wait(_MAX_EVENTS, timeout):
            self.wakeup_task(task)
        self.timer.wake()

    def _pick_current_task(self) -> None:
        if self.running_task_count < self.total_task_count:
            if self.running_task_count:
                self._io_poll(0)
            else:
                while not self.running_task_count:
                    self._io_poll(-1)
        self.current_task = self._tree_first()

    # switching ---------------------------------------------------------

    def _current_fiber(self) -> _Fiber | None:
        task = self.current_task
        if task is None:
            return None
        fiber = self._fibers.get(id(task))
        if fiber is None or fiber.thread is not threading.current_thread():
            return None
        return fiber

    def _hand_back(self, yield_type: YieldType) -> None:
        self._pending = yield_type
        self._kernel_wake.release()

    def _kernel_loop(self) -> None:
        if self._kernel_active:
            raise RuntimeError("the task system is already running")
        self._kernel_active = True
        try:
            while self.total_task_count:
                self._pick_current_task()
                self._fibers[id(self.current_task)].switch()
                self._kernel_wake.acquire()
                kind, self._pending = self._pending, None
                if kind is YieldType.YIELD:
                    self._update_sched_key()
                    self._reinsert_current_task()
                elif kind is YieldType.WAITIO:
                    self._update_sched_key()
                    self._remove_current_task(TaskState.WAITING)
                else:
                    self._remove_current_task(TaskState.STOPPED)
        finally:
            self.current_task = None
            self._kernel_active = False

    def schedule(self, yield_type: YieldType) -> None:
        """Yield the current task, or run the scheduler from outside a task.

        Inside a task, returns once the task is picked again. Outside one,
        ``RUN_SCHEDULER`` runs tasks until none is left.
        """
        yield_type = YieldType(yield_type)
        fiber = self._current_fiber()
        if fiber is not None:
            if yield_type is _SCHED_REMOVE:
                raise _TaskExit()
            self._hand_back(yield_type)
            fiber.resume.acquire()
            return
        if self.current_task is None and yield_type is RUN_SCHEDULER:
            self._kernel_loop()
            return
        raise RuntimeError("cannot yield outside of a running task")

    def wakeup_task(self, task: Any) -> None:
        """Put a waiting task back in the run queue; running tasks are left."""
        if task.state == TaskState.RUNNING:
            return
        if task.state == TaskState.STOPPED:
            raise RuntimeError("cannot wake up a stopped task")
        task.sched_key += self._min_sched_key()
        self._insert_task(task)

    def run_new_task(self, task: Any) -> None:
        """Prepare ``task`` to execute its entry and queue it."""
        if self.current_task is not None:
            task.sched_key += self._min_sched_key()
        self._fibers[id(task)] = _Fiber(self, task)
        self._insert_task(task)
        self.total_task_count += 1

    def kill_current_task(self) -> None:
        """End the calling task at once; does not return."""
        if self._current_fiber() is None:
            raise RuntimeError("no task is running in this thread")
        raise _TaskExit()

    def close(self) -> None:
        """Release the reactor."""
        self.reactor.close()
        self._fibers.clear()


def get_context() -> SystemContext | None:
    """The task system of the calling thread, or None."""
    return getattr(_local, "context", None)


def _require() -> SystemContext:
    context = get_context()
    if context is None:
        raise RuntimeError("task system is not initialised in this thread")
    return context


def init() -> SystemContext:
    """Create the task system for the calling thread."""
    if get_context() is not None:
        raise RuntimeError("task system is already initialised in this thread")
    context = SystemContext()
    _local.context = context
    return context


def fini() -> None:
    """Tear down the calling thread's task system."""
    context = _require()
    context.close()
    _local.context = None


def run() -> None:
    """Run tasks until all of them have finished."""
    _require().schedule(RUN_SCHEDULER)