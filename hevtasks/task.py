"""Cooperative tasks scheduled by the per-thread task system."""

from __future__ import annotations

from typing import Any, Callable

from .reactor import Operation
from .system import SystemContext, TaskState, YieldType, get_context

PRIORITY_MIN = 0
PRIORITY_MAX = 15
PRIORITY_HIGH = PRIORITY_MIN
PRIORITY_LOW = PRIORITY_MAX
PRIORITY_DEFAULT = 8
PRIORITY_REALTIME = 0

STACK_SIZE = 64 * 1024


def _context() -> SystemContext:
    context = get_context()
    if context is None:
        raise RuntimeError("task system is not initialised in this thread")
    return context


class Task:
    """A unit of work that the task system runs cooperatively.

    Lower priority numbers run more often. A task is queued with
    :meth:`run` and gives up the processor by yielding or sleeping.
    """

    def __init__(self, stack_size: int = -1) -> None:
        context = _context()
        self.stack_size = STACK_SIZE if stack_size < 0 else stack_size
        self.entry: Callable[[Any], None] | None = None
        self.data: Any = None
        self.joiner: Task | None = None
        self.state = TaskState.STOPPED
        self.priority = 0
        self.sched_key = 0
        self.ref_count = 1
        self._next_priority = PRIORITY_DEFAULT
        self._context = context
        context.all_tasks.append(self)

    @property
    def next_priority(self) -> int:
        """The priority the task gets when it is next queued."""
        return self._next_priority

    @next_priority.setter
    def next_priority(self, value: int) -> None:
        self._next_priority = min(max(value, PRIORITY_MIN), PRIORITY_MAX)

    def ref(self) -> "Task":
        """Take another reference to the task."""
        self.ref_count += 1
        return self

    def unref(self) -> None:
        """Drop a reference; the last one removes the task from the system."""
        if self.ref_count <= 0:
            raise RuntimeError("task has no references left")
        self.ref_count -= 1
        if self.ref_count:
            return
        if self in self._context.all_tasks:
            self._context.all_tasks.remove(self)

    def _setup_fd(self, fd: Any, op: Operation, events: int) -> None:
        data = None if op is Operation.DEL else self
        self._context.reactor.setup(fd, op, events, data)

    def add_fd(self, fd: Any, events: int) -> None:
        """Wake this task when ``events`` become ready on ``fd``."""
        self._setup_fd(fd, Operation.ADD, events)

    def mod_fd(self, fd: Any, events: int) -> None:
        """Change the events watched on ``fd``."""
        self._setup_fd(fd, Operation.MOD, events)

    def del_fd(self, fd: Any) -> None:
        """Stop watching ``fd``."""
        self._setup_fd(fd, Operation.DEL, 0)

    def wakeup(self) -> None:
        """Make a waiting task runnable; does not switch to it."""
        self._context.wakeup_task(self)

    def run(self, entry: Callable[[Any], None], data: Any = None) -> None:
        """Queue the task to call ``entry(data)``; ignored if already queued."""
        if self.state != TaskState.STOPPED:
            return
        self.entry = entry
        self.data = data
        self.priority = self.next_priority
        self.sched_key = self.next_priority
        self._context.run_new_task(self)

    def join(self) -> None:
        """Wait from inside a task until this task has finished.

        Raises RuntimeError if another task is already joining it.
        """
        if self.joiner is not None:
            raise RuntimeError("task already has a joiner")
        self.joiner = current()
        while self.state != TaskState.STOPPED:
            self.wakeup()
            yield_now(YieldType.WAITIO)


def current() -> Task | None:
    """The task that is running now, or None outside of tasks."""
    context = get_context()
    if context is None:
        return None
    return context.current_task


def yield_now(yield_type: YieldType = YieldType.YIELD) -> None:
    """Give up the processor; ``WAITIO`` waits until woken."""
    _context().schedule(yield_type)


def sleep(milliseconds: int) -> int:
    """Sleep the current task; returns the milliseconds left if woken early."""
    if milliseconds == 0:
        return 0
    context = _context()
    return context.timer.wait(milliseconds, context.current_task)


def exit() -> None:
    """End the current task immediately."""
    _context().kill_current_task()