"""Run a function to completion on a stack of its own."""

from __future__ import annotations

import threading
from typing import Any, Callable

_MIN_STACK = 32 * 1024
_PAGE = 4096

_stack_lock = threading.Lock()


def _thread_stack_size(size: int) -> int:
    size = max(size, _MIN_STACK)
    return (size + _PAGE - 1) // _PAGE * _PAGE


class TaskCall:
    """Calls an entry on a separate stack and hands back its ``retval``.

    The entry receives the call object and stores its result in
    ``retval``.
    """

    def __init__(self, stack_size: int) -> None:
        if stack_size <= 0:
            raise ValueError("stack_size must be positive")
        self.stack_size = stack_size
        self.retval: Any = None

    def jump(self, entry: Callable[["TaskCall"], None]) -> Any:
        """Run ``entry(self)`` on its own stack; return ``self.retval``.

        An exception raised by the entry is raised again here.
        """
        errors: list[BaseException] = []

        def target() -> None:
            try:
                entry(self)
            except BaseException as exc:
                errors.append(exc)

        thread = threading.Thread(target=target, name="hevtasks-call")
        with _stack_lock:
            try:
                previous: int | None = threading.stack_size(
                    _thread_stack_size(self.stack_size)
                )
            except (ValueError, RuntimeError):
                previous = None
            try:
                thread.start()
            finally:
                if previous is not None:
                    threading.stack_size(previous)
        thread.join()

        if errors:
            raise errors[0]
        return self.retval