"""Edge-triggered I/O readiness reactor on top of epoll or kqueue."""

from __future__ import annotations

import enum
import errno
import os
import select
import threading
from typing import Any


class Events(enum.IntFlag):
    """Poll-style readiness events."""

    NONE = 0
    IN = getattr(select, "POLLIN", 0x1)
    OUT = getattr(select, "POLLOUT", 0x4)
    ERR = getattr(select, "POLLERR", 0x8)
    HUP = getattr(select, "POLLHUP", 0x10)


class Operation(enum.Enum):
    """What a setup call does with a file descriptor."""

    ADD = "add"
    MOD = "mod"
    DEL = "del"


def _fileno(fd: Any) -> int:
    return fd if isinstance(fd, int) else fd.fileno()


class _EpollBackend:
    def __init__(self) -> None:
        self._epoll = select.epoll(128)
        self._data: dict[int, Any] = {}

    def fileno(self) -> int:
        return self._epoll.fileno()

    @staticmethod
    def _mask(events: int) -> int:
        mask = select.EPOLLET
        if events & Events.IN:
            mask |= select.EPOLLIN
        if events & Events.OUT:
            mask |= select.EPOLLOUT
        if events & Events.ERR:
            mask |= select.EPOLLERR
        return mask

    def setup(self, fd: int, op: Operation, events: int, data: Any) -> None:
        if op is Operation.ADD:
            self._epoll.register(fd, self._mask(events))
            self._data[fd] = data
        elif op is Operation.MOD:
            self._epoll.modify(fd, self._mask(events))
            self._data[fd] = data
        else:
            self._epoll.unregister(fd)
            self._data.pop(fd, None)

    def wait(self, max_events: int, timeout: int) -> list[tuple[Events, Any]]:
        seconds = timeout / 1000 if timeout >= 0 else -1
        ready = []
        for fd, mask in self._epoll.poll(seconds, max_events):
            if fd not in self._data:
                continue
            result = Events.NONE
            if mask & select.EPOLLIN:
                result |= Events.IN
            if mask & select.EPOLLOUT:
                result |= Events.OUT
            if mask & select.EPOLLERR:
                result |= Events.ERR
            if mask & select.EPOLLHUP:
                result |= Events.HUP
            ready.append((result, self._data[fd]))
        return ready

    def close(self) -> None:
        self._epoll.close()
        self._data.clear()


class _KqueueBackend:
    def __init__(self) -> None:
        self._kqueue = select.kqueue()
        self._data: dict[int, Any] = {}
        filters = [
            (Events.IN, select.KQ_FILTER_READ),
            (Events.OUT, select.KQ_FILTER_WRITE),
        ]
        except_filter = getattr(select, "KQ_FILTER_EXCEPT", None)
        if except_filter is not None:
            filters.append((Events.ERR, except_filter))
        self._filters = filters

    def fileno(self) -> int:
        return self._kqueue.fileno()

    def _generate(self, fd: int, op: Operation, events: int):
        deletes = []
        adds = []
        if op is not Operation.ADD:
            for flag, kfilter in self._filters:
                if not events & flag:
                    deletes.append(
                        select.kevent(
                            fd, kfilter, select.KQ_EV_DELETE | select.KQ_EV_CLEAR
                        )
                    )
            if op is Operation.DEL:
                return deletes, adds
        for flag, kfilter in self._filters:
            if events & flag:
                adds.append(
                    select.kevent(fd, kfilter, select.KQ_EV_ADD | select.KQ_EV_CLEAR)
                )
        return deletes, adds

    def setup(self, fd: int, op: Operation, events: int, data: Any) -> None:
        deletes, adds = self._generate(fd, op, events)
        if not deletes and not adds:
            raise OSError(errno.EINVAL, os.strerror(errno.EINVAL))
        deleted_any = False
        last_error: OSError | None = None
        for change in deletes:
            try:
                self._kqueue.control([change], 0, 0)
                deleted_any = True
            except OSError as exc:
                last_error = exc
        if adds:
            self._kqueue.control(adds, 0, 0)
        elif not deleted_any and last_error is not None:
            raise last_error
        if op is Operation.DEL:
            self._data.pop(fd, None)
        else:
            self._data[fd] = data

    def wait(self, max_events: int, timeout: int) -> list[tuple[Events, Any]]:
        seconds = timeout / 1000 if timeout >= 0 else None
        ready = []
        for kev in self._kqueue.control(None, max_events, seconds):
            if kev.ident not in self._data:
                continue
            if kev.filter == select.KQ_FILTER_READ:
                result = Events.IN
            elif kev.filter == select.KQ_FILTER_WRITE:
                result = Events.OUT
            else:
                result = Events.ERR
            ready.append((result, self._data[kev.ident]))
        return ready

    def close(self) -> None:
        self._kqueue.close()
        self._data.clear()


class Reactor:
    """Watches file descriptors and reports edge-triggered readiness.

    Each registered descriptor carries a piece of user data that is handed
    back with every readiness report.
    """

    def __init__(self) -> None:
        if hasattr(select, "epoll"):
            self._backend: _EpollBackend | _KqueueBackend = _EpollBackend()
        elif hasattr(select, "kqueue"):
            self._backend = _KqueueBackend()
        else:
            raise OSError(errno.ENOSYS, "no epoll or kqueue on this platform")
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def fileno(self) -> int:
        self._check_open()
        return self._backend.fileno()

    def _check_open(self) -> None:
        if self._closed:
            raise ValueError("I/O operation on closed reactor")

    def setup(self, fd, op: Operation, events: int = 0, data: Any = None) -> None:
        """Add, modify or remove interest in poll-style ``events`` on ``fd``.

        Raises OSError when the underlying system call fails.
        """
        self._check_open()
        with self._lock:
            self._backend.setup(_fileno(fd), Operation(op), int(events), data)

    def wait(self, max_events: int, timeout: int) -> list[tuple[Events, Any]]:
        """Wait up to ``timeout`` milliseconds (negative: forever).

        Returns a list of ``(events, data)`` pairs, at most ``max_events``.
        """
        self._check_open()
        if max_events <= 0:
            raise ValueError("max_events must be positive")
        return self._backend.wait(max_events, timeout)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._backend.close()

    def __enter__(self) -> "Reactor":
        return self

    def __exit__(self, *args) -> None:
        self.close()