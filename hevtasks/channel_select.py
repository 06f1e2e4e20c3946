"""Wait on several task channels until one can be read or written."""

from __future__ import annotations

from typing import Any

from .channel import TaskChannel
from .system import YieldType
from .task import current, sleep, yield_now


class ChannelSelect:
    """Tracks a set of channels and which of them are ready.

    A channel is readable once a message is queued on it. It is writable
    while its peer's queue has room that a selector may count on.
    """

    def __init__(self) -> None:
        self.task: Any = None
        self._channels: list[TaskChannel] = []
        self._readable: list[TaskChannel] = []
        self._writable: list[TaskChannel] = []

    @property
    def channels(self) -> tuple[TaskChannel, ...]:
        """The channels added to this selector, in the order added."""
        return tuple(self._channels)

    # Called by the channels themselves when their readiness changes.

    def _add_read(self, chan: TaskChannel) -> None:
        if chan not in self._readable:
            self._readable.append(chan)

    def _del_read(self, chan: TaskChannel) -> None:
        if chan in self._readable:
            self._readable.remove(chan)

    def _add_write(self, chan: TaskChannel) -> None:
        if chan not in self._writable:
            self._writable.append(chan)

    def _del_write(self, chan: TaskChannel) -> None:
        if chan in self._writable:
            self._writable.remove(chan)

    def add(self, chan: TaskChannel) -> None:
        """Watch ``chan``; the calling task is the one woken for it."""
        chan.select = self
        chan.task = current()
        self._channels.append(chan)
        if chan.readable:
            self._add_read(chan)
        if chan.peer is not None and chan.peer.has_select_room:
            self._add_write(chan)

    def remove(self, chan: TaskChannel) -> None:
        """Stop watching ``chan``."""
        self._del_read(chan)
        self._del_write(chan)
        if chan in self._channels:
            self._channels.remove(chan)
        chan.task = None
        chan.select = None

    def _select(self, ready: list[TaskChannel], timeout: int) -> TaskChannel | None:
        if not self._channels:
            return None
        # A negative timeout waits for as long as it takes.
        remaining = timeout
        while not ready and remaining:
            if timeout < 0:
                yield_now(YieldType.WAITIO)
            else:
                remaining = sleep(remaining)
        return ready[0] if ready else None

    def select_read(self, timeout: int = -1) -> TaskChannel | None:
        """Return a readable channel, waiting up to ``timeout`` milliseconds.

        A negative timeout waits without limit. Returns None when nothing
        became readable or no channel has been added.
        """
        return self._select(self._readable, timeout)

    def select_write(self, timeout: int = -1) -> TaskChannel | None:
        """Return a writable channel, waiting up to ``timeout`` milliseconds.

        A negative timeout waits without limit. Returns None when nothing
        became writable or no channel has been added.
        """
        return self._select(self._writable, timeout)