"""Message channels between cooperative tasks."""

from __future__ import annotations

from typing import Any

from .system import TaskState, YieldType
from .task import current, yield_now


class ChannelClosedError(Exception):
    """The other end of the channel has been destroyed."""


def _wake(task: Any) -> None:
    if task is not None and task.state != TaskState.STOPPED:
        task.wakeup()


class TaskChannel:
    """One end of a connected pair of channels.

    Messages written to one end are read from the other, one datagram at a
    time. Without buffers a write waits until the reader has taken the
    message; with buffers it only waits while the queue is full.
    """

    def __init__(self, size: int, max_count: int) -> None:
        self.peer: TaskChannel | None = None
        self.task: Any = None
        self.select: Any = None
        self.max_size = size
        self.max_count = max_count
        self.use_count = 0
        self._slots: list[bytes] = [b""] * max_count
        self._rd_idx = 0
        self._wr_idx = 0

    @property
    def active(self) -> bool:
        """Whether the other end still exists."""
        return self.peer is not None

    @property
    def readable(self) -> bool:
        """Whether a message is queued on this end."""
        return self.use_count != 0

    @property
    def has_room(self) -> bool:
        """Whether this end's queue can take another message."""
        return self.use_count < self.max_count

    @property
    def has_select_room(self) -> bool:
        """Whether this end's queue has room a selector may count on."""
        return self.use_count < self.max_count - 1

    def _wait(self) -> None:
        self.task = current()
        yield_now(YieldType.WAITIO)

    def read(self, count: int) -> bytes:
        """Take the next message, cut to at most ``count`` bytes.

        Waits while the queue is empty. Raises ChannelClosedError if it is
        empty and the other end is gone.
        """
        while not self.readable:
            if not self.active:
                raise ChannelClosedError("channel peer is closed")
            self._wait()

        message = self._slots[self._rd_idx]
        self._slots[self._rd_idx] = b""
        self._rd_idx = (self._rd_idx + 1) % self.max_count
        result = message[: max(count, 0)]

        if self.use_count == self.max_count:
            peer = self.peer
            if peer is not None:
                if peer.select is not None:
                    peer.select._add_write(peer)
                _wake(peer.task)

        self.use_count -= 1
        if self.select is not None and not self.readable:
            self.select._del_read(self)

        return result

    def write(self, data) -> int:
        """Send ``data`` to the other end; return the bytes sent.

        Buffered channels cut the message to their buffer size. Raises
        ChannelClosedError if the other end is gone.
        """
        payload = bytes(memoryview(data))
        peer = self.peer
        if peer is None:
            raise ChannelClosedError("channel peer is closed")

        while not peer.has_room:
            if not self.active:
                raise ChannelClosedError("channel peer is closed")
            self._wait()

        if peer.max_count != 1:
            payload = payload[: self.max_size]
        peer._slots[peer._wr_idx] = payload
        peer._wr_idx = (peer._wr_idx + 1) % peer.max_count
        size = len(payload)

        if peer.use_count == 0:
            if peer.select is not None:
                peer.select._add_read(peer)
            _wake(peer.task)

        peer.use_count += 1
        if self.select is not None and not peer.has_select_room:
            self.select._del_write(self)

        while not peer.has_room:
            if not self.active:
                raise ChannelClosedError("channel peer closed before delivery")
            self._wait()

        return size

    def destroy(self) -> None:
        """Close this end and wake whoever waits on either end."""
        peer = self.peer
        if peer is not None:
            peer.peer = None
            _wake(peer.task)
        _wake(self.task)
        self.peer = None


def channel_pair(size: int = 0, buffers: int = 0) -> tuple[TaskChannel, TaskChannel]:
    """Create two connected channel ends.

    With ``buffers`` of zero the channel is synchronous; otherwise up to
    ``buffers`` messages of at most ``size`` bytes are queued.
    """
    if size < 0 or buffers < 0:
        raise ValueError("size and buffers must not be negative")
    max_count = buffers + 1
    first = TaskChannel(size, max_count)
    second = TaskChannel(size, max_count)
    first.peer = second
    second.peer = first
    return first, second