"""A background thread that dispatches I/O readiness to callbacks."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable

from .reactor import Events, Operation, Reactor

_log = logging.getLogger(__name__)

_lock = threading.Lock()
_reactor: Reactor | None = None
_thread: threading.Thread | None = None

_MAX_EVENTS = 256


@dataclass(eq=False)
class AideWork:
    """A descriptor, the events of interest, and the handler to call."""

    fd: Any
    events: int
    handler: Callable[[Events, Any], None]
    data: Any = field(default=None)


def _loop(reactor: Reactor) -> None:
    while True:
        for revents, work in reactor.wait(_MAX_EVENTS, -1):
            try:
                work.handler(revents, work.data)
            except Exception:
                _log.exception("aide handler failed for fd %r", work.fd)


def init() -> None:
    """Start the aide thread once; later calls do nothing."""
    global _reactor, _thread
    if _reactor is not None:
        return
    with _lock:
        if _reactor is None:
            reactor = Reactor()
            thread = threading.Thread(
                target=_loop, args=(reactor,), name="hevtasks-aide", daemon=True
            )
            thread.start()
            _thread = thread
            _reactor = reactor


def _require() -> Reactor:
    if _reactor is None:
        raise RuntimeError("aide is not initialised; call init() first")
    return _reactor


def add(work: AideWork) -> None:
    """Watch ``work.fd`` and call its handler when events arrive."""
    _require().setup(work.fd, Operation.ADD, work.events, work)


def remove(work: AideWork) -> None:
    """Stop watching ``work.fd``."""
    _require().setup(work.fd, Operation.DEL, 0, None)