"""Cooperative task system: scheduler, timers, I/O reactor, sync and channels."""

__version__ = "5.6.1"
__all__ = [
    "aide",
    "call",
    "channel",
    "channel_select",
    "cond",
    "demos",
    "mutex",
    "reactor",
    "system",
    "task",
    "timer",
]