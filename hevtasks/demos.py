"""Small programs that show the task system at work."""

from __future__ import annotations

import argparse
import struct
import threading
from contextlib import contextmanager
from typing import Iterator

from . import system
from .call import TaskCall
from .channel import TaskChannel, channel_pair
from .task import Task, sleep, yield_now
from .system import YieldType


@contextmanager
def _task_system() -> Iterator[None]:
    system.init()
    try:
        yield
        system.run()
    finally:
        system.fini()


def simple() -> None:
    """Two tasks of different priority print and yield in turn."""

    def make_entry(number: int):
        def entry(_data) -> None:
            for _ in range(2):
                print(f"hello {number}")
                yield_now(YieldType.YIELD)

        return entry

    with _task_system():
        task = Task(-1)
        task.next_priority = 2
        task.run(make_entry(1))

        task = Task(-1)
        task.next_priority = 1
        task.run(make_entry(2))


def wakeup() -> None:
    """One task cuts short the sleep of another."""

    def entry1(_data) -> None:
        interval = 5000
        print(f"task1: waiting for timeout {interval}ms ...")
        left_ms = sleep(interval)
        if left_ms == 0:
            print("task1: timeout")
        else:
            print(f"task1: awake now, left: {left_ms}ms")

    def entry2(task1: Task) -> None:
        interval = 1000
        print(f"task2: wakeup task1 after {interval}ms...")
        sleep(interval)
        print("task2: wakeup task1 ...")
        task1.wakeup()

    with _task_system():
        task1 = Task(-1)
        task1.run(entry1)

        task2 = Task(-1)
        task2.next_priority = 1
        task2.run(entry2, task1)


_ARGS = struct.Struct("<i")


def _pack_args(kind: int, command: str) -> bytes:
    return _ARGS.pack(kind) + command.encode()


def _unpack_args(message: bytes) -> tuple[int, str]:
    (kind,) = _ARGS.unpack_from(message)
    return kind, message[_ARGS.size :].decode()


def channel() -> None:
    """Two tasks exchange a request and a reply over a channel pair."""

    def entry1(chan: TaskChannel) -> None:
        kind, command = _unpack_args(chan.read(64))
        print(f"type: {kind} command: {command}")
        chan.write(_pack_args(2, "world"))
        chan.destroy()

    def entry2(chan: TaskChannel) -> None:
        chan.write(_pack_args(1, "hello"))
        kind, command = _unpack_args(chan.read(64))
        print(f"type: {kind} command: {command}")
        chan.destroy()

    with _task_system():
        chan1, chan2 = channel_pair()

        task = Task(-1)
        task.next_priority = 1
        task.run(entry1, chan1)

        task = Task(-1)
        task.next_priority = 2
        task.run(entry2, chan2)


def timeout() -> None:
    """A task sleeps for a second."""

    def entry(_data) -> None:
        interval = 1000
        print(f"waiting for timeout {interval}ms ...")
        sleep(interval)
        print("timeout")

    with _task_system():
        Task(-1).run(entry)


def call() -> None:
    """A task runs a function on a stack of its own."""

    def call_entry(task_call: TaskCall) -> None:
        stack = threading.get_ident()
        print(f"call {id(task_call):#x} on stack {stack:#x}")
        task_call.retval = stack

    def entry(_data) -> None:
        TaskCall(8192).jump(call_entry)

    with _task_system():
        Task(-1).run(entry)


_DEMOS = {
    "simple": simple,
    "wakeup": wakeup,
    "channel": channel,
    "timeout": timeout,
    "call": call,
}


def main(argv=None) -> int:
    """Run the demo named on the command line."""
    parser = argparse.ArgumentParser(
        prog="hevtasks-demo", description="Run a task system demo."
    )
    parser.add_argument("demo", choices=sorted(_DEMOS))
    args = parser.parse_args(argv)
    _DEMOS[args.demo]()
    return 0