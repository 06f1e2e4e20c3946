import socket
import time

import pytest

from hevtasks import system
from hevtasks.reactor import Events
from hevtasks.system import TaskState, YieldType
from hevtasks.task import Task, current, sleep, yield_now
from hevtasks.task import exit as exit_task


@pytest.fixture
def context():
    ctx = system.init()
    yield ctx
    system.fini()


def test_task_requires_initialised_system():
    assert system.get_context() is None
    with pytest.raises(RuntimeError):
        Task(-1)


def test_new_task_defaults(context):
    task = Task(-1)
    assert task.state == TaskState.STOPPED
    assert task.next_priority == 8
    assert task.stack_size == 64 * 1024
    assert task.ref_count == 1
    assert task in context.all_tasks


def test_explicit_stack_size_is_kept(context):
    assert Task(4096).stack_size == 4096


@pytest.mark.parametrize("value, expected", [(-5, 0), (3, 3), (99, 15)])
def test_priority_is_clamped(context, value, expected):
    task = Task(-1)
    task.next_priority = value
    assert task.next_priority == expected


def test_ref_and_unref(context):
    task = Task(-1)
    assert task.ref() is task
    assert task.ref_count == 2
    task.unref()
    assert task in context.all_tasks
    task.unref()
    assert task not in context.all_tasks
    with pytest.raises(RuntimeError):
        task.unref()


def test_data_is_passed_and_current_is_the_task(context):
    seen = []
    task = Task(-1)

    def entry(data):
        seen.append((data, current()))

    task.run(entry, "payload")
    system.run()
    assert seen == [("payload", task)]
    assert current() is None


def test_yielding_tasks_interleave_by_priority(context):
    order = []

    def make(name):
        def entry(_):
            for _ in range(2):
                order.append(name)
                yield_now(YieldType.YIELD)

        return entry

    low = Task(-1)
    low.next_priority = 2
    low.run(make("low"), None)
    high = Task(-1)
    high.next_priority = 1
    high.run(make("high"), None)
    system.run()

    assert order[0] == "high"
    assert sorted(order) == ["high", "high", "low", "low"]
    assert context.all_tasks == []


def test_run_twice_is_ignored(context):
    calls = []
    task = Task(-1)
    task.run(calls.append, 1)
    task.run(calls.append, 2)
    system.run()
    assert calls == [1]


def test_sleep_elapses(context):
    results = []

    def entry(_):
        start = time.monotonic()
        left = sleep(20)
        results.append((left, time.monotonic() - start))

    task = Task(-1)
    task.run(entry, None)
    system.run()
    assert results[0][0] == 0
    assert results[0][1] >= 0.019
    assert task.state == TaskState.STOPPED
    assert context.total_task_count == 0


def test_sleep_zero_returns_at_once(context):
    assert sleep(0) == 0


def test_wakeup_interrupts_sleep(context):
    left = []

    def sleeping(_):
        left.append(sleep(5000))

    def waking(target):
        sleep(10)
        target.wakeup()

    sleeper = Task(-1)
    sleeper.run(sleeping, None)
    waker = Task(-1)
    waker.next_priority = 1
    waker.run(waking, sleeper)
    system.run()

    assert len(left) == 1
    assert 0 < left[0] <= 5000
    assert sleeper.state == TaskState.STOPPED
    assert waker.state == TaskState.STOPPED


def test_wakeup_of_stopped_task_raises(context):
    task = Task(-1)
    with pytest.raises(RuntimeError):
        task.wakeup()


def test_yield_outside_task_raises(context):
    with pytest.raises(RuntimeError):
        yield_now(YieldType.YIELD)


def test_exit_stops_task(context):
    records = []

    def entry(_):
        records.append("before")
        exit_task()
        records.append("after")

    Task(-1).run(entry, None)
    system.run()
    assert records == ["before"]
    assert context.total_task_count == 0


def test_join_waits_for_target(context):
    order = []

    def worker(_):
        sleep(5)
        order.append("worker")

    def joining(target):
        target.join()
        order.append("joined")
        try:
            target.join()
        except RuntimeError:
            order.append("rejected")

    target = Task(-1)
    target.run(worker, None)
    joiner = Task(-1)
    joiner.next_priority = 1
    joiner.run(joining, target)
    system.run()

    assert order == ["worker", "joined", "rejected"]
    assert target.state == TaskState.STOPPED
    assert joiner.state == TaskState.STOPPED


def test_ref_keeps_finished_task_alive(context):
    task = Task(-1).ref()
    task.run(lambda _: None, None)
    system.run()
    assert task.state == TaskState.STOPPED
    assert task in context.all_tasks
    task.unref()
    assert task not in context.all_tasks


def test_add_fd_wakes_waiting_task(context):
    reader, writer = socket.socketpair()
    reader.setblocking(False)
    received = []

    def waiting(_):
        me = current()
        me.add_fd(reader, Events.IN)
        yield_now(YieldType.WAITIO)
        received.append(reader.recv(16))
        me.del_fd(reader)

    def sending(_):
        writer.send(b"ping")

    try:
        waiter = Task(-1)
        waiter.run(waiting, None)
        Task(-1).run(sending, None)
        system.run()
    finally:
        reader.close()
        writer.close()

    assert received == [b"ping"]
    assert waiter.state == TaskState.STOPPED
    assert context.total_task_count == 0


def test_del_fd_of_unregistered_descriptor_raises(context):
    first, second = socket.socketpair()
    try:
        with pytest.raises(OSError):
            Task(-1).del_fd(first)
    finally:
        first.close()
        second.close()