import pytest

from hevtasks import system as task_system
from hevtasks.cond import TaskCond
from hevtasks.mutex import TaskMutex
from hevtasks.system import TaskState, YieldType
from hevtasks.task import Task, yield_now


@pytest.fixture
def context():
    ctx = task_system.init()
    yield ctx
    task_system.fini()


def spawn(entry, data=None):
    task = Task(-1)
    task.run(entry, data)
    return task


def test_wait_outside_task_raises():
    cond = TaskCond()
    mutex = TaskMutex()
    mutex.lock()
    with pytest.raises(RuntimeError):
        cond.wait(mutex)
    assert mutex.locked is True


def test_signal_wakes_waiter(context):
    cond = TaskCond()
    mutex = TaskMutex()
    state = {"ready": False}
    seen = []

    def consumer(_):
        mutex.lock()
        while not state["ready"]:
            cond.wait(mutex)
        seen.append(("consumer", mutex.locked))
        mutex.unlock()

    def producer(_):
        mutex.lock()
        state["ready"] = True
        cond.signal()
        mutex.unlock()
        seen.append("producer")

    waiting = spawn(consumer)
    spawn(producer)
    task_system.run()

    assert seen == ["producer", ("consumer", True)]
    assert mutex.locked is False
    assert waiting.state == TaskState.STOPPED


def test_signal_wakes_most_recent_waiter_first(context):
    cond = TaskCond()
    mutex = TaskMutex()
    order = []

    def waiter(name):
        mutex.lock()
        cond.wait(mutex)
        order.append(name)
        mutex.unlock()

    def signaller(_):
        mutex.lock()
        cond.signal()
        mutex.unlock()
        yield_now(YieldType.YIELD)
        mutex.lock()
        cond.signal()
        mutex.unlock()

    spawn(waiter, "first")
    spawn(waiter, "second")
    spawn(signaller)
    task_system.run()

    assert order == ["second", "first"]
    assert mutex.locked is False
    assert context.total_task_count == 0


def test_broadcast_wakes_all_waiters(context):
    cond = TaskCond()
    mutex = TaskMutex()
    woken = []

    def waiter(name):
        mutex.lock()
        cond.wait(mutex)
        woken.append(name)
        mutex.unlock()

    def broadcaster(_):
        mutex.lock()
        cond.broadcast()
        mutex.unlock()

    for name in ("a", "b", "c"):
        spawn(waiter, name)
    spawn(broadcaster)
    task_system.run()

    assert sorted(woken) == ["a", "b", "c"]
    assert mutex.locked is False
    assert context.total_task_count == 0


def test_timedwait_times_out(context):
    cond = TaskCond()
    mutex = TaskMutex()
    results = []

    def waiter(_):
        mutex.lock()
        results.append(cond.timedwait(mutex, 20))
        results.append(mutex.locked)
        mutex.unlock()

    task = spawn(waiter)
    task_system.run()

    assert results == [False, True]
    assert mutex.locked is False
    assert task.state == TaskState.STOPPED


def test_timed_out_waiter_is_not_signalled_later(context):
    cond = TaskCond()
    mutex = TaskMutex()
    results = []

    def waiter(_):
        mutex.lock()
        results.append(cond.timedwait(mutex, 10))
        mutex.unlock()
        cond.signal()
        results.append("after")

    task = spawn(waiter)
    task_system.run()

    assert results == [False, "after"]
    assert mutex.locked is False
    assert task.state == TaskState.STOPPED


def test_timedwait_signalled_before_timeout(context):
    cond = TaskCond()
    mutex = TaskMutex()
    results = []

    def waiter(_):
        mutex.lock()
        results.append(cond.timedwait(mutex, 5000))
        mutex.unlock()

    def signaller(_):
        mutex.lock()
        cond.signal()
        mutex.unlock()

    task = spawn(waiter)
    spawn(signaller)
    task_system.run()

    assert results == [True]
    assert mutex.locked is False
    assert task.state == TaskState.STOPPED