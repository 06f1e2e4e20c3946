# hevtasks

A cooperative task system. Tasks take turns: only one of them runs at a
time, and a task keeps running until it yields, sleeps or waits to be woken.
The scheduler orders tasks by priority so that they get fair turns. Each
thread has its own task system.

## Modules

- `hevtasks.system`: the scheduler. `init()` creates the `SystemContext` for
  the calling thread. `run()` runs tasks until all of them have finished.
  `fini()` tears the context down. `get_context()` returns the context of the
  calling thread. `TaskState` and `YieldType` are defined here.
- `hevtasks.task`: the `Task` class. A task runs `entry(data)` once
  `Task.run(entry, data)` has queued it. Priorities go from 0 (highest) to 15
  (lowest), and the default is 8. Set `Task.next_priority` to change the
  priority; out-of-range values are clamped. The module also has `current()`,
  `yield_now(yield_type)`, `sleep(milliseconds)`, `exit()`, `Task.join()`,
  `Task.wakeup()`, and `Task.add_fd()`, `Task.mod_fd()` and `Task.del_fd()`.
  With the `*_fd` methods a task is woken when a file descriptor becomes
  ready.
- `hevtasks.timer`: the `Timer` that keeps sleeping tasks ordered by their
  expiry time. `sleep()` returns 0 when the full time has passed. When the
  task is woken early, it returns the milliseconds that were left.
- `hevtasks.reactor`: `Reactor`, an edge-triggered I/O reactor that uses epoll
  on Linux and kqueue on BSD and macOS. It also defines the `Events` flags and
  the `Operation` enum.
- `hevtasks.aide`: a background thread that calls a handler when a watched
  descriptor becomes ready. Call `init()` first, then `add(AideWork(...))` and
  `remove(work)`.
- `hevtasks.mutex`: `TaskMutex`, which offers `lock()`, `trylock()` (returns a
  bool) and `unlock()`, and works as a context manager.
- `hevtasks.cond`: `TaskCond`, which offers `wait(mutex)`,
  `timedwait(mutex, milliseconds)` (returns `False` on timeout), `signal()`
  and `broadcast()`.
- `hevtasks.channel`: `channel_pair(size, buffers)` returns two connected
  `TaskChannel` ends.
  - If `buffers` is 0, the channel is synchronous: a write waits until the
    reader has taken the message.
  - Otherwise, up to `buffers` messages are queued, and each message is cut
    to `size` bytes.
  - `read(count)` returns the next message, cut to `count` bytes. It raises
    `ChannelClosedError` when the queue is empty and the other end has been
    destroyed.
  - `write(data)` returns the number of bytes sent. It raises
    `ChannelClosedError` once the other end has been destroyed.
- `hevtasks.channel_select`: `ChannelSelect` waits on several channels.
  - `add(chan)` and `remove(chan)` change the set of channels it watches.
  - `select_read(timeout)` and `select_write(timeout)` return a ready channel.
    They return `None` when the timeout ran out or no channel has been added.
    A negative timeout waits without limit.
- `hevtasks.call`: `TaskCall(stack_size).jump(entry)` runs `entry(call)` on a
  stack of its own. It returns `call.retval`, and any exception the entry
  raises is raised again.

## Example

```python
from hevtasks import system
from hevtasks.system import YieldType
from hevtasks.task import Task, yield_now

def worker(name):
    for _ in range(2):
        print("hello", name)
        yield_now(YieldType.YIELD)

system.init()
for name, priority in (("1", 2), ("2", 1)):
    task = Task(-1)
    task.next_priority = priority
    task.run(worker, name)
system.run()
system.fini()
```

## Demos

The `hevtasks-demo` command runs one of the bundled demos, chosen by name:

```
hevtasks-demo simple
hevtasks-demo wakeup
hevtasks-demo channel
hevtasks-demo timeout
hevtasks-demo call
```

## What it does not do

- The package has no socket helpers that wait for I/O, such as send,
  receive or accept that yield until ready. It has no DNS resolver and no
  network server demos.
- To use sockets, register the descriptors yourself with `Task.add_fd()`
  and yield with `YieldType.WAITIO`.
- It has no reactor for Windows.