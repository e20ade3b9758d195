"""
Kernel tests: task lifecycle, fault handling and resource reclaim.
Tasks here are small fakes; the sample tasks have their own module.
"""
from __future__ import annotations

import logging
from pathlib import Path

import pytest

from haxos.datagram import Datagram
from haxos.errors import TaskError, TaskStartError
from haxos.kernel import Kernel
from haxos.storage import MemoryStorage
from haxos.task import InteractiveTask, Task, TaskHandle, TaskState
from haxos.terminal import BufferDisplay, Terminal

# ----------------------------------------------------------------
# Fake tasks
# ----------------------------------------------------------------


class Recorder(Task):
    resident = True

    def __init__(self, context) -> None:
        super().__init__(context)
        self.calls: list[str] = []

    def start(self) -> None:
        self.calls.append("start")
        self.state_seen = self.kernel.state_of(self)

    def stop(self) -> None:
        self.calls.append("stop")


class OneShot(Recorder):
    resident = False


class FailingStart(Recorder):
    def start(self) -> None:
        super().start()
        raise RuntimeError("cannot start")


class FailingStop(Recorder):
    def stop(self) -> None:
        super().stop()
        raise RuntimeError("cannot stop")


class Leaky(Task):
    """Subscribes and opens a port, then forgets both."""

    resident = True

    def start(self) -> None:
        self.terminal.subscribe(lambda data: None, owner=self)
        self.kernel.open_port(5000, owner=self)


class Echoer(InteractiveTask):
    def handle(self, data: bytes) -> None:
        if data == b"boom":
            raise RuntimeError("handler exploded")
        self.terminal.write(self.to_text(data))


class StopsTwice(Recorder):
    def stop(self) -> None:
        super().stop()
        self.kernel.stop_task(self)


class FakeConfig:
    def __init__(self, values: dict) -> None:
        self.values = values

    def get_path(self, path: str, default=None):
        return self.values.get(path, default)


def make_kernel() -> tuple[Kernel, BufferDisplay]:
    display = BufferDisplay()
    kernel = Kernel(
        address="10.0.0.1",
        terminal=Terminal(display=display),
        storage=MemoryStorage({"/home/readme.txt": "hi"}),
        name="box",
    )
    return kernel, display


# ----------------------------------------------------------------
# Lifecycle
# ----------------------------------------------------------------


def test_launch_returns_handle_and_runs_start_once() -> None:
    kernel, _ = make_kernel()
    handle = kernel.launch(Recorder, ["a", 1], name="rec")

    assert isinstance(handle, TaskHandle)
    assert str(handle) == f"{handle.id}:rec"
    task = kernel.get_task(handle)
    assert task.calls == ["start"]
    assert task.args == ("a", "1")
    # RUNNING is visible from inside start()
    assert task.state_seen is TaskState.RUNNING
    assert kernel.is_running(handle)
    assert [r.handle for r in kernel.tasks()] == [handle]


def test_handles_are_unique() -> None:
    kernel, _ = make_kernel()
    a = kernel.launch(Recorder)
    b = kernel.launch(Recorder)
    assert a.id != b.id


def test_non_resident_task_is_stopped_after_start() -> None:
    kernel, _ = make_kernel()
    exited: list[TaskHandle] = []
    handle = kernel.launch(OneShot, on_exit=exited.append)

    assert kernel.state_of(handle) is TaskState.TERMINATED
    assert kernel.get_task(handle) is None
    assert exited == [handle]
    assert kernel.tasks() == []


def test_stop_task_is_idempotent() -> None:
    kernel, _ = make_kernel()
    handle = kernel.launch(Recorder)
    task = kernel.get_task(handle)

    assert kernel.stop_task(handle)
    assert not kernel.stop_task(handle)
    assert not kernel.stop_task(task)
    assert task.calls == ["start", "stop"]


def test_stop_task_from_inside_stop_is_harmless() -> None:
    kernel, _ = make_kernel()
    handle = kernel.launch(StopsTwice)
    task = kernel.get_task(handle)
    assert kernel.stop_task(handle)
    assert task.calls == ["start", "stop"]


def test_stop_self() -> None:
    kernel, _ = make_kernel()
    handle = kernel.launch(Recorder)
    kernel.get_task(handle).stop_self()
    assert not kernel.is_running(handle)


def test_handle_with_other_name_does_not_match() -> None:
    kernel, _ = make_kernel()
    handle = kernel.launch(Recorder, name="one")
    stale = TaskHandle(handle.id, "other")
    assert kernel.state_of(stale) is TaskState.TERMINATED
    assert kernel.is_running(handle.id)


def test_factory_failure_raises_task_error() -> None:
    kernel, _ = make_kernel()

    def broken(context):
        raise ValueError("no such thing")

    with pytest.raises(TaskError):
        kernel.launch(broken)
    assert kernel.tasks() == []


def test_start_failure_runs_stop_and_raises(haxos_data_home: Path) -> None:
    kernel, _ = make_kernel()
    created: list[FailingStart] = []

    def factory(context):
        task = FailingStart(context)
        created.append(task)
        return task

    exited: list[TaskHandle] = []
    with pytest.raises(TaskStartError):
        kernel.launch(factory, on_exit=exited.append)

    assert created[0].calls == ["start", "stop"]
    assert kernel.tasks() == []
    assert len(exited) == 1
    crash = (haxos_data_home / "haxos" / "logs" / "crash.log").read_text(encoding="utf-8")
    assert "where=start" in crash
    assert "machine=box" in crash


def test_stop_failure_still_removes_task() -> None:
    kernel, _ = make_kernel()
    handle = kernel.launch(FailingStop)
    assert kernel.stop_task(handle)
    assert kernel.get_task(handle) is None


def test_failing_exit_callback_is_contained() -> None:
    kernel, _ = make_kernel()

    def bad_exit(handle: TaskHandle) -> None:
        raise RuntimeError("exit hook")

    handle = kernel.launch(Recorder, on_exit=bad_exit)
    assert kernel.stop_task(handle)


def test_shutdown_stops_newest_first() -> None:
    kernel, _ = make_kernel()
    order: list[int] = []
    handles = [kernel.launch(Recorder, on_exit=lambda h: order.append(h.id)) for _ in range(3)]
    kernel.shutdown()
    assert order == [h.id for h in reversed(handles)]
    assert kernel.tasks() == []


# ----------------------------------------------------------------
# Reclaim and faults
# ----------------------------------------------------------------


def test_leaked_resources_are_reclaimed(caplog: pytest.LogCaptureFixture) -> None:
    kernel, _ = make_kernel()
    handle = kernel.launch(Leaky)
    task = kernel.get_task(handle)
    assert kernel.terminal.owned_by(task)
    assert kernel.ports.lookup(5000) is not None

    with caplog.at_level(logging.WARNING, logger="haxos"):
        kernel.stop_task(handle)

    assert kernel.terminal.owned_by(task) == []
    assert kernel.ports.lookup(5000) is None
    assert "leaked" in caplog.text


def test_interactive_task_unsubscribes_on_stop() -> None:
    kernel, display = make_kernel()
    handle = kernel.launch(Echoer)
    kernel.terminal.dispatch(b"hello\n")
    assert display.text == "hello"

    kernel.stop_task(handle)
    assert kernel.terminal.subscribers == ()


def test_handler_fault_stops_the_owner(haxos_data_home: Path) -> None:
    kernel, _ = make_kernel()
    handle = kernel.launch(Echoer)

    kernel.terminal.input(b"boom")
    kernel.loop.run_until_idle()

    assert not kernel.is_running(handle)
    crash = (haxos_data_home / "haxos" / "logs" / "crash.log").read_text(encoding="utf-8")
    assert "handler exploded" in crash


def test_receive_fault_stops_the_owner() -> None:
    kernel, _ = make_kernel()
    handle = kernel.launch(Recorder)
    task = kernel.get_task(handle)
    channel = kernel.open_port(7, owner=task)

    def explode(datagram: Datagram) -> None:
        raise RuntimeError("receiver exploded")

    channel.subscribe(explode)
    kernel.open_port().publish(kernel.new_datagram("127.0.0.1", 7, b"x"))
    kernel.loop.run_until_idle()

    assert not kernel.is_running(handle)
    assert channel.closed


def test_deliver_to_unbound_port_is_dropped() -> None:
    kernel, _ = make_kernel()
    sender = kernel.open_port()
    assert kernel.transmit(sender.port, kernel.new_datagram("127.0.0.1", 9999, b"x"))
    kernel.loop.run_until_idle()


# ----------------------------------------------------------------
# Config and file system facade
# ----------------------------------------------------------------


def test_kernel_reads_settings_from_config() -> None:
    cfg = FakeConfig(
        {
            "kernel.query_timeout_ms": 250,
            "kernel.ephemeral_ports.low": 40000,
            "kernel.ephemeral_ports.high": 40010,
        }
    )
    kernel = Kernel(address="10.0.0.1", config=cfg)
    assert kernel.query_timeout_ms == 250
    assert kernel.open_sync_port().port == 40000


def test_file_facade_resolves_relative_paths() -> None:
    kernel, _ = make_kernel()
    assert kernel.absolute_file_path("../home/readme.txt", "/etc/x") == "/etc/home/readme.txt"
    assert kernel.absolute_file_path("/a/./b/../c") == "/a/c"
    assert kernel.read_file("readme.txt", "/home") == "hi"
    assert kernel.read_file("missing.txt", "/home") is None

    kernel.write_file("notes.txt", "x", "/home")
    assert kernel.list_dir("/home") == ["notes.txt", "readme.txt"]
    assert kernel.is_dir("home")
    assert kernel.list_dir("/nowhere") is None


def test_task_pwd_is_absolute() -> None:
    kernel, _ = make_kernel()
    handle = kernel.launch(Recorder, cwd="home/../home")
    assert kernel.get_task(handle).pwd == "/home"
