from __future__ import annotations

import threading
import time
from pathlib import Path

from haxos.events import EventLoop


def test_events_run_in_post_order() -> None:
    loop = EventLoop()
    seen: list[int] = []
    for i in range(5):
        loop.post(seen.append, i)

    assert loop.pending == 5
    assert loop.run_until_idle() == 5
    assert seen == [0, 1, 2, 3, 4]
    assert loop.idle


def test_events_posted_while_draining_are_run() -> None:
    loop = EventLoop()
    seen: list[str] = []

    def first() -> None:
        seen.append("first")
        loop.post(seen.append, "second")

    loop.post(first)
    loop.run_until_idle()
    assert seen == ["first", "second"]


def test_run_until_idle_respects_max_events() -> None:
    loop = EventLoop()
    for i in range(3):
        loop.post(lambda: None)
    assert loop.run_until_idle(max_events=2) == 2
    assert loop.pending == 1


def test_failing_event_is_reported_and_loop_continues(haxos_data_home: Path) -> None:
    loop = EventLoop()
    seen: list[str] = []

    def boom() -> None:
        raise RuntimeError("boom")

    loop.post(boom)
    loop.post(seen.append, "after")
    loop.run_until_idle()

    assert seen == ["after"]
    crash_log = haxos_data_home / "haxos" / "logs" / "crash.log"
    assert "RuntimeError: boom" in crash_log.read_text(encoding="utf-8")


def test_wait_for_dispatches_queued_events() -> None:
    loop = EventLoop()
    flag = {"set": False}
    loop.post(flag.__setitem__, "set", True)

    assert loop.wait_for(lambda: flag["set"], timeout=1.0)


def test_wait_for_never_gives_up_early() -> None:
    loop = EventLoop()
    started = time.monotonic()
    assert loop.wait_for(lambda: False, timeout=0.05) is False
    assert time.monotonic() - started >= 0.05


def test_loop_thread_runs_posted_work() -> None:
    loop = EventLoop()
    done = threading.Event()
    thread = loop.start_thread()
    try:
        loop.post(done.set)
        assert done.wait(2)
        assert loop.wait_idle(2)
    finally:
        loop.stop()
        thread.join(timeout=2)
    assert not thread.is_alive()


def test_wait_for_from_another_thread_blocks_until_woken() -> None:
    loop = EventLoop()
    state = {"ready": False}
    thread = loop.start_thread()
    try:
        loop.post(state.__setitem__, "ready", True)
        assert loop.wait_for(lambda: state["ready"], timeout=2)
    finally:
        loop.stop()
        thread.join(timeout=2)
