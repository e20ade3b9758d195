# HaxOS — Cooperative Task Kernel and Virtual Network Simulator
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Cooperative event loop shared by every kernel of a simulated network.

Dispatch guarantee:
- Every terminal input and every datagram arrival is posted here and
  executed on the loop thread, one callable at a time. Two handlers never
  run simultaneously.
- Subscriber sets and port tables are only mutated from inside handlers,
  i.e. from the loop thread, so they need no locking of their own.
- A handler that blocks in ``SyncChannel.query()`` yields: wait_for() keeps
  dispatching queued events until its condition holds. Later input for the
  same terminal can therefore be dispatched while an earlier handler is
  still on the stack (this is how ESC interrupts a long-running loop).

Other threads (the console UI) may only call post(), stop() and the
wait helpers.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from collections.abc import Callable
from typing import Any

from .logs import write_crash_log

logger = logging.getLogger(__name__)


class EventLoop:
    """FIFO of pending callables plus the thread that drains it."""

    def __init__(self, name: str = "haxos") -> None:
        self.name = name
        self._queue: deque[tuple[Callable[..., Any], tuple[Any, ...]]] = deque()
        self._cond = threading.Condition()
        self._owner: int | None = None
        self._running = False
        self._busy = 0

    # -----------------------
    # Posting
    # -----------------------

    def post(self, fn: Callable[..., Any], *args: Any) -> None:
        """Schedule fn(*args) on the loop thread. Safe from any thread."""
        with self._cond:
            self._queue.append((fn, args))
            self._cond.notify_all()

    def wake(self) -> None:
        """Wake threads blocked in wait_for() so they re-check."""
        with self._cond:
            self._cond.notify_all()

    @property
    def pending(self) -> int:
        with self._cond:
            return len(self._queue)

    @property
    def idle(self) -> bool:
        with self._cond:
            return not self._queue and self._busy == 0

    # -----------------------
    # Draining
    # -----------------------

    def _is_pump_thread(self) -> bool:
        return self._owner is None or self._owner == threading.get_ident()

    def run_once(self, timeout: float | None = 0) -> bool:
        """Execute a single queued callable.

        Args:
            timeout: seconds to wait for work; 0 = don't wait,
                None = wait indefinitely

        Returns:
            True if something was executed
        """
        with self._cond:
            if not self._queue and timeout != 0:
                self._cond.wait_for(lambda: bool(self._queue), timeout)
            if not self._queue:
                return False
            fn, args = self._queue.popleft()
            self._busy += 1

        try:
            fn(*args)
        except Exception as e:
            # Same policy as the console loop: report and keep going
            logger.exception("Unhandled error in event callback %r", fn)
            write_crash_log(e, where=f"event loop {self.name}")
        finally:
            with self._cond:
                self._busy -= 1
                self._cond.notify_all()
        return True

    def run_until_idle(self, max_events: int | None = None) -> int:
        """Drain the queue (including work queued while draining)."""
        count = 0
        while max_events is None or count < max_events:
            if not self.run_once(timeout=0):
                break
            count += 1
        return count

    def run_forever(self) -> None:
        """Run on the calling thread until stop() is called."""
        self._owner = threading.get_ident()
        self._running = True
        try:
            while self._running:
                self.run_once(timeout=0.1)
        finally:
            self._owner = None

    def start_thread(self) -> threading.Thread:
        """Run the loop on a daemon thread and return it."""
        ready = threading.Event()

        def _target() -> None:
            self._owner = threading.get_ident()
            ready.set()
            self.run_forever()

        thread = threading.Thread(
            target=_target, name=f"{self.name}-loop", daemon=True
        )
        thread.start()
        ready.wait()
        return thread

    def stop(self) -> None:
        self._running = False
        self.wake()

    # -----------------------
    # Cooperative blocking
    # -----------------------

    def wait_for(self, predicate: Callable[[], bool], timeout: float) -> bool:
        """Block until predicate() is true or timeout seconds pass.

        On the loop thread, queued events keep being dispatched while
        waiting. Never gives up before the full timeout has elapsed.
        """
        deadline = time.monotonic() + max(timeout, 0.0)

        if not self._is_pump_thread():
            with self._cond:
                return self._cond.wait_for(
                    predicate, max(deadline - time.monotonic(), 0.0)
                )

        while True:
            if predicate():
                return True
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return predicate()
            self.run_once(timeout=remaining)

    def wait_idle(self, timeout: float) -> bool:
        """From a foreign thread: wait until nothing is queued or running."""
        with self._cond:
            return self._cond.wait_for(
                lambda: not self._queue and self._busy == 0, timeout
            )
