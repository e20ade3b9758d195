# HaxOS — Cooperative Task Kernel and Virtual Network Simulator
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Terminal: the keyboard + display endpoint tasks talk to.

Input side:
- Handlers subscribe and receive every input payload as raw bytes.
- Dispatch is synchronous, in subscription order.
- A zero-length payload is the cancel event (ESC key).

Output side:
- write()/writeln() forward text to an injected Display.

Subscriptions are explicit tokens. unsubscribe() takes the token returned
by subscribe(); passing the handler itself is accepted as a convenience.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .interfaces import Display

if TYPE_CHECKING:
    from .events import EventLoop  # pragma: no cover

logger = logging.getLogger(__name__)

InputHandler = Callable[[bytes], None]
ErrorHandler = Callable[["Subscription", Exception], None]

CANCEL = b""


@dataclass(eq=False)
class Subscription:
    """Token identifying one terminal subscription."""

    handler: InputHandler
    owner: Any = None
    active: bool = True

    def __repr__(self) -> str:
        state = "active" if self.active else "cancelled"
        return f"<Subscription {getattr(self.handler, '__qualname__', self.handler)} {state}>"


class BufferDisplay:
    """Display that keeps everything written to it."""

    def __init__(self) -> None:
        self._chunks: list[str] = []

    def write(self, text: str) -> None:
        if text:
            self._chunks.append(text)

    @property
    def text(self) -> str:
        return "".join(self._chunks)

    @property
    def lines(self) -> list[str]:
        return self.text.splitlines()

    def clear(self) -> None:
        self._chunks.clear()


class NullDisplay:
    """Display for headless machines. Output is discarded."""

    def write(self, text: str) -> None:
        pass


@dataclass(eq=False)
class Terminal:
    """Virtual keyboard/display bound to one access point."""

    display: Display = field(default_factory=BufferDisplay)
    loop: EventLoop | None = None
    name: str = "console"
    error_handler: ErrorHandler | None = None

    _subscriptions: list[Subscription] = field(default_factory=list)

    # -----------------------
    # Subscriptions
    # -----------------------

    def subscribe(self, handler: InputHandler, owner: Any = None) -> Subscription:
        """Register handler for input; returns the token for unsubscribe().

        Subscribing an equal handler for the same owner again returns the
        existing token instead of dispatching twice.
        """
        for sub in self._subscriptions:
            if sub.handler == handler and sub.owner is owner:
                return sub
        sub = Subscription(handler=handler, owner=owner)
        self._subscriptions.append(sub)
        return sub

    def unsubscribe(self, token: Subscription | InputHandler) -> bool:
        """Remove the first matching subscription. False if none matched."""
        for i, sub in enumerate(self._subscriptions):
            if sub is token or (
                not isinstance(token, Subscription) and sub.handler == token
            ):
                sub.active = False
                del self._subscriptions[i]
                return True
        return False

    @property
    def subscribers(self) -> tuple[Subscription, ...]:
        return tuple(self._subscriptions)

    def owned_by(self, owner: Any) -> list[Subscription]:
        return [s for s in self._subscriptions if s.owner is owner]

    # -----------------------
    # Output
    # -----------------------

    def write(self, text: str) -> None:
        self.display.write(text)

    def writeln(self, text: str = "") -> None:
        self.display.write(text + "\n")

    # -----------------------
    # Input
    # -----------------------

    def input(self, data: bytes) -> None:
        """Feed input from the access point (keyboard, UI thread, network).

        With an event loop the dispatch is queued; without one it runs
        immediately.
        """
        if self.loop is not None:
            self.loop.post(self.dispatch, bytes(data))
        else:
            self.dispatch(bytes(data))

    def cancel(self) -> None:
        """Shorthand for the ESC key."""
        self.input(CANCEL)

    def dispatch(self, data: bytes) -> int:
        """Invoke each subscribed handler with data. Returns the call count.

        Handlers unsubscribed by an earlier handler of the same dispatch are
        skipped; handlers subscribed during it first see the next input.
        """
        calls = 0
        for sub in list(self._subscriptions):
            if not sub.active:
                continue
            calls += 1
            try:
                sub.handler(data)
            except Exception as e:
                if self.error_handler is None:
                    raise
                logger.warning(
                    "Terminal %s handler %r raised %s", self.name, sub, e
                )
                self.error_handler(sub, e)
        return calls
