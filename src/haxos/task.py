# HaxOS — Cooperative Task Kernel and Virtual Network Simulator
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Task contract.

A task is constructed by the kernel with a TaskContext and goes through:

    CREATED -> RUNNING -> STOPPING -> TERMINATED

start() runs exactly once, stop() runs exactly once (even when start()
raised), and the task is removed from the kernel's table afterwards.
Non-resident tasks are stopped as soon as start() returns.

Helpers:
- InteractiveTask: subscribes handle() to its terminal for its lifetime
- StateMachineTask: prompt/answer dialogues expressed as a transition
  function (state, text) -> (state, effects)
"""

from __future__ import annotations

import enum
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Union

if TYPE_CHECKING:
    from .kernel import Kernel  # pragma: no cover
    from .terminal import Subscription, Terminal  # pragma: no cover


class TaskState(enum.Enum):
    CREATED = "created"
    RUNNING = "running"
    STOPPING = "stopping"
    TERMINATED = "terminated"


@dataclass(frozen=True)
class TaskHandle:
    """Opaque task identity handed out by Kernel.launch()."""

    id: int
    name: str

    def __str__(self) -> str:
        return f"{self.id}:{self.name}"


@dataclass(frozen=True)
class TaskContext:
    """Everything a task gets from the kernel at construction time."""

    kernel: Kernel
    terminal: Terminal
    args: tuple[str, ...] = ()
    pwd: str = "/"
    handle: TaskHandle | None = None


class Task:
    """Base class for kernel-scheduled tasks."""

    resident = False

    def __init__(self, context: TaskContext) -> None:
        self.context = context

    # ----- injected context -----

    @property
    def kernel(self) -> Kernel:
        return self.context.kernel

    @property
    def terminal(self) -> Terminal:
        return self.context.terminal

    @property
    def args(self) -> tuple[str, ...]:
        return self.context.args

    @property
    def pwd(self) -> str:
        return self.context.pwd

    @property
    def task_handle(self) -> TaskHandle | None:
        return self.context.handle

    # ----- lifecycle -----

    def start(self) -> None:
        pass

    def stop(self) -> None:
        pass

    def stop_self(self) -> None:
        """Ask the kernel to terminate this task."""
        self.kernel.stop_task(self)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.task_handle} args={list(self.args)}>"


class InteractiveTask(Task):
    """Resident task that receives terminal input through handle()."""

    resident = True

    def __init__(self, context: TaskContext) -> None:
        super().__init__(context)
        self._subscription: Subscription | None = None

    def start(self) -> None:
        self._subscription = self.terminal.subscribe(self.handle, owner=self)

    def stop(self) -> None:
        if self._subscription is not None:
            self.terminal.unsubscribe(self._subscription)
            self._subscription = None

    def handle(self, data: bytes) -> None:
        """Terminal input. An empty payload is the ESC key."""

    @staticmethod
    def to_text(data: bytes) -> str:
        return data.decode("utf-8", errors="replace").strip()


# -----------------------
# Dialogue state machines
# -----------------------


@dataclass(frozen=True)
class Say:
    """Write a full line."""

    text: str


@dataclass(frozen=True)
class Ask:
    """Write a prompt without a newline."""

    text: str


@dataclass(frozen=True)
class Finish:
    """Terminate the task after the preceding effects."""


Effect = Union[Say, Ask, Finish]


class StateMachineTask(InteractiveTask):
    """Dialogue task driven by transition().

    Subclasses set ``initial_state`` (and optionally ``banner``) and
    implement ``transition(state, text) -> (new_state, effects)``.
    ``prompt_for(state)`` is emitted after every transition that does not
    finish the task. ESC terminates the task.
    """

    initial_state: Any = None
    banner: str | None = None

    def __init__(self, context: TaskContext) -> None:
        super().__init__(context)
        self.state = self.initial_state

    def start(self) -> None:
        super().start()
        if self.banner:
            self.terminal.writeln(self.banner)
        self._prompt()

    def handle(self, data: bytes) -> None:
        if not data:
            self.stop_self()
            return
        self.state, effects = self.transition(self.state, self.to_text(data))
        self.apply(effects)

    def transition(self, state: Any, text: str) -> tuple[Any, Sequence[Effect]]:
        raise NotImplementedError

    def prompt_for(self, state: Any) -> Effect | None:
        return None

    def apply(self, effects: Sequence[Effect]) -> None:
        for effect in effects:
            if isinstance(effect, Finish):
                self.stop_self()
                return
            self._emit(effect)
        self._prompt()

    def _prompt(self) -> None:
        prompt = self.prompt_for(self.state)
        if prompt is not None:
            self._emit(prompt)

    def _emit(self, effect: Effect) -> None:
        if isinstance(effect, Say):
            self.terminal.writeln(effect.text)
        elif isinstance(effect, Ask):
            self.terminal.write(effect.text)
        else:
            raise TypeError(f"Unexpected effect: {effect!r}")
