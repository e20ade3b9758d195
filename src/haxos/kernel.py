# HaxOS — Cooperative Task Kernel and Virtual Network Simulator
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
HaxOS kernel.

One kernel per simulated machine:
- task table + lifecycle (launch, stop_task, shutdown)
- port table + datagram routing between channels and the network
- file system facade over an injected Storage

Important boundary:
- Kernel does not load YAML or discover defaults.
- Kernel consumes the injected ConfigModel (may be None for defaults).

Fault policy:
- start()/stop()/handler exceptions are logged, written to the crash log,
  and the owning task is stopped. stop() always runs, so subscriptions
  and channels cannot outlive their task. Anything a task forgot to
  release is reclaimed here and reported as a leak.
"""

from __future__ import annotations

import logging
import posixpath
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from .channel import AsyncChannel, PortTable, SyncChannel
from .datagram import (
    LOOPBACK,
    Datagram,
    Packet,
    address_to_string,
    coerce_address,
    is_dotted_quad,
    string_to_address,
)
from .errors import AddressError, TaskError, TaskStartError
from .events import EventLoop
from .interfaces import ConfigModel, Storage
from .logs import write_crash_log
from .storage import MemoryStorage, normalize_path
from .task import Task, TaskContext, TaskHandle, TaskState
from .terminal import NullDisplay, Subscription, Terminal

if TYPE_CHECKING:
    from .network import Network  # pragma: no cover
    from .registry import TaskRegistry  # pragma: no cover

__all__ = ["Kernel", "TaskRecord", "write_crash_log"]

logger = logging.getLogger(__name__)

TaskFactory = Callable[[TaskContext], Task]
ExitCallback = Callable[[TaskHandle], None]

DEFAULT_QUERY_TIMEOUT_MS = 1000


@dataclass(eq=False)
class TaskRecord:
    """Kernel-side bookkeeping for one task."""

    handle: TaskHandle
    task: Task
    terminal: Terminal
    args: tuple[str, ...]
    state: TaskState = TaskState.CREATED
    started_at: str = field(default_factory=lambda: datetime.now().isoformat())
    on_exit: ExitCallback | None = None


@dataclass(eq=False)
class Kernel:
    """Task kernel of a single machine."""

    address: int | str = 0
    network: Network | None = None
    storage: Storage | None = None
    config: ConfigModel | None = None
    terminal: Terminal | None = None
    name: str = "localhost"
    loop: EventLoop | None = None
    registry: TaskRegistry | None = None

    # Derived from config
    query_timeout_ms: int = field(default=DEFAULT_QUERY_TIMEOUT_MS, init=False)
    ports: PortTable = field(init=False)

    _tasks: dict[int, TaskRecord] = field(default_factory=dict, init=False)
    _next_id: int = field(default=1, init=False)

    def __post_init__(self) -> None:
        self.address = coerce_address(self.address)

        if self.loop is None:
            self.loop = self.network.loop if self.network is not None else EventLoop(self.name)
        elif self.network is not None and self.network.loop is not self.loop:
            raise ValueError("Kernel and network must share one event loop")

        if self.storage is None:
            self.storage = MemoryStorage()

        low, high = 49152, 65535
        if self.config is not None:
            self.query_timeout_ms = int(
                self.config.get_path("kernel.query_timeout_ms", DEFAULT_QUERY_TIMEOUT_MS)
            )
            low = int(self.config.get_path("kernel.ephemeral_ports.low", low))
            high = int(self.config.get_path("kernel.ephemeral_ports.high", high))
        self.ports = PortTable(low, high)

        if self.terminal is None:
            self.terminal = Terminal(
                display=NullDisplay(), name=f"{self.name}:null"
            )
        self._adopt_terminal(self.terminal)

        network, self.network = self.network, None
        if network is not None:
            network.attach(self)

    def __repr__(self) -> str:
        return f"<Kernel {self.name} {address_to_string(self.address)}>"

    # ----------------------------------------------------------------
    # Task lifecycle
    # ----------------------------------------------------------------

    def launch(
        self,
        factory: TaskFactory,
        args: list[str] | tuple[str, ...] = (),
        cwd: str = "/",
        terminal: Terminal | None = None,
        name: str | None = None,
        on_exit: ExitCallback | None = None,
    ) -> TaskHandle:
        """Create a task, start it and return its handle.

        Raises:
            TaskError: if the factory could not construct the task
            TaskStartError: if start() raised (stop() has already run)
        """
        terminal = terminal if terminal is not None else self.terminal
        self._adopt_terminal(terminal)

        handle = TaskHandle(
            self._next_id, name or getattr(factory, "__name__", "task").lower()
        )
        self._next_id += 1
        args = tuple(str(a) for a in args)
        context = TaskContext(
            kernel=self,
            terminal=terminal,
            args=args,
            pwd=self.absolute_file_path(cwd),
            handle=handle,
        )

        try:
            task = factory(context)
        except Exception as e:
            logger.exception("Could not create task %s", handle)
            write_crash_log(e, where="create", task=str(handle), machine=self.name, args=args)
            raise TaskError(f"Could not create task {handle.name}: {e}") from e

        record = TaskRecord(handle, task, terminal, args, on_exit=on_exit)
        self._tasks[handle.id] = record
        logger.info("%s: launching %s %s", self.name, handle, list(args))

        # RUNNING from the moment start() is entered
        record.state = TaskState.RUNNING
        try:
            task.start()
        except Exception as e:
            logger.exception("%s: start() of %s failed", self.name, handle)
            write_crash_log(e, where="start", task=str(handle), machine=self.name, args=args)
            self.stop_task(handle)
            raise TaskStartError(f"Task {handle.name} failed to start: {e}") from e

        if not getattr(task, "resident", False) and self.is_running(handle):
            self.stop_task(handle)
        return handle

    def stop_task(self, target: Task | TaskHandle | int) -> bool:
        """Stop a task and remove it from the table.

        Returns False when the task is unknown or already stopping, so
        calling it twice is harmless.
        """
        record = self._find(target)
        if record is None or record.state in (TaskState.STOPPING, TaskState.TERMINATED):
            return False

        record.state = TaskState.STOPPING
        try:
            record.task.stop()
        except Exception as e:
            logger.exception("%s: stop() of %s failed", self.name, record.handle)
            write_crash_log(
                e, where="stop", task=str(record.handle), machine=self.name, args=record.args
            )

        self._reclaim(record)
        record.state = TaskState.TERMINATED
        self._tasks.pop(record.handle.id, None)
        logger.info("%s: terminated %s", self.name, record.handle)

        if record.on_exit is not None:
            try:
                record.on_exit(record.handle)
            except Exception as e:
                logger.exception("%s: exit callback of %s failed", self.name, record.handle)
                write_crash_log(e, where="on_exit", task=str(record.handle), machine=self.name)
        return True

    def shutdown(self) -> None:
        """Stop every task, newest first."""
        for record in reversed(self.tasks()):
            self.stop_task(record.handle)

    def _reclaim(self, record: TaskRecord) -> None:
        task = record.task
        for sub in record.terminal.owned_by(task):
            logger.warning("%s: %s leaked terminal subscription %r", self.name, record.handle, sub)
            record.terminal.unsubscribe(sub)
        for channel in self.ports.owned_by(task):
            logger.warning("%s: %s leaked %r", self.name, record.handle, channel)
            channel.close()

    # ----------------------------------------------------------------
    # Introspection
    # ----------------------------------------------------------------

    def tasks(self) -> list[TaskRecord]:
        return [self._tasks[i] for i in sorted(self._tasks)]

    def get_task(self, handle: TaskHandle | int) -> Task | None:
        record = self._find(handle)
        return record.task if record is not None else None

    def state_of(self, target: Task | TaskHandle | int) -> TaskState:
        record = self._find(target)
        return record.state if record is not None else TaskState.TERMINATED

    def is_running(self, target: Task | TaskHandle | int) -> bool:
        return self.state_of(target) is TaskState.RUNNING

    def _find(self, target: Any) -> TaskRecord | None:
        if isinstance(target, TaskHandle):
            record = self._tasks.get(target.id)
            return record if record is not None and record.handle == target else None
        if isinstance(target, int):
            return self._tasks.get(target)
        for record in self._tasks.values():
            if record.task is target:
                return record
        return None

    # ----------------------------------------------------------------
    # Faults raised out of handlers
    # ----------------------------------------------------------------

    def _adopt_terminal(self, terminal: Terminal) -> None:
        if terminal.loop is None:
            terminal.loop = self.loop
        if terminal.error_handler is None:
            terminal.error_handler = self._terminal_fault

    def _terminal_fault(self, subscription: Subscription, error: Exception) -> None:
        self.fault(subscription.owner, error, where="terminal handler")

    def fault(self, owner: Any, error: Exception, where: str = "") -> None:
        """Report a handler exception and stop the task that owns it."""
        record = self._find(owner) if owner is not None else None
        label = str(record.handle) if record is not None else repr(owner)
        logger.error("%s: %s raised in %s: %s", self.name, label, where, error)
        write_crash_log(
            error,
            where=where,
            task=label,
            machine=self.name,
            args=record.args if record is not None else None,
        )
        if record is not None:
            self.stop_task(record.handle)

    # ----------------------------------------------------------------
    # File system facade
    # ----------------------------------------------------------------

    def absolute_file_path(self, path: str, base: str | None = None) -> str:
        if path.startswith("/"):
            return normalize_path(path)
        return normalize_path(posixpath.join(base or "/", path))

    def read_file(self, path: str, base: str | None = None) -> str | None:
        """File content, or None if it does not exist."""
        return self.storage.read(self.absolute_file_path(path, base))

    def write_file(self, path: str, content: str, base: str | None = None) -> None:
        self.storage.write(self.absolute_file_path(path, base), content)

    def list_dir(self, path: str = "/", base: str | None = None) -> list[str] | None:
        return self.storage.list_dir(self.absolute_file_path(path, base))

    def is_dir(self, path: str, base: str | None = None) -> bool:
        return self.storage.is_dir(self.absolute_file_path(path, base))

    # ----------------------------------------------------------------
    # Network facade
    # ----------------------------------------------------------------

    def open_sync_port(self, owner: Any = None) -> SyncChannel:
        """Request/response channel on an ephemeral port."""
        port = self.ports.allocate()
        channel = SyncChannel(self, port, owner)
        self.ports.bind(channel, port)
        return channel

    def open_port(self, port: int | None = None, owner: Any = None) -> AsyncChannel:
        """Callback channel on an explicit port (ephemeral if None).

        Raises:
            PortInUseError: if the port is bound by another open channel
        """
        if port is None:
            port = self.ports.allocate()
        channel = AsyncChannel(self, int(port), owner)
        self.ports.bind(channel, channel.port)
        return channel

    def resolve(self, name: str | int) -> int | None:
        """Address for a dotted quad or domain name, None if unknown."""
        if isinstance(name, int):
            return name
        name = name.strip()
        if is_dotted_quad(name):
            return string_to_address(name)
        if name.lower() == "localhost":
            return string_to_address("127.0.0.1")
        if name.lower() == self.name.lower():
            return self.address
        if self.network is not None:
            return self.network.resolve(name)
        return None

    def new_datagram(self, address: int | str, port: int | str, data: bytes = b"") -> Datagram:
        """Build a datagram for a destination given by address or name.

        Raises:
            AddressError: if a name cannot be resolved
        """
        resolved = self.resolve(address)
        if resolved is None:
            raise AddressError(f"Unknown host: {address}")
        return Datagram(resolved, int(port), data)

    def transmit(self, src_port: int, datagram: Datagram) -> bool:
        """Send a datagram from a local port. False if it was dropped."""
        local = datagram.address == self.address or datagram.address in LOOPBACK
        # Loopback replies must come back from the loopback address
        src_address = datagram.address if datagram.address in LOOPBACK else self.address
        frame = Packet(
            src_address, src_port, datagram.address, datagram.port, datagram.data
        ).to_bytes()

        if local:
            self.loop.post(self.deliver, frame)
            return True
        if self.network is None:
            logger.debug("%s: no network, dropped %r", self.name, datagram)
            return False
        return self.network.transmit(frame)

    def deliver(self, frame: bytes) -> bool:
        """Hand an inbound frame to the channel bound to its port."""
        packet = Packet.from_bytes(frame)
        channel = self.ports.lookup(packet.dst_port)
        if channel is None or channel.closed:
            logger.debug("%s: nothing on port %d, dropped", self.name, packet.dst_port)
            return False
        try:
            channel.receive(packet.source)
        except Exception as e:
            self.fault(channel.owner, e, where=f"channel port {channel.port}")
        return True
