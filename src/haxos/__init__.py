# HaxOS — Cooperative Task Kernel and Virtual Network Simulator
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
HaxOS core package.

A cooperative task kernel per simulated machine, terminals for input and
output, and a datagram network that connects the machines.
"""

from .channel import AsyncChannel, SyncChannel
from .datagram import Datagram, Subnet
from .events import EventLoop
from .kernel import Kernel
from .network import Network
from .task import InteractiveTask, StateMachineTask, Task, TaskHandle, TaskState
from .terminal import BufferDisplay, Terminal

__version__ = "0.1.0"

__all__ = [
    "AsyncChannel",
    "BufferDisplay",
    "Datagram",
    "EventLoop",
    "InteractiveTask",
    "Kernel",
    "Network",
    "StateMachineTask",
    "Subnet",
    "SyncChannel",
    "Task",
    "TaskHandle",
    "TaskState",
    "Terminal",
]
