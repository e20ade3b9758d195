# HaxOS — Cooperative Task Kernel and Virtual Network Simulator
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Exception hierarchy for HaxOS.

Recoverable conditions (missing file, query timeout, unknown host) are
reported as ``None`` return values, not exceptions. The classes here cover
contract violations and faults raised out of task code.
"""

from __future__ import annotations


class HaxError(Exception):
    """Base class for all HaxOS errors."""


class TaskError(HaxError):
    """A task could not be created or managed."""


class TaskStartError(TaskError):
    """A task's start() raised; the kernel already ran stop() and removed it."""


class AddressError(HaxError, ValueError):
    """Malformed or unresolvable network address."""


class ChannelError(HaxError):
    """Generic channel misuse (double subscription, exhausted ports...)."""


class PortInUseError(ChannelError):
    """The requested local port is bound by another open channel."""

    def __init__(self, port: int):
        super().__init__(f"Port {port} is already in use")
        self.port = port


class ChannelClosedError(ChannelError):
    """Operation attempted on a closed channel."""


class QueryInProgressError(ChannelError):
    """A SyncChannel already has a query in flight."""
