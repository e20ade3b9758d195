# HaxOS — Cooperative Task Kernel and Virtual Network Simulator
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""HaxOS system tasks: shell, remote task daemon, telnet client."""

from .rtaskd import RemoteTaskDaemon
from .shell import Shell
from .telnet import Telnet

__all__ = ["RemoteTaskDaemon", "Shell", "Telnet"]
