# HaxOS — Cooperative Task Kernel and Virtual Network Simulator
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""Sample tasks, from a one-line greeting to network services."""

from .authbrute import AuthBrute
from .authenticate import Authenticate
from .authlock import AuthLock
from .bannergrab import BannerGrab
from .chatserver import ChatServer
from .greeting import Greeting
from .guess import Guess
from .hello import Hello
from .introduce import Introduce

__all__ = [
    "AuthBrute",
    "AuthLock",
    "Authenticate",
    "BannerGrab",
    "ChatServer",
    "Greeting",
    "Guess",
    "Hello",
    "Introduce",
]
