# HaxOS — Cooperative Task Kernel and Virtual Network Simulator
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Sample authentication server.

Users file, one account per line:

    username:real name:md5(password)

The password is hashed and compared with the stored digest. One attempt
per session: success or failure, the task ends.
"""

from __future__ import annotations

import enum

from ..task import Ask, Effect, Finish, Say, StateMachineTask
from ..utils import md5_hex

ACCEPTED = "&g-Username and password accepted.\nAuthentication successful.&00"
NO_USERS_FILE = "&r-Unable to load users file.\nAuthentication failed.&00"
UNKNOWN_USER = "&r-Invalid username or password [username not found].\nAuthentication failed.&00"
WRONG_PASSWORD = "&r-Invalid username or password [incorrect password].\nAuthentication failed.&00"


class State(enum.Enum):
    USERNAME = "username"
    PASSWORD = "password"


def find_entry(lines: list[str], username: str) -> int:
    """Index of the user's line, or -1."""
    for i, line in enumerate(lines):
        if line.startswith(username + ":"):
            return i
    return -1


class Authenticate(StateMachineTask):
    """Username/password check against an MD5 users file."""

    initial_state = State.USERNAME
    banner = "Sample Authentication Server v2.0 (c) 2015 SampleSoft Inc."
    users_file = "/sample/level4/users.txt"

    def __init__(self, context) -> None:
        super().__init__(context)
        self.username = ""

    def prompt_for(self, state: State) -> Ask:
        return Ask("username: " if state is State.USERNAME else "password: ")

    def transition(self, state: State, text: str) -> tuple[State, list[Effect]]:
        if state is State.USERNAME:
            self.username = text
            return State.PASSWORD, []
        return state, self.check(self.username, text)

    def load_users(self) -> list[str] | None:
        users = self.kernel.read_file(self.users_file)
        return users.splitlines() if users else None

    def check(self, username: str, password: str) -> list[Effect]:
        lines = self.load_users()
        if lines is None:
            return [Say(NO_USERS_FILE), Finish()]
        index = find_entry(lines, username)
        if index < 0:
            return [Say(UNKNOWN_USER), Finish()]
        if lines[index].endswith(":" + md5_hex(password)):
            return [Say(ACCEPTED), Finish()]
        return [Say(WRONG_PASSWORD), Finish()]
