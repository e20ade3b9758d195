# HaxOS — Cooperative Task Kernel and Virtual Network Simulator
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Authentication server with account lockout.

Users file, one account per line:

    username:real name:failures:md5(password)[:locked]

Each wrong password increments the failure counter and asks again; the
third consecutive failure locks the account for good. A locked account is
rejected even with the right password. Success resets the counter.
"""

from __future__ import annotations

from ..task import Effect, Finish, Say
from ..utils import NEWLINE, is_integer, md5_hex
from .authenticate import (
    ACCEPTED,
    NO_USERS_FILE,
    UNKNOWN_USER,
    Authenticate,
    find_entry,
)

MAX_FAILURES = 3

LOCKED = "&r-Invalid username or password [account is locked].\nAuthentication failed.&00"
INCORRECT = "&r-Invalid username or password [incorrect password].&00"
NOW_LOCKED = "&r-Too many failed login attempts. Account was locked.\nAuthentication failed.&00"


class AuthLock(Authenticate):
    """Authentication with a 3-strike lockout."""

    banner = "Sample Authentication Server v3.0 (c) 2015 SampleSoft Inc."
    users_file = "/sample/level5/users.txt"

    def check(self, username: str, password: str) -> list[Effect]:
        lines = self.load_users()
        if lines is None:
            return [Say(NO_USERS_FILE), Finish()]
        index = find_entry(lines, username)
        if index < 0:
            return [Say(UNKNOWN_USER), Finish()]
        if lines[index].endswith(":locked"):
            return [Say(LOCKED), Finish()]

        fields = lines[index].split(":")
        if lines[index].endswith(":" + md5_hex(password)):
            fields[2] = "0"
            lines[index] = ":".join(fields)
            self.save_users(lines)
            return [Say(ACCEPTED), Finish()]

        failures = (int(fields[2]) if is_integer(fields[2]) else 0) + 1
        fields[2] = str(failures)
        lines[index] = ":".join(fields)
        if failures >= MAX_FAILURES:
            lines[index] += ":locked"
        self.save_users(lines)

        if failures >= MAX_FAILURES:
            return [Say(INCORRECT), Say(NOW_LOCKED), Finish()]
        # Same user, next password
        return [Say(INCORRECT)]

    def save_users(self, lines: list[str]) -> None:
        self.kernel.write_file(self.users_file, NEWLINE.join(lines))
