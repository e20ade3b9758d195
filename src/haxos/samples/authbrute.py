# HaxOS — Cooperative Task Kernel and Virtual Network Simulator
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Dictionary attack on the sample authentication server:

    authbrute ADDRESS PORT USERNAME

The wordlist is ``passwords.lst`` in the working directory; without it
every three-letter lowercase word is tried. ENTER starts the attack, ESC
cancels it before the start or terminates it while it runs. The running
loop only stops between attempts, when it sees the flag ESC cleared.
Every attempt is its own session, closed with a null packet.
"""

from __future__ import annotations

import itertools
import string

from ..channel import SyncChannel
from ..datagram import Datagram
from ..errors import AddressError
from ..task import InteractiveTask
from ..utils import NEWLINE, is_integer

BANNER_PREFIX = "Sample Authentication Server"
WORDLIST_FILE = "passwords.lst"
PROGRESS_EVERY = 10


def generate_wordlist(length: int = 3) -> list[str]:
    """aaa, aab, ... zzz"""
    letters = string.ascii_lowercase
    return ["".join(p) for p in itertools.product(letters, repeat=length)]


class AuthBrute(InteractiveTask):
    """Brute-force a sample authentication server."""

    def __init__(self, context) -> None:
        super().__init__(context)
        self.running = False
        self.wordlist: list[str] = []
        self.tried = 0
        self.remote: Datagram | None = None
        self.channel: SyncChannel | None = None

    def start(self) -> None:
        super().start()
        self.terminal.writeln("&w-AuthBrute v1.0 authentication brute-forcing tool&00")
        if len(self.args) < 3 or not is_integer(self.args[1]):
            self.terminal.writeln("&y-Usage: authbrute ADDRESS PORT USERNAME&00")
            self.stop_self()
            return

        content = self.kernel.read_file(WORDLIST_FILE, self.pwd)
        if content is not None:
            self.wordlist = [w for w in content.splitlines() if w]
            self.terminal.writeln(f"&w-loaded wordlist with {len(self.wordlist)} words&00")
        else:
            self.wordlist = generate_wordlist()
            self.terminal.writeln(f"&w-generated wordlist with {len(self.wordlist)} words&00")
        self.terminal.writeln(
            f"&w-press ENTER to start brute-forcing authentication at "
            f"{self.args[0]}:{self.args[1]}, ESC to cancel...&00"
        )

    def handle(self, data: bytes) -> None:
        if not self.running:
            if not data:
                self.terminal.writeln("&r-cancelled by user&00")
                self.stop_self()
                return
            self.brute()
            self.stop_self()
        elif not data:
            self.running = False
            self.terminal.writeln("&r-terminated by user&00")

    def fail(self, message: str) -> None:
        self.running = False
        self.terminal.writeln(f"&r-{message}&00")

    def stop(self) -> None:
        self.running = False
        self.hang_up()
        super().stop()

    def hang_up(self) -> None:
        """End the current attempt's session with a null packet."""
        channel, self.channel = self.channel, None
        if channel is None or channel.closed:
            return
        channel.publish(self.remote)
        channel.close()

    def brute(self) -> None:
        try:
            self.remote = self.kernel.new_datagram(self.args[0], int(self.args[1]))
        except (AddressError, ValueError) as e:
            self.terminal.writeln(f"&r-authbrute: {e}&00")
            return
        username = self.remote.with_data((self.args[2] + NEWLINE).encode())
        total = len(self.wordlist)
        if total == 0:
            self.terminal.writeln("&r-password not found in wordlist&00")
            return

        self.running = True
        self.terminal.writeln("&w-brute-forcing started, press ESC to terminate...&00")
        while self.running:
            # One session per attempt: a fresh port never sees the previous
            # session's closing packet.
            self.channel = self.kernel.open_sync_port(owner=self)
            try:
                response = self.channel.query(self.remote)
                if not self.kernel.is_running(self):
                    return
                if response is None or response.is_null:
                    self.fail("remote service is not responding")
                    return
                if not response.text.startswith(BANNER_PREFIX):
                    self.fail("remote service is not supported")
                    return

                response = self.channel.query(username)
                if not self.kernel.is_running(self):
                    return
                if response is None or response.is_null:
                    self.fail("error sending username")
                    return

                candidate = self.wordlist[self.tried]
                self.tried += 1
                response = self.channel.query(
                    self.remote.with_data((candidate + NEWLINE).encode())
                )
                if not self.kernel.is_running(self):
                    return
            finally:
                self.hang_up()

            if response is not None and "success" in response.text:
                self.running = False
                self.terminal.writeln(f"&g-password found in wordlist: {candidate}&00")
            elif self.tried == total:
                self.running = False
                self.terminal.writeln("&r-password not found in wordlist&00")
            elif self.running and self.tried % PROGRESS_EVERY == 0:
                self.terminal.writeln(
                    f"&w-...already tried {self.tried} of {total} passwords...&00"
                )
