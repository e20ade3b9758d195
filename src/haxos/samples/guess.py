# HaxOS — Cooperative Task Kernel and Virtual Network Simulator
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

from __future__ import annotations

import random

from ..task import Ask, Finish, Say, StateMachineTask
from ..utils import is_integer

LOW, HIGH = 1, 50
TRIES = 5


class Guess(StateMachineTask):
    """Number guessing game. The state is the number of tries left."""

    initial_state = TRIES
    banner = f"I'm thinking of a number between {LOW} and {HIGH}..."

    def __init__(self, context) -> None:
        super().__init__(context)
        self.number = random.randint(LOW, HIGH)

    def prompt_for(self, tries: int) -> Ask:
        return Ask(f"What number am I thinking of? (remaining tries: {tries}): ")

    def transition(self, tries: int, text: str):
        if not is_integer(text):
            return tries, [Say("Please specify a number.")]
        guess = int(text)
        if not LOW <= guess <= HIGH:
            return tries, [Say(
                f"I said I'm thinking of a number from {LOW} to {HIGH}, "
                f"so please try something from that range..."
            )]
        if guess == self.number:
            return tries, [Say(
                f"&g-CORRECT!&00 I was thinking of the number {self.number}. Congratulations!"
            ), Finish()]

        tries -= 1
        if tries == 0:
            return tries, [Say(
                f"&r-FAILED!&00 I was thinking of the number {self.number}. "
                f"You failed to guess it. Pity!"
            ), Finish()]
        hint = "larger" if guess < self.number else "smaller"
        return tries, [Say(f"No, I am thinking of a {hint} number. Try again.")]
