# HaxOS — Cooperative Task Kernel and Virtual Network Simulator
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

from __future__ import annotations

import enum

from ..task import Finish, Say, StateMachineTask
from ..utils import is_integer


class State(enum.Enum):
    NAME = "name"
    AGE = "age"


class Introduce(StateMachineTask):
    """Ask for a name and an age, then introduce the user."""

    initial_state = State.NAME

    def __init__(self, context) -> None:
        super().__init__(context)
        self.name = ""

    def prompt_for(self, state: State) -> Say:
        if state is State.NAME:
            return Say("What is your name?")
        return Say(f"How old are you, {self.name}?")

    def transition(self, state: State, text: str):
        if state is State.NAME:
            self.name = text
            return State.AGE, []
        if is_integer(text):
            return state, [Say(f"Let's all welcome {self.name}, age {text}!"), Finish()]
        return state, [Say(f"That is not really your age. Don't lie to me {self.name}...")]
