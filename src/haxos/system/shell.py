# HaxOS — Cooperative Task Kernel and Virtual Network Simulator
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
HaxOS command interpreter.

Reads one line per terminal input and either runs a builtin or launches a
registered task with the rest of the line as its arguments.

A launched task that is still running and subscribed to the shell's
terminal owns the foreground: the shell ignores input until it exits and
then prints a fresh prompt. Anything else (services such as rtaskd or
chatserver) runs in the background and the prompt returns at once.
"""

from __future__ import annotations

import logging
import shlex

from ..errors import TaskError
from ..registry import TaskRegistry, default_registry
from ..task import InteractiveTask, TaskContext, TaskHandle
from ..utils import format_table, is_integer

logger = logging.getLogger(__name__)

BUILTINS: dict[str, str] = {
    "help": "list builtins and available tasks",
    "ls": "ls [DIR] - list directory contents",
    "cd": "cd [DIR] - change working directory",
    "pwd": "print working directory",
    "cat": "cat FILE - print a file",
    "ps": "list running tasks",
    "kill": "kill ID - stop a task",
    "run": "run FILE - execute commands from a file",
    "exit": "close this shell",
}

STARTUP_FILE = "/etc/startup"


class Shell(InteractiveTask):
    """Command interpreter. Optional argument: a script to run first."""

    def __init__(self, context: TaskContext) -> None:
        super().__init__(context)
        self.cwd = context.pwd
        self.foreground: TaskHandle | None = None
        self._registry: TaskRegistry | None = None

        # Script recursion tracking for nested `run`
        self._script_stack: list[str] = []
        self._max_script_depth = 10

    @property
    def registry(self) -> TaskRegistry:
        if self._registry is None:
            self._registry = self.kernel.registry or default_registry()
        return self._registry

    # ----- lifecycle -----

    def start(self) -> None:
        super().start()
        self.terminal.writeln(
            f"&w-HaxOS shell on {self.kernel.name}, type 'help' for commands&00"
        )
        if self.args:
            self.run_script(self.args[0])
        if self.foreground is None:
            self.prompt()

    def prompt(self) -> None:
        self.terminal.write(f"{self.cwd}> ")

    def handle(self, data: bytes) -> None:
        if self.foreground is not None:
            # Input (ESC included) belongs to the foreground task
            return
        if data:
            self.execute(self.to_text(data))
        else:
            self.terminal.writeln()
        if self.foreground is None and self.kernel.is_running(self):
            self.prompt()

    # ----- command execution -----

    def execute(self, line: str) -> TaskHandle | None:
        """Run one command line. Returns the handle of a launched task."""
        line = line.strip()
        if not line or line.startswith("#"):
            return None
        try:
            words = shlex.split(line)
        except ValueError as e:
            self.terminal.writeln(f"&r-syntax error: {e}&00")
            return None
        if not words:
            return None

        command, args = words[0], words[1:]
        if command in BUILTINS:
            getattr(self, f"cmd_{command}")(args)
            return None
        return self.launch(command, args)

    def launch(self, name: str, args: list[str]) -> TaskHandle | None:
        factory = self.registry.get(name)
        if factory is None:
            self.terminal.writeln(f"&r-unknown command: {name}&00")
            return None
        try:
            handle = self.kernel.launch(
                factory,
                args,
                cwd=self.cwd,
                terminal=self.terminal,
                name=name.lower(),
                on_exit=self._task_exited,
            )
        except TaskError as e:
            self.terminal.writeln(f"&r-{e}&00")
            return None

        task = self.kernel.get_task(handle)
        if task is not None and self.terminal.owned_by(task):
            self.foreground = handle
        return handle

    def _task_exited(self, handle: TaskHandle) -> None:
        if handle != self.foreground:
            return
        self.foreground = None
        if self.kernel.is_running(self):
            self.prompt()

    def run_script(self, path: str) -> bool:
        """Execute every line of a file. False if it cannot be read."""
        absolute = self.kernel.absolute_file_path(path, self.cwd)
        if absolute in self._script_stack or len(self._script_stack) >= self._max_script_depth:
            self.terminal.writeln(f"&r-script recursion detected: {absolute}&00")
            return False

        content = self.kernel.read_file(absolute)
        if content is None:
            self.terminal.writeln(f"&r-no such file: {path}&00")
            return False

        self._script_stack.append(absolute)
        try:
            for line in content.splitlines():
                self.execute(line)
        finally:
            self._script_stack.pop()
        return True

    # ----- builtins -----

    def cmd_help(self, args: list[str]) -> None:
        rows = [[name, summary] for name, summary in BUILTINS.items()]
        self.terminal.writeln(format_table(["BUILTIN", "DESCRIPTION"], rows))
        tasks = [[name, self.registry.summary(name)] for name in self.registry.names()]
        if tasks:
            self.terminal.writeln()
            self.terminal.writeln(format_table(["TASK", "DESCRIPTION"], tasks))

    def cmd_ls(self, args: list[str]) -> None:
        target = args[0] if args else "."
        entries = self.kernel.list_dir(target, self.cwd)
        if entries is None:
            self.terminal.writeln(f"&r-no such directory: {target}&00")
            return
        base = self.kernel.absolute_file_path(target, self.cwd)
        for entry in entries:
            suffix = "/" if self.kernel.is_dir(entry, base) else ""
            self.terminal.writeln(entry + suffix)

    def cmd_cd(self, args: list[str]) -> None:
        target = args[0] if args else "/"
        if not self.kernel.is_dir(target, self.cwd):
            self.terminal.writeln(f"&r-no such directory: {target}&00")
            return
        self.cwd = self.kernel.absolute_file_path(target, self.cwd)

    def cmd_pwd(self, args: list[str]) -> None:
        self.terminal.writeln(self.cwd)

    def cmd_cat(self, args: list[str]) -> None:
        if not args:
            self.terminal.writeln("&y-Usage: cat FILE&00")
            return
        content = self.kernel.read_file(args[0], self.cwd)
        if content is None:
            self.terminal.writeln(f"&r-no such file: {args[0]}&00")
            return
        self.terminal.write(content if content.endswith("\n") else content + "\n")

    def cmd_ps(self, args: list[str]) -> None:
        rows = [
            [r.handle.id, r.handle.name, r.state.value, " ".join(r.args), r.started_at[11:19]]
            for r in self.kernel.tasks()
        ]
        self.terminal.writeln(format_table(["ID", "TASK", "STATE", "ARGS", "STARTED"], rows))

    def cmd_kill(self, args: list[str]) -> None:
        if not args or not is_integer(args[0]):
            self.terminal.writeln("&y-Usage: kill ID&00")
            return
        if not self.kernel.stop_task(int(args[0])):
            self.terminal.writeln(f"&r-no such task: {args[0]}&00")

    def cmd_run(self, args: list[str]) -> None:
        if not args:
            self.terminal.writeln("&y-Usage: run FILE&00")
            return
        self.run_script(args[0])

    def cmd_exit(self, args: list[str]) -> None:
        self.terminal.writeln("&w-bye&00")
        self.stop_self()
