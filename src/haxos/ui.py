# HaxOS — Cooperative Task Kernel and Virtual Network Simulator
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Console UI for the machine terminal.

- ConsoleDisplay: the terminal's Display. Complete lines are printed at
  once (Hax markup rendered to ANSI); a trailing partial line such as
  "username: " is held back and becomes the next input prompt.
- PromptToolkitUI: PromptSession with completion of commands and machine
  paths. ESC returns CANCEL, which the console turns into the empty
  input payload tasks treat as "user cancel".
"""

from __future__ import annotations

import sys
import threading
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.formatted_text import ANSI
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.patch_stdout import patch_stdout
from prompt_toolkit.shortcuts import clear as pt_clear
from prompt_toolkit.shortcuts import print_formatted_text
from prompt_toolkit.styles import Style

from .system.shell import BUILTINS
from .utils import render_markup

if TYPE_CHECKING:
    from .interfaces import ConfigModel  # pragma: no cover
    from .kernel import Kernel  # pragma: no cover

# Returned by read() when ESC is pressed
CANCEL = "\x1b"


# ----------------------------
# Config helpers
# ----------------------------


def _cfg_get_path(cfg: ConfigModel | None, path: str, default: Any) -> Any:
    if cfg is None or not hasattr(cfg, "get_path"):
        return default
    return cfg.get_path(path, default)


def _cfg_dict(cfg: ConfigModel | None, path: str, default: dict) -> dict:
    val = _cfg_get_path(cfg, path, default)
    return val if isinstance(val, dict) else default


# ----------------------------
# Theme / Style
# ----------------------------


def _default_style_dict() -> dict[str, str]:
    return {
        "completion-menu": "bg:#111111 #d0d0d0",
        "completion-menu.completion": "bg:#111111 #d0d0d0",
        "completion-menu.completion.current": "bg:#303030 #ffffff bold",
        "completion-menu.meta.completion": "bg:#111111 #808080",
        "completion-menu.meta.completion.current": "bg:#303030 #a0a0a0",
        "scrollbar.background": "bg:#202020",
        "scrollbar.button": "bg:#505050",
    }


def _build_style(cfg: ConfigModel | None) -> Style:
    base = _default_style_dict()
    overrides = _cfg_dict(cfg, "ui.theme.style", {})
    # only keep string->string
    for k, v in overrides.items():
        if isinstance(k, str) and isinstance(v, str):
            base[k] = v
    return Style.from_dict(base)


# ----------------------------
# Display
# ----------------------------


def _stdout_write(text: str) -> None:
    sys.stdout.write(text)
    sys.stdout.flush()


class ConsoleDisplay:
    """Terminal display for the local console. Safe to call from the
    event loop thread while the UI thread is reading input."""

    def __init__(
        self,
        write_fn: Callable[[str], None] | None = None,
        color: bool = True,
    ) -> None:
        self._write_fn = write_fn or _stdout_write
        self.color = color
        self._partial = ""
        self._lock = threading.Lock()

    def write(self, text: str) -> None:
        if not text:
            return
        with self._lock:
            head, sep, tail = (self._partial + text).rpartition("\n")
            self._partial = tail
        if sep:
            self._write_fn(render_markup(head + sep, self.color))

    def take_prompt(self) -> str:
        """Pending partial line (rendered), cleared on return."""
        with self._lock:
            partial, self._partial = self._partial, ""
        return render_markup(partial, self.color)

    def flush(self) -> None:
        prompt = self.take_prompt()
        if prompt:
            self._write_fn(prompt)


# ----------------------------
# Completion
# ----------------------------


class CommandCompleter(Completer):
    """First token: shell builtins and task names. Later tokens: paths on
    the machine's storage, relative to the shell's working directory."""

    def __init__(
        self,
        commands: Iterable[str] = (),
        kernel: Kernel | None = None,
        cwd_fn: Callable[[], str] | None = None,
    ) -> None:
        self.commands = sorted(set(BUILTINS) | set(commands))
        self.kernel = kernel
        self.cwd_fn = cwd_fn or (lambda: "/")

    def get_completions(self, document, complete_event) -> Iterable[Completion]:
        text = document.text_before_cursor.lstrip()
        if " " not in text:
            for name in self.commands:
                if name.startswith(text):
                    meta = "builtin" if name in BUILTINS else "task"
                    yield Completion(name, start_position=-len(text), display_meta=meta)
            return

        if self.kernel is None:
            return
        token = "" if text.endswith(" ") else text.split()[-1]
        directory, _, prefix = token.rpartition("/")
        if token.startswith("/") and not directory:
            directory = "/"
        base = self.kernel.absolute_file_path(directory or ".", self.cwd_fn())
        for entry in self.kernel.list_dir(base) or []:
            if not entry.startswith(prefix):
                continue
            suffix = "/" if self.kernel.is_dir(entry, base) else ""
            yield Completion(entry + suffix, start_position=-len(prefix))


# ----------------------------
# Prompt UI
# ----------------------------


class PromptToolkitUI:
    """
    Terminal-friendly UI:
      - Keeps normal terminal scrollback + drag-select copy.
      - PromptSession with command/path completion.
      - Output produced while a prompt is active is printed above it.
      - Hotkeys:
          * ESC: cancel (empty input to the terminal)
          * Ctrl+L: clear screen
    """

    def __init__(
        self,
        config: ConfigModel | None = None,
        commands: Iterable[str] = (),
        kernel: Kernel | None = None,
        cwd_fn: Callable[[], str] | None = None,
    ) -> None:
        self.config = config
        self.session: PromptSession[str] | None = None
        self._completer = CommandCompleter(commands, kernel, cwd_fn)
        self._style = _build_style(config)

    def _ensure_session(self) -> None:
        if self.session is not None:
            return
        self.session = PromptSession(
            key_bindings=self.build_key_bindings(),
            completer=self._completer,
            complete_while_typing=False,
            style=self._style,
        )

    # ---------- public API ----------

    def attach(self, kernel: Kernel, cwd_fn: Callable[[], str]) -> None:
        """Complete paths on this machine, relative to cwd_fn()."""
        self._completer.kernel = kernel
        self._completer.cwd_fn = cwd_fn

    def read(self, prompt: str) -> str:
        """Read one line. Returns CANCEL if ESC was pressed."""
        self._ensure_session()
        assert self.session is not None
        with patch_stdout(raw=True):
            return self.session.prompt(ANSI(prompt))

    def write(self, text: str) -> None:
        """Write EXACTLY what we receive (no extra newline)."""
        if not text:
            return
        print_formatted_text(ANSI(text), style=self._style, end="")

    def clear(self) -> None:
        pt_clear()

    # ---------- keybindings ----------

    def build_key_bindings(self) -> KeyBindings:
        kb = KeyBindings()

        @kb.add("escape", eager=True)
        def _(event):
            event.current_buffer.reset()
            event.app.exit(result=CANCEL)

        @kb.add("c-l")
        def _(event):
            event.app.renderer.clear()
            event.app.invalidate()

        return kb
