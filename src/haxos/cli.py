# HaxOS — Cooperative Task Kernel and Virtual Network Simulator
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
HaxOS CLI entry point and console loop.

Design:
- CLI owns process startup: config, logging, network and machine wiring.
- Every machine boots a shell that runs its /etc/startup file.
- The event loop runs on its own thread; the console loop (this thread)
  only reads lines and feeds them to the console machine's terminal.
"""

from __future__ import annotations

import os
import sys
from collections.abc import Callable
from typing import Any

from . import config
from .events import EventLoop
from .kernel import Kernel
from .logs import configure_logging, write_crash_log
from .network import Network
from .registry import TaskRegistry
from .storage import MemoryStorage
from .system.shell import STARTUP_FILE, Shell
from .task import TaskHandle
from .terminal import NullDisplay, Terminal
from .ui import CANCEL, ConsoleDisplay, PromptToolkitUI

USAGE = """usage: haxos [--config PATH] [--machine NAME]

  --config PATH    YAML file merged over the packaged defaults
                   (default: $HAXOS_CONFIG)
  --machine NAME   machine whose terminal the console attaches to
                   (default: first machine with a terminal)

Environment:
  HAXOS_DATA_HOME  data root for logs (default: ~/.local/share)
  HAXOS_LEGACY_UI  set to 1 for plain input()/print(); type ^[ for ESC
"""

# Give the loop a moment to finish reacting before showing a prompt
IDLE_WAIT_S = 0.5


def run_console(
    terminal: Terminal,
    loop: EventLoop,
    display: ConsoleDisplay | None = None,
    ui: PromptToolkitUI | None = None,
    input_fn: Callable[[str], str] = input,
    output_fn: Callable[[str], None] = print,
    is_alive: Callable[[], bool] | None = None,
) -> None:
    """Feed console lines to a terminal until EOF, Ctrl-C or is_alive()
    turns false."""
    while True:
        try:
            loop.wait_idle(IDLE_WAIT_S)
            if is_alive is not None and not is_alive():
                break
            prompt = display.take_prompt() if display is not None else ""

            if ui is not None:
                line = ui.read(prompt)
            else:
                line = input_fn(prompt)

            try:
                if line == CANCEL or line.strip() in ("\x1b", "^["):
                    terminal.input(b"")
                else:
                    terminal.input((line + "\n").encode("utf-8"))
            except Exception as e:
                # Unhandled exception - write crash log
                write_crash_log(e, where="console", machine=terminal.name, args=[line])
                error_msg = f"[ERROR] Unhandled exception: {type(e).__name__}: {e}"
                if ui is not None:
                    ui.write(error_msg + "\n")
                else:
                    output_fn(error_msg)
                # Continue session

        except (KeyboardInterrupt, EOFError):
            msg = "\nBye!\n"
            if ui is not None:
                ui.write(msg)
            else:
                output_fn(msg)
            break


# ----------------------------
# Machine wiring
# ----------------------------


def build_machine(
    spec: dict[str, Any],
    network: Network,
    cfg: config.YAMLConfig,
    registry: TaskRegistry,
    display: Any = None,
) -> Kernel:
    """Create one machine from a ``machines`` config entry."""
    name = str(spec.get("name") or "machine")
    if "address" not in spec:
        raise ValueError(f"Machine {name!r} has no address")

    storage = MemoryStorage()
    for mount_point, source in (spec.get("mounts") or {}).items():
        storage.mount(mount_point, config.resolve_data_path(source))
    startup = spec.get("startup") or []
    if startup:
        storage.write(STARTUP_FILE, "\n".join(str(c) for c in startup) + "\n")

    terminal = Terminal(display=display or NullDisplay(), name=name)
    kernel = Kernel(
        address=str(spec["address"]),
        network=network,
        storage=storage,
        config=cfg,
        terminal=terminal,
        name=name,
        registry=registry,
    )
    if spec.get("domain"):
        network.register_domain(name, kernel.address)
    return kernel


def build_network(cfg: config.YAMLConfig) -> Network:
    network = Network(
        cfg.get_path("network.subnet", "0.0.0.0/0"),
        name=str(cfg.get_path("network.name", "lan")),
    )
    for domain, address in (cfg.get_path("network.domains", {}) or {}).items():
        network.register_domain(str(domain), address)
    return network


def pick_console(cfg: config.YAMLConfig, wanted: str | None) -> str | None:
    """Name of the machine the console attaches to."""
    names = [str(m.get("name")) for m in cfg.machines]
    if wanted is not None:
        if wanted not in names:
            raise ValueError(f"Unknown machine: {wanted}")
        return wanted
    for machine in cfg.machines:
        if machine.get("terminal"):
            return str(machine.get("name"))
    return None


def boot(kernel: Kernel) -> TaskHandle:
    """Start the machine's shell (running /etc/startup if present)."""
    args = [STARTUP_FILE] if kernel.storage.exists(STARTUP_FILE) else []
    return kernel.launch(Shell, args, name="sh")


def _parse_args(argv: list[str]) -> dict[str, str]:
    opts: dict[str, str] = {}
    i = 0
    while i < len(argv):
        arg = argv[i]
        if arg in ("-h", "--help"):
            opts["help"] = "1"
        elif arg in ("--config", "--machine"):
            if i + 1 >= len(argv):
                raise ValueError(f"{arg} needs a value")
            opts[arg[2:]] = argv[i + 1]
            i += 1
        else:
            raise ValueError(f"Unknown argument: {arg}")
        i += 1
    return opts


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the HaxOS console."""
    try:
        opts = _parse_args(sys.argv[1:] if argv is None else argv)
    except ValueError as e:
        print(f"haxos: {e}\n\n{USAGE}", file=sys.stderr)
        return 2
    if "help" in opts:
        print(USAGE)
        return 0

    cfg = config.load_config(opts.get("config") or os.environ.get("HAXOS_CONFIG"))
    configure_logging(cfg)
    registry = TaskRegistry.from_config(cfg)
    network = build_network(cfg)
    try:
        console_name = pick_console(cfg, opts.get("machine"))
    except ValueError as e:
        print(f"haxos: {e}", file=sys.stderr)
        return 2
    if console_name is None:
        print("haxos: no machine with a terminal configured", file=sys.stderr)
        return 1

    # If user explicitly disables prompt_toolkit UI:
    legacy = os.environ.get("HAXOS_LEGACY_UI") == "1"
    ui = None if legacy else PromptToolkitUI(config=cfg, commands=registry.names())
    # Loop-thread output goes through sys.stdout, which patch_stdout() keeps
    # above the active prompt
    display = ConsoleDisplay(
        color=bool(cfg.get_path("ui.color", True)),
    )

    machines: list[Kernel] = []
    console: Kernel | None = None
    for spec in cfg.machines:
        is_console = spec.get("name") == console_name
        kernel = build_machine(spec, network, cfg, registry, display if is_console else None)
        machines.append(kernel)
        if is_console:
            console = kernel

    # Console machine boots last so its prompt is the last thing printed
    assert console is not None
    for kernel in machines:
        if kernel is not console:
            boot(kernel)
    shell_handle = boot(console)
    shell = console.get_task(shell_handle)
    if ui is not None and isinstance(shell, Shell):
        ui.attach(console, lambda: shell.cwd)

    network.loop.run_until_idle()
    thread = network.loop.start_thread()
    try:
        run_console(
            console.terminal,
            network.loop,
            display=display,
            ui=ui,
            is_alive=lambda: console.is_running(shell_handle),
        )
    finally:
        network.loop.stop()
        thread.join(timeout=2)
        for kernel in reversed(machines):
            kernel.shutdown()
        display.flush()
    return 0
