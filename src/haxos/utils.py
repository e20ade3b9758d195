# HaxOS — Cooperative Task Kernel and Virtual Network Simulator
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Utility functions for HaxOS: table formatting, colour markup, small
parsing helpers shared by the shell and the sample tasks.
"""

from __future__ import annotations

import hashlib
import re
from typing import Any

from .config import ANSI_BACKGROUNDS, ANSI_COLORS, MARKUP_COLORS

NEWLINE = "\n"

# "&" + foreground + background, "-" keeps the current colour
_MARKUP = re.compile(r"&([krgybmcw\-0])([krgybmcw\-0])")


def format_table(
    headers: list[str],
    rows: list[list[Any]],
    title: str = ""
) -> str:
    """
    Format rows as a plain text table (columns padded to the widest cell).

    Returns an empty string when there are no rows.
    """
    if not rows:
        return ""

    cells = [[str(h) for h in headers]] + [[str(v) for v in row] for row in rows]
    widths = [
        max(len(row[i]) for row in cells if i < len(row))
        for i in range(len(headers))
    ]

    lines = [title] if title else []
    for row in cells:
        lines.append(
            "  ".join(val.ljust(widths[i]) for i, val in enumerate(row)).rstrip()
        )
    return "\n".join(lines)


def render_markup(text: str, color: bool = True) -> str:
    """Turn Hax colour markup into ANSI escapes (or strip it).

    ``&g-`` green foreground, ``&wr`` white on red, ``&00`` reset.
    """
    if "&" not in text:
        return text

    def _replace(m: re.Match[str]) -> str:
        if not color:
            return ""
        fg, bg = m.group(1), m.group(2)
        if fg == "0" and bg == "0":
            return ANSI_COLORS["reset"]
        out = ""
        if fg in MARKUP_COLORS:
            out += ANSI_COLORS[MARKUP_COLORS[fg]]
        if bg in MARKUP_COLORS:
            out += ANSI_BACKGROUNDS[MARKUP_COLORS[bg]]
        return out

    return _MARKUP.sub(_replace, text)


def strip_markup(text: str) -> str:
    return render_markup(text, color=False)


def is_integer(text: str) -> bool:
    """True for an optionally signed run of decimal digits."""
    return bool(re.fullmatch(r"[+-]?\d+", text.strip())) if text else False


def md5_hex(text: str) -> str:
    return hashlib.md5(text.encode("utf-8")).hexdigest()
