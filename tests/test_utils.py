from __future__ import annotations

from haxos.config import ANSI_BACKGROUNDS, ANSI_COLORS
from haxos.utils import format_table, is_integer, md5_hex, render_markup, strip_markup


def test_format_table_pads_columns() -> None:
    table = format_table(["ID", "TASK"], [[1, "sh"], [12, "chatserver"]], title="tasks")
    assert table.splitlines() == [
        "tasks",
        "ID  TASK",
        "1   sh",
        "12  chatserver",
    ]


def test_format_table_empty() -> None:
    assert format_table(["ID"], []) == ""


def test_render_markup_colours() -> None:
    text = render_markup("&g-ok&00")
    assert text == ANSI_COLORS["green"] + "ok" + ANSI_COLORS["reset"]

    both = render_markup("&wr!")
    assert both == ANSI_COLORS["white"] + ANSI_BACKGROUNDS["red"] + "!"

    assert render_markup("&--plain") == "plain"
    assert render_markup("no markup & such") == "no markup & such"


def test_strip_markup() -> None:
    assert strip_markup("&r-failed&00 twice&00") == "failed twice"
    assert render_markup("&y-warn&00", color=False) == "warn"


def test_is_integer() -> None:
    assert is_integer("1030")
    assert is_integer(" -5 ")
    assert is_integer("+7")
    assert not is_integer("")
    assert not is_integer("1.5")
    assert not is_integer("abc")


def test_md5_hex_matches_sample_users() -> None:
    assert md5_hex("john") == "527bd5b5d689e2c32ae974c6229ff785"
    assert md5_hex("doedoedoe") == "8a1880285032d8a989b5034ce64ce437"
    assert md5_hex("password") == "5f4dcc3b5aa765d61d8327deb882cf99"
