from __future__ import annotations

from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def haxos_data_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep log and crash files out of the real home directory."""
    data = tmp_path / "haxos_data_home"
    data.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("HAXOS_DATA_HOME", str(data))
    monkeypatch.delenv("HAXOS_CONFIG", raising=False)
    return data
