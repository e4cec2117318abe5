# ruff: noqa: E402

import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import repoteer.log as log


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[None]:
    monkeypatch.setenv("REPOTEER_CONFIG", str(tmp_path / "no-such-config.toml"))
    monkeypatch.delenv("REPOTEER_LOG_LEVEL", raising=False)
    monkeypatch.delenv("REPOTEER_NO_COLOR", raising=False)
    for name in ("NO_COLOR", "FORCE_COLOR", "TTY_COMPATIBLE", "TTY_INTERACTIVE"):
        monkeypatch.delenv(name, raising=False)
    log.set_level(None)
    log.set_no_color(None)
    yield
    log.set_level(None)
    log.set_no_color(None)
