from __future__ import annotations

import json
import shutil
import sys
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any
from uuid import uuid4

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from keyblitz.content_loader import load_packs_from_dir  # noqa: E402
from keyblitz.models import Pack  # noqa: E402


def _tmp_path_fixture() -> Iterator[Path]:
    """Provide a per-test directory under ``.tmp_pytest/`` in the project root.

    Overrides pytest's builtin ``tmp_path`` so databases and pack files stay
    inside the working tree.
    """
    base = ROOT / ".tmp_pytest"
    base.mkdir(parents=True, exist_ok=True)
    path = base / str(uuid4())
    path.mkdir(parents=True, exist_ok=False)
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)
        try:
            next(base.iterdir())
        except StopIteration:
            base.rmdir()
        except FileNotFoundError:
            pass


tmp_path = pytest.fixture(name="tmp_path")(_tmp_path_fixture)


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ManualHandle:
    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Scheduler that queues callbacks until `run_pending()` is called."""

    def __init__(self) -> None:
        self.handles: list[ManualHandle] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualHandle:
        handle = ManualHandle(delay, callback)
        self.handles.append(handle)
        return handle

    def pending(self) -> list[ManualHandle]:
        return [handle for handle in self.handles if not handle.cancelled]

    def run_pending(self) -> int:
        """Run callbacks queued so far; callbacks they queue wait for the next call."""
        ready = self.pending()
        self.handles = []
        for handle in ready:
            handle.callback()
        return len(ready)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


def make_pack_dict(pack_id: str = "demo", **overrides: Any) -> dict[str, Any]:
    """Return raw content for a small two-group pack."""
    raw: dict[str, Any] = {
        "id": pack_id,
        "name": "Demo",
        "description": "Demo keybindings",
        "version": "1.0.0",
        "groups": [
            {
                "name": "Basics",
                "description": "First steps",
                "commands": [
                    {"keys": "C-b %", "concept": "SPLIT", "color": "yellow", "complexity": 1.3, "target_type": "pane"},
                    {"keys": "C-b o", "concept": "NEXT", "color": "cyan", "complexity": 1.0, "target_type": "pane"},
                ],
            },
            {
                "name": "Windows",
                "description": "More steps",
                "commands": [
                    {"keys": "C-b c", "concept": "NEW", "color": "green", "complexity": 1.0, "target_type": "window"},
                ],
            },
        ],
        "targets": {"pane": ["left pane"], "window": ["editor window"]},
        "key_notation": {"C-b": "Ctrl+b ", "C-": "Ctrl+"},
    }
    raw.update(overrides)
    return raw


@pytest.fixture
def pack_dict() -> dict[str, Any]:
    return make_pack_dict()


@pytest.fixture
def demo_packs(tmp_path: Path, pack_dict: dict[str, Any]) -> dict[str, Pack]:
    pack_dir = tmp_path / "packs"
    pack_dir.mkdir()
    (pack_dir / "demo.json").write_text(json.dumps(pack_dict), encoding="utf-8")
    return load_packs_from_dir(pack_dir)
