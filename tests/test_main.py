from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest

import keyblitz.main as main
from keyblitz.models import CommandDefinition, CommandState, GlobalStats
from keyblitz.scorer import AttemptResult, SessionStats
from keyblitz.service import AnswerOutcome, Outcome, PackStats, Presentation

SPLIT = CommandDefinition(
    keys="C-b %", concept="SPLIT VERTICAL", color="yellow", complexity=1.0, target_type="pane", group="Panes"
)


class DummyService:
    def __init__(self, presentations: int = 1, wait: float | None = 90.0) -> None:
        self.pack = SimpleNamespace(id="demo", name="Demo")
        self.remaining = presentations
        self.wait = wait
        self.submitted: list[str] = []
        self.closed = False
        self.abandoned = False
        self.reset_called = False
        self.timeout_next = False
        self.correct = 0
        self.total = 0

    def close(self) -> None:
        self.closed = True

    def next_command(self) -> Presentation | None:
        if self.remaining == 0:
            return None
        self.remaining -= 1
        return Presentation(
            command=SPLIT, level=0, time_limit=5.0, target_text="left pane", display_keys="Ctrl+b  %"
        )

    def submit(self, typed: str) -> AnswerOutcome:
        self.submitted.append(typed)
        self.total += 1
        if self.timeout_next:
            outcome = Outcome.TIMEOUT
        elif typed == SPLIT.keys:
            outcome = Outcome.CORRECT
        else:
            outcome = Outcome.INCORRECT
        is_correct = outcome is Outcome.CORRECT
        self.correct += int(is_correct)
        return AnswerOutcome(
            outcome=outcome,
            command=SPLIT,
            previous_level=2 if is_correct else 1,
            state=CommandState(level=3 if is_correct else 0),
            attempt=AttemptResult(
                score=450 if is_correct else 0, combo=int(is_correct), total_score=450, is_correct=is_correct
            ),
            time_remaining=2.5 if is_correct else 0.0,
        )

    def abandon(self) -> None:
        self.abandoned = True

    def session_stats(self) -> SessionStats:
        accuracy = round(100 * self.correct / self.total, 1) if self.total else 0.0
        return SessionStats(
            total_score=450,
            current_combo=1,
            best_combo=1,
            correct_count=self.correct,
            incorrect_count=self.total - self.correct,
            total_attempts=self.total,
            accuracy=accuracy,
        )

    def seconds_until_next_due(self) -> float | None:
        return self.wait

    def pack_stats(self) -> PackStats:
        return PackStats(
            pack_id="demo",
            pack_name="Demo",
            total_commands=3,
            mastered_count=1,
            due_count=2,
            review_due_count=2,
            level_counts=(1, 0, 1, 0, 0, 1),
            current_group=0,
            group_count=2,
            global_stats=GlobalStats(total_commands=40, total_time_seconds=3725.0, best_combo=12, total_score=9000),
        )

    def reset_progress(self) -> None:
        self.reset_called = True


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: Any) -> list[tuple[int, Path | None]]:
    monkeypatch.setenv("KEYBLITZ_HOME", str(tmp_path / "home"))
    monkeypatch.delenv("KEYBLITZ_LOG_LEVEL", raising=False)
    monkeypatch.delenv("KEYBLITZ_TICK_INTERVAL", raising=False)
    calls: list[tuple[int, Path | None]] = []
    monkeypatch.setattr(main, "setup_logging", lambda level, log_path=None: calls.append((level, log_path)))
    return calls


def _patch_service(monkeypatch: Any, service: DummyService) -> list[str]:
    requested: list[str] = []

    def factory(pack_id: str, settings: Any) -> DummyService:
        requested.append(pack_id)
        return service

    monkeypatch.setattr(main, "_service", factory)
    return requested


def test_list_command_prints_bundled_packs() -> None:
    outputs: list[str] = []
    assert main.run(["list"], print_fn=outputs.append) == 0
    assert any("=== Packs ===" in line for line in outputs)
    assert any(line.startswith("tmux") for line in outputs)
    assert any(line.startswith("neovim") for line in outputs)


def test_log_level_flag_overrides_environment(isolated_home, tmp_path: Path) -> None:
    main.run(["list", "--log-level", "debug"], print_fn=lambda _: None)
    assert isolated_home == [(10, tmp_path / "home" / "keyblitz.log")]


def test_bad_log_level_is_a_config_error(monkeypatch: Any) -> None:
    monkeypatch.setenv("KEYBLITZ_LOG_LEVEL", "chatty")
    outputs: list[str] = []
    assert main.run(["list"], print_fn=outputs.append) == 2
    assert any("Configuration error" in line for line in outputs)


def test_unknown_pack_reports_error() -> None:
    outputs: list[str] = []
    assert main.run(["emacs"], input_fn=lambda _: ":q", print_fn=outputs.append) == 1
    assert any("Error: Pack \"emacs\" not found" in line for line in outputs)


def test_stats_flag(monkeypatch: Any) -> None:
    service = DummyService()
    requested = _patch_service(monkeypatch, service)
    outputs: list[str] = []
    assert main.run(["tmux", "--stats"], print_fn=outputs.append) == 0
    assert requested == ["tmux"]
    assert service.closed is True
    assert any("Commands: 3 (1 mastered, 2 due now)" in line for line in outputs)
    assert any("Average level: 2.3 | Progress: 33% mastered" in line for line in outputs)
    assert any(line.startswith("MASTERED") for line in outputs)
    assert any("Time played: 1h 02m" in line for line in outputs)


def test_reset_requires_confirmation(monkeypatch: Any) -> None:
    service = DummyService()
    _patch_service(monkeypatch, service)
    outputs: list[str] = []
    assert main.run(["tmux", "--reset"], input_fn=lambda _: "no", print_fn=outputs.append) == 0
    assert service.reset_called is False
    assert any("Reset cancelled." in line for line in outputs)

    assert main.run(["tmux", "--reset"], input_fn=lambda _: "YES", print_fn=outputs.append) == 0
    assert service.reset_called is True
    assert any("has been reset" in line for line in outputs)


def test_no_pack_quits_from_selector(monkeypatch: Any) -> None:
    requested = _patch_service(monkeypatch, DummyService())
    outputs: list[str] = []
    assert main.run([], input_fn=lambda _: "q", print_fn=outputs.append) == 0
    assert requested == []
    assert any("=== Choose a pack ===" in line for line in outputs)


def test_selector_accepts_number_or_id(monkeypatch: Any) -> None:
    outputs: list[str] = []
    inputs = iter(["9", "x", "3"])
    assert main._select_pack(lambda _: next(inputs), outputs.append) == "tmux"
    assert sum(1 for line in outputs if line == "Invalid pack selection.") == 2
    assert main._select_pack(lambda _: "NeoVim", outputs.append) == "neovim"


def test_play_session_reports_each_outcome(monkeypatch: Any) -> None:
    service = DummyService(presentations=2)
    _patch_service(monkeypatch, service)
    inputs = iter([":s", "C-b %", "C-b x"])
    outputs: list[str] = []
    assert main.run(["demo"], input_fn=lambda _: next(inputs), print_fn=outputs.append) == 0

    assert service.submitted == ["C-b %", "C-b x"]
    assert any("[NEW] SPLIT VERTICAL" in line for line in outputs)
    assert any("Target: left pane" in line for line in outputs)
    assert any("Time: 5.0s" in line for line in outputs)
    assert any("Correct! +450 (combo 1, 2.5s left)" in line for line in outputs)
    assert any("Level up: CONFIDENT" in line for line in outputs)
    assert any("Incorrect. Answer: Ctrl+b  %" in line for line in outputs)
    assert any("Dropped to NEW" in line for line in outputs)
    assert any("All caught up. Next review in 1m 30s." in line for line in outputs)
    assert any("Accuracy 50.0% (1/2)" in line for line in outputs)
    assert service.closed is True


def test_play_session_timeout_message() -> None:
    service = DummyService()
    service.timeout_next = True
    outputs: list[str] = []
    main.play_session(service, lambda _: "C-b %", outputs.append)
    assert any("Time's up. Answer: Ctrl+b  %" in line for line in outputs)


def test_play_session_quit_abandons_current_command() -> None:
    service = DummyService(presentations=5)
    outputs: list[str] = []
    assert main.play_session(service, lambda _: ":q", outputs.append) == 0
    assert service.abandoned is True
    assert service.submitted == []
    assert any("Session over." in line for line in outputs)


def test_play_session_empty_pack() -> None:
    service = DummyService(presentations=0, wait=None)
    outputs: list[str] = []
    main.play_session(service, lambda _: "", outputs.append)
    assert any("No commands to train" in line for line in outputs)


def test_real_service_quit_immediately() -> None:
    outputs: list[str] = []
    assert main.run(["tmux"], input_fn=lambda _: ":quit", print_fn=outputs.append) == 0
    assert any("=== Tmux ===" in line for line in outputs)
    assert any("Score 0" in line for line in outputs)


def test_format_duration() -> None:
    assert main._format_duration(0) == "0m 00s"
    assert main._format_duration(95.9) == "1m 35s"
    assert main._format_duration(7260) == "2h 01m"


def test_main_entry_exits_with_run_code(monkeypatch: Any) -> None:
    monkeypatch.setattr(main, "run", lambda: 3)
    with pytest.raises(SystemExit) as exc_info:
        main.main_entry()
    assert exc_info.value.code == 3
