"""Training session: wires pack content, scheduling, timing, scoring and persistence."""

from __future__ import annotations

import logging
import math
import random
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path

from .content_loader import get_pack
from .keyparser import keys_match, parse_key_notation
from .models import CommandDefinition, CommandState, GlobalStats, Pack, ProgressRecord, TrackedCommand
from .progress import ProgressStore
from .scorer import AttemptResult, SessionScorer, SessionStats
from .selector import due_count, select_next, seconds_until_next_due
from .srs import MAX_LEVEL, initial_state, interval_commands, is_due, transition
from .timer import TICK_INTERVAL, Countdown, Scheduler, time_limit

logger = logging.getLogger(__name__)

NowFn = Callable[[], datetime]


class Outcome(Enum):
    """How one presentation ended."""

    CORRECT = "correct"
    INCORRECT = "incorrect"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class Presentation:
    """A command currently shown to the player."""

    command: CommandDefinition
    level: int
    time_limit: float
    target_text: str
    display_keys: str


@dataclass(frozen=True)
class AnswerOutcome:
    """Result of resolving one presentation."""

    outcome: Outcome
    command: CommandDefinition
    previous_level: int
    state: CommandState
    attempt: AttemptResult
    time_remaining: float

    @property
    def leveled_up(self) -> bool:
        return self.state.level > self.previous_level


@dataclass(frozen=True)
class PackStats:
    """Aggregate view of progress in one pack."""

    pack_id: str
    pack_name: str
    total_commands: int
    mastered_count: int
    due_count: int
    review_due_count: int
    level_counts: tuple[int, ...]
    current_group: int
    group_count: int
    global_stats: GlobalStats

    @property
    def average_level(self) -> float:
        if self.total_commands == 0:
            return 0.0
        return sum(level * count for level, count in enumerate(self.level_counts)) / self.total_commands

    @property
    def mastered_percent(self) -> int:
        """Share of the pack at the top level, rounded half up."""
        if self.total_commands == 0:
            return 0
        return math.floor(100 * self.mastered_count / self.total_commands + 0.5)


class TrainingService:
    """Runs one play session over a pack.

    Only one command is in flight at a time; its countdown is stopped before
    the next presentation starts. State transitions are serialised with a
    lock because countdown expiry arrives on a timer thread.
    """

    def __init__(
        self,
        pack_id: str,
        db_path: Path | str,
        *,
        packs: dict[str, Pack] | None = None,
        rng: random.Random | None = None,
        now_fn: NowFn | None = None,
        clock: Callable[[], float] = time.monotonic,
        scheduler: Scheduler | None = None,
        tick_interval: float = TICK_INTERVAL,
        on_tick: Callable[[float], None] | None = None,
        on_timeout: Callable[[AnswerOutcome], None] | None = None,
    ) -> None:
        self.pack = get_pack(pack_id, packs)
        self.progress = ProgressStore(db_path)
        self.scorer = SessionScorer()
        self._rng = rng or random.Random()
        self._now_fn = now_fn or (lambda: datetime.now(UTC))
        self._clock = clock
        self._scheduler = scheduler
        self._tick_interval = tick_interval
        self._on_tick = on_tick
        self._on_timeout = on_timeout

        self._lock = threading.RLock()
        self._presentation: Presentation | None = None
        self._countdown: Countdown | None = None
        self._resolved: AnswerOutcome | None = None
        self._last_key: str | None = None
        self._presented_count = 0
        self._last_presented_at: dict[str, int] = {}
        self._session_started = clock()
        self._time_at_session_start = 0.0

        self._record = self._load_record()
        self._time_at_session_start = self._record.global_stats.total_time_seconds

    def _load_record(self) -> ProgressRecord:
        """Load saved progress and give unseen commands a fresh state."""
        record = self.progress.load(self.pack.id)
        states = dict(record.command_states)
        now = self._now_fn()
        added = 0
        for command in self.pack.commands():
            if command.keys not in states:
                states[command.keys] = initial_state(now)
                added += 1
        record = replace(record, command_states=states)
        if added:
            logger.info("Initialised %d new commands for pack '%s'", added, self.pack.id)
        self._persist(record)
        return record

    def _persist(self, record: ProgressRecord) -> None:
        if not self.progress.save(self.pack.id, record):
            logger.warning("Progress for pack '%s' was not saved", self.pack.id)

    @property
    def record(self) -> ProgressRecord:
        with self._lock:
            return self._record

    @property
    def current(self) -> Presentation | None:
        with self._lock:
            return self._presentation

    def tracked_commands(self) -> list[TrackedCommand]:
        """Return every pack command paired with its current state, in pack order."""
        with self._lock:
            states = self._record.command_states
            return [
                TrackedCommand(definition=command, state=states.get(command.keys) or initial_state(self._now_fn()))
                for command in self.pack.commands()
            ]

    def next_command(self) -> Presentation | None:
        """Select and present the next command, starting its countdown."""
        with self._lock:
            self._stop_countdown()
            tracked = self.tracked_commands()
            current_index = next(
                (index for index, item in enumerate(tracked) if item.key == self._last_key),
                None,
            )
            chosen = select_next(tracked, current_index, self._now_fn(), self._rng)
            if chosen is None:
                self._presentation = None
                logger.debug("Nothing due in pack '%s'", self.pack.id)
                return None

            command = chosen.definition
            presentation = Presentation(
                command=command,
                level=chosen.level,
                time_limit=time_limit(chosen.level, command.complexity),
                target_text=self.pack.target_text(command.target_type, self._rng),
                display_keys=parse_key_notation(command.keys, self.pack.key_notation),
            )
            self._presentation = presentation
            self._resolved = None
            self._last_key = command.keys
            self._presented_count += 1
            self._last_presented_at[command.keys] = self._presented_count

            countdown = Countdown(
                presentation.time_limit,
                on_tick=self._on_tick,
                on_complete=lambda: self._handle_expiry(presentation),
                tick_interval=self._tick_interval,
                clock=self._clock,
                scheduler=self._scheduler,
            )
            self._countdown = countdown
        logger.debug("Presenting '%s' at level %d for %.2fs", command.keys, chosen.level, presentation.time_limit)
        countdown.start()
        return presentation

    def time_remaining(self) -> float:
        """Return seconds left for the command in flight (0 when none)."""
        with self._lock:
            return self._countdown.remaining() if self._countdown is not None else 0.0

    def submit(self, typed: str) -> AnswerOutcome:
        """Resolve the current presentation with typed keys.

        If the countdown already ran out, the recorded timeout is returned.
        """
        with self._lock:
            if self._presentation is None:
                raise RuntimeError("No command is awaiting an answer.")
            if self._resolved is not None:
                return self._resolved
            remaining = self.time_remaining()
            if remaining <= 0:
                return self._resolve(Outcome.TIMEOUT, 0.0)
            correct = keys_match(self._presentation.command.keys, typed, self.pack.key_notation)
            return self._resolve(Outcome.CORRECT if correct else Outcome.INCORRECT, remaining)

    def expire(self) -> AnswerOutcome | None:
        """Resolve the current presentation as a timeout, if still open."""
        with self._lock:
            if self._presentation is None:
                return None
            if self._resolved is not None:
                return self._resolved
            return self._resolve(Outcome.TIMEOUT, 0.0)

    def abandon(self) -> None:
        """Drop the current presentation without scoring it."""
        with self._lock:
            self._stop_countdown()
            self._presentation = None
            self._resolved = None

    def _handle_expiry(self, presentation: Presentation) -> None:
        with self._lock:
            if self._presentation is not presentation or self._resolved is not None:
                return
            outcome = self._resolve(Outcome.TIMEOUT, 0.0)
        if self._on_timeout is not None:
            self._on_timeout(outcome)

    def _resolve(self, outcome: Outcome, time_remaining: float) -> AnswerOutcome:
        """Apply one answer to SRS state, session score and stored progress. Caller holds the lock."""
        presentation = self._presentation
        if presentation is None:
            raise RuntimeError("No command is awaiting an answer.")
        self._stop_countdown()

        is_correct = outcome is Outcome.CORRECT
        key = presentation.command.keys
        previous = self._record.command_states.get(key) or initial_state(self._now_fn())
        new_state = transition(previous, is_correct, self._now_fn())
        attempt = self.scorer.record_attempt(is_correct, time_remaining, presentation.time_limit, previous.level)

        stats = self._record.global_stats
        states = dict(self._record.command_states)
        states[key] = new_state
        self._record = replace(
            self._record,
            command_states=states,
            global_stats=GlobalStats(
                total_commands=stats.total_commands + 1,
                total_time_seconds=self._time_at_session_start + (self._clock() - self._session_started),
                best_combo=max(stats.best_combo, attempt.combo),
                total_score=stats.total_score + attempt.score,
            ),
        )
        self._persist(self._record)

        result = AnswerOutcome(
            outcome=outcome,
            command=presentation.command,
            previous_level=previous.level,
            state=new_state,
            attempt=attempt,
            time_remaining=time_remaining,
        )
        self._resolved = result
        logger.debug("'%s' %s: level %d -> %d", key, outcome.value, previous.level, new_state.level)
        return result

    def _stop_countdown(self) -> None:
        if self._countdown is not None:
            self._countdown.stop()
            self._countdown = None

    def commands_since_last_seen(self, key: str) -> int:
        """Return presentations since `key` was last shown this session."""
        with self._lock:
            last = self._last_presented_at.get(key)
            if last is None:
                return self._presented_count + interval_commands(MAX_LEVEL)
            return self._presented_count - last

    def session_stats(self) -> SessionStats:
        """Return score, combo and accuracy for this session."""
        with self._lock:
            return self.scorer.stats()

    def pack_stats(self) -> PackStats:
        """Return mastery and due counts for the pack."""
        with self._lock:
            tracked = self.tracked_commands()
            now = self._now_fn()
            level_counts = [0] * (MAX_LEVEL + 1)
            for item in tracked:
                level_counts[max(0, min(MAX_LEVEL, item.level))] += 1
            review_due = sum(
                1 for item in tracked if is_due(item.state, self.commands_since_last_seen(item.key), now)
            )
            return PackStats(
                pack_id=self.pack.id,
                pack_name=self.pack.name,
                total_commands=len(tracked),
                mastered_count=level_counts[MAX_LEVEL],
                due_count=due_count(tracked, now),
                review_due_count=review_due,
                level_counts=tuple(level_counts),
                current_group=self._record.current_group,
                group_count=len(self.pack.groups),
                global_stats=self._record.global_stats,
            )

    def seconds_until_next_due(self) -> float | None:
        """Return seconds until some command becomes due."""
        return seconds_until_next_due(self.tracked_commands(), self._now_fn())

    def reset_progress(self) -> None:
        """Forget all stored progress for the pack and start over."""
        with self._lock:
            self._stop_countdown()
            self._presentation = None
            self._resolved = None
            self._last_key = None
            self.progress.delete(self.pack.id)
            self._record = self._load_record()
            self._time_at_session_start = 0.0
            self._session_started = self._clock()
        logger.info("Reset progress for pack '%s'", self.pack.id)

    def close(self) -> None:
        """Stop any running countdown and close storage."""
        with self._lock:
            self._stop_countdown()
        self.progress.close()

    def __del__(self) -> None:  # pragma: no cover
        """Best-effort cleanup for test/process teardown."""
        try:
            self.close()
        except Exception:
            pass
