"""Spaced-repetition state transitions and review eligibility.

Levels run from 0 (new or just failed) to 5 (mastered). Three consecutive
correct answers advance one level; any miss drops the command back to 0.
Review intervals are counted in presented commands, with a wall-clock
estimate stored alongside so due dates survive restarts.
"""

from __future__ import annotations

import math
from dataclasses import replace
from datetime import UTC, datetime, timedelta

from .models import CommandState

SRS_INTERVALS = (0, 3, 10, 25, 50, 100)
SUCCESSES_TO_ADVANCE = 3
MAX_LEVEL = 5
SECONDS_PER_COMMAND = 2.5
LEVEL_NAMES = ("NEW", "LEARNING", "FAMILIAR", "CONFIDENT", "PROFICIENT", "MASTERED")


def _clamp_level(level: int) -> int:
    return max(0, min(MAX_LEVEL, level))


def interval_commands(level: int) -> int:
    """Return how many presented commands a level waits before review."""
    return SRS_INTERVALS[_clamp_level(level)]


def initial_state(now: datetime | None = None) -> CommandState:
    """Return the state of a command that has never been attempted."""
    return CommandState(next_review=now or datetime.now(UTC))


def next_review_time(level: int, now: datetime | None = None) -> datetime:
    """Estimate when a command at `level` becomes due again."""
    now = now or datetime.now(UTC)
    if level <= 0:
        return now
    return now + timedelta(seconds=interval_commands(level) * SECONDS_PER_COMMAND)


def transition(state: CommandState, is_correct: bool, now: datetime | None = None) -> CommandState:
    """Apply one answer to a command state and return the new state."""
    now = now or datetime.now(UTC)
    level = state.level
    successes = state.successes
    failures = state.failures

    if is_correct:
        successes += 1
        if successes >= SUCCESSES_TO_ADVANCE and level < MAX_LEVEL:
            level += 1
            successes = 0
    else:
        level = 0
        successes = 0
        failures += 1

    return replace(
        state,
        level=level,
        successes=successes,
        failures=failures,
        last_seen=now,
        next_review=next_review_time(level, now),
    )


def is_due(state: CommandState, commands_since_last_seen: int, now: datetime | None = None) -> bool:
    """Return whether a command should be reviewed now.

    Level 0 is always due. Higher levels are due once enough other commands
    were presented since the last review, or once the stored review time
    has passed.
    """
    if state.level == 0:
        return True
    if commands_since_last_seen >= interval_commands(state.level):
        return True
    if state.next_review is None:
        return False
    return (now or datetime.now(UTC)) >= state.next_review


def mastery_percent(state: CommandState) -> int:
    """Return the current-streak success ratio as a 0-100 percentage.

    `successes` resets on every level change and failure, so this measures
    confidence in the current streak rather than lifetime accuracy.
    """
    attempts = state.successes + state.failures
    if attempts == 0:
        return 0
    return math.floor(100 * state.successes / attempts + 0.5)


def level_name(level: int) -> str:
    """Return display name for a level."""
    if 0 <= level < len(LEVEL_NAMES):
        return LEVEL_NAMES[level]
    return "UNKNOWN"
