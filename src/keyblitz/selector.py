"""Weighted selection of the next command to present.

Only commands whose review time has arrived are eligible. Level-0 commands
(new or just failed) always win; otherwise lower levels are drawn more often
with weight ``1 / (level + 1)``.
"""

from __future__ import annotations

import random
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Protocol, TypeVar

from .srs import MAX_LEVEL


class Selectable(Protocol):
    """Shape the selector needs from a command."""

    @property
    def key(self) -> str: ...

    @property
    def level(self) -> int: ...

    @property
    def next_review(self) -> datetime | None: ...


T = TypeVar("T", bound="Selectable")


def _require_sequence(commands: object) -> None:
    if not isinstance(commands, (list, tuple)):
        raise TypeError(f"commands must be a list or tuple, got {type(commands).__name__}")


def _level_of(command: object) -> float:
    """Return a command's level, failing loudly when it is missing, not numeric or out of range."""
    level = getattr(command, "level", None)
    key = getattr(command, "key", None) or "unknown"
    if isinstance(level, bool) or not isinstance(level, (int, float)):
        raise TypeError(f'Command "{key}" missing numeric level')
    if not 0 <= level <= MAX_LEVEL:
        raise ValueError(f'Command "{key}" level {level} outside 0..{MAX_LEVEL}')
    return level


def compute_weights(commands: Sequence[Selectable]) -> list[float]:
    """Return one selection weight per command, in input order."""
    _require_sequence(commands)
    return [1 / (_level_of(command) + 1) for command in commands]


def _is_due(command: Selectable, now: datetime) -> bool:
    return command.next_review is None or command.next_review <= now


def select_next(
    commands: Sequence[T],
    current_index: int | None = None,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> T | None:
    """Pick the next command to present, or None when nothing is due."""
    _require_sequence(commands)
    for command in commands:
        _level_of(command)
    if not commands:
        return None

    now = now or datetime.now(UTC)
    rng = rng or random.Random()

    due = [(index, command) for index, command in enumerate(commands) if _is_due(command, now)]
    if not due:
        return None

    # Avoid an immediate repeat unless it is the only option.
    available = [command for index, command in due if index != current_index]
    pool = available or [command for _, command in due]

    fresh = [command for command in pool if command.level == 0]
    if fresh:
        return rng.choice(fresh)

    weights = compute_weights(pool)
    total = sum(weights)
    if total <= 0:
        return rng.choice(pool)

    remaining = rng.random() * total
    for command, weight in zip(pool, weights):
        remaining -= weight
        if remaining <= 0:
            return command
    return pool[-1]


def due_count(commands: Sequence[Selectable], now: datetime | None = None) -> int:
    """Return how many commands are currently due."""
    _require_sequence(commands)
    now = now or datetime.now(UTC)
    return sum(1 for command in commands if _is_due(command, now))


def seconds_until_next_due(commands: Sequence[Selectable], now: datetime | None = None) -> float | None:
    """Return seconds until the earliest command becomes due (0 if one already is)."""
    _require_sequence(commands)
    if not commands:
        return None
    now = now or datetime.now(UTC)
    waits: list[float] = []
    for command in commands:
        if _is_due(command, now) or command.next_review is None:
            return 0.0
        waits.append((command.next_review - now).total_seconds())
    return min(waits)
