"""Point calculation and per-session score accumulation."""

from __future__ import annotations

import math
from dataclasses import dataclass

BASE_POINTS = 100
MAX_TIME_BONUS = 50
COMBO_STEP = 5
MAX_LEVEL = 5


def combo_multiplier(combo: int) -> int:
    """Return the score multiplier for a streak: +1x per 5 in a row."""
    return max(combo, 0) // COMBO_STEP + 1


def calculate_score(time_remaining: float, max_time: float, level: int, combo: int) -> int:
    """Return points for a correct answer.

    Out-of-range inputs are clamped rather than rejected: a timer can report
    exactly 0 remaining and new commands sit at level 0.
    """
    time_remaining = max(0.0, time_remaining)
    if max_time <= 0:
        max_time = 1.0
    level = max(0, min(MAX_LEVEL, level))
    combo = max(0, combo)

    time_bonus = (time_remaining / max_time) * MAX_TIME_BONUS
    level_multiplier = level + 1
    return math.floor((BASE_POINTS + time_bonus) * level_multiplier * combo_multiplier(combo))


def update_combo(is_correct: bool, current_combo: int) -> int:
    """Return the streak after one answer."""
    current_combo = max(0, current_combo)
    if is_correct:
        return current_combo + 1
    return 0


@dataclass(frozen=True)
class AttemptResult:
    """Outcome of one recorded attempt."""

    score: int
    combo: int
    total_score: int
    is_correct: bool


@dataclass(frozen=True)
class SessionStats:
    """Snapshot of a session's scoring."""

    total_score: int
    current_combo: int
    best_combo: int
    correct_count: int
    incorrect_count: int
    total_attempts: int
    accuracy: float


class SessionScorer:
    """Accumulates score, combo and accuracy for one play session."""

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        """Zero every counter."""
        self.total_score = 0
        self.current_combo = 0
        self.best_combo = 0
        self.correct_count = 0
        self.incorrect_count = 0

    def record_attempt(self, is_correct: bool, time_remaining: float, max_time: float, level: int) -> AttemptResult:
        """Record one answer; correct answers score with the updated combo."""
        self.current_combo = update_combo(is_correct, self.current_combo)
        self.best_combo = max(self.best_combo, self.current_combo)

        if not is_correct:
            self.incorrect_count += 1
            return AttemptResult(score=0, combo=self.current_combo, total_score=self.total_score, is_correct=False)

        self.correct_count += 1
        earned = calculate_score(time_remaining, max_time, level, self.current_combo)
        self.total_score += earned
        return AttemptResult(score=earned, combo=self.current_combo, total_score=self.total_score, is_correct=True)

    def stats(self) -> SessionStats:
        """Return current totals and accuracy (percent, one decimal)."""
        total = self.correct_count + self.incorrect_count
        accuracy = math.floor(self.correct_count / total * 1000 + 0.5) / 10 if total else 0.0
        return SessionStats(
            total_score=self.total_score,
            current_combo=self.current_combo,
            best_combo=self.best_combo,
            correct_count=self.correct_count,
            incorrect_count=self.incorrect_count,
            total_attempts=total,
            accuracy=accuracy,
        )
