import random
from collections import Counter
from datetime import UTC, datetime, timedelta
from types import SimpleNamespace

import pytest

from keyblitz.selector import compute_weights, due_count, select_next, seconds_until_next_due

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)
PAST = NOW - timedelta(minutes=1)
FUTURE = NOW + timedelta(minutes=1)


def _cmd(key: str, level: object, next_review: datetime | None = PAST) -> SimpleNamespace:
    return SimpleNamespace(key=key, level=level, next_review=next_review)


def test_compute_weights_favours_low_levels() -> None:
    weights = compute_weights([_cmd("a", 0), _cmd("b", 1), _cmd("c", 4)])
    assert weights == [1.0, 0.5, 0.2]


def test_empty_list_returns_none() -> None:
    assert select_next([], now=NOW) is None


def test_nothing_due_returns_none() -> None:
    commands = [_cmd("a", 2, FUTURE), _cmd("b", 3, FUTURE)]
    assert select_next(commands, now=NOW, rng=random.Random(1)) is None


def test_not_a_sequence_is_rejected() -> None:
    with pytest.raises(TypeError):
        select_next("abc", now=NOW)  # type: ignore[arg-type]
    with pytest.raises(TypeError):
        compute_weights({"a": 1})  # type: ignore[arg-type]


def test_missing_level_is_rejected() -> None:
    commands = [_cmd("a", 1), SimpleNamespace(key="broken", next_review=PAST)]
    with pytest.raises(TypeError, match='Command "broken" missing numeric level'):
        select_next(commands, now=NOW)
    with pytest.raises(TypeError):
        select_next([_cmd("a", "2")], now=NOW)
    with pytest.raises(TypeError):
        select_next([_cmd("a", True)], now=NOW)


@pytest.mark.parametrize("level", [-1, -0.5, 6])
def test_out_of_range_level_is_rejected(level: float) -> None:
    with pytest.raises(ValueError, match='Command "bad" level'):
        compute_weights([_cmd("ok", 1), _cmd("bad", level)])
    with pytest.raises(ValueError):
        select_next([_cmd("bad", level)], now=NOW)


def test_level_zero_commands_always_win() -> None:
    commands = [_cmd("a", 3), _cmd("b", 0), _cmd("c", 1), _cmd("d", 0)]
    rng = random.Random(7)
    picks = {select_next(commands, now=NOW, rng=rng).key for _ in range(50)}
    assert picks == {"b", "d"}


def test_current_index_is_excluded() -> None:
    commands = [_cmd("a", 0), _cmd("b", 0)]
    rng = random.Random(3)
    for _ in range(20):
        assert select_next(commands, current_index=0, now=NOW, rng=rng).key == "b"


def test_current_index_kept_when_it_is_the_only_due_command() -> None:
    commands = [_cmd("a", 2), _cmd("b", 2, FUTURE)]
    assert select_next(commands, current_index=0, now=NOW, rng=random.Random(0)).key == "a"


def test_commands_without_review_time_are_due() -> None:
    commands = [_cmd("a", 2, None)]
    assert select_next(commands, now=NOW).key == "a"


def test_weighted_distribution_prefers_lower_levels() -> None:
    commands = [_cmd("low", 1), _cmd("high", 5)]
    rng = random.Random(12345)
    counts = Counter(select_next(commands, now=NOW, rng=rng).key for _ in range(3000))
    # weights 0.5 and 1/6 -> low is expected three times as often
    ratio = counts["low"] / counts["high"]
    assert 2.4 < ratio < 3.8


def test_due_count_and_wait() -> None:
    commands = [_cmd("a", 1, PAST), _cmd("b", 2, FUTURE), _cmd("c", 3, NOW + timedelta(seconds=30))]
    assert due_count(commands, NOW) == 1
    assert seconds_until_next_due(commands, NOW) == 0.0

    waiting = commands[1:]
    assert seconds_until_next_due(waiting, NOW) == 30.0
    assert seconds_until_next_due([], NOW) is None
