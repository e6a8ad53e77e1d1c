"""Core domain models for keybinding packs and training progress."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class CommandDefinition:
    """One trainable keybinding as authored in a pack."""

    keys: str
    concept: str
    color: str
    complexity: float
    target_type: str
    group: str = ""


@dataclass(frozen=True)
class CommandGroup:
    """Ordered group of related commands, introduced together."""

    name: str
    description: str
    commands: tuple[CommandDefinition, ...]


@dataclass(frozen=True)
class Pack:
    """Named, versioned collection of command groups for one application."""

    id: str
    name: str
    description: str
    version: str
    groups: tuple[CommandGroup, ...]
    targets: dict[str, tuple[str, ...]] = field(default_factory=dict)
    key_notation: dict[str, str] = field(default_factory=dict)

    def commands(self) -> list[CommandDefinition]:
        """Return every command in group order."""
        return [command for group in self.groups for command in group.commands]

    def target_text(self, target_type: str, rng: random.Random | None = None) -> str:
        """Pick practice text for a target type, or an empty string."""
        options = self.targets.get(target_type, ())
        if not options:
            return ""
        return (rng or random).choice(options)


@dataclass(frozen=True)
class CommandState:
    """Spaced-repetition state for one command key."""

    level: int = 0
    successes: int = 0
    failures: int = 0
    last_seen: datetime | None = None
    next_review: datetime | None = None


@dataclass(frozen=True)
class TrackedCommand:
    """A command definition paired with its current repetition state."""

    definition: CommandDefinition
    state: CommandState

    @property
    def key(self) -> str:
        return self.definition.keys

    @property
    def level(self) -> int:
        return self.state.level

    @property
    def next_review(self) -> datetime | None:
        return self.state.next_review


@dataclass(frozen=True)
class GlobalStats:
    """Aggregate stats accumulated across sessions for one pack."""

    total_commands: int = 0
    total_time_seconds: float = 0.0
    best_combo: int = 0
    total_score: int = 0


@dataclass(frozen=True)
class ProgressRecord:
    """Everything persisted for one pack."""

    pack_id: str
    current_group: int = 0
    unlocked_groups: tuple[int, ...] = (0,)
    command_states: dict[str, CommandState] = field(default_factory=dict)
    global_stats: GlobalStats = field(default_factory=GlobalStats)
