"""SQLite persistence for per-pack training progress."""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import UTC, datetime
from pathlib import Path

from .models import CommandState, GlobalStats, ProgressRecord

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
MAX_LEVEL = 5


def default_record(pack_id: str) -> ProgressRecord:
    """Return the progress of a pack that was never played."""
    return ProgressRecord(pack_id=pack_id)


def validate_record(record: ProgressRecord) -> None:
    """Raise ValueError when a record violates progress invariants."""
    if not record.pack_id:
        raise ValueError("Progress record has no pack id.")
    if record.current_group < 0:
        raise ValueError(f"Invalid current_group {record.current_group}.")
    if any(index < 0 for index in record.unlocked_groups):
        raise ValueError("unlocked_groups must contain non-negative indexes.")
    for key, state in record.command_states.items():
        if not 0 <= state.level <= MAX_LEVEL:
            raise ValueError(f"Command '{key}' has level {state.level} outside 0..{MAX_LEVEL}.")
        if state.successes < 0 or state.failures < 0:
            raise ValueError(f"Command '{key}' has negative counters.")
    stats = record.global_stats
    if min(stats.total_commands, stats.best_combo, stats.total_score) < 0 or stats.total_time_seconds < 0:
        raise ValueError("Global stats must be non-negative.")


def _to_text(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _from_text(value: str | None) -> datetime | None:
    if value is None:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


class ProgressStore:
    """Key-value style access to progress records, keyed by pack id."""

    def __init__(self, db_path: Path | str) -> None:
        """Open database and apply schema migrations."""
        if isinstance(db_path, Path):
            db_path.parent.mkdir(parents=True, exist_ok=True)
            target = str(db_path)
        else:
            target = db_path
        self._conn = sqlite3.connect(target, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._apply_migrations()

    def _apply_migrations(self) -> None:
        """Apply forward-only schema migrations to latest version."""
        current = int(self._conn.execute("PRAGMA user_version").fetchone()[0])
        if current > SCHEMA_VERSION:
            raise RuntimeError(f"Database schema version {current} is newer than supported {SCHEMA_VERSION}.")

        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS schema_migrations (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL
                )
                """)

        for version in range(current + 1, SCHEMA_VERSION + 1):
            if version == 1:
                self._migrate_to_v1()
            with self._conn:
                self._conn.execute(f"PRAGMA user_version = {version}")
                self._conn.execute(
                    "INSERT OR REPLACE INTO schema_migrations (version, applied_at) VALUES (?, ?)",
                    (version, datetime.now(UTC).isoformat()),
                )
            logger.info("Migrated progress database to schema version %d", version)

    def _migrate_to_v1(self) -> None:
        """Create pack progress and command state tables."""
        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS pack_progress (
                    pack_id TEXT PRIMARY KEY,
                    current_group INTEGER NOT NULL DEFAULT 0,
                    unlocked_groups TEXT NOT NULL DEFAULT '[0]',
                    total_commands INTEGER NOT NULL DEFAULT 0,
                    total_time_seconds REAL NOT NULL DEFAULT 0,
                    best_combo INTEGER NOT NULL DEFAULT 0,
                    total_score INTEGER NOT NULL DEFAULT 0,
                    updated_at TEXT NOT NULL
                )
                """)
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS command_state (
                    pack_id TEXT NOT NULL,
                    command_key TEXT NOT NULL,
                    level INTEGER NOT NULL DEFAULT 0,
                    successes INTEGER NOT NULL DEFAULT 0,
                    failures INTEGER NOT NULL DEFAULT 0,
                    last_seen TEXT,
                    next_review TEXT,
                    PRIMARY KEY (pack_id, command_key)
                )
                """)

    def list_pack_ids(self) -> list[str]:
        """Return ids of packs with stored progress."""
        rows = self._conn.execute("SELECT pack_id FROM pack_progress ORDER BY pack_id").fetchall()
        return [str(row["pack_id"]) for row in rows]

    def load(self, pack_id: str) -> ProgressRecord:
        """Return stored progress for a pack, or defaults when none is stored."""
        row = self._conn.execute(
            """
            SELECT current_group, unlocked_groups, total_commands, total_time_seconds, best_combo, total_score
            FROM pack_progress
            WHERE pack_id = ?
            """,
            (pack_id,),
        ).fetchone()
        if row is None:
            return default_record(pack_id)

        try:
            unlocked = tuple(int(item) for item in json.loads(row["unlocked_groups"]))
        except (TypeError, ValueError):
            logger.warning("Pack '%s' has unreadable unlocked_groups; resetting to first group", pack_id)
            unlocked = (0,)

        states = {
            str(state_row["command_key"]): CommandState(
                level=int(state_row["level"]),
                successes=int(state_row["successes"]),
                failures=int(state_row["failures"]),
                last_seen=_from_text(state_row["last_seen"]),
                next_review=_from_text(state_row["next_review"]),
            )
            for state_row in self._conn.execute(
                """
                SELECT command_key, level, successes, failures, last_seen, next_review
                FROM command_state
                WHERE pack_id = ?
                ORDER BY command_key
                """,
                (pack_id,),
            ).fetchall()
        }
        return ProgressRecord(
            pack_id=pack_id,
            current_group=int(row["current_group"]),
            unlocked_groups=unlocked,
            command_states=states,
            global_stats=GlobalStats(
                total_commands=int(row["total_commands"]),
                total_time_seconds=float(row["total_time_seconds"]),
                best_combo=int(row["best_combo"]),
                total_score=int(row["total_score"]),
            ),
        )

    def save(self, pack_id: str, record: ProgressRecord) -> bool:
        """Replace stored progress for a pack; return False when the record is rejected."""
        try:
            validate_record(record)
        except ValueError as exc:
            logger.error("Refusing to save progress for '%s': %s", pack_id, exc)
            return False

        stats = record.global_stats
        now = datetime.now(UTC).isoformat()
        with self._conn:
            self._conn.execute(
                """
                INSERT INTO pack_progress (
                    pack_id,
                    current_group,
                    unlocked_groups,
                    total_commands,
                    total_time_seconds,
                    best_combo,
                    total_score,
                    updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(pack_id) DO UPDATE SET
                    current_group = excluded.current_group,
                    unlocked_groups = excluded.unlocked_groups,
                    total_commands = excluded.total_commands,
                    total_time_seconds = excluded.total_time_seconds,
                    best_combo = excluded.best_combo,
                    total_score = excluded.total_score,
                    updated_at = excluded.updated_at
                """,
                (
                    pack_id,
                    record.current_group,
                    json.dumps(list(record.unlocked_groups)),
                    stats.total_commands,
                    stats.total_time_seconds,
                    stats.best_combo,
                    stats.total_score,
                    now,
                ),
            )
            self._conn.execute("DELETE FROM command_state WHERE pack_id = ?", (pack_id,))
            self._conn.executemany(
                """
                INSERT INTO command_state (pack_id, command_key, level, successes, failures, last_seen, next_review)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        pack_id,
                        key,
                        state.level,
                        state.successes,
                        state.failures,
                        _to_text(state.last_seen),
                        _to_text(state.next_review),
                    )
                    for key, state in record.command_states.items()
                ],
            )
        return True

    def delete(self, pack_id: str) -> bool:
        """Delete all progress for a pack."""
        with self._conn:
            self._conn.execute("DELETE FROM command_state WHERE pack_id = ?", (pack_id,))
            cursor = self._conn.execute("DELETE FROM pack_progress WHERE pack_id = ?", (pack_id,))
        return cursor.rowcount > 0

    def reset(self, pack_id: str) -> bool:
        """Overwrite a pack's progress with defaults."""
        return self.save(pack_id, default_record(pack_id))

    def get_command_state(self, pack_id: str, command_key: str) -> CommandState | None:
        """Return one stored command state."""
        row = self._conn.execute(
            """
            SELECT level, successes, failures, last_seen, next_review
            FROM command_state
            WHERE pack_id = ? AND command_key = ?
            """,
            (pack_id, command_key),
        ).fetchone()
        if row is None:
            return None
        return CommandState(
            level=int(row["level"]),
            successes=int(row["successes"]),
            failures=int(row["failures"]),
            last_seen=_from_text(row["last_seen"]),
            next_review=_from_text(row["next_review"]),
        )

    def update_command_state(self, pack_id: str, command_key: str, state: CommandState) -> bool:
        """Upsert one command state without rewriting the whole record."""
        if not 0 <= state.level <= MAX_LEVEL or state.successes < 0 or state.failures < 0:
            logger.error("Refusing to store invalid state for '%s' in '%s': %s", command_key, pack_id, state)
            return False
        if self._conn.execute("SELECT 1 FROM pack_progress WHERE pack_id = ?", (pack_id,)).fetchone() is None:
            if not self.save(pack_id, default_record(pack_id)):
                return False
        with self._conn:
            self._conn.execute(
                """
                INSERT INTO command_state (pack_id, command_key, level, successes, failures, last_seen, next_review)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(pack_id, command_key) DO UPDATE SET
                    level = excluded.level,
                    successes = excluded.successes,
                    failures = excluded.failures,
                    last_seen = excluded.last_seen,
                    next_review = excluded.next_review
                """,
                (
                    pack_id,
                    command_key,
                    state.level,
                    state.successes,
                    state.failures,
                    _to_text(state.last_seen),
                    _to_text(state.next_review),
                ),
            )
        return True

    def close(self) -> None:
        """Close db connection."""
        self._conn.close()

    def __del__(self) -> None:  # pragma: no cover
        """Best-effort connection cleanup."""
        try:
            self.close()
        except Exception:
            pass
