"""Load keybinding packs from bundled JSON resources."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Any

from .models import CommandDefinition, CommandGroup, Pack

logger = logging.getLogger(__name__)

CONTENT_PACKAGE = "keyblitz.content.packs"
MIN_COMPLEXITY = 1.0
MAX_COMPLEXITY = 5.0

COLORS = {
    "cyan": "#00CED1",
    "blue": "#4169E1",
    "yellow": "#FFD700",
    "red": "#DC143C",
    "magenta": "#9370DB",
    "green": "#32CD32",
    "white": "#FFFFFF",
}

VALID_TARGET_TYPES = frozenset(
    {
        "pane",
        "window",
        "session",
        "mode",
        "help",
        "command",
        "workspace",
        "split",
        "container",
        "output",
        "motion",
        "text",
        "line",
        "word",
        "char",
        "search",
        "visual",
        "buffer",
        "file",
        "mark",
        "register",
        "fold",
        "tab",
        "macro",
        "plugin",
        "paren",
        "quote",
        "block",
        "layout",
        "app",
        "system",
    }
)


class PackNotFoundError(LookupError):
    """Raised when a pack id is not bundled."""


@dataclass(frozen=True)
class PackSummary:
    """Listing row for one pack."""

    id: str
    name: str
    description: str
    version: str
    command_count: int
    group_count: int


def _require_text(raw: dict[str, Any], field: str, label: str) -> str:
    value = raw.get(field)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f'{label} must have a valid "{field}" field (string)')
    return value


def validate_pack(raw: object) -> None:
    """Schema-check raw pack content, raising ValueError on the first problem."""
    if not isinstance(raw, dict):
        raise ValueError("Pack must be an object")
    pack_id = _require_text(raw, "id", "Pack")
    _require_text(raw, "name", f'Pack "{pack_id}"')
    _require_text(raw, "description", f'Pack "{pack_id}"')

    groups = raw.get("groups")
    if not isinstance(groups, list) or not groups:
        raise ValueError(f'Pack "{pack_id}" must have at least one group in "groups"')

    used_target_types: set[str] = set()
    seen_keys: dict[str, str] = {}
    for group_index, group in enumerate(groups):
        if not isinstance(group, dict):
            raise ValueError(f'Pack "{pack_id}" group {group_index} must be an object')
        group_name = _require_text(group, "name", f'Pack "{pack_id}" group {group_index}')
        _require_text(group, "description", f'Pack "{pack_id}" group "{group_name}"')
        commands = group.get("commands")
        if not isinstance(commands, list) or not commands:
            raise ValueError(f'Pack "{pack_id}" group "{group_name}" must have at least one command')

        for command_index, command in enumerate(commands):
            label = f'Pack "{pack_id}" group "{group_name}" command {command_index}'
            if not isinstance(command, dict):
                raise ValueError(f"{label} must be an object")
            keys = _require_text(command, "keys", label)
            _require_text(command, "concept", label)
            color = _require_text(command, "color", label)
            if color not in COLORS:
                raise ValueError(f'{label} has invalid color "{color}". Valid colors: {", ".join(COLORS)}')
            complexity = command.get("complexity")
            if (
                isinstance(complexity, bool)
                or not isinstance(complexity, (int, float))
                or not MIN_COMPLEXITY <= complexity <= MAX_COMPLEXITY
            ):
                raise ValueError(
                    f'{label} must have a "complexity" field between {MIN_COMPLEXITY} and {MAX_COMPLEXITY} '
                    f"(got: {complexity})"
                )
            target_type = _require_text(command, "target_type", label)
            if target_type not in VALID_TARGET_TYPES:
                raise ValueError(f'{label} has invalid target_type "{target_type}"')
            used_target_types.add(target_type)

            previous = seen_keys.get(keys)
            if previous is not None:
                raise ValueError(f'Pack "{pack_id}" has duplicate keys "{keys}" (in "{previous}" and "{group_name}")')
            seen_keys[keys] = group_name

    targets = raw.get("targets")
    if not isinstance(targets, dict):
        raise ValueError(f'Pack "{pack_id}" must have a "targets" object')
    for target_type in sorted(used_target_types):
        texts = targets.get(target_type)
        if not isinstance(texts, list) or not texts or not all(isinstance(text, str) for text in texts):
            raise ValueError(f'Pack "{pack_id}" is missing practice targets for target_type "{target_type}"')

    notation = raw.get("key_notation", {})
    if not isinstance(notation, dict):
        raise ValueError(f'Pack "{pack_id}" has invalid "key_notation" field (must be object)')
    for key, value in notation.items():
        if not isinstance(key, str) or not isinstance(value, str):
            raise ValueError(f'Pack "{pack_id}" key_notation entries must be string->string mappings')


def _command_from_dict(group_name: str, raw: dict[str, Any]) -> CommandDefinition:
    """Build a command from validated JSON content."""
    return CommandDefinition(
        keys=str(raw["keys"]),
        concept=str(raw["concept"]),
        color=str(raw["color"]),
        complexity=float(raw["complexity"]),
        target_type=str(raw["target_type"]),
        group=group_name,
    )


def _group_from_dict(raw: dict[str, Any]) -> CommandGroup:
    """Build a group from validated JSON content."""
    name = str(raw["name"])
    commands = tuple(_command_from_dict(name, item) for item in raw["commands"])
    return CommandGroup(name=name, description=str(raw["description"]), commands=commands)


def _pack_from_dict(raw: dict[str, Any]) -> Pack:
    """Validate and build a pack from raw JSON content."""
    validate_pack(raw)
    return Pack(
        id=str(raw["id"]),
        name=str(raw["name"]),
        description=str(raw["description"]),
        version=str(raw.get("version", "1.0.0")),
        groups=tuple(_group_from_dict(group) for group in raw["groups"]),
        targets={str(key): tuple(value) for key, value in raw["targets"].items() if isinstance(value, list)},
        key_notation={str(key): str(value) for key, value in raw.get("key_notation", {}).items()},
    )


def _add_pack(packs: dict[str, Pack], raw: Any, source: str) -> None:
    try:
        pack = _pack_from_dict(raw)
    except ValueError:
        logger.error("Invalid pack content in %s", source)
        raise
    if pack.id in packs:
        raise ValueError(f"Duplicate pack id: {pack.id}")
    packs[pack.id] = pack


def load_packs() -> dict[str, Pack]:
    """Load bundled packs."""
    packs: dict[str, Pack] = {}
    for entry in sorted(resources.files(CONTENT_PACKAGE).iterdir(), key=lambda item: item.name):
        if entry.name.endswith(".json"):
            _add_pack(packs, json.loads(entry.read_text(encoding="utf-8-sig")), entry.name)
    logger.debug("Loaded %d bundled packs", len(packs))
    return packs


def load_packs_from_dir(path: Path) -> dict[str, Pack]:
    """Load packs from a directory for tests/tools."""
    packs: dict[str, Pack] = {}
    for file_path in sorted(path.glob("*.json")):
        _add_pack(packs, json.loads(file_path.read_text(encoding="utf-8-sig")), str(file_path))
    return packs


def get_pack(pack_id: str, packs: dict[str, Pack] | None = None) -> Pack:
    """Return one pack by id."""
    available = packs if packs is not None else load_packs()
    pack = available.get(pack_id)
    if pack is None:
        raise PackNotFoundError(f'Pack "{pack_id}" not found. Available packs: {", ".join(sorted(available))}')
    return pack


def summarize(pack: Pack) -> PackSummary:
    """Return listing metadata for a pack."""
    return PackSummary(
        id=pack.id,
        name=pack.name,
        description=pack.description,
        version=pack.version,
        command_count=sum(len(group.commands) for group in pack.groups),
        group_count=len(pack.groups),
    )


def list_packs(packs: dict[str, Pack] | None = None) -> list[PackSummary]:
    """Return summaries for all packs, ordered by id."""
    available = packs if packs is not None else load_packs()
    return [summarize(available[pack_id]) for pack_id in sorted(available)]
