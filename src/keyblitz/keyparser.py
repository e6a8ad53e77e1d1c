"""Key notation parsing and typed-sequence matching.

The CLI reads whole lines and checks them with `keys_match`. `InputBuffer`
is for frontends that receive one keypress at a time.
"""

from __future__ import annotations

import re
import time
from collections.abc import Callable, Mapping

SPECIAL_KEYS = {
    "<CR>": "Enter",
    "<Enter>": "Enter",
    "<Return>": "Enter",
    "<Esc>": "Escape",
    "<Escape>": "Escape",
    "<Tab>": "Tab",
    "<Space>": " ",
    "<BS>": "Backspace",
    "<Backspace>": "Backspace",
    "<Del>": "Delete",
    "<Delete>": "Delete",
    "<Up>": "ArrowUp",
    "<Down>": "ArrowDown",
    "<Left>": "ArrowLeft",
    "<Right>": "ArrowRight",
    "<Home>": "Home",
    "<End>": "End",
    "<PageUp>": "PageUp",
    "<PageDown>": "PageDown",
}
MODIFIER_NAMES = {"C": "Ctrl", "M": "Alt", "S": "Shift"}

_BRACKETED_MODIFIERS = re.compile(r"<((?:[CMS]-)+)(.+?)>", re.IGNORECASE)
_BARE_MODIFIER = re.compile(r"\b([CMS])-(\S)", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")


def _expand_bracketed(match: re.Match[str]) -> str:
    prefixes = match.group(1).upper()
    key = match.group(2)
    mods = [name for letter, name in MODIFIER_NAMES.items() if f"{letter}-" in prefixes]
    final_key = SPECIAL_KEYS.get(f"<{key}>", key)
    return "+".join([*mods, final_key]) if mods else final_key


def parse_key_notation(keys: str, notation: Mapping[str, str] | None = None) -> str:
    """Convert vim-style notation such as ``<C-d>`` or ``C-b %`` to display form.

    A pack-specific prefix mapping is applied first (only the first match).
    """
    if not keys or not isinstance(keys, str):
        return ""

    result = keys
    for pattern, replacement in (notation or {}).items():
        if result.startswith(pattern):
            result = replacement + result[len(pattern) :]
            break

    for special, replacement in SPECIAL_KEYS.items():
        result = result.replace(special, replacement)

    result = _BRACKETED_MODIFIERS.sub(_expand_bracketed, result)
    result = _BARE_MODIFIER.sub(lambda m: f"{MODIFIER_NAMES[m.group(1).upper()]}+{m.group(2)}", result)
    return result


def normalize_keys(keys: str) -> str:
    """Trim, lower-case and collapse whitespace for comparison."""
    if not keys or not isinstance(keys, str):
        return ""
    return _WHITESPACE.sub(" ", keys.strip().lower())


def _squash(keys: str) -> str:
    return _WHITESPACE.sub(" ", keys.strip())


def keys_match(expected: str, typed: str, notation: Mapping[str, str] | None = None) -> bool:
    """Return whether typed input names the expected key sequence.

    Plain keys compare case-sensitively (``o`` and ``O`` are different
    commands). Chords written with modifiers (``Ctrl+d``, ``Super+Shift+1``)
    also match case-insensitively, raw or after notation parsing.
    """
    if not typed or not typed.strip():
        return False

    expected_forms = {_squash(expected), _squash(parse_key_notation(expected, notation))}
    typed_forms = {_squash(typed), _squash(parse_key_notation(typed, notation))}
    if not expected_forms.isdisjoint(typed_forms):
        return True

    if not any("+" in form for form in expected_forms):
        return False
    expected_loose = {normalize_keys(form) for form in expected_forms}
    return not expected_loose.isdisjoint(normalize_keys(form) for form in typed_forms)


class InputBuffer:
    """Accumulates keypresses; the buffer empties after `timeout` idle seconds."""

    def __init__(self, timeout: float = 2.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.timeout = timeout
        self._clock = clock
        self._buffer = ""
        self._last_key_at: float | None = None

    def _expire(self) -> None:
        if self._last_key_at is not None and self._clock() - self._last_key_at >= self.timeout:
            self.clear()

    def add_key(self, key: str) -> None:
        """Append one decoded key."""
        self._expire()
        self._buffer += key
        self._last_key_at = self._clock()

    def clear(self) -> None:
        """Drop buffered keys."""
        self._buffer = ""
        self._last_key_at = None

    def value(self) -> str:
        """Return buffered keys."""
        self._expire()
        return self._buffer

    def matches(self, target: str) -> bool:
        """Return whether the buffer equals the target sequence."""
        return self.value() == target

    def is_partial_match(self, target: str) -> bool:
        """Return whether the buffer is a strict, non-empty prefix of the target."""
        current = self.value()
        return 0 < len(current) < len(target) and target.startswith(current)

    def __len__(self) -> int:
        return len(self.value())
