"""keyblitz package."""

from __future__ import annotations

import re
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

__all__ = ["__version__"]


def _version_from_pyproject() -> str | None:
    """Read the version from a checkout's pyproject.toml when running from source."""
    for base in Path(__file__).resolve().parents:
        pyproject = base / "pyproject.toml"
        if not pyproject.exists():
            continue
        section = ""
        for line in pyproject.read_text(encoding="utf-8").splitlines():
            stripped = line.strip()
            header = re.match(r"^\[([^\]]+)\]$", stripped)
            if header:
                section = header.group(1)
                continue
            if section != "project":
                continue
            match = re.match(r'^version\s*=\s*"([^"]+)"\s*$', stripped)
            if match:
                return match.group(1)
    return None


try:
    __version__ = version("keyblitz")
except PackageNotFoundError:
    __version__ = _version_from_pyproject() or "0+unknown"
