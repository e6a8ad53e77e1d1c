"""Allow ``python -m keyblitz``."""

from __future__ import annotations

import sys

from .main import run


def main(argv: list[str] | None = None) -> int:
    """Run the CLI with `argv`, defaulting to the process arguments."""
    return run(sys.argv[1:] if argv is None else argv)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
