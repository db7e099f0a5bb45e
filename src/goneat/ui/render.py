"""Output rendering abstraction for the goneat CLI.

File: src/goneat/ui/render.py

Purpose
- Provide a thin plain-text rendering layer for CLI output.
- Respect the NO_COLOR environment variable and the --no-color CLI flag.

Functional requirements
- Output is deterministic plain text suitable for CI logs.
- All public methods must be safe to call in any environment.

Non-functional requirements
- No dependencies beyond the standard library.
"""

from __future__ import annotations

import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

_GREEN = "\033[32m"
_RED = "\033[31m"
_RESET = "\033[0m"


def _color_allowed(no_color_flag: bool) -> bool:
    if no_color_flag:
        return False
    if os.environ.get("NO_COLOR", ""):
        return False
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


class CLIRenderer:
    """Plain-text CLI output renderer."""

    def __init__(self, *, no_color: bool = False) -> None:
        self._color = _color_allowed(no_color)

    def raw(self, block: str) -> None:
        """Print a pre-rendered block without adding a trailing newline."""

        sys.stdout.write(block)

    def items(self, entries: Sequence[str], *, prefix: str = "- ") -> None:
        for entry in entries:
            print(f"    {prefix}{entry}")

    def table(self, headers: Sequence[str], rows: Sequence[Sequence[str]]) -> None:
        """Print a formatted ASCII table."""

        if not rows:
            return

        col_count = len(headers)
        widths = [len(h) for h in headers]
        for row in rows:
            for i in range(min(len(row), col_count)):
                widths[i] = max(widths[i], len(str(row[i])))

        def _pad(cells: Sequence[str]) -> str:
            parts: list[str] = []
            for i in range(col_count):
                cell = str(cells[i]) if i < len(cells) else ""
                parts.append(cell.ljust(widths[i]))
            return "  ".join(parts).rstrip()

        print(_pad(list(headers)))
        print("  ".join("-" * w for w in widths))
        for row in rows:
            print(_pad(list(row)))

    def ok(self, label: str) -> None:
        print(f"{self._status('OK   ', _GREEN)} {label}")

    def fail(self, label: str) -> None:
        print(f"{self._status('FAIL ', _RED)} {label}")

    def _status(self, tag: str, color: str) -> str:
        if not self._color:
            return tag
        return f"{color}{tag}{_RESET}"


def create_renderer(*, no_color: bool = False) -> CLIRenderer:
    return CLIRenderer(no_color=no_color)


__all__ = ["CLIRenderer", "create_renderer"]
