"""Module entrypoint for ``python -m goneat``."""

from __future__ import annotations

from goneat.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
