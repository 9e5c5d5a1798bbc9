#!/usr/bin/env python3
"""
Switch the active environment file between development and production.

Copies `.env.dev` or `.env.prod` over `.env` in the repository root (and in
`frontend/` when a checkout of the SPA sits next to the API).

Usage:
    python scripts/switch_mode.py dev
    python scripts/switch_mode.py prod

Exit codes:
    0  at least one .env file switched
    1  no .env.<mode> file found anywhere
    2  invalid mode (argparse usage error)
"""

import argparse
import shutil
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parent.parent
MODES = ("dev", "prod")


def switch_mode(mode: str, root: Path = ROOT_DIR) -> list[Path]:
    """Copy `.env.<mode>` to `.env` wherever it exists. Returns the targets written."""
    switched = []
    for directory in (root, root / "frontend"):
        source = directory / f".env.{mode}"
        if not source.exists():
            if directory == root:
                print(f"Warning: {source} not found, skipping", file=sys.stderr)
            continue
        target = directory / ".env"
        shutil.copyfile(source, target)
        print(f"Switched {target} to {mode} mode")
        switched.append(target)
    return switched


def main(argv: list[str] | None = None, root: Path = ROOT_DIR) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("mode", nargs="?", default="dev", choices=MODES)
    args = parser.parse_args(argv)

    if not switch_mode(args.mode, root):
        print(
            "No environment files found. "
            "Create .env.dev and .env.prod files first.",
            file=sys.stderr,
        )
        return 1

    print("Restart the API server for changes to take effect.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
