#!/usr/bin/env python3
"""
Helper script that prepares the directories the service writes to.

Creates the report root (REPORTS_DIR, default ./reports) and, when LOG_FILE is
set, the directory holding the log file. Existing directories are left alone.
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path


def target_dirs(reports_dir: str, log_file: str) -> list[Path]:
    dirs = [Path(reports_dir).expanduser()]
    if log_file:
        dirs.append(Path(log_file).expanduser().parent)
    return dirs


def setup_dirs(dirs: list[Path], dry_run: bool = False) -> int:
    created = 0
    for directory in dirs:
        if directory.is_dir():
            print(f"[INFO] Directory {directory} already exists.")
            continue
        created += 1
        if dry_run:
            print(f"[DRY-RUN] Would create: {directory}")
        else:
            directory.mkdir(parents=True, exist_ok=True)
            print(f"[OK] Created: {directory}")
    return created


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Create the report and log directories used by the analysis service."
    )
    parser.add_argument(
        "--reports-dir",
        default=os.environ.get("REPORTS_DIR", "./reports"),
        help="Report root (default: $REPORTS_DIR or ./reports).",
    )
    parser.add_argument(
        "--log-file",
        default=os.environ.get("LOG_FILE", ""),
        help="Log file whose directory should exist (default: $LOG_FILE).",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Do not create anything, only show what would happen.",
    )
    args = parser.parse_args(argv)
    try:
        setup_dirs(target_dirs(args.reports_dir, args.log_file), dry_run=args.dry_run)
    except OSError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 1
    print("[OK] Setup complete.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
