"""Entry point for inspecting and maintaining farm intelligence."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path


def main() -> None:
    parser = argparse.ArgumentParser(description="Farm target intelligence")
    parser.add_argument(
        "--profile",
        default="default",
        help="Profile name; selects config, data and log directories (e.g. ts1, ts5)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Config file (default: config/<profile>.toml)",
    )
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("stats", help="Target counts by status and global totals")
    ranked = sub.add_parser("ranked", help="Active targets ranked by score")
    ranked.add_argument("-n", "--limit", type=int, default=None)
    report = sub.add_parser("report", help="Profit over a recent window")
    report.add_argument("--hours", type=float, default=24)
    sub.add_parser("cleanup", help="Remove stale targets")
    args = parser.parse_args()

    from farmintel.app import Application

    app = Application(profile=args.profile, config_path=args.config)
    options = {k: v for k, v in vars(args).items() if k in ("limit", "hours")}
    sys.exit(asyncio.run(app.run(args.command, **options)))


if __name__ == "__main__":
    main()
