"""Command line entry point for the batch rebuild jobs.

Usage::

    league-engine rebuild [--dry-run] [--player-id ID]
    league-engine ratings [--dry-run]
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from typing import Optional, Sequence

from .db import get_engine, get_sessionmaker
from .exceptions import DomainException
from .services.history import rebuild_history
from .services.rating import recompute_ratings

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="league-engine",
        description="Rebuild league ratings and cached player history from the match log.",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log at debug level."
    )
    sub = parser.add_subparsers(dest="command", required=True)

    rebuild = sub.add_parser(
        "rebuild", help="Rebuild registration stats and match history caches."
    )
    rebuild.add_argument(
        "--dry-run",
        action="store_true",
        help="Report what would change without writing to the database.",
    )
    rebuild.add_argument(
        "--player-id", help="Only rebuild the caches of this player."
    )

    ratings = sub.add_parser("ratings", help="Recompute every player's rating.")
    ratings.add_argument(
        "--dry-run",
        action="store_true",
        help="Replay the match log without storing the ratings.",
    )
    return parser


async def _run(args: argparse.Namespace) -> dict:
    engine = get_engine()
    Session = get_sessionmaker()
    try:
        async with Session() as session:
            if args.command == "rebuild":
                report = await rebuild_history(
                    session, args.player_id, dry_run=args.dry_run
                )
            else:
                report = await recompute_ratings(session, dry_run=args.dry_run)
            return report.as_dict()
    finally:
        await engine.dispose()


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        report = asyncio.run(_run(args))
    except DomainException as exc:
        logger.error("%s: %s", exc.title, exc.detail)
        return 2

    print(json.dumps(report, indent=2, sort_keys=True))
    return 1 if report.get("errored") else 0


if __name__ == "__main__":
    raise SystemExit(main())
