#!/usr/bin/env python3
"""NextBestMove - Decide the one outreach action to do next.

Single entry point for the command line.

Usage:
    python nextmove.py --version                   # Show version
    python nextmove.py --best-action u1            # Score and print the best action
    python nextmove.py --plan u1 --date 2026-03-02 # Generate and print a daily plan
    python nextmove.py --housekeeping              # Archive, unsnooze
"""

import argparse
import logging
import sys
from datetime import date, datetime, timezone
from typing import Optional

from nextbestmove import __version__
from nextbestmove.core.config import get_config, validate_config
from nextbestmove.core.exceptions import NextMoveError
from nextbestmove.core.logging import get_logger, setup_logging


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Expected YYYY-MM-DD, got {value!r}") from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="NextBestMove - Decide the one outreach action to do next"
    )
    parser.add_argument("--version", action="store_true", help="Show version and exit")
    parser.add_argument("--best-action", metavar="USER", help="Run the decision engine for USER")
    parser.add_argument("--plan", metavar="USER", help="Generate the daily plan for USER")
    parser.add_argument(
        "--date",
        type=_parse_date,
        help="Day to evaluate (YYYY-MM-DD, default today in UTC)",
    )
    parser.add_argument("--housekeeping", action="store_true", help="Run action housekeeping")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for NextBestMove.

    Returns:
        Exit code (0 = success, non-zero = error)
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"NextBestMove v{__version__}")
        return 0

    if not (args.best_action or args.plan or args.housekeeping):
        parser.print_help()
        return 2

    config = get_config()
    setup_logging(
        log_dir=config.log_path,
        console_level=logging.DEBUG if (args.debug or config.debug) else logging.INFO,
    )
    logger = get_logger("main")
    logger.info(f"NextBestMove v{__version__} starting...")

    issues = validate_config(config)
    for issue in issues:
        if issue.startswith("CRITICAL:"):
            logger.error(f"Configuration: {issue}")
        else:
            logger.warning(f"Configuration issue: {issue}")

    from nextbestmove.db.database import Database

    db = Database()
    try:
        db.initialize()
        logger.info("Database initialized", extra={"context": {"path": str(config.db_path)}})
    except NextMoveError as e:
        logger.error(f"Failed to initialize database: {e}")
        return 1

    day = args.date or datetime.now(timezone.utc).date()
    try:
        if args.housekeeping:
            from nextbestmove.engine.housekeeping import run_housekeeping

            result = run_housekeeping(db, day)
            print(
                f"Archived {result.archived_done} done, {result.archived_stale} stale; "
                f"unsnoozed {result.unsnoozed}"
            )
            if result.errors:
                logger.warning(
                    f"Housekeeping completed with {len(result.errors)} error(s)",
                    extra={"context": {"errors": result.errors}},
                )
                return 1

        if args.best_action:
            from nextbestmove.engine.decision_engine import run_decision_engine

            engine_result = run_decision_engine(db, args.best_action, day, persist=True)
            best = engine_result.best_action
            if best is None:
                print("Nothing to do right now.")
            else:
                action = db.get_action(best.action_id)
                label = action.description if action and action.description else best.action_id
                print(f"Next move: {label} [{best.lane.value}]")
                print(f"  {best.reason}")

        if args.plan:
            from nextbestmove.content.plan_digest import generate_plan_digest
            from nextbestmove.engine.daily_plan import generate_daily_plan
            from nextbestmove.integrations.calendar import create_calendar_client

            generate_daily_plan(db, args.plan, day, calendar=create_calendar_client(config))
            print(generate_plan_digest(db, args.plan, day).full_text)
    except NextMoveError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1
    finally:
        db.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
