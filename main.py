# main.py

"""Entry point for the cardprice batch jobs."""

import argparse
import logging
import sys

from cardprice.config.logging_config import setup_logging
from cardprice.normalize.vendors import VENDORS

logger = logging.getLogger("cardprice.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="cardprice",
        description="Trading card price normalization and rollup jobs.",
    )
    parser.add_argument(
        "--db",
        default=None,
        dest="db_path",
        help="SQLite database path (default: $CARDPRICE_DB_PATH).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        default=False,
        help="Show INFO log records on stderr.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    normalize = sub.add_parser(
        "normalize",
        help="Normalize one vendor's prices into snapshots.",
    )
    normalize.add_argument(
        "-v",
        "--vendor",
        required=True,
        choices=sorted(VENDORS),
        help="Vendor source id.",
    )
    normalize.add_argument(
        "--date",
        default=None,
        help="Snapshot date YYYY-MM-DD (default: today, UTC).",
    )

    resolve = sub.add_parser(
        "resolve",
        help="Pick one canonical daily price per item/date/currency.",
    )
    resolve.add_argument(
        "--date",
        default=None,
        help="Date YYYY-MM-DD (default: today, UTC).",
    )
    resolve.add_argument(
        "-c",
        "--currency",
        default=None,
        help="Currency code (default: USD).",
    )
    resolve.add_argument(
        "--all-dates",
        action="store_true",
        default=False,
        dest="all_dates",
        help="Process every snapshot date instead of a single day.",
    )
    resolve.add_argument(
        "--since",
        default=None,
        help="With --all-dates: inclusive lower date bound.",
    )
    resolve.add_argument(
        "--until",
        default=None,
        help="With --all-dates: inclusive upper date bound.",
    )
    resolve.add_argument(
        "--chunk-by-day",
        action="store_true",
        default=False,
        dest="chunk_by_day",
        help="Commit each date in its own transaction.",
    )

    rollup = sub.add_parser(
        "rollup",
        help="Roll up sale comps into market value estimates.",
    )
    rollup.add_argument(
        "--date",
        default=None,
        help="Computation date YYYY-MM-DD (default: today, UTC).",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Dispatch to the requested batch job and exit with its status."""
    args = _build_parser().parse_args(argv)
    setup_logging(args.command, verbose=args.verbose)

    from cardprice.cli.runner import run_normalize, run_resolve, run_rollup

    try:
        if args.command == "normalize":
            exit_code = run_normalize(
                args.vendor, args.date, db_path=args.db_path,
            )
        elif args.command == "resolve":
            exit_code = run_resolve(
                date_arg=args.date,
                currency=args.currency,
                all_dates=args.all_dates,
                since_arg=args.since,
                until_arg=args.until,
                chunk_by_day=args.chunk_by_day,
                db_path=args.db_path,
            )
        else:
            exit_code = run_rollup(args.date, db_path=args.db_path)
    except Exception:
        logger.critical("Fatal error during %s", args.command, exc_info=True)
        raise
    finally:
        logger.info("cardprice %s finished", args.command)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
