# main.py

"""Entry point for the pricewatch tracker (one-off commands or scheduler)."""

import argparse
import asyncio
import logging
import sys

from src.config.logging_config import setup_logging
from src.config.settings import Settings

logger = logging.getLogger("pricewatch.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="pricewatch",
        description="Daily product price tracker.",
        epilog=(
            f"Default schedule: '{Settings.TRACK_SCHEDULE}' (UTC), "
            f"currency {Settings.DEFAULT_CURRENCY}."
        ),
    )
    action = parser.add_mutually_exclusive_group(required=True)
    action.add_argument(
        "--add",
        metavar="URL",
        default=None,
        help="Register a product page and record its first price.",
    )
    action.add_argument(
        "--track",
        action="store_true",
        default=False,
        help="Record today's price for every product not yet tracked.",
    )
    action.add_argument(
        "--list",
        action="store_true",
        default=False,
        dest="list_products",
        help="List tracked products with their latest price change.",
    )
    action.add_argument(
        "--history",
        metavar="URL",
        default=None,
        help="Show the price history of a tracked product.",
    )
    action.add_argument(
        "--remove",
        metavar="URL",
        default=None,
        help="Stop tracking a product.",
    )
    action.add_argument(
        "--schedule",
        action="store_true",
        default=False,
        help="Run now, then keep running on the cron schedule.",
    )
    parser.add_argument(
        "-n",
        "--name",
        default=None,
        help="Product name (required with --add).",
    )
    parser.add_argument(
        "--search",
        default=None,
        help="Substring filter on title/name for --list.",
    )
    parser.add_argument(
        "--cron",
        default=None,
        help="Cron expression overriding the default schedule.",
    )
    parser.add_argument(
        "-f",
        "--format",
        choices=["json", "table"],
        default="table",
        dest="output_format",
        help="Output format (default: table).",
    )
    return parser


def _dispatch(args: argparse.Namespace) -> int:
    """Route parsed arguments to the matching runner."""
    from src.cli import runner

    if args.add is not None:
        return asyncio.run(
            runner.run_add(args.name, args.add, args.output_format)
        )
    if args.track:
        return asyncio.run(runner.run_track(args.output_format))
    if args.list_products:
        return runner.run_list(args.search, args.output_format)
    if args.history is not None:
        return runner.run_history(args.history, args.output_format)
    if args.remove is not None:
        return runner.run_remove(args.remove)
    return asyncio.run(runner.run_schedule(args.cron))


def main() -> None:
    """Parse arguments, configure logging and run the chosen command."""
    parser = _build_parser()
    args = parser.parse_args()

    log_file = setup_logging()
    logger.info("pricewatch starting, log file: %s", log_file)

    try:
        exit_code = _dispatch(args)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        exit_code = 130
    except Exception:
        logger.critical("Fatal error", exc_info=True)
        raise
    finally:
        logger.info("pricewatch shutting down")
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
