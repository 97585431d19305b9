"""Pricepulse process entry-point.

Usage:
    python -m pricepulse [--once] [--log-level LEVEL] [--log-format FORMAT]

Default behaviour is continuous: the scheduler fires refresh runs on the
configured cron schedule until the process receives ``SIGTERM`` or Ctrl+C.
Pass ``--once`` to execute a single manual refresh run, print its outcome as
JSON and exit.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from pydantic import ValidationError

from pricepulse.core import configure_logging
from pricepulse.core.exceptions import ConfigError
from pricepulse.core.settings import Settings


def apply_logging_settings(
    settings: Settings,
    level: str | None = None,
    fmt: str | None = None,
) -> None:
    """Reconfigure logging from loaded settings; explicit CLI values win."""
    configure_logging(
        level=level or settings.log_level,
        fmt=fmt or settings.log_format,
        force=True,
    )


def main() -> None:
    """CLI entry-point registered in ``pyproject.toml``."""
    parser = argparse.ArgumentParser(
        prog="pricepulse",
        description="Scheduled refresh of prices, benchmarks and currency rates.",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single manual refresh and exit instead of running the scheduler.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        metavar="LEVEL",
        help="Override LOG_LEVEL env var (DEBUG|INFO|WARNING|ERROR).",
    )
    parser.add_argument(
        "--log-format",
        default=None,
        metavar="FORMAT",
        help="Override LOG_FORMAT env var (text|json).",
    )

    args = parser.parse_args()

    try:
        configure_logging(level=args.log_level, fmt=args.log_format)
    except ValueError as exc:
        print(f"pricepulse: configuration error: {exc}", file=sys.stderr)  # noqa: T201
        sys.exit(1)

    logger = logging.getLogger(__name__)
    logger.info("Pricepulse starting up")

    try:
        settings = Settings()
    except ValidationError as exc:
        logger.critical("Configuration error: %s", exc)
        sys.exit(1)

    apply_logging_settings(settings, args.log_level, args.log_format)

    # Lazy import keeps startup fast when module is imported without running.
    from pricepulse.app import run_continuous, run_once  # noqa: PLC0415

    try:
        if args.once:
            logger.info("Running a single manual refresh (--once).")
            outcome = asyncio.run(run_once(settings=settings))
            if outcome is not None:
                print(json.dumps(outcome.as_dict(), indent=2))  # noqa: T201
        else:
            logger.info("Running scheduler (Ctrl+C to stop).")
            asyncio.run(run_continuous(settings=settings))
    except ConfigError as exc:
        logger.critical("Configuration error: %s", exc)
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted — exiting.")
        sys.exit(0)


if __name__ == "__main__":
    main()
