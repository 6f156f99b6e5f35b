"""Command-line entry point for the voice journal bot.

WHY: The bot runs as a long-lived process. Operators start it with
``python -m voice_journal`` (long polling, no public URL needed) or with
``--webhook`` behind an HTTPS endpoint.

HOW: argparse picks the delivery mode and the log level, logging is
configured once, load_settings() validates the environment, and control
passes to voice_journal.bot.run_polling or voice_journal.server.run_server.

RULES:
- Missing required configuration prints the error to stderr and exits 2
- --log-level overrides LOG_LEVEL from the environment
- --host/--port only apply to --webhook
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from voice_journal import __version__
from voice_journal.config import load_settings

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="voice-journal",
        description="Telegram bot that files categorized voice notes into Google Sheets.",
    )
    parser.add_argument(
        "--webhook",
        action="store_true",
        help="Receive updates through a FastAPI webhook server instead of long polling.",
    )
    parser.add_argument("--host", default="0.0.0.0", help="Webhook server bind address.")
    parser.add_argument("--port", type=int, default=8000, help="Webhook server port.")
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: LOG_LEVEL env or INFO).",
    )
    parser.add_argument("--version", action="version", version="%(prog)s " + __version__)
    return parser


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    # httpx logs every request at INFO, including the bot token in the URL
    logging.getLogger("httpx").setLevel(logging.WARNING)


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for ``python -m voice_journal`` and the console script.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = load_settings()
    except ValueError as exc:
        print("Error: {}".format(exc), file=sys.stderr)
        sys.exit(2)

    configure_logging(args.log_level or settings.log_level)

    if args.webhook:
        from voice_journal.server.app import run_server
        run_server(settings, host=args.host, port=args.port)
    else:
        from voice_journal.bot.bot import run_polling
        run_polling(settings)


if __name__ == "__main__":
    main()
