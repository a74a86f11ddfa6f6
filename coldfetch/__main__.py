"""
Command line entry point

Retrieves a single archive and exits.

Usage:
    python -m coldfetch my-vault <archive-id> ./restore/archive.bin
    POLLING_INTERVAL_MINUTES=15 python -m coldfetch my-vault <archive-id> out.bin --tier Bulk

Exit codes: 0 completed, 1 failed, 130 cancelled (SIGINT/SIGTERM).
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import Optional, Sequence

from coldfetch.orchestrator import retrieve_archive
from coldfetch.utils.config import settings
from coldfetch.utils.logging import setup_logging
from coldfetch.utils.schemas import RetrievalOptions

logger = logging.getLogger(__name__)

EXIT_CANCELLED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="coldfetch",
        description="Retrieve an archive from Glacier, waiting for the retrieval job via SNS/SQS.",
    )
    parser.add_argument("vault", help="Vault name")
    parser.add_argument("archive_id", help="Archive id to retrieve")
    parser.add_argument("destination", help="Local file to write the archive to")
    parser.add_argument("--account-id", default=None, help="Glacier account id (default: settings)")
    parser.add_argument("--polling-interval", type=float, default=None, help="Minutes between empty polls")
    parser.add_argument("--max-fetch-retries", type=int, default=None, help="Consecutive fetch errors tolerated")
    parser.add_argument("--tier", choices=["Expedited", "Standard", "Bulk"], default=None)
    parser.add_argument("--description", default=None, help="Job description")
    parser.add_argument(
        "--no-strict-job-match",
        dest="strict_job_match",
        action="store_false",
        default=None,
        help="Accept a notification for any job id",
    )
    parser.add_argument("--log-level", default=settings.LOG_LEVEL)
    parser.add_argument("--log-format", choices=["text", "json"], default=settings.LOG_FORMAT)
    return parser


async def run(args: argparse.Namespace) -> int:
    """Run the workflow as a cancellable task. Returns the process exit code."""
    options = RetrievalOptions.from_settings(
        account_id=args.account_id,
        polling_interval_minutes=args.polling_interval,
        max_fetch_retries=args.max_fetch_retries,
        tier=args.tier,
        description=args.description,
        strict_job_match=args.strict_job_match,
    )

    task = asyncio.create_task(retrieve_archive(args.vault, args.archive_id, args.destination, options=options))

    loop = asyncio.get_running_loop()
    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, task.cancel)
            installed.append(sig)
        except (NotImplementedError, RuntimeError):
            # no signal support on Windows loops or outside the main thread
            pass

    try:
        result = await task
    except asyncio.CancelledError:
        logger.warning("Retrieval cancelled, ephemeral resources torn down")
        return EXIT_CANCELLED
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)

    if result.teardown_error is not None:
        logger.warning("Ephemeral resources may have leaked", extra={"error": str(result.teardown_error)})

    if not result.ok:
        logger.error("Retrieval failed", extra={"error": str(result.error)})
        return 1
    return 0


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(level=args.log_level, format_type=args.log_format)
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
