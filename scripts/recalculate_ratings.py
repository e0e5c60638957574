#!/usr/bin/env python3
"""
Rating Recalculation Script

Recomputes every book's rating under the active rating config.

Usage:
    # From project root with venv activated:
    python scripts/recalculate_ratings.py

    # Options:
    python scripts/recalculate_ratings.py --stale-only      # Skip books already on the active version
    python scripts/recalculate_ratings.py --batch-size 500  # Custom batch size
    python scripts/recalculate_ratings.py --workers 8       # Custom worker count

Press Ctrl+C to stop after the current batch; ratings already written
are kept.

Exit codes:
    0: all books recalculated
    1: some books failed (listed in the log)
    2: the run aborted or was cancelled
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from app.config import get_settings
from app.exceptions import InfrastructureFailureError
from app.services.recalculation import RecalculationState, start_recalculation

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def recalculate_ratings(batch_size: int, workers: int, stale_only: bool = False) -> int:
    """
    Run a recalculation and return the process exit code.

    Args:
        batch_size: Number of books per batch
        workers: Number of worker threads
        stale_only: Only books not yet rated under the active config
    """
    try:
        job = start_recalculation(
            only_stale=stale_only,
            batch_size=batch_size,
            max_workers=workers,
        )
    except InfrastructureFailureError as e:
        logger.error(f"Recalculation aborted: {e}")
        return 2
    logger.info(f"{settings.app_name} ({settings.environment}): started recalculation job {job.job_id}")

    while True:
        try:
            report = job.wait()
            break
        except KeyboardInterrupt:
            logger.warning("Interrupted - stopping after the current batch...")
            job.cancel()
        except InfrastructureFailureError as e:
            logger.error(f"Recalculation aborted: {e}")
            return 2

    # Report results
    logger.info("=" * 50)
    logger.info(f"Recalculation {report.state.value}")
    logger.info(f"Config version: {report.config_version}")
    logger.info(f"Books updated: {report.books_updated}")
    logger.info(f"Books failed: {report.books_failed}")
    for book_id in report.failures:
        logger.info(f"  book {book_id}: {report.failure_reasons[book_id]}")

    if report.state == RecalculationState.CANCELLED:
        return 2
    if report.state == RecalculationState.COMPLETED_WITH_FAILURES:
        return 1
    return 0


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Recalculate all book ratings under the active rating config"
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=settings.recalc_batch_size,
        help=f"Number of books per batch (default: {settings.recalc_batch_size})"
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=settings.recalc_max_workers,
        help=f"Number of worker threads (default: {settings.recalc_max_workers})"
    )
    parser.add_argument(
        "--stale-only",
        action="store_true",
        help="Only recalculate books not yet rated under the active config version"
    )

    args = parser.parse_args()

    sys.exit(recalculate_ratings(
        batch_size=args.batch_size,
        workers=args.workers,
        stale_only=args.stale_only,
    ))


if __name__ == "__main__":
    main()
