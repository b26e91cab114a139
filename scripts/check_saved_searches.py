#!/usr/bin/env python3
"""Re-check alert-enabled saved searches and record new-result alerts."""

import argparse
import asyncio
import logging
import os
import sys
from datetime import timedelta
from typing import Optional

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv
load_dotenv()

from pet_search import db
from pet_search.config import get_search_settings
from pet_search.dependencies import build_services
from pet_search.services.search import AlertChecker

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("check_saved_searches")


async def check_all(
    checker: AlertChecker,
    saved_search_ids,
    concurrency: int
) -> int:
    """
    Check saved searches with at most `concurrency` checks in flight.

    Returns:
        Number of checks that failed
    """
    semaphore = asyncio.Semaphore(max(1, concurrency))
    failures = 0

    async def check_one(saved_search_id: int):
        nonlocal failures
        async with semaphore:
            try:
                result = await checker.check(saved_search_id)
                logger.info(f"Saved search {saved_search_id}: {result.new_results_count} new results")
            except Exception as e:
                failures += 1
                logger.error(f"Saved search {saved_search_id} check failed: {e}")

    await asyncio.gather(*[check_one(i) for i in saved_search_ids])
    return failures


async def run(min_age_minutes: Optional[int], limit: int, concurrency: Optional[int]) -> int:
    settings = get_search_settings()
    await db.init_db(settings)
    try:
        services = build_services(db.get_pg_pool(), db.get_redis(), settings)
        min_age = timedelta(minutes=min_age_minutes) if min_age_minutes else None
        due = await services.saved_searches.list_due(min_age, limit)
        logger.info(f"Checking {len(due)} saved searches")

        failures = await check_all(
            services.alert_checker,
            [saved.id for saved in due],
            concurrency or settings.saved_searches.check_concurrency
        )
        return 1 if failures else 0
    finally:
        await db.close_db()


def create_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="check-saved-searches",
        description="Re-run alert-enabled saved searches and record new matches",
    )
    parser.add_argument(
        "--min-age-minutes",
        type=int,
        default=None,
        help="Only check saved searches not checked within this many minutes"
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=100,
        help="Maximum number of saved searches to check"
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Checks in flight at once (default: SAVED_SEARCH_CHECK_CONCURRENCY)"
    )
    return parser


def main() -> int:
    args = create_argument_parser().parse_args()
    return asyncio.run(run(args.min_age_minutes, args.limit, args.concurrency))


if __name__ == '__main__':
    sys.exit(main())
