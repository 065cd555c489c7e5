"""
Manual trigger — runs the topic scheduler once, outside the cron cadence.

Usage:
    python scripts/run_once.py                   # every active topic
    python scripts/run_once.py --topic 3         # one tracked topic
    python scripts/run_once.py --keyword "f1"    # raw keyword, stored untagged
"""
import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import httpx
from loguru import logger

from config.settings import REQUEST_TIMEOUT
from feedwatch.database.db import init_db
from feedwatch.main import build_scheduler, setup_logging


async def main(args: argparse.Namespace) -> None:
    setup_logging()
    init_db()

    async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
        scheduler = build_scheduler(client)
        try:
            if args.topic is not None:
                summary = await scheduler.run_one(args.topic)
            elif args.keyword:
                summary = await scheduler.run_keyword(args.keyword)
            else:
                summary = await scheduler.run_all()
        finally:
            await scheduler.aclose()

    for outcome in summary.outcomes:
        status = "skipped" if outcome.skipped else (f"FAILED: {outcome.error}" if outcome.error else "ok")
        term   = outcome.search_term or "-"
        logger.info(
            f"  {outcome.topic:<30} {outcome.platform:<10} {term:<20} {outcome.stored:>4} stored  {status}"
        )
    logger.info(f"Total: {summary.total_stored} new records, {len(summary.failures)} failures")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run one ingestion pass now.")
    group  = parser.add_mutually_exclusive_group()
    group.add_argument("--topic", type=int, help="topic id to fetch")
    group.add_argument("--keyword", help="raw keyword to fetch without a topic")
    asyncio.run(main(parser.parse_args()))
