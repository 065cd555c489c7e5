"""
Entry point — wires adapters, the author resolver and the topic scheduler,
then hands the scheduler to the CronDriver (APScheduler) which runs every
active topic every FETCH_INTERVAL_HOURS until SIGINT / SIGTERM.

Usage:
    python -m feedwatch.main
    # or, once installed: feedwatch
"""
import asyncio
import signal
import sys

import httpx
from loguru import logger

from config.settings import (
    FETCH_INTERVAL_HOURS,
    LOG_LEVEL,
    LOGS_DIR,
    MAX_RECORDS_PER_RUN,
    REQUEST_TIMEOUT,
    RUN_ON_STARTUP,
)
from feedwatch.collectors.registry import build_adapters
from feedwatch.database.db import init_db
from feedwatch.monitoring.alerts import alert_startup
from feedwatch.pipeline.authors import AuthorResolver
from feedwatch.pipeline.cron import CronDriver
from feedwatch.pipeline.scheduler import TopicScheduler


# ── Logging ────────────────────────────────────────────────────────────────────

def setup_logging() -> None:
    LOGS_DIR.mkdir(parents=True, exist_ok=True)
    logger.remove()
    logger.add(sys.stderr, level=LOG_LEVEL)
    logger.add(
        LOGS_DIR / "feedwatch_{time:YYYY-MM-DD}.log",
        rotation="00:00",
        retention="14 days",
        level=LOG_LEVEL,
        encoding="utf-8",
    )


# ── Wiring ─────────────────────────────────────────────────────────────────────

def build_scheduler(client: httpx.AsyncClient) -> TopicScheduler:
    adapters, unavailable = build_adapters(client)
    return TopicScheduler(
        adapters,
        unavailable = unavailable,
        resolver    = AuthorResolver(),
        max_records = MAX_RECORDS_PER_RUN,
    )


# ── Main ───────────────────────────────────────────────────────────────────────

async def main() -> None:
    setup_logging()
    logger.info("Feedwatch starting up")

    init_db()
    client    = httpx.AsyncClient(timeout=REQUEST_TIMEOUT)
    scheduler = build_scheduler(client)
    driver    = CronDriver(
        scheduler.run_all,
        interval_hours = FETCH_INTERVAL_HOURS,
        run_on_startup = RUN_ON_STARTUP,
    )
    driver.start()
    await alert_startup(FETCH_INTERVAL_HOURS)
    logger.info(f"Scheduler running — next fetch at {driver.next_run_time()}")

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    try:
        await stop.wait()
    finally:
        logger.info("Shutting down scheduler…")
        driver.stop()
        await scheduler.aclose()
        await client.aclose()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
