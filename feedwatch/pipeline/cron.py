"""
Cron driver — owns the APScheduler instance that fires the topic scheduler
every FETCH_INTERVAL_HOURS, plus the on-demand trigger.

Hold the CronDriver handle for the life of the process and call stop() on
shutdown. The job wrapper swallows (and logs) every exception from a run so
a bad run can never take the process down.
"""
from datetime import datetime, timezone
from typing import Awaitable, Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

from config.settings import FETCH_INTERVAL_HOURS
from feedwatch.monitoring.alerts import alert_run_summary

_JOB_ID = "fetch_all_topics"


class CronDriver:
    def __init__(
        self,
        run_all: Callable[[], Awaitable[object]],
        interval_hours: int = FETCH_INTERVAL_HOURS,
        run_on_startup: bool = False,
    ):
        self._run_all       = run_all
        self.interval_hours = interval_hours
        self.run_on_startup = run_on_startup
        self._scheduler: AsyncIOScheduler | None = None
        self._running       = False
        self._manual_runs   = 0

    @property
    def running(self) -> bool:
        # AsyncIOScheduler.shutdown() is applied on the next loop tick, so the
        # driver tracks its own state
        return self._running

    def start(self) -> None:
        """Register the repeating job and start the scheduler (needs a running event loop)."""
        if self._running:
            return
        self._scheduler = AsyncIOScheduler(timezone="UTC")
        # an explicit next_run_time=None would add the job paused
        extra = {"next_run_time": datetime.now(timezone.utc)} if self.run_on_startup else {}
        self._scheduler.add_job(
            self._run_job,
            "interval",
            hours         = self.interval_hours,
            id            = _JOB_ID,
            name          = f"Fetch all topics (every {self.interval_hours}h)",
            max_instances = 1,
            coalesce      = True,
            **extra,
        )
        self._scheduler.start()
        self._running = True
        logger.info(f"[Cron] scheduled topic fetch every {self.interval_hours}h")

    def stop(self) -> None:
        """Stop the scheduler. Safe to call more than once."""
        if not self._running:
            return
        self._running = False
        self._scheduler.shutdown(wait=False)
        logger.info("[Cron] scheduler stopped")

    def trigger_now(self) -> dict:
        """
        Queue an immediate full run outside the interval and return at once.
        The caller gets an acknowledgment; results only show up in the logs.
        """
        if not self.running:
            raise RuntimeError("CronDriver.trigger_now() called before start()")
        self._manual_runs += 1
        job = self._scheduler.add_job(
            self._run_job,
            id   = f"manual_fetch_{self._manual_runs}",
            name = "Fetch all topics (manual)",
        )
        logger.info(f"[Cron] manual run queued ({job.id})")
        return {
            "message": "Fetch process for all topics started",
            "job_id":  job.id,
        }

    def next_run_time(self) -> datetime | None:
        if self._scheduler is None:
            return None
        job = self._scheduler.get_job(_JOB_ID)
        return job.next_run_time if job else None

    async def _run_job(self) -> None:
        try:
            summary = await self._run_all()
        except Exception as exc:
            logger.exception(f"[Cron] scheduled run crashed: {exc}")
            return
        if summary is not None and hasattr(summary, "failures"):
            await alert_run_summary(summary.topics, summary.total_stored, len(summary.failures))
