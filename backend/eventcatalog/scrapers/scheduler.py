"""APScheduler-based daily scraping scheduler.

A standing interval job checks the clock every minute and triggers a
full orchestrator run at the configured local time. On start-up a
catch-up check runs immediately so the catalog never goes stale across
deploys or restarts, and failed runs get a bounded number of delayed
retries.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Iterable, Optional
from zoneinfo import ZoneInfo

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from eventcatalog.config import settings
from eventcatalog.core.exceptions import ConfigurationError, ScraperBusyError
from eventcatalog.scrapers.base import ScraperRunResult
from eventcatalog.scrapers.scraper_service import ScraperService
from eventcatalog.scrapers.utils.retry import RetryPolicy, fixed_delay

logger = structlog.get_logger(__name__)

TICK_JOB_ID = "scraper_daily_tick"
CATCH_UP_JOB_ID = "scraper_catch_up"
RETRY_JOB_ID = "scraper_retry"


class SchedulerPhase(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    RETRY_PENDING = "retry_pending"


@dataclass
class SchedulerState:
    """Process-lifetime scheduler state; reset on restart."""

    active: bool = False
    is_running: bool = False
    phase: SchedulerPhase = SchedulerPhase.IDLE
    retry_attempt: int = 0
    last_run_result: Optional[ScraperRunResult] = None
    last_error: Optional[str] = None


class ScraperScheduler:
    """Decides when the orchestrator runs.

    This scheduler:
    - Fires one run per day at SCRAPE_HOUR:SCRAPE_MINUTE in SCRAPE_TIMEZONE
    - Triggers a catch-up run at start-up when the catalog is stale
    - Retries failed runs after a fixed delay, a bounded number of times
    - Guards every run (scheduled or manual) so runs never overlap
    """

    def __init__(
        self,
        scraper_service: ScraperService,
        retry_policy: Optional[RetryPolicy] = None,
        timezone_name: Optional[str] = None,
        hour: Optional[int] = None,
        minute: Optional[int] = None,
        check_interval_seconds: Optional[int] = None,
        stale_after_hours: Optional[int] = None,
        settle_seconds: Optional[int] = None,
    ):
        """Initialize scraper scheduler.

        Args:
            scraper_service: Orchestrator to invoke
            retry_policy: Policy for retrying failed runs
            timezone_name: Zone of the daily trigger time
            hour: Daily trigger hour
            minute: Daily trigger minute
            check_interval_seconds: Clock check interval
            stale_after_hours: Staleness that forces a catch-up run
            settle_seconds: Delay before the first-ever run
        """
        self.scraper_service = scraper_service
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=settings.SCHEDULER_MAX_RETRIES + 1,
            wait=fixed_delay(settings.SCHEDULER_RETRY_DELAY_MINUTES * 60),
            name="scheduler",
        )
        self.tz = ZoneInfo(timezone_name or settings.SCRAPE_TIMEZONE)
        self.hour = settings.SCRAPE_HOUR if hour is None else hour
        self.minute = settings.SCRAPE_MINUTE if minute is None else minute
        self.check_interval_seconds = check_interval_seconds or settings.SCHEDULER_CHECK_INTERVAL_SECONDS
        self.stale_after = timedelta(hours=stale_after_hours or settings.CATCHUP_STALE_HOURS)
        self.settle_seconds = settings.CATCHUP_SETTLE_SECONDS if settle_seconds is None else settle_seconds

        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self.state = SchedulerState()
        self.logger = logger.bind(service="scraper_scheduler")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Register the daily tick, start APScheduler and queue the catch-up check."""
        if self.state.active:
            self.logger.warning("scheduler_already_active")
            return

        self.scheduler.add_job(
            func=self.tick,
            trigger=IntervalTrigger(seconds=self.check_interval_seconds, timezone="UTC"),
            id=TICK_JOB_ID,
            name="Daily scrape clock check",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        # No trigger: runs once, as soon as the scheduler starts
        self.scheduler.add_job(
            func=self.check_and_run_if_needed,
            id=CATCH_UP_JOB_ID,
            name="Start-up catch-up check",
            replace_existing=True,
        )

        if not self.scheduler.running:
            self.scheduler.start()
        self.state.active = True

        self.logger.info(
            "scheduler_started",
            daily_at=f"{self.hour:02d}:{self.minute:02d}",
            timezone=str(self.tz),
        )

    def stop(self) -> None:
        """Stop the scheduler; an in-flight run is not cancelled."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        if self.state.active:
            self.state.active = False
            self.logger.info("scheduler_stopped")
        else:
            self.logger.warning("scheduler_not_running")

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    def is_trigger_time(self, now: Optional[datetime] = None) -> bool:
        """Whether ``now`` is exactly the daily trigger minute in the target zone."""
        local = (now or datetime.now(timezone.utc)).astimezone(self.tz)
        return local.hour == self.hour and local.minute == self.minute

    async def tick(self, now: Optional[datetime] = None) -> None:
        """Clock check run by the interval job."""
        try:
            if self.is_trigger_time(now):
                self.logger.info("scheduled_time_reached")
                await self.trigger_run(trigger="scheduled")
        except Exception as e:
            self.logger.error("scheduler_tick_failed", error=str(e), exc_info=True)

    async def check_and_run_if_needed(self, now: Optional[datetime] = None) -> None:
        """Trigger a catch-up run when the catalog is stale.

        Never scraped: run after a short settling delay.
        Last scrape older than the staleness limit: run immediately.
        """
        now = now or datetime.now(timezone.utc)
        try:
            status = await self.scraper_service.get_scraper_status()
        except Exception as e:
            self.logger.error("catch_up_check_failed", error=str(e), exc_info=True)
            return

        if status.last_run is None:
            run_at = now + timedelta(seconds=self.settle_seconds)
            self.logger.info("catch_up_initial_run_scheduled", run_at=run_at.isoformat())
            self.scheduler.add_job(
                func=self.trigger_run,
                trigger=DateTrigger(run_date=run_at, timezone="UTC"),
                kwargs={"trigger": "catch_up"},
                id=f"{CATCH_UP_JOB_ID}_initial",
                replace_existing=True,
            )
            return

        since_last = now - status.last_run
        hours_since = round(since_last.total_seconds() / 3600, 1)
        if since_last > self.stale_after:
            self.logger.info("catch_up_run_triggered", hours_since_last_run=hours_since)
            await self.trigger_run(trigger="catch_up")
        else:
            self.logger.info("catch_up_not_needed", hours_since_last_run=hours_since)

    async def trigger_run(self, trigger: str = "scheduled", retry_attempt: int = 0) -> Optional[ScraperRunResult]:
        """Run the orchestrator for all platforms unless a run is in progress.

        A failed or raising run schedules a retry per the retry policy.
        A missing credential is not retried.

        Args:
            trigger: What started the run
            retry_attempt: How many retries preceded this run

        Returns:
            Run result, or None if skipped or the run raised
        """
        if self.state.is_running:
            self.logger.info("scraper_run_skipped_in_progress", trigger=trigger)
            return None

        self._begin_run()
        self.logger.info(
            "scheduled_run_starting",
            trigger=trigger,
            attempt=retry_attempt + 1,
            max_attempts=self.retry_policy.max_attempts,
        )

        try:
            try:
                result = await self.scraper_service.run_scraper(trigger=trigger)
            finally:
                self._release_guard()
        except ConfigurationError as e:
            self._record_outcome(error=e.message)
            self.logger.error("scheduled_run_not_configured", error=e.message)
            return None
        except Exception as e:
            self._record_outcome(error=str(e))
            self.logger.error("scheduled_run_failed", trigger=trigger, error=str(e), exc_info=True)
            self._handle_retry(retry_attempt)
            return None

        self._record_outcome(result=result)
        if result.success:
            self._cancel_pending_retry()
            self.logger.info("scheduled_run_successful", total_events=result.total_events)
        else:
            self.logger.warning("scheduled_run_partial_failure", errors=result.error_summary())
            self._handle_retry(retry_attempt)
        return result

    async def run_now(self, platform_ids: Optional[Iterable[str]] = None) -> ScraperRunResult:
        """Manually triggered run, sharing the scheduled runs' guard.

        Failures are reported to the caller; no retry is scheduled.

        Raises:
            ScraperBusyError: If a run is already in progress
        """
        if self.state.is_running:
            raise ScraperBusyError()

        self._begin_run()
        try:
            try:
                result = await self.scraper_service.run_scraper(platform_ids=platform_ids, trigger="manual")
            finally:
                self._release_guard()
        except Exception as e:
            self._record_outcome(error=str(e))
            raise
        self._record_outcome(result=result)
        return result

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def _begin_run(self) -> None:
        self.state.is_running = True
        self.state.phase = SchedulerPhase.RUNNING

    def _release_guard(self) -> None:
        self.state.is_running = False
        if self.scheduler.get_job(RETRY_JOB_ID):
            self.state.phase = SchedulerPhase.RETRY_PENDING
        else:
            self.state.phase = SchedulerPhase.IDLE

    def _record_outcome(self, result: Optional[ScraperRunResult] = None, error: Optional[str] = None) -> None:
        if result is not None:
            self.state.last_run_result = result
            self.state.last_error = None
        else:
            self.state.last_error = error

    def _handle_retry(self, retry_attempt: int) -> None:
        failed_attempt = retry_attempt + 1
        if not self.retry_policy.should_retry(failed_attempt):
            self.state.retry_attempt = 0
            self.logger.error("scheduler_max_retries_reached", attempts=failed_attempt)
            return

        delay = self.retry_policy.delay_for(failed_attempt)
        run_at = datetime.now(timezone.utc) + timedelta(seconds=delay)
        self.scheduler.add_job(
            func=self.trigger_run,
            trigger=DateTrigger(run_date=run_at, timezone="UTC"),
            kwargs={"trigger": "retry", "retry_attempt": failed_attempt},
            id=RETRY_JOB_ID,
            replace_existing=True,
        )
        self.state.phase = SchedulerPhase.RETRY_PENDING
        self.state.retry_attempt = failed_attempt
        self.logger.info(
            "scheduler_retry_scheduled",
            retry=failed_attempt,
            delay_minutes=round(delay / 60, 1),
            run_at=run_at.isoformat(),
        )

    def _cancel_pending_retry(self) -> None:
        if self.scheduler.get_job(RETRY_JOB_ID):
            self.scheduler.remove_job(RETRY_JOB_ID)
        self.state.retry_attempt = 0
        if not self.state.is_running:
            self.state.phase = SchedulerPhase.IDLE

    def get_state(self) -> Dict[str, Any]:
        """Read-only snapshot for status queries."""
        last = self.state.last_run_result
        return {
            "active": self.state.active,
            "is_running": self.state.is_running,
            "phase": self.state.phase.value,
            "retry_attempt": self.state.retry_attempt,
            "last_result": last.to_dict() if last else None,
            "last_error": self.state.last_error,
        }

    def get_jobs_status(self) -> Dict[str, Dict[str, Optional[str]]]:
        """Next run time of every registered job, keyed by job id."""
        return {
            job.id: {
                "name": job.name,
                "next_run": job.next_run_time.isoformat() if getattr(job, "next_run_time", None) else None,
                "trigger": str(job.trigger),
            }
            for job in self.scheduler.get_jobs()
        }
