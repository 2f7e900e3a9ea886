"""
Background Jobs - scheduling of the periodic feed sync
"""
import logging
from datetime import datetime

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from twtxt_registry.jobs.sync import sync_feeds_job

logger = logging.getLogger("jobs")

SYNC_JOB_ID = "sync_feeds"


class JobScheduler:
    """Background job manager"""

    def __init__(self):
        self.scheduler = BackgroundScheduler()
        self._jobs_registered = False

    def init_app(self, app, fetch_interval, run_now=True):
        """Register the sync job and start the scheduler"""
        self._register_jobs(app, fetch_interval, run_now)
        self.scheduler.start()
        logger.info(f"Job scheduler initialized, syncing feeds every {fetch_interval} seconds")

    def _register_jobs(self, app, fetch_interval, run_now):
        if self._jobs_registered:
            return

        options = {}
        if run_now:
            # first run right away, then every fetch_interval seconds
            options["next_run_time"] = datetime.now()

        self.scheduler.add_job(
            func=sync_feeds_job,
            trigger=IntervalTrigger(seconds=fetch_interval),
            id=SYNC_JOB_ID,
            name="Sync feeds",
            args=[app],
            max_instances=1,
            coalesce=True,
            **options,
        )

        self._jobs_registered = True
        logger.info("Background jobs registered")

    def reschedule_sync(self, fetch_interval):
        """Apply a new fetch interval after a configuration reload"""
        if not self._jobs_registered:
            return
        self.scheduler.reschedule_job(SYNC_JOB_ID, trigger=IntervalTrigger(seconds=fetch_interval))
        logger.info(f"Feed sync rescheduled to every {fetch_interval} seconds")

    def shutdown(self):
        if self.scheduler.running:
            self.scheduler.shutdown()
            logger.info("Job scheduler shutdown")
