"""
Periodic feed sync job
"""
import time

import structlog

from twtxt_registry import metrics
from twtxt_registry.exceptions import StoreError

logger = structlog.get_logger("jobs")


def sync_feeds_job(app):
    """Re-fetch every registered feed; runs inside the application context"""
    with app.app_context():
        started = time.time()
        try:
            report = app.registry.sync_all()
        except StoreError as e:
            metrics.sync_runs_total.labels(status="error").inc()
            logger.error("feed sync aborted", operation=e.operation, error=e.message)
            raise
        finally:
            metrics.sync_duration_seconds.observe(time.time() - started)

        if report is None:
            metrics.sync_runs_total.labels(status="skipped").inc()
            return None

        metrics.sync_runs_total.labels(status="ok").inc()
        logger.info(
            "feed sync finished",
            synced=report.accounts_synced,
            not_modified=report.accounts_not_modified,
            failed=report.accounts_failed,
            entries_inserted=report.entries_inserted,
            lines_skipped=report.lines_skipped,
            duration=round(time.time() - started, 3),
        )
        return report
