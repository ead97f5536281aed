#!/usr/bin/env python3
"""
Representation score refresh scheduler.
Recomputes the score of every active legislator on a schedule, logging and
collecting per-legislator failures without stopping the batch.
"""

import os
import sys
import logging
import schedule
import time
import signal
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional

from repscore.models import Legislator
from repscore.utils.database import get_db_session, get_db_manager
from repscore.analysis.representation_score import update_representation_score

logger = logging.getLogger(__name__)


@dataclass
class RefreshReport:
    """Outcome of one refresh pass."""
    updated: int = 0
    errors: List[str] = field(default_factory=list)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def failed(self) -> int:
        return len(self.errors)

    def to_dict(self) -> dict:
        return {'updated': self.updated, 'errors': list(self.errors)}


def list_active_legislator_ids() -> List[str]:
    """Ids of all legislators currently flagged active."""
    with get_db_session() as session:
        rows = session.query(Legislator.id).filter(Legislator.is_active.is_(True)).all()
        return [row[0] for row in rows]


def refresh_all_scores(legislator_ids: Optional[Iterable[str]] = None,
                       max_workers: int = 1,
                       update_fn: Callable[[str], object] = update_representation_score) -> RefreshReport:
    """
    Recompute and store scores for many legislators.

    Each legislator is refreshed independently; a failure is logged and
    recorded as "<id>: <error>" and the remaining legislators still run.

    Args:
        legislator_ids: Legislators to refresh. Defaults to all active legislators.
        max_workers: Number of refreshes to run at once; in-memory SQLite always runs one
        update_fn: Single-legislator refresh, called with the legislator id

    Returns:
        RefreshReport with the success count and error messages
    """
    report = RefreshReport(started_at=datetime.now(timezone.utc))

    if legislator_ids is None:
        legislator_ids = list_active_legislator_ids()
    legislator_ids = list(legislator_ids)

    logger.info(f"Refreshing representation scores for {len(legislator_ids)} legislators")

    def _record_failure(legislator_id, error):
        logger.error(f"Score refresh failed for {legislator_id}: {error}")
        report.errors.append(f"{legislator_id}: {error}")

    if max_workers > 1 and update_fn is update_representation_score \
            and get_db_manager().shared_connection:
        # One shared connection: a commit in one thread would end another's transaction
        logger.warning(f"In-memory SQLite holds a single connection, "
                       f"refreshing serially instead of with {max_workers} workers")
        max_workers = 1

    if max_workers <= 1:
        for legislator_id in legislator_ids:
            try:
                update_fn(legislator_id)
                report.updated += 1
            except Exception as e:
                _record_failure(legislator_id, e)
    else:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = {executor.submit(update_fn, legislator_id): legislator_id
                       for legislator_id in legislator_ids}
            for future in as_completed(futures):
                legislator_id = futures[future]
                try:
                    future.result()
                    report.updated += 1
                except Exception as e:
                    _record_failure(legislator_id, e)

    report.finished_at = datetime.now(timezone.utc)
    duration = (report.finished_at - report.started_at).total_seconds()
    logger.info(f"Score refresh completed in {duration:.2f} seconds: "
                f"{report.updated} updated, {report.failed} failed")
    return report


class ScoreRefreshScheduler:
    """Scheduler for periodic representation score refreshes."""

    def __init__(self, interval_hours: Optional[int] = None, max_workers: Optional[int] = None):
        """
        Initialize the score scheduler.

        Args:
            interval_hours: Hours between refreshes. Defaults to SCORE_REFRESH_INTERVAL_HOURS or 24.
            max_workers: Refresh fan-out width. Defaults to SCORE_REFRESH_WORKERS or 1.
        """
        self.interval_hours = interval_hours or int(os.getenv('SCORE_REFRESH_INTERVAL_HOURS', '24'))
        self.max_workers = max_workers or int(os.getenv('SCORE_REFRESH_WORKERS', '1'))
        self.running = False
        self.scheduler_thread = None
        self.last_report: Optional[RefreshReport] = None
        self.scheduler = schedule.Scheduler()

    def _signal_handler(self, signum, frame):
        """Handle shutdown signals gracefully."""
        logger.info(f"Received signal {signum}, shutting down gracefully...")
        self.stop()

    def refresh_job(self):
        """Job to refresh every active legislator's score."""
        logger.info("Starting scheduled score refresh job")

        try:
            report = refresh_all_scores(max_workers=self.max_workers)
            self.last_report = report

            if report.errors:
                logger.warning(f"Score refresh completed with {report.failed} errors")
            return True

        except Exception as e:
            # Listing legislators failed; no per-legislator work was attempted
            logger.error(f"Score refresh job failed: {e}")
            return False

    def setup_schedule(self):
        """Set up the scheduled jobs."""
        self.scheduler.clear()
        self.scheduler.every(self.interval_hours).hours.do(self.refresh_job)
        logger.info(f"Scheduled score refresh every {self.interval_hours} hours")

    def _run_scheduler(self):
        """Run the scheduler in a separate thread."""
        logger.info("Score scheduler started")

        while self.running:
            try:
                self.scheduler.run_pending()
                time.sleep(60)  # Check every minute
            except Exception as e:
                logger.error(f"Scheduler error: {e}")
                time.sleep(60)

        logger.info("Score scheduler stopped")

    def start(self, install_signal_handlers: bool = True):
        """Start the scheduler."""
        if self.running:
            logger.warning("Scheduler is already running")
            return

        logger.info("Starting score scheduler...")

        if install_signal_handlers:
            signal.signal(signal.SIGINT, self._signal_handler)
            signal.signal(signal.SIGTERM, self._signal_handler)

        self.setup_schedule()

        self.running = True
        self.scheduler_thread = threading.Thread(target=self._run_scheduler, daemon=True)
        self.scheduler_thread.start()

        logger.info("Score scheduler started successfully")

    def stop(self):
        """Stop the scheduler."""
        if not self.running:
            return

        logger.info("Stopping score scheduler...")
        self.running = False

        if self.scheduler_thread and self.scheduler_thread.is_alive():
            self.scheduler_thread.join(timeout=10)

        logger.info("Score scheduler stopped")

    def run_manual_refresh(self) -> RefreshReport:
        """Run a refresh immediately and return its report."""
        logger.info("Running manual score refresh")
        report = refresh_all_scores(max_workers=self.max_workers)
        self.last_report = report
        return report

    def get_status(self) -> dict:
        """Get current scheduler status."""
        return {
            'running': self.running,
            'interval_hours': self.interval_hours,
            'next_run': str(self.scheduler.next_run) if self.scheduler.jobs else None,
            'last_report': self.last_report.to_dict() if self.last_report else None,
        }


def main():
    """Main function for running the scheduler."""
    import argparse

    parser = argparse.ArgumentParser(description='Representation Score Scheduler')
    parser.add_argument('--manual', action='store_true', help='Run one refresh and exit')
    parser.add_argument('--daemon', action='store_true', help='Run as daemon (continuous)')
    parser.add_argument('--test', action='store_true', help='Test database connection and exit')
    parser.add_argument('--workers', type=int, default=None, help='Concurrent refreshes')

    args = parser.parse_args()

    os.makedirs('logs', exist_ok=True)
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler('logs/score_scheduler.log'),
            logging.StreamHandler()
        ]
    )

    try:
        scheduler = ScoreRefreshScheduler(max_workers=args.workers)

        if args.test:
            print("Testing database connection...")
            if get_db_manager().test_connection():
                print("✓ Database connection successful")
            else:
                print("✗ Database connection failed")
                sys.exit(1)

        elif args.daemon:
            print("Starting score scheduler daemon...")
            scheduler.start()

            try:
                while scheduler.running:
                    time.sleep(1)
            except KeyboardInterrupt:
                print("\nShutting down...")
                scheduler.stop()

        else:
            report = scheduler.run_manual_refresh()
            print(f"✓ Refresh completed: {report.updated} updated, {report.failed} failed")
            for error in report.errors:
                print(f"  ✗ {error}")
            if report.errors:
                sys.exit(1)

    except Exception as e:
        logger.error(f"Score scheduler error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
