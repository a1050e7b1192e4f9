"""
Runs the sync engine on the configured cron schedule.
"""
import logging
from typing import Optional

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

from .exceptions import CollectorError, ConfigError
from .sync.engine import SyncEngine, SyncResult

JOB_ID = "photo-collector"


def build_trigger(schedule: str) -> CronTrigger:
    try:
        return CronTrigger.from_crontab(schedule)
    except ValueError as e:
        raise ConfigError(f"invalid collector schedule '{schedule}': {e}") from e


class CollectorScheduler:
    def __init__(self, engine: SyncEngine, schedule: str, scheduler=None):
        self.engine = engine
        self.schedule = schedule
        self.trigger = build_trigger(schedule)
        self.scheduler = scheduler or BlockingScheduler()

    def run_once(self) -> Optional[SyncResult]:
        """
        One scheduled invocation. Failures are logged, never raised, so the
        schedule keeps firing after a bad run.
        """
        try:
            result = self.engine.run()
        except CollectorError as e:
            logging.error(f"Error running collector: {e}")
            return None

        if result.errors:
            logging.error(f"{len(result.errors)} errors captured during photo collection:")
            for err in result.errors:
                logging.error(f"  {err}")

        logging.info("Photo collection completed.")
        return result

    def start(self, run_now: bool = False):
        """Registers the job and blocks until the scheduler is shut down."""
        if run_now:
            self.run_once()

        self.scheduler.add_job(
            self.run_once,
            self.trigger,
            id=JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        logging.info(f"Collector scheduled: '{self.schedule}'")
        self.scheduler.start()

    def shutdown(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
