# guia_api/scheduler.py

from typing import Callable, Optional
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
import pytz

from guia_api.config import SCHEDULER_CONFIG, SchedulerConfig
from guia_api.logger import get_logger

log = get_logger(__name__)

JOB_ID = "guia_import_job"


class ImportScheduler:
  """Runs the given import job periodically (every 7 days at 03:00 by default)."""

  def __init__(self, job: Callable[[], object], config: SchedulerConfig = SCHEDULER_CONFIG):
    self.job = job
    self.config = config
    self.timezone = pytz.timezone(config.timezone)
    self.scheduler = BackgroundScheduler(timezone=self.timezone)

  def trigger(self) -> CronTrigger:
    return CronTrigger(
      day=self.config.day,
      hour=self.config.hour,
      minute=self.config.minute,
      timezone=self.timezone,
    )

  def _run_job(self):
    """Fire-and-forget wrapper: failures are only logged"""
    log.info("[Scheduler] Starting scheduled import task")
    try:
      result = self.job()
      status = getattr(result, "status", None)
      log.info(f"[Scheduler] Scheduled import finished (status={status})")
    except Exception as e:
      log.error(f"[Scheduler] Scheduled import failed: {e}", exc_info=True)

  def add_import_job(self):
    self.scheduler.add_job(
      func=self._run_job,
      trigger=self.trigger(),
      id=JOB_ID,
      name="Guia da Farmacia import",
      replace_existing=True,
      max_instances=1,
    )
    log.info(f"[Scheduler] Import job scheduled (day={self.config.day}, {self.config.hour:02d}:{self.config.minute:02d} {self.config.timezone})")

  def start(self):
    self.add_import_job()
    self.scheduler.start()
    log.info(f"[Scheduler] Started. Next run: {self.next_run_time()}")

  def shutdown(self):
    if self.scheduler.running:
      self.scheduler.shutdown(wait=False)
      log.info("[Scheduler] Stopped")

  def next_run_time(self) -> Optional[object]:
    job = self.scheduler.get_job(JOB_ID)
    return getattr(job, "next_run_time", None) if job else None
