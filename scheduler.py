import logging
from datetime import date
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from budgets import budget_alerts
from config import get_settings
from database import session_scope
from recurrence import local_today, pending_occurrences
from services import LedgerRepository


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def run_digest(repository: LedgerRepository, today: date, source: str = "manual") -> dict:
    """Log what needs attention today. Nothing is written to the ledger."""
    snapshot = repository.snapshot()
    pending = pending_occurrences(
        snapshot.recurring_templates, snapshot.transactions, today
    )
    alerts = budget_alerts(
        snapshot.budgets, snapshot.transactions, snapshot.catalog, today=today
    )
    for occurrence in pending:
        logger.info(
            f"digest_pending: template={occurrence.template.id} "
            f"description={occurrence.template.description!r} "
            f"date={occurrence.expected_date.isoformat()}"
        )
    for alert in alerts:
        logger.info(
            f"digest_alert: budget={alert.budget.id} status={alert.status.value} "
            f"percentage={alert.percentage:.1f}"
        )
    logger.info(
        f"digest_run: source={source} pending={len(pending)} alerts={len(alerts)}"
    )
    return {"pending": len(pending), "alerts": len(alerts)}


class SchedulerManager:
    def __init__(self) -> None:
        settings = get_settings()
        self.digest_hour = settings.digest_hour
        self.scheduler = BackgroundScheduler(timezone=settings.timezone)

    def _run_job(self, source: str = "manual", today: Optional[date] = None) -> None:
        with session_scope() as session:
            run_digest(LedgerRepository(session), today or local_today(), source)

    def start(self) -> None:
        trigger = CronTrigger(hour=self.digest_hour, minute=0)
        self.scheduler.add_job(
            self._run_job,
            trigger,
            args=[f"daily_{self.digest_hour:02d}:00"],
            id="ledger_digest",
            replace_existing=True,
            misfire_grace_time=3600,
        )
        self.scheduler.start()
        logger.info(f"Scheduler started with daily digest at {self.digest_hour:02d}:00")

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
