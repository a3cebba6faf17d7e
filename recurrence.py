from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import TYPE_CHECKING, Iterable, Optional
from zoneinfo import ZoneInfo

from config import get_settings
from ledger import RecurringTemplateRecord, RepoResult, TransactionRecord
from models import LAST_DAY_OF_MONTH, Frequency
from periods import days_in_month
from schemas import TransactionIn

if TYPE_CHECKING:  # pragma: no cover
    from services import LedgerRepository

logger = logging.getLogger(__name__)


def local_today() -> date:
    settings = get_settings()
    tz = ZoneInfo(settings.timezone)
    return datetime.now(tz).date()


@dataclass(frozen=True)
class PendingOccurrence:
    template: RecurringTemplateRecord
    expected_date: date


def is_template_active(template: RecurringTemplateRecord, today: date) -> bool:
    if not template.is_active:
        return False
    if template.start_date and template.start_date > today:
        return False
    if template.end_date and template.end_date < today:
        return False
    return True


def occurrence_day(day_of_month: Optional[int], year: int, month: int) -> int:
    last_day = days_in_month(year, month)
    if day_of_month == LAST_DAY_OF_MONTH:
        return last_day
    return min(day_of_month or 1, last_day)


def expected_occurrence(
    template: RecurringTemplateRecord, today: date
) -> Optional[date]:
    """Expected date of the template's occurrence in today's month, if any.

    Weekly and biweekly templates are not scheduled here and yield None.
    """
    if template.frequency in (Frequency.monthly, Frequency.trimestrial):
        day = occurrence_day(template.day_of_month, today.year, today.month)
        return date(today.year, today.month, day)
    if template.frequency == Frequency.yearly:
        anchor_month = template.start_date.month if template.start_date else 1
        if today.month != anchor_month:
            return None
        day = occurrence_day(template.day_of_month, today.year, today.month)
        return date(today.year, today.month, day)
    return None


def occurrence_recorded(
    template: RecurringTemplateRecord,
    expected: date,
    transactions: Iterable[TransactionRecord],
) -> bool:
    for txn in transactions:
        if (
            txn.description == template.description
            and txn.amount_cents == template.amount_cents
            and txn.date.month == expected.month
            and txn.date.year == expected.year
        ):
            return True
    return False


def pending_occurrences(
    templates: Iterable[RecurringTemplateRecord],
    transactions: Iterable[TransactionRecord],
    today: date,
) -> list[PendingOccurrence]:
    transactions = list(transactions)
    pending: list[PendingOccurrence] = []
    for template in templates:
        if not is_template_active(template, today):
            continue
        expected = expected_occurrence(template, today)
        if expected is None or expected > today:
            continue
        if occurrence_recorded(template, expected, transactions):
            continue
        pending.append(PendingOccurrence(template=template, expected_date=expected))
    return pending


def occurrence_transaction(pending: PendingOccurrence) -> TransactionIn:
    template = pending.template
    return TransactionIn(
        description=template.description,
        amount_cents=template.amount_cents,
        date=pending.expected_date,
        subcategory_id=template.subcategory_id,
        account_id=template.account_id,
        notes=template.notes,
    )


_MONTHLY_FACTORS = {
    Frequency.monthly: 1.0,
    Frequency.weekly: 52 / 12,
    Frequency.biweekly: 26 / 12,
    Frequency.trimestrial: 1 / 3,
    Frequency.yearly: 1 / 12,
}


def monthly_equivalent(template: RecurringTemplateRecord) -> int:
    return int(round(template.amount_cents * _MONTHLY_FACTORS[template.frequency]))


def monthly_commitment(
    templates: Iterable[RecurringTemplateRecord], today: Optional[date] = None
) -> int:
    total = 0
    for template in templates:
        active = (
            is_template_active(template, today) if today else template.is_active
        )
        if active:
            total += monthly_equivalent(template)
    return total


class RecurringEngine:
    def __init__(self, repository: "LedgerRepository") -> None:
        self.repository = repository

    def pending(self, today: Optional[date] = None) -> list[PendingOccurrence]:
        today = today or local_today()
        snapshot = self.repository.snapshot()
        return pending_occurrences(
            snapshot.recurring_templates, snapshot.transactions, today
        )

    def generate(self, pending: PendingOccurrence) -> RepoResult:
        result = self.repository.create("transactions", occurrence_transaction(pending))
        if result.ok:
            logger.info(
                f"recurring_generate: template={pending.template.id} "
                f"date={pending.expected_date.isoformat()}"
            )
        return result

    def generate_for_template(
        self, template_id: int, today: Optional[date] = None
    ) -> RepoResult:
        for occurrence in self.pending(today):
            if occurrence.template.id == template_id:
                return self.generate(occurrence)
        return RepoResult(data=None, error="No pending occurrence for this template")
