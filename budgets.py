from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Iterable

from ledger import BudgetRecord, Catalog, LocalizedName, TransactionRecord
from models import BudgetPeriod
from periods import filter_by_month, filter_by_year

WARNING_PERCENT = 80.0
OVER_PERCENT = 100.0


class BudgetStatus(str, Enum):
    normal = "normal"
    warning = "warning"
    over = "over"


def classify(percentage: float) -> BudgetStatus:
    if percentage >= OVER_PERCENT:
        return BudgetStatus.over
    if percentage >= WARNING_PERCENT:
        return BudgetStatus.warning
    return BudgetStatus.normal


@dataclass(frozen=True)
class BudgetProgress:
    budget: BudgetRecord
    spent_cents: int
    remaining_cents: int
    percentage: float
    status: BudgetStatus
    linked_categories: tuple[LocalizedName, ...] = ()
    linked_subcategories: tuple[LocalizedName, ...] = ()

    @property
    def is_over(self) -> bool:
        return self.status == BudgetStatus.over

    @property
    def is_warning(self) -> bool:
        return self.status == BudgetStatus.warning


@dataclass(frozen=True)
class BudgetSummary:
    active: int
    over: int
    warning: int


def budget_matches(
    budget: BudgetRecord, txn: TransactionRecord, catalog: Catalog
) -> bool:
    """Union rule: linked by parent category OR directly by subcategory.

    Transactions whose subcategory is not in the catalog never match.
    """
    category_id = catalog.category_id_for(txn.subcategory_id)
    if category_id is None:
        return False
    return (
        category_id in budget.category_ids
        or txn.subcategory_id in budget.subcategory_ids
    )


def spent_for_budget(
    budget: BudgetRecord, transactions: Iterable[TransactionRecord], catalog: Catalog
) -> int:
    if not budget.category_ids and not budget.subcategory_ids:
        return 0
    return sum(
        txn.amount_cents
        for txn in transactions
        if budget_matches(budget, txn, catalog)
    )


def transactions_for_period(
    period: BudgetPeriod, transactions: Iterable[TransactionRecord], today: date
) -> list[TransactionRecord]:
    if period == BudgetPeriod.yearly:
        return filter_by_year(transactions, today.year)
    return filter_by_month(transactions, today.month, today.year)


def progress_from_spent(
    budget: BudgetRecord, spent_cents: int, catalog: Catalog
) -> BudgetProgress:
    limit = budget.amount_limit_cents
    percentage = (spent_cents / limit) * 100 if limit > 0 else 0.0
    linked_categories = tuple(
        c.name for c in catalog.categories if c.id in budget.category_ids
    )
    linked_subcategories = tuple(
        s.name for s in catalog.subcategories if s.id in budget.subcategory_ids
    )
    return BudgetProgress(
        budget=budget,
        spent_cents=spent_cents,
        remaining_cents=limit - spent_cents,
        percentage=percentage,
        status=classify(percentage),
        linked_categories=linked_categories,
        linked_subcategories=linked_subcategories,
    )


def evaluate_budget(
    budget: BudgetRecord,
    transactions: Iterable[TransactionRecord],
    catalog: Catalog,
    *,
    today: date,
) -> BudgetProgress:
    relevant = transactions_for_period(budget.period, transactions, today)
    return progress_from_spent(
        budget, spent_for_budget(budget, relevant, catalog), catalog
    )


def evaluate_budgets(
    budgets: Iterable[BudgetRecord],
    transactions: Iterable[TransactionRecord],
    catalog: Catalog,
    *,
    today: date,
) -> list[BudgetProgress]:
    transactions = list(transactions)
    month_txns = filter_by_month(transactions, today.month, today.year)
    year_txns = filter_by_year(transactions, today.year)
    out: list[BudgetProgress] = []
    for budget in budgets:
        relevant = year_txns if budget.period == BudgetPeriod.yearly else month_txns
        out.append(
            progress_from_spent(
                budget, spent_for_budget(budget, relevant, catalog), catalog
            )
        )
    return out


def budget_alerts(
    budgets: Iterable[BudgetRecord],
    transactions: Iterable[TransactionRecord],
    catalog: Catalog,
    *,
    today: date,
) -> list[BudgetProgress]:
    # Dashboard alerts always look at the current month, whatever the period.
    month_txns = filter_by_month(transactions, today.month, today.year)
    alerts: list[BudgetProgress] = []
    for budget in budgets:
        if not budget.is_active:
            continue
        progress = progress_from_spent(
            budget, spent_for_budget(budget, month_txns, catalog), catalog
        )
        if progress.percentage >= WARNING_PERCENT:
            alerts.append(progress)
    return alerts


def summarize_budgets(progress: Iterable[BudgetProgress]) -> BudgetSummary:
    active = [p for p in progress if p.budget.is_active]
    return BudgetSummary(
        active=len(active),
        over=sum(1 for p in active if p.is_over),
        warning=sum(1 for p in active if p.is_warning),
    )
