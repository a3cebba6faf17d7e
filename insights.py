from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional

from ledger import Catalog, CategoryRecord, TransactionRecord
from periods import add_months, filter_by_month, filter_by_year, previous_month


@dataclass(frozen=True)
class MonthTotal:
    year: int
    month: int
    total_cents: int

    @property
    def label(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


@dataclass(frozen=True)
class MonthComparison:
    month: int
    total_cents: int
    prior_total_cents: int


@dataclass(frozen=True)
class YearComparison:
    year: int
    months: tuple[MonthComparison, ...]
    year_total_cents: int
    prior_year_total_cents: int
    percent_change: float


@dataclass(frozen=True)
class CategoryTotal:
    # category is None for the folded "other" bucket
    category: Optional[CategoryRecord]
    total_cents: int
    count: int

    @property
    def category_id(self) -> Optional[int]:
        return self.category.id if self.category else None

    @property
    def is_other(self) -> bool:
        return self.category is None


@dataclass(frozen=True)
class MerchantTotal:
    key: str
    name: str
    total_cents: int
    count: int


@dataclass(frozen=True)
class MonthKpis:
    year: int
    month: int
    total_cents: int
    previous_total_cents: int
    percent_change: float
    count: int
    average_cents: float


@dataclass(frozen=True)
class YearKpis:
    year: int
    total_cents: int
    prior_total_cents: int
    percent_change: float
    average_per_month_cents: float
    count: int


@dataclass(frozen=True)
class CategoryTrend:
    category: CategoryRecord
    monthly_cents: tuple[int, ...]


def percent_change(current: int, previous: int) -> float:
    if previous <= 0:
        return 0.0
    return ((current - previous) / previous) * 100


def _total(transactions: Iterable[TransactionRecord]) -> int:
    return sum(t.amount_cents for t in transactions)


def _monthly_totals(
    transactions: Iterable[TransactionRecord],
) -> dict[tuple[int, int], int]:
    totals: dict[tuple[int, int], int] = {}
    for txn in transactions:
        key = (txn.date.year, txn.date.month)
        totals[key] = totals.get(key, 0) + txn.amount_cents
    return totals


def monthly_trend(
    transactions: Iterable[TransactionRecord], *, today: date, months: int = 6
) -> list[MonthTotal]:
    totals = _monthly_totals(transactions)
    current = today.replace(day=1)
    out: list[MonthTotal] = []
    for offset in range(months - 1, -1, -1):
        month = add_months(current, -offset)
        out.append(
            MonthTotal(
                year=month.year,
                month=month.month,
                total_cents=totals.get((month.year, month.month), 0),
            )
        )
    return out


def calendar_year_trend(
    transactions: Iterable[TransactionRecord], year: int
) -> list[MonthTotal]:
    totals = _monthly_totals(filter_by_year(transactions, year))
    return [
        MonthTotal(year=year, month=m, total_cents=totals.get((year, m), 0))
        for m in range(1, 13)
    ]


def year_over_year(
    transactions: Iterable[TransactionRecord], year: int
) -> YearComparison:
    transactions = list(transactions)
    totals = _monthly_totals(
        t for t in transactions if t.date.year in (year, year - 1)
    )
    months = tuple(
        MonthComparison(
            month=m,
            total_cents=totals.get((year, m), 0),
            prior_total_cents=totals.get((year - 1, m), 0),
        )
        for m in range(1, 13)
    )
    year_total = sum(m.total_cents for m in months)
    prior_total = sum(m.prior_total_cents for m in months)
    return YearComparison(
        year=year,
        months=months,
        year_total_cents=year_total,
        prior_year_total_cents=prior_total,
        percent_change=percent_change(year_total, prior_total),
    )


def category_totals(
    transactions: Iterable[TransactionRecord], catalog: Catalog
) -> list[CategoryTotal]:
    """Per-category totals, highest first; ties keep first-seen order.

    Transactions whose subcategory cannot be resolved are left out.
    """
    totals: dict[int, list[int]] = {}
    for txn in transactions:
        category = catalog.category_for(txn.subcategory_id)
        if category is None:
            continue
        bucket = totals.setdefault(category.id, [0, 0])
        bucket[0] += txn.amount_cents
        bucket[1] += 1
    ranked = [
        CategoryTotal(category=catalog.category(cid), total_cents=total, count=count)
        for cid, (total, count) in totals.items()
    ]
    ranked.sort(key=lambda row: row.total_cents, reverse=True)
    return ranked


def category_ranking(
    transactions: Iterable[TransactionRecord], catalog: Catalog, *, top: int = 6
) -> list[CategoryTotal]:
    ranked = category_totals(transactions, catalog)
    head = ranked[:top]
    tail = ranked[top:]
    other_total = sum(row.total_cents for row in tail)
    if other_total > 0:
        head.append(
            CategoryTotal(
                category=None,
                total_cents=other_total,
                count=sum(row.count for row in tail),
            )
        )
    return head


def merchant_ranking(
    transactions: Iterable[TransactionRecord], *, top: int = 10
) -> list[MerchantTotal]:
    totals: dict[str, list] = {}
    for txn in transactions:
        key = txn.description.strip().lower()
        bucket = totals.setdefault(key, [txn.description, 0, 0])
        bucket[1] += txn.amount_cents
        bucket[2] += 1
    ranked = [
        MerchantTotal(key=key, name=name, total_cents=total, count=count)
        for key, (name, total, count) in totals.items()
    ]
    ranked.sort(key=lambda row: row.total_cents, reverse=True)
    return ranked[:top]


def category_trends(
    transactions: Iterable[TransactionRecord],
    catalog: Catalog,
    year: int,
    *,
    top: int = 4,
) -> list[CategoryTrend]:
    year_txns = filter_by_year(transactions, year)
    leaders = [row.category for row in category_totals(year_txns, catalog)[:top]]
    by_category: dict[int, list[int]] = {c.id: [0] * 12 for c in leaders}
    for txn in year_txns:
        category_id = catalog.category_id_for(txn.subcategory_id)
        if category_id in by_category:
            by_category[category_id][txn.date.month - 1] += txn.amount_cents
    return [
        CategoryTrend(category=c, monthly_cents=tuple(by_category[c.id]))
        for c in leaders
    ]


def month_kpis(transactions: Iterable[TransactionRecord], *, today: date) -> MonthKpis:
    transactions = list(transactions)
    this_month = filter_by_month(transactions, today.month, today.year)
    prev_year, prev_month = previous_month(today.year, today.month)
    last_month = filter_by_month(transactions, prev_month, prev_year)
    total = _total(this_month)
    previous_total = _total(last_month)
    return MonthKpis(
        year=today.year,
        month=today.month,
        total_cents=total,
        previous_total_cents=previous_total,
        percent_change=percent_change(total, previous_total),
        count=len(this_month),
        average_cents=(total / len(this_month)) if this_month else 0.0,
    )


def year_kpis(transactions: Iterable[TransactionRecord], year: int) -> YearKpis:
    transactions = list(transactions)
    year_txns = filter_by_year(transactions, year)
    total = _total(year_txns)
    prior_total = _total(filter_by_year(transactions, year - 1))
    return YearKpis(
        year=year,
        total_cents=total,
        prior_total_cents=prior_total,
        percent_change=percent_change(total, prior_total),
        average_per_month_cents=total / 12,
        count=len(year_txns),
    )


def recent_transactions(
    transactions: Iterable[TransactionRecord], limit: int = 5
) -> list[TransactionRecord]:
    return sorted(transactions, key=lambda t: t.date, reverse=True)[:limit]
