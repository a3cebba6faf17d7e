from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional

from ledger import Catalog, TransactionRecord


@dataclass(frozen=True)
class Period:
    slug: str
    start: date
    end: date

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


def days_in_month(year: int, month: int) -> int:
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return (next_month - date(year, month, 1)).days


def month_start(year: int, month: int) -> date:
    return date(year, month, 1)


def month_end(year: int, month: int) -> date:
    return date(year, month, days_in_month(year, month))


def add_months(d: date, count: int) -> date:
    month_index = (d.year * 12) + (d.month - 1) + count
    year = month_index // 12
    month = (month_index % 12) + 1
    return date(year, month, 1)


def previous_month(year: int, month: int) -> tuple[int, int]:
    prev = add_months(date(year, month, 1), -1)
    return prev.year, prev.month


def filter_by_month(
    transactions: Iterable[TransactionRecord], month: int, year: int
) -> list[TransactionRecord]:
    return [t for t in transactions if t.date.month == month and t.date.year == year]


def filter_by_year(
    transactions: Iterable[TransactionRecord], year: int
) -> list[TransactionRecord]:
    return [t for t in transactions if t.date.year == year]


def filter_by_period(
    transactions: Iterable[TransactionRecord], period: Period
) -> list[TransactionRecord]:
    return [t for t in transactions if period.contains(t.date)]


def search_transactions(
    transactions: Iterable[TransactionRecord],
    catalog: Catalog,
    *,
    month: int,
    year: int,
    query: Optional[str] = None,
    category_ids: Optional[Iterable[int]] = None,
    account_ids: Optional[Iterable[int]] = None,
) -> list[TransactionRecord]:
    needle = (query or "").strip().lower()
    wanted_categories = set(category_ids or ())
    wanted_accounts = set(account_ids or ())

    out: list[TransactionRecord] = []
    for txn in filter_by_month(transactions, month, year):
        if needle and needle not in txn.description.lower():
            continue
        if wanted_categories:
            if catalog.category_id_for(txn.subcategory_id) not in wanted_categories:
                continue
        if wanted_accounts and txn.account_id not in wanted_accounts:
            continue
        out.append(txn)
    out.sort(key=lambda t: t.date, reverse=True)
    return out


def resolve_period(
    period: Optional[str],
    start: Optional[str],
    end: Optional[str],
    *,
    today: Optional[date] = None,
) -> Period:
    today = today or date.today()
    if period == "all":
        return Period("all", date(1970, 1, 1), today)
    if period == "last_month":
        year, month = previous_month(today.year, today.month)
        return Period("last_month", month_start(year, month), month_end(year, month))
    if period == "this_year":
        return Period("this_year", date(today.year, 1, 1), date(today.year, 12, 31))
    if period == "custom":
        if not start or not end:
            raise ValueError("Custom period requires start and end dates")
        start_date = date.fromisoformat(start)
        end_date = date.fromisoformat(end)
        if start_date > end_date:
            raise ValueError("Start date must be before end date")
        return Period("custom", start_date, end_date)

    # this month
    return Period(
        "this_month",
        month_start(today.year, today.month),
        month_end(today.year, today.month),
    )
