from datetime import date

import pytest

from insights import (
    calendar_year_trend,
    category_ranking,
    category_trends,
    merchant_ranking,
    month_kpis,
    monthly_trend,
    recent_transactions,
    year_kpis,
    year_over_year,
)
from ledger import Catalog, CategoryRecord, SubcategoryRecord, TransactionRecord


def _catalog(count: int = 8) -> Catalog:
    categories = [
        CategoryRecord(id=i, name_fr=f"Cat {i}", name_en=f"Cat {i}", sort_order=i)
        for i in range(1, count + 1)
    ]
    subcategories = [
        SubcategoryRecord(id=i * 10, category_id=i, name_fr=f"Sub {i}", name_en=f"Sub {i}")
        for i in range(1, count + 1)
    ]
    return Catalog(categories=categories, subcategories=subcategories)


def _txn(amount_cents: int, day: date, sub: int = 10, description: str = "Shop", txn_id: int = 0):
    return TransactionRecord(
        id=txn_id,
        description=description,
        amount_cents=amount_cents,
        date=day,
        subcategory_id=sub,
    )


def test_monthly_trend_covers_rolling_window_oldest_first() -> None:
    txns = [
        _txn(1000, date(2024, 2, 10)),
        _txn(500, date(2024, 2, 28)),
        _txn(700, date(2023, 10, 1)),
        _txn(900, date(2023, 9, 30)),
    ]
    trend = monthly_trend(txns, today=date(2024, 3, 15))

    assert [m.label for m in trend] == [
        "2023-10",
        "2023-11",
        "2023-12",
        "2024-01",
        "2024-02",
        "2024-03",
    ]
    assert [m.total_cents for m in trend] == [700, 0, 0, 0, 1500, 0]


def test_calendar_year_trend_has_twelve_months() -> None:
    trend = calendar_year_trend([_txn(100, date(2024, 12, 31))], 2024)
    assert len(trend) == 12
    assert trend[-1].total_cents == 100


def test_year_over_year_compares_matching_months() -> None:
    txns = [
        _txn(2000, date(2024, 1, 5)),
        _txn(1000, date(2023, 1, 5)),
        _txn(3000, date(2023, 7, 5)),
        _txn(9999, date(2022, 7, 5)),
    ]
    comparison = year_over_year(txns, 2024)

    assert comparison.months[0].total_cents == 2000
    assert comparison.months[0].prior_total_cents == 1000
    assert comparison.months[6].prior_total_cents == 3000
    assert comparison.year_total_cents == 2000
    assert comparison.prior_year_total_cents == 4000
    assert comparison.percent_change == pytest.approx(-50.0)


def test_category_ranking_folds_tail_into_other_bucket() -> None:
    catalog = _catalog()
    day = date(2024, 3, 1)
    txns = [_txn((9 - i) * 100, day, sub=i * 10) for i in range(1, 9)]
    txns.append(_txn(50, day, sub=80))

    ranking = category_ranking(txns, catalog)

    assert [row.category_id for row in ranking] == [1, 2, 3, 4, 5, 6, None]
    assert ranking[-1].is_other
    assert ranking[-1].total_cents == 200 + 100 + 50
    assert ranking[-1].count == 3
    assert sum(row.total_cents for row in ranking) == sum(t.amount_cents for t in txns)
    assert category_ranking(txns, catalog) == ranking


def test_category_ranking_ties_keep_first_seen_order() -> None:
    day = date(2024, 3, 1)
    txns = [_txn(100, day, sub=30), _txn(100, day, sub=10), _txn(100, day, sub=20)]
    ranking = category_ranking(txns, _catalog(3))
    assert [row.category_id for row in ranking] == [3, 1, 2]


def test_merchant_ranking_groups_by_normalized_description() -> None:
    day = date(2024, 3, 1)
    txns = [
        _txn(1000, day, description="Colruyt "),
        _txn(2500, day, description="colruyt"),
        _txn(3000, day, description="Shell"),
    ]
    ranking = merchant_ranking(txns)

    assert [(m.name, m.total_cents, m.count) for m in ranking] == [
        ("Colruyt ", 3500, 2),
        ("Shell", 3000, 1),
    ]
    assert ranking[0].key == "colruyt"


def test_month_kpis_compare_with_previous_month() -> None:
    txns = [
        _txn(3000, date(2024, 3, 2)),
        _txn(1000, date(2024, 3, 9)),
        _txn(2000, date(2024, 2, 9)),
    ]
    kpis = month_kpis(txns, today=date(2024, 3, 15))

    assert kpis.total_cents == 4000
    assert kpis.previous_total_cents == 2000
    assert kpis.percent_change == pytest.approx(100.0)
    assert kpis.count == 2
    assert kpis.average_cents == 2000


def test_month_kpis_without_history() -> None:
    kpis = month_kpis([], today=date(2024, 1, 10))
    assert kpis.percent_change == 0.0
    assert kpis.average_cents == 0.0


def test_year_kpis_average_over_twelve_months() -> None:
    txns = [_txn(12000, date(2024, 5, 1)), _txn(6000, date(2023, 5, 1))]
    kpis = year_kpis(txns, 2024)
    assert kpis.total_cents == 12000
    assert kpis.average_per_month_cents == 1000
    assert kpis.percent_change == pytest.approx(100.0)


def test_category_trends_for_top_categories() -> None:
    txns = [
        _txn(500, date(2024, 1, 1), sub=10),
        _txn(700, date(2024, 3, 1), sub=10),
        _txn(100, date(2024, 2, 1), sub=20),
        _txn(9000, date(2023, 2, 1), sub=30),
    ]
    trends = category_trends(txns, _catalog(3), 2024, top=1)

    assert len(trends) == 1
    assert trends[0].category.id == 1
    assert trends[0].monthly_cents[:3] == (500, 0, 700)


def test_recent_transactions_newest_first() -> None:
    txns = [_txn(1, date(2024, 1, d), txn_id=d) for d in range(1, 9)]
    assert [t.id for t in recent_transactions(txns)] == [8, 7, 6, 5, 4]
