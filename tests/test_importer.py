from datetime import date

import pytest

from importer import (
    UnresolvedCategoryError,
    commit_candidates,
    match_account,
    match_subcategory,
    normalize_rows,
)
from ledger import (
    AccountRecord,
    Catalog,
    CategoryRecord,
    RepoResult,
    SubcategoryRecord,
)
from periods import filter_by_month
from schemas import ColumnMapping, ImportCandidate


def _catalog() -> Catalog:
    return Catalog(
        accounts=[
            AccountRecord(id=1, name="Ricky", bank="CBC", sort_order=1),
            AccountRecord(id=2, name="Commun", bank="Belfius", is_default=True, sort_order=2),
        ],
        categories=[
            CategoryRecord(id=1, name_fr="Alimentation", name_en="Food", sort_order=1),
            CategoryRecord(id=2, name_fr="Transport", name_en="Transport", sort_order=2),
        ],
        subcategories=[
            SubcategoryRecord(id=12, category_id=1, name_fr="Restaurant", name_en="Restaurant", sort_order=2),
            SubcategoryRecord(id=11, category_id=1, name_fr="Courses", name_en="Groceries", sort_order=1),
            SubcategoryRecord(id=21, category_id=2, name_fr="Carburant", name_en="Fuel", sort_order=1),
        ],
    )


MAPPING = ColumnMapping(
    date="Date", description="Desc", amount="Amount", category="Cat", account="Account"
)


class FakeRepository:
    def __init__(self, fail_batches=()):
        self.fail_batches = set(fail_batches)
        self.calls = []

    def create_many(self, entity, payloads):
        self.calls.append((entity, list(payloads)))
        if len(self.calls) in self.fail_batches:
            return RepoResult(error="database is locked")
        return RepoResult(data=list(payloads))


def test_end_to_end_rows_produce_one_candidate_and_row_errors() -> None:
    rows = [
        {"Date": "01/02/2024", "Desc": "Colruyt", "Amount": "45,20"},
        {"Date": "bad", "Desc": "", "Amount": "x"},
    ]
    preview = normalize_rows(rows, MAPPING, _catalog())

    assert preview.total_rows == 2
    assert preview.valid_count == 1
    candidate = preview.candidates[0]
    assert candidate.row == 2
    assert candidate.date == date(2024, 2, 1)
    assert candidate.amount_cents == 4520
    assert {(e.row, e.field, e.kind) for e in preview.errors} == {
        (3, "date", "invalid_date"),
        (3, "description", "missing"),
        (3, "amount", "invalid_amount"),
    }


def test_negative_amounts_become_absolute_and_zero_is_rejected() -> None:
    rows = [
        {"Date": "2024-02-01", "Desc": "Refund", "Amount": "-12,50"},
        {"Date": "2024-02-01", "Desc": "Nothing", "Amount": "0"},
    ]
    preview = normalize_rows(rows, MAPPING, _catalog())

    assert [c.amount_cents for c in preview.candidates] == [1250]
    assert [(e.row, e.field) for e in preview.errors] == [(3, "amount")]


def test_out_of_range_amounts_are_row_errors_not_exceptions() -> None:
    rows = [
        {"Date": "01/02/2024", "Desc": "Big", "Amount": "1e30"},
        {"Date": "01/02/2024", "Desc": "Huge", "Amount": "1" * 29},
        {"Date": "01/02/2024", "Desc": "Coffee", "Amount": "5"},
    ]
    preview = normalize_rows(rows, MAPPING, _catalog())

    assert [c.description for c in preview.candidates] == ["Coffee"]
    assert [c.amount_cents for c in preview.candidates] == [500]
    assert [(e.row, e.field, e.kind) for e in preview.errors] == [
        (2, "amount", "invalid_amount"),
        (3, "amount", "invalid_amount"),
    ]


def test_match_subcategory_order_of_precedence() -> None:
    catalog = _catalog()
    assert match_subcategory("groceries", catalog) == 11
    assert match_subcategory("RESTAURANT", catalog) == 12
    assert match_subcategory("resto restaurant du coin", catalog) == 12
    assert match_subcategory("Carbu", catalog) == 21
    # category name falls back to its first subcategory by sort order
    assert match_subcategory("Alimentation", catalog) == 11
    assert match_subcategory("food", catalog) == 11
    assert match_subcategory("Vacances", catalog) is None
    assert match_subcategory("", catalog) is None


def test_match_account_falls_back_to_default_then_first() -> None:
    catalog = _catalog()
    assert match_account("cbc", catalog) == 1
    assert match_account("Compte Commun", catalog) == 2
    assert match_account("", catalog) == 2
    assert match_account("ING", catalog) == 2

    no_default = Catalog(accounts=[AccountRecord(id=5, name="Main", sort_order=1)])
    assert match_account("", no_default) == 5
    assert match_account("", Catalog()) is None


def test_unresolved_category_is_flagged_with_suggestions() -> None:
    rows = [{"Date": "2024-02-03", "Desc": "Shell", "Amount": "60", "Cat": "Fule"}]
    preview = normalize_rows(rows, MAPPING, _catalog())

    candidate = preview.candidates[0]
    assert candidate.needs_category
    assert candidate.subcategory_id is None
    assert candidate.category_label == "Fule"
    assert candidate.suggestions[0] == 21
    assert preview.unresolved == [candidate]

    resolved = preview.assign_subcategory(2, 21)
    assert resolved.unresolved == []
    assert resolved.candidates[0].subcategory_id == 21
    assert preview.candidates[0].subcategory_id is None


def test_assign_subcategory_unknown_row() -> None:
    preview = normalize_rows([], MAPPING, _catalog())
    with pytest.raises(ValueError):
        preview.assign_subcategory(2, 11)


def test_commit_refuses_unresolved_candidates() -> None:
    rows = [{"Date": "2024-02-03", "Desc": "Shell", "Amount": "60", "Cat": "???"}]
    preview = normalize_rows(rows, MAPPING, _catalog())
    repo = FakeRepository()

    with pytest.raises(UnresolvedCategoryError) as excinfo:
        commit_candidates(repo, preview.candidates)
    assert excinfo.value.rows == [2]
    assert repo.calls == []


def test_commit_runs_sequential_batches_and_survives_a_failed_one() -> None:
    rows = [
        {"Date": f"{day:02d}/03/2024", "Desc": f"Shop {day}", "Amount": "10", "Cat": "Courses"}
        for day in range(1, 8)
    ]
    preview = normalize_rows(rows, MAPPING, _catalog())
    repo = FakeRepository(fail_batches={2})
    progress = []

    result = commit_candidates(
        repo,
        preview.candidates,
        batch_size=3,
        on_progress=lambda done, total: progress.append((done, total)),
    )

    assert [len(payloads) for _, payloads in repo.calls] == [3, 3, 1]
    assert all(entity == "transactions" for entity, _ in repo.calls)
    assert result.imported_count == 4
    assert result.total_count == 7
    assert result.failed_batches == 1
    assert not result.cancelled
    assert progress == [(3, 7), (6, 7), (7, 7)]


def test_commit_stops_between_batches_when_cancelled() -> None:
    rows = [
        {"Date": "2024-03-01", "Desc": f"Shop {i}", "Amount": "10", "Cat": "Courses"}
        for i in range(5)
    ]
    preview = normalize_rows(rows, MAPPING, _catalog())
    repo = FakeRepository()
    answers = iter([True, False])

    result = commit_candidates(
        repo, preview.candidates, batch_size=2, should_continue=lambda: next(answers)
    )

    assert len(repo.calls) == 1
    assert result.imported_count == 2
    assert result.total_count == 5
    assert result.cancelled


def test_imported_month_totals_match_parsed_amounts() -> None:
    rows = [
        {"Date": "03/01/2024", "Desc": "A", "Amount": "12,30", "Cat": "Courses"},
        {"Date": "15/01/2024", "Desc": "B", "Amount": "7,70", "Cat": "Courses"},
        {"Date": "02/02/2024", "Desc": "C", "Amount": "1.000,00", "Cat": "Restaurant"},
    ]
    preview = normalize_rows(rows, MAPPING, _catalog())
    repo = FakeRepository()
    commit_candidates(repo, preview.candidates)

    stored = [p for _, payloads in repo.calls for p in payloads]
    january = filter_by_month(stored, 1, 2024)
    february = filter_by_month(stored, 2, 2024)
    assert sum(t.amount_cents for t in january) == 2000
    assert sum(t.amount_cents for t in february) == 100000


def test_commit_counts_an_unconvertible_batch_as_failed_and_continues() -> None:
    # model_construct skips validation, as a hand-edited commit payload would
    oversized = ImportCandidate.model_construct(
        row=2, date=date(2024, 3, 1), description="Big", amount_cents=10**19, subcategory_id=11
    )
    regular = ImportCandidate(
        row=3, date=date(2024, 3, 2), description="Coffee", amount_cents=500, subcategory_id=11
    )
    repo = FakeRepository()

    result = commit_candidates(repo, [oversized, regular], batch_size=1)

    assert len(repo.calls) == 1
    assert repo.calls[0][1][0].description == "Coffee"
    assert result.imported_count == 1
    assert result.total_count == 2
    assert result.failed_batches == 1
