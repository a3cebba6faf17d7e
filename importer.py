from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import TYPE_CHECKING, Callable, Iterable, Mapping, Optional, Sequence

from rapidfuzz.distance import Levenshtein

from config import get_settings
from csv_utils import InvalidDate, amount_to_cents, parse_flexible_amount, parse_flexible_date
from ledger import AccountRecord, Catalog, RepoResult, SubcategoryRecord
from schemas import (
    MAX_AMOUNT_CENTS,
    ColumnMapping,
    ImportCandidate,
    ImportResult,
    ImportRowError,
)

if TYPE_CHECKING:  # pragma: no cover
    from services import LedgerRepository

logger = logging.getLogger(__name__)

# First data row in a file with a header line is row 2.
FIRST_DATA_ROW = 2
SUGGESTION_LIMIT = 3


class UnresolvedCategoryError(ValueError):
    def __init__(self, rows: Sequence[int]) -> None:
        self.rows = list(rows)
        listed = ", ".join(str(r) for r in self.rows)
        super().__init__(f"Rows without a category: {listed}")


@dataclass(frozen=True)
class ImportPreview:
    candidates: tuple[ImportCandidate, ...] = ()
    errors: tuple[ImportRowError, ...] = ()
    total_rows: int = 0

    @property
    def valid_count(self) -> int:
        return len(self.candidates)

    @property
    def unresolved(self) -> list[ImportCandidate]:
        return [c for c in self.candidates if c.needs_category]

    def assign_subcategory(self, row: int, subcategory_id: int) -> "ImportPreview":
        found = False
        updated: list[ImportCandidate] = []
        for candidate in self.candidates:
            if candidate.row == row:
                candidate = candidate.model_copy(
                    update={"subcategory_id": subcategory_id, "suggestions": []}
                )
                found = True
            updated.append(candidate)
        if not found:
            raise ValueError(f"Row {row} is not an import candidate")
        return replace(self, candidates=tuple(updated))


def _cell(row: Mapping[str, object], column: Optional[str]) -> object:
    if not column:
        return ""
    value = row.get(column)
    return "" if value is None else value


def _text(value: object) -> str:
    return str(value).strip()


def _names(sub: SubcategoryRecord) -> tuple[str, str]:
    return sub.name_fr.lower(), sub.name_en.lower()


def match_subcategory(cell: object, catalog: Catalog) -> Optional[int]:
    """Resolve a free-text category cell to a subcategory id.

    Tries an exact subcategory name, then a substring match either way, then
    a category name (whose first subcategory is used).
    """
    needle = _text(cell).lower()
    if not needle:
        return None

    for sub in catalog.subcategories:
        if needle in _names(sub):
            return sub.id
    for sub in catalog.subcategories:
        for name in _names(sub):
            if name and (needle in name or name in needle):
                return sub.id

    for category in catalog.categories:
        names = (category.name_fr.lower(), category.name_en.lower())
        if any(name == needle or needle in name for name in names):
            children = catalog.subcategories_of(category.id)
            if children:
                return children[0].id
    return None


def match_account(cell: object, catalog: Catalog) -> Optional[int]:
    needle = _text(cell).lower()
    if needle:
        for account in catalog.accounts:
            labels = [account.name.lower()]
            if account.bank:
                labels.append(account.bank.lower())
            for label in labels:
                if label and (needle in label or label in needle):
                    return account.id
    fallback: Optional[AccountRecord] = catalog.default_account()
    return fallback.id if fallback else None


def suggest_subcategories(
    cell: object, catalog: Catalog, limit: int = SUGGESTION_LIMIT
) -> list[int]:
    needle = _text(cell).lower()
    if not needle:
        return []
    scored: list[tuple[int, int]] = []
    for sub in catalog.subcategories:
        distance = min(int(Levenshtein.distance(needle, name)) for name in _names(sub))
        scored.append((distance, sub.id))
    scored.sort(key=lambda pair: pair[0])
    return [sub_id for _, sub_id in scored[:limit]]


def _amount_cents(amount: Optional[Decimal]) -> Optional[int]:
    """Absolute cents for an import amount; None when zero or out of range."""
    if amount is None:
        return None
    try:
        cents = abs(amount_to_cents(amount))
    except ValueError:
        return None
    if cents == 0 or cents > MAX_AMOUNT_CENTS:
        return None
    return cents


def normalize_rows(
    rows: Sequence[Mapping[str, object]],
    mapping: ColumnMapping,
    catalog: Catalog,
) -> ImportPreview:
    candidates: list[ImportCandidate] = []
    errors: list[ImportRowError] = []

    for index, row in enumerate(rows):
        row_number = index + FIRST_DATA_ROW
        row_errors: list[ImportRowError] = []

        raw_date = _cell(row, mapping.date)
        parsed_date = None
        try:
            parsed_date = parse_flexible_date(raw_date)
        except InvalidDate:
            row_errors.append(
                ImportRowError(
                    row=row_number,
                    field="date",
                    kind="invalid_date",
                    raw_value=_text(raw_date),
                )
            )

        description = _text(_cell(row, mapping.description))
        if not description:
            row_errors.append(
                ImportRowError(row=row_number, field="description", kind="missing")
            )

        raw_amount = _cell(row, mapping.amount)
        cents = _amount_cents(parse_flexible_amount(raw_amount))
        if cents is None:
            row_errors.append(
                ImportRowError(
                    row=row_number,
                    field="amount",
                    kind="invalid_amount",
                    raw_value=_text(raw_amount),
                )
            )

        if row_errors:
            errors.extend(row_errors)
            continue

        category_cell = _text(_cell(row, mapping.category))
        account_cell = _text(_cell(row, mapping.account))
        subcategory_id = match_subcategory(category_cell, catalog)
        notes = _text(_cell(row, mapping.notes)) or None
        candidates.append(
            ImportCandidate(
                row=row_number,
                date=parsed_date,
                description=description,
                amount_cents=cents,
                subcategory_id=subcategory_id,
                account_id=match_account(account_cell, catalog),
                notes=notes,
                category_label=category_cell,
                account_label=account_cell,
                suggestions=(
                    suggest_subcategories(category_cell, catalog)
                    if subcategory_id is None
                    else []
                ),
            )
        )

    logger.info(
        f"import_preview: rows={len(rows)} valid={len(candidates)} "
        f"errors={len(errors)}"
    )
    return ImportPreview(
        candidates=tuple(candidates), errors=tuple(errors), total_rows=len(rows)
    )


def _batches(items: Sequence[ImportCandidate], size: int) -> Iterable[Sequence[ImportCandidate]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


def commit_candidates(
    repository: "LedgerRepository",
    candidates: Sequence[ImportCandidate],
    *,
    batch_size: Optional[int] = None,
    should_continue: Optional[Callable[[], bool]] = None,
    on_progress: Optional[Callable[[int, int], None]] = None,
) -> ImportResult:
    """Insert candidates as transactions in sequential batches.

    A failed batch is skipped and the following ones still run. Progress is
    reported as (rows processed, total rows).
    """
    candidates = list(candidates)
    unresolved = [c.row for c in candidates if c.needs_category]
    if unresolved:
        raise UnresolvedCategoryError(unresolved)

    size = max(1, batch_size or get_settings().import_batch_size)
    total = len(candidates)
    imported = 0
    processed = 0
    failed = 0
    cancelled = False

    for number, batch in enumerate(_batches(candidates, size), start=1):
        if should_continue is not None and not should_continue():
            cancelled = True
            logger.info(f"import_commit: cancelled before batch={number}")
            break
        try:
            payloads = [c.to_transaction() for c in batch]
        except ValueError as exc:
            result = RepoResult(data=None, error=str(exc))
        else:
            result = repository.create_many("transactions", payloads)
        logger.info(
            f"import_commit: batch={number} rows={len(batch)} ok={result.ok}"
        )
        if result.ok:
            imported += len(batch)
        else:
            failed += 1
            logger.warning(f"import_commit: batch={number} error={result.error}")
        processed += len(batch)
        if on_progress is not None:
            on_progress(processed, total)

    return ImportResult(
        imported_count=imported,
        total_count=total,
        failed_batches=failed,
        cancelled=cancelled,
    )
