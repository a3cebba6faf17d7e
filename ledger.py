"""Immutable ledger snapshots handed to the engine.

The persistence layer (``services.LedgerRepository``) converts ORM rows into
these records; every computation in ``budgets``, ``recurrence``, ``insights``
and ``importer`` works on them and never touches a session.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable, Optional

from models import BudgetPeriod, Frequency


@dataclass(frozen=True)
class LocalizedName:
    fr: str
    en: str


@dataclass(frozen=True)
class AccountRecord:
    id: int
    name: str
    bank: Optional[str] = None
    color: Optional[str] = None
    is_default: bool = False
    sort_order: int = 0


@dataclass(frozen=True)
class CategoryRecord:
    id: int
    name_fr: str
    name_en: str
    icon: Optional[str] = None
    color: Optional[str] = None
    is_default: bool = False
    sort_order: int = 0

    @property
    def name(self) -> LocalizedName:
        return LocalizedName(self.name_fr, self.name_en)


@dataclass(frozen=True)
class SubcategoryRecord:
    id: int
    category_id: int
    name_fr: str
    name_en: str
    is_default: bool = False
    sort_order: int = 0

    @property
    def name(self) -> LocalizedName:
        return LocalizedName(self.name_fr, self.name_en)


@dataclass(frozen=True)
class TransactionRecord:
    id: Optional[int]
    description: str
    amount_cents: int
    date: date
    subcategory_id: Optional[int]
    account_id: Optional[int] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class BudgetRecord:
    id: int
    name: str
    amount_limit_cents: int
    period: BudgetPeriod = BudgetPeriod.monthly
    category_ids: frozenset[int] = frozenset()
    subcategory_ids: frozenset[int] = frozenset()
    color: Optional[str] = None
    icon: Optional[str] = None
    description: Optional[str] = None
    is_active: bool = True


@dataclass(frozen=True)
class RecurringTemplateRecord:
    id: int
    description: str
    amount_cents: int
    frequency: Frequency
    subcategory_id: int
    day_of_month: Optional[int] = None
    day_of_week: Optional[int] = None
    account_id: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    notes: Optional[str] = None
    is_active: bool = True


class Catalog:
    """Accounts and the category tree, with the subcategory -> category lookup.

    All components resolve a transaction's category through
    :meth:`category_id_for` so matching rules cannot drift apart.
    """

    def __init__(
        self,
        accounts: Iterable[AccountRecord] = (),
        categories: Iterable[CategoryRecord] = (),
        subcategories: Iterable[SubcategoryRecord] = (),
    ) -> None:
        self.accounts: tuple[AccountRecord, ...] = tuple(
            sorted(accounts, key=lambda a: a.sort_order)
        )
        self.categories: tuple[CategoryRecord, ...] = tuple(
            sorted(categories, key=lambda c: c.sort_order)
        )
        self.subcategories: tuple[SubcategoryRecord, ...] = tuple(
            sorted(subcategories, key=lambda s: s.sort_order)
        )
        self._accounts_by_id = {a.id: a for a in self.accounts}
        self._categories_by_id = {c.id: c for c in self.categories}
        self._subcategories_by_id = {s.id: s for s in self.subcategories}

    def account(self, account_id: Optional[int]) -> Optional[AccountRecord]:
        if account_id is None:
            return None
        return self._accounts_by_id.get(account_id)

    def category(self, category_id: Optional[int]) -> Optional[CategoryRecord]:
        if category_id is None:
            return None
        return self._categories_by_id.get(category_id)

    def subcategory(self, subcategory_id: Optional[int]) -> Optional[SubcategoryRecord]:
        if subcategory_id is None:
            return None
        return self._subcategories_by_id.get(subcategory_id)

    def category_id_for(self, subcategory_id: Optional[int]) -> Optional[int]:
        sub = self.subcategory(subcategory_id)
        return sub.category_id if sub else None

    def category_for(self, subcategory_id: Optional[int]) -> Optional[CategoryRecord]:
        return self.category(self.category_id_for(subcategory_id))

    def subcategories_of(self, category_id: int) -> list[SubcategoryRecord]:
        return [s for s in self.subcategories if s.category_id == category_id]

    def default_account(self) -> Optional[AccountRecord]:
        for account in self.accounts:
            if account.is_default:
                return account
        return self.accounts[0] if self.accounts else None


@dataclass(frozen=True)
class LedgerSnapshot:
    catalog: Catalog
    transactions: tuple[TransactionRecord, ...] = ()
    budgets: tuple[BudgetRecord, ...] = ()
    recurring_templates: tuple[RecurringTemplateRecord, ...] = ()


@dataclass(frozen=True)
class RepoResult:
    """Outcome of a repository call: ``data`` on success, ``error`` otherwise."""

    data: Any = None
    error: Optional[str] = None
    not_found: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None
