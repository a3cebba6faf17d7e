from __future__ import annotations

import logging
from datetime import date
from typing import Any, Callable, Mapping, Optional, Sequence, Union

from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from defaults import DEFAULT_ACCOUNTS, DEFAULT_CATEGORIES
from ledger import (
    AccountRecord,
    BudgetRecord,
    Catalog,
    CategoryRecord,
    LedgerSnapshot,
    RecurringTemplateRecord,
    RepoResult,
    SubcategoryRecord,
    TransactionRecord,
)
from models import (
    Account,
    Budget,
    Category,
    RecurringTemplate,
    Subcategory,
    Transaction,
)
from schemas import (
    AccountIn,
    BudgetIn,
    CategoryIn,
    RecurringTemplateIn,
    SubcategoryIn,
    TransactionIn,
)

logger = logging.getLogger(__name__)


class NotFoundError(ValueError):
    pass


def get_current_user_id() -> int:
    return 1


def account_record(account: Account) -> AccountRecord:
    return AccountRecord(
        id=account.id,
        name=account.name,
        bank=account.bank,
        color=account.color,
        is_default=account.is_default,
        sort_order=account.sort_order,
    )


def category_record(category: Category) -> CategoryRecord:
    return CategoryRecord(
        id=category.id,
        name_fr=category.name_fr,
        name_en=category.name_en,
        icon=category.icon,
        color=category.color,
        is_default=category.is_default,
        sort_order=category.sort_order,
    )


def subcategory_record(sub: Subcategory) -> SubcategoryRecord:
    return SubcategoryRecord(
        id=sub.id,
        category_id=sub.category_id,
        name_fr=sub.name_fr,
        name_en=sub.name_en,
        is_default=sub.is_default,
        sort_order=sub.sort_order,
    )


def transaction_record(txn: Transaction) -> TransactionRecord:
    return TransactionRecord(
        id=txn.id,
        description=txn.description,
        amount_cents=txn.amount_cents,
        date=txn.date,
        subcategory_id=txn.subcategory_id,
        account_id=txn.account_id,
        notes=txn.notes,
    )


def budget_record(budget: Budget) -> BudgetRecord:
    return BudgetRecord(
        id=budget.id,
        name=budget.name,
        amount_limit_cents=budget.amount_limit_cents,
        period=budget.period,
        category_ids=frozenset(c.id for c in budget.categories),
        subcategory_ids=frozenset(s.id for s in budget.subcategories),
        color=budget.color,
        icon=budget.icon,
        description=budget.description,
        is_active=budget.is_active,
    )


def recurring_template_record(template: RecurringTemplate) -> RecurringTemplateRecord:
    return RecurringTemplateRecord(
        id=template.id,
        description=template.description,
        amount_cents=template.amount_cents,
        frequency=template.frequency,
        subcategory_id=template.subcategory_id,
        day_of_month=template.day_of_month,
        day_of_week=template.day_of_week,
        account_id=template.account_id,
        start_date=template.start_date,
        end_date=template.end_date,
        notes=template.notes,
        is_active=template.is_active,
    )


class _OwnedService:
    model: Any = None
    label = "Record"

    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def get(self, obj_id: int):
        obj = self.session.get(self.model, obj_id)
        if not obj or obj.user_id != self.user_id:
            raise NotFoundError(f"{self.label} not found")
        return obj

    def delete(self, obj_id: int) -> None:
        obj = self.get(obj_id)
        self.session.delete(obj)
        self.session.commit()

    def _check_subcategory(self, subcategory_id: int) -> None:
        sub = self.session.get(Subcategory, subcategory_id)
        if not sub or sub.user_id != self.user_id:
            raise ValueError("Subcategory not found")

    def _check_account(self, account_id: Optional[int]) -> None:
        if account_id is None:
            return
        account = self.session.get(Account, account_id)
        if not account or account.user_id != self.user_id:
            raise ValueError("Account not found")


class AccountService(_OwnedService):
    model = Account
    label = "Account"

    def list_all(self) -> list[Account]:
        stmt = (
            select(Account)
            .where(Account.user_id == self.user_id)
            .order_by(Account.sort_order, Account.id)
        )
        return self.session.scalars(stmt).all()

    def _clear_default(self, keep_id: Optional[int] = None) -> None:
        for account in self.list_all():
            if account.id != keep_id:
                account.is_default = False

    def create(self, data: AccountIn) -> Account:
        if data.is_default:
            self._clear_default()
        account = Account(user_id=self.user_id, **data.model_dump())
        account.name = account.name.strip()
        self.session.add(account)
        self.session.commit()
        self.session.refresh(account)
        return account

    def update(self, account_id: int, data: AccountIn) -> Account:
        account = self.get(account_id)
        if data.is_default:
            self._clear_default(keep_id=account_id)
        for key, value in data.model_dump().items():
            setattr(account, key, value)
        account.name = account.name.strip()
        self.session.commit()
        self.session.refresh(account)
        return account


class CategoryService(_OwnedService):
    model = Category
    label = "Category"

    def list_all(self) -> list[Category]:
        stmt = (
            select(Category)
            .options(selectinload(Category.subcategories))
            .where(Category.user_id == self.user_id)
            .order_by(Category.sort_order, Category.id)
        )
        return self.session.scalars(stmt).all()

    def has_any(self) -> bool:
        stmt = select(func.count(Category.id)).where(Category.user_id == self.user_id)
        return (self.session.execute(stmt).scalar_one() or 0) > 0

    def create(self, data: CategoryIn) -> Category:
        existing = self.session.scalar(
            select(Category).where(
                Category.user_id == self.user_id,
                func.lower(Category.name_fr) == data.name_fr.strip().lower(),
            )
        )
        if existing:
            raise ValueError("Category with this name already exists")
        category = Category(user_id=self.user_id, **data.model_dump())
        self.session.add(category)
        self.session.commit()
        self.session.refresh(category)
        return category

    def update(self, category_id: int, data: CategoryIn) -> Category:
        category = self.get(category_id)
        for key, value in data.model_dump().items():
            setattr(category, key, value)
        self.session.commit()
        self.session.refresh(category)
        return category


class SubcategoryService(_OwnedService):
    model = Subcategory
    label = "Subcategory"

    def list_all(self, category_id: Optional[int] = None) -> list[Subcategory]:
        stmt = (
            select(Subcategory)
            .where(Subcategory.user_id == self.user_id)
            .order_by(Subcategory.sort_order, Subcategory.id)
        )
        if category_id is not None:
            stmt = stmt.where(Subcategory.category_id == category_id)
        return self.session.scalars(stmt).all()

    def _check_category(self, category_id: int) -> None:
        category = self.session.get(Category, category_id)
        if not category or category.user_id != self.user_id:
            raise ValueError("Category not found")

    def create(self, data: SubcategoryIn) -> Subcategory:
        self._check_category(data.category_id)
        sub = Subcategory(user_id=self.user_id, **data.model_dump())
        self.session.add(sub)
        self.session.commit()
        self.session.refresh(sub)
        return sub

    def update(self, subcategory_id: int, data: SubcategoryIn) -> Subcategory:
        sub = self.get(subcategory_id)
        self._check_category(data.category_id)
        for key, value in data.model_dump().items():
            setattr(sub, key, value)
        self.session.commit()
        self.session.refresh(sub)
        return sub


class TransactionService(_OwnedService):
    model = Transaction
    label = "Transaction"

    def list(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
        subcategory_id: Optional[int] = None,
        account_id: Optional[int] = None,
    ) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .where(Transaction.user_id == self.user_id)
            .order_by(Transaction.date.desc(), Transaction.id.desc())
        )
        if start:
            stmt = stmt.where(Transaction.date >= start)
        if end:
            stmt = stmt.where(Transaction.date <= end)
        if subcategory_id is not None:
            stmt = stmt.where(Transaction.subcategory_id == subcategory_id)
        if account_id is not None:
            stmt = stmt.where(Transaction.account_id == account_id)
        return self.session.scalars(stmt).all()

    def _build(self, data: TransactionIn) -> Transaction:
        self._check_subcategory(data.subcategory_id)
        self._check_account(data.account_id)
        return Transaction(
            user_id=self.user_id,
            description=data.description,
            amount_cents=abs(data.amount_cents),
            date=data.date,
            subcategory_id=data.subcategory_id,
            account_id=data.account_id,
            notes=data.notes,
        )

    def create(self, data: TransactionIn) -> Transaction:
        txn = self._build(data)
        self.session.add(txn)
        self.session.commit()
        self.session.refresh(txn)
        return txn

    def create_many(self, items: Sequence[TransactionIn]) -> list[Transaction]:
        """Insert all items in one commit; nothing is written if any is invalid."""
        txns = [self._build(data) for data in items]
        self.session.add_all(txns)
        self.session.commit()
        return txns

    def update(self, transaction_id: int, data: TransactionIn) -> Transaction:
        txn = self.get(transaction_id)
        self._check_subcategory(data.subcategory_id)
        self._check_account(data.account_id)
        txn.description = data.description
        txn.amount_cents = abs(data.amount_cents)
        txn.date = data.date
        txn.subcategory_id = data.subcategory_id
        txn.account_id = data.account_id
        txn.notes = data.notes
        self.session.commit()
        self.session.refresh(txn)
        return txn


class BudgetService(_OwnedService):
    model = Budget
    label = "Budget"

    def list_all(self, is_active: Optional[bool] = None) -> list[Budget]:
        stmt = (
            select(Budget)
            .options(selectinload(Budget.categories), selectinload(Budget.subcategories))
            .where(Budget.user_id == self.user_id)
            .order_by(Budget.name, Budget.id)
        )
        if is_active is not None:
            stmt = stmt.where(Budget.is_active.is_(is_active))
        return self.session.scalars(stmt).all()

    def _links(self, data: BudgetIn) -> tuple[list[Category], list[Subcategory]]:
        categories = []
        for category_id in dict.fromkeys(data.category_ids):
            category = self.session.get(Category, category_id)
            if not category or category.user_id != self.user_id:
                raise ValueError("Category not found")
            categories.append(category)
        subcategories = []
        for subcategory_id in dict.fromkeys(data.subcategory_ids):
            sub = self.session.get(Subcategory, subcategory_id)
            if not sub or sub.user_id != self.user_id:
                raise ValueError("Subcategory not found")
            subcategories.append(sub)
        return categories, subcategories

    def _apply(self, budget: Budget, data: BudgetIn) -> None:
        categories, subcategories = self._links(data)
        budget.name = data.name
        budget.amount_limit_cents = data.amount_limit_cents
        budget.period = data.period
        budget.color = data.color
        budget.icon = data.icon
        budget.description = data.description
        budget.is_active = data.is_active
        budget.categories = categories
        budget.subcategories = subcategories

    def create(self, data: BudgetIn) -> Budget:
        budget = Budget(user_id=self.user_id)
        self._apply(budget, data)
        self.session.add(budget)
        self.session.commit()
        self.session.refresh(budget)
        return budget

    def update(self, budget_id: int, data: BudgetIn) -> Budget:
        budget = self.get(budget_id)
        self._apply(budget, data)
        self.session.commit()
        self.session.refresh(budget)
        return budget


class RecurringTemplateService(_OwnedService):
    model = RecurringTemplate
    label = "Recurring template"

    def list(self, is_active: Optional[bool] = None) -> list[RecurringTemplate]:
        stmt = (
            select(RecurringTemplate)
            .where(RecurringTemplate.user_id == self.user_id)
            .order_by(RecurringTemplate.description, RecurringTemplate.id)
        )
        if is_active is not None:
            stmt = stmt.where(RecurringTemplate.is_active.is_(is_active))
        return self.session.scalars(stmt).all()

    def create(self, data: RecurringTemplateIn) -> RecurringTemplate:
        self._check_subcategory(data.subcategory_id)
        self._check_account(data.account_id)
        template = RecurringTemplate(user_id=self.user_id, **data.model_dump())
        self.session.add(template)
        self.session.commit()
        self.session.refresh(template)
        return template

    def update(self, template_id: int, data: RecurringTemplateIn) -> RecurringTemplate:
        template = self.get(template_id)
        self._check_subcategory(data.subcategory_id)
        self._check_account(data.account_id)
        for key, value in data.model_dump().items():
            setattr(template, key, value)
        self.session.commit()
        self.session.refresh(template)
        return template


# entity name -> (service, payload schema, record converter, list method)
_ENTITIES: dict[str, tuple[type, type[BaseModel], Callable[[Any], Any], str]] = {
    "accounts": (AccountService, AccountIn, account_record, "list_all"),
    "categories": (CategoryService, CategoryIn, category_record, "list_all"),
    "subcategories": (SubcategoryService, SubcategoryIn, subcategory_record, "list_all"),
    "transactions": (TransactionService, TransactionIn, transaction_record, "list"),
    "budgets": (BudgetService, BudgetIn, budget_record, "list_all"),
    "recurring_templates": (
        RecurringTemplateService,
        RecurringTemplateIn,
        recurring_template_record,
        "list",
    ),
}

Payload = Union[BaseModel, Mapping[str, Any]]


class LedgerRepository:
    """Data-access contract used by the engine and the API.

    Every call returns a :class:`RepoResult`; validation and database errors
    are logged and reported in ``error`` rather than raised.
    """

    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def _entity(self, entity: str):
        try:
            service_cls, schema, to_record, list_method = _ENTITIES[entity]
        except KeyError:
            raise ValueError(f"Unknown entity: {entity}") from None
        return service_cls(self.session, self.user_id), schema, to_record, list_method

    @staticmethod
    def _validate(schema: type[BaseModel], payload: Payload) -> BaseModel:
        if isinstance(payload, schema):
            return payload
        if isinstance(payload, BaseModel):
            payload = payload.model_dump()
        return schema.model_validate(payload)

    def _run(self, action: str, entity: str, fn: Callable[[], Any]) -> RepoResult:
        try:
            return RepoResult(data=fn())
        except (ValueError, OverflowError, SQLAlchemyError) as exc:
            self.session.rollback()
            logger.warning(f"repository_{action}: entity={entity} error={exc}")
            return RepoResult(
                data=None, error=str(exc), not_found=isinstance(exc, NotFoundError)
            )

    def list(self, entity: str, **filters: Any) -> RepoResult:
        def run():
            service, _, to_record, list_method = self._entity(entity)
            return [to_record(obj) for obj in getattr(service, list_method)(**filters)]

        return self._run("list", entity, run)

    def get(self, entity: str, obj_id: int) -> RepoResult:
        def run():
            service, _, to_record, _ = self._entity(entity)
            return to_record(service.get(obj_id))

        return self._run("get", entity, run)

    def create(self, entity: str, payload: Payload) -> RepoResult:
        def run():
            service, schema, to_record, _ = self._entity(entity)
            return to_record(service.create(self._validate(schema, payload)))

        return self._run("create", entity, run)

    def create_many(self, entity: str, payloads: Sequence[Payload]) -> RepoResult:
        def run():
            service, schema, to_record, _ = self._entity(entity)
            if not hasattr(service, "create_many"):
                raise ValueError(f"Bulk create is not supported for {entity}")
            items = [self._validate(schema, p) for p in payloads]
            return [to_record(obj) for obj in service.create_many(items)]

        return self._run("create_many", entity, run)

    def update(self, entity: str, obj_id: int, patch: Payload) -> RepoResult:
        def run():
            service, schema, to_record, _ = self._entity(entity)
            current = _payload_from_record(schema, to_record(service.get(obj_id)))
            if isinstance(patch, BaseModel):
                changes = patch.model_dump(exclude_unset=True)
            else:
                changes = dict(patch)
            data = schema.model_validate({**current, **changes})
            return to_record(service.update(obj_id, data))

        return self._run("update", entity, run)

    def delete(self, entity: str, obj_id: int) -> RepoResult:
        def run():
            service, _, _, _ = self._entity(entity)
            service.delete(obj_id)
            return obj_id

        return self._run("delete", entity, run)

    def catalog(self) -> Catalog:
        return Catalog(
            accounts=[
                account_record(a)
                for a in AccountService(self.session, self.user_id).list_all()
            ],
            categories=[
                category_record(c)
                for c in CategoryService(self.session, self.user_id).list_all()
            ],
            subcategories=[
                subcategory_record(s)
                for s in SubcategoryService(self.session, self.user_id).list_all()
            ],
        )

    def snapshot(
        self, start: Optional[date] = None, end: Optional[date] = None
    ) -> LedgerSnapshot:
        txns = TransactionService(self.session, self.user_id).list(start=start, end=end)
        budgets = BudgetService(self.session, self.user_id).list_all()
        templates = RecurringTemplateService(self.session, self.user_id).list()
        return LedgerSnapshot(
            catalog=self.catalog(),
            transactions=tuple(transaction_record(t) for t in txns),
            budgets=tuple(budget_record(b) for b in budgets),
            recurring_templates=tuple(recurring_template_record(t) for t in templates),
        )


def _payload_from_record(schema: type[BaseModel], record: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    for name in schema.model_fields:
        if not hasattr(record, name):
            continue
        value = getattr(record, name)
        if isinstance(value, frozenset):
            value = sorted(value)
        payload[name] = value
    return payload


def seed_defaults(session: Session, user_id: Optional[int] = None) -> bool:
    """Create the starter accounts and category tree when the ledger is empty."""
    user_id = user_id or get_current_user_id()
    if CategoryService(session, user_id).has_any():
        return False

    for data in DEFAULT_ACCOUNTS:
        session.add(Account(user_id=user_id, **data))
    for position, (name_fr, name_en, icon, color, subs) in enumerate(
        DEFAULT_CATEGORIES, start=1
    ):
        category = Category(
            user_id=user_id,
            name_fr=name_fr,
            name_en=name_en,
            icon=icon,
            color=color,
            is_default=True,
            sort_order=position,
        )
        category.subcategories = [
            Subcategory(
                user_id=user_id,
                name_fr=sub_fr,
                name_en=sub_en,
                is_default=True,
                sort_order=sub_position,
            )
            for sub_position, (sub_fr, sub_en) in enumerate(subs, start=1)
        ]
        session.add(category)
    session.commit()
    logger.info(
        f"seed_defaults: user={user_id} accounts={len(DEFAULT_ACCOUNTS)} "
        f"categories={len(DEFAULT_CATEGORIES)}"
    )
    return True
