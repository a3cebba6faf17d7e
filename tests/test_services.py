from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from database import build_engine, init_db
from models import Account, Budget, Category, Subcategory, Transaction
from importer import commit_candidates
from schemas import BudgetIn, ImportCandidate, TransactionIn
from services import LedgerRepository, seed_defaults


def _session() -> Session:
    engine = build_engine("sqlite:///:memory:")
    init_db(engine)
    return Session(engine)


def _seeded() -> tuple[Session, LedgerRepository]:
    session = _session()
    seed_defaults(session)
    return session, LedgerRepository(session)


def _sub_id(session: Session, name_en: str) -> int:
    return session.scalar(select(Subcategory.id).where(Subcategory.name_en == name_en))


def test_seed_defaults_creates_tree_once() -> None:
    session = _session()
    assert seed_defaults(session) is True
    assert seed_defaults(session) is False

    accounts = session.scalars(select(Account).order_by(Account.sort_order)).all()
    assert [a.name for a in accounts] == ["Ricky", "Commun"]
    assert accounts[0].is_default
    assert len(session.scalars(select(Category)).all()) == 17

    catalog = LedgerRepository(session).catalog()
    assert catalog.categories[0].name_en == "Housing"
    assert catalog.default_account().name == "Ricky"
    groceries = _sub_id(session, "Groceries")
    assert catalog.category_for(groceries).name_en == "Food"


def test_create_list_and_snapshot_transactions() -> None:
    session, repo = _seeded()
    groceries = _sub_id(session, "Groceries")

    first = repo.create(
        "transactions",
        {"description": " Colruyt ", "amount_cents": -4520, "date": "2024-02-01", "subcategory_id": groceries},
    )
    second = repo.create(
        "transactions",
        TransactionIn(description="Delhaize", amount_cents=1000, date=date(2024, 3, 1), subcategory_id=groceries),
    )

    assert first.ok and second.ok
    assert first.data.description == "Colruyt"
    assert first.data.amount_cents == 4520

    snapshot = repo.snapshot()
    assert [t.description for t in snapshot.transactions] == ["Delhaize", "Colruyt"]

    march = repo.list("transactions", start=date(2024, 3, 1), end=date(2024, 3, 31))
    assert [t.description for t in march.data] == ["Delhaize"]


def test_errors_are_returned_not_raised() -> None:
    session, repo = _seeded()

    missing_sub = repo.create(
        "transactions",
        {"description": "Ghost", "amount_cents": 100, "date": "2024-01-01", "subcategory_id": 99999},
    )
    assert not missing_sub.ok
    assert missing_sub.error == "Subcategory not found"

    invalid = repo.create("transactions", {"description": "", "amount_cents": 100})
    assert not invalid.ok

    not_found = repo.delete("budgets", 4242)
    assert not_found.not_found
    assert not_found.error == "Budget not found"

    unknown = repo.list("wallets")
    assert unknown.error == "Unknown entity: wallets"


def test_create_many_is_all_or_nothing() -> None:
    session, repo = _seeded()
    groceries = _sub_id(session, "Groceries")
    good = {"description": "A", "amount_cents": 100, "date": "2024-01-01", "subcategory_id": groceries}
    bad = {"description": "B", "amount_cents": 100, "date": "2024-01-02", "subcategory_id": 99999}

    failed = repo.create_many("transactions", [good, bad])
    assert not failed.ok
    assert session.scalars(select(Transaction)).all() == []

    created = repo.create_many("transactions", [good, dict(good, description="C")])
    assert created.ok
    assert [t.description for t in created.data] == ["A", "C"]


def test_budget_links_round_trip_and_update_patch() -> None:
    session, repo = _seeded()
    food = session.scalar(select(Category.id).where(Category.name_en == "Food"))
    fuel = _sub_id(session, "Fuel/Car Electricity")

    created = repo.create(
        "budgets",
        BudgetIn(name="Courses", amount_limit_cents=50000, category_ids=[food], subcategory_ids=[fuel]),
    )
    assert created.ok
    assert created.data.category_ids == frozenset({food})
    assert created.data.subcategory_ids == frozenset({fuel})

    updated = repo.update("budgets", created.data.id, {"amount_limit_cents": 60000, "subcategory_ids": []})
    assert updated.ok
    assert updated.data.amount_limit_cents == 60000
    assert updated.data.subcategory_ids == frozenset()
    assert updated.data.category_ids == frozenset({food})

    rejected = repo.update("budgets", created.data.id, {"category_ids": []})
    assert not rejected.ok
    assert session.get(Budget, created.data.id).categories[0].id == food

    assert repo.delete("budgets", created.data.id).ok
    assert repo.list("budgets").data == []


def test_recurring_templates_filter_by_activity() -> None:
    session, repo = _seeded()
    rent = _sub_id(session, "Rent/Charges")
    repo.create("recurring_templates", {"description": "Loyer", "amount_cents": 95000, "subcategory_id": rent})
    repo.create(
        "recurring_templates",
        {"description": "Old gym", "amount_cents": 3000, "subcategory_id": rent, "is_active": False},
    )

    active = repo.list("recurring_templates", is_active=True)
    assert [t.description for t in active.data] == ["Loyer"]
    assert active.data[0].day_of_month == 1
    assert len(repo.list("recurring_templates").data) == 2


def test_oversized_amounts_are_rejected_without_raising() -> None:
    session, repo = _seeded()
    groceries = _sub_id(session, "Groceries")

    result = repo.create(
        "transactions",
        {"description": "Big", "amount_cents": 10**19, "date": "2024-01-01", "subcategory_id": groceries},
    )
    assert not result.ok

    oversized = ImportCandidate.model_construct(
        row=2, date=date(2024, 1, 1), description="Big", amount_cents=10**19, subcategory_id=groceries
    )
    regular = ImportCandidate(
        row=3, date=date(2024, 1, 2), description="Coffee", amount_cents=500, subcategory_id=groceries
    )
    imported = commit_candidates(repo, [oversized, regular], batch_size=1)

    assert (imported.imported_count, imported.total_count, imported.failed_batches) == (1, 2, 1)
    assert [t.description for t in session.scalars(select(Transaction))] == ["Coffee"]


def test_only_one_account_is_default() -> None:
    session, repo = _seeded()

    savings = repo.create("accounts", {"name": " Epargne ", "bank": "ING", "is_default": True})
    assert savings.ok
    assert savings.data.name == "Epargne"
    assert [a.name for a in repo.list("accounts").data if a.is_default] == ["Epargne"]

    ricky = next(a for a in repo.list("accounts").data if a.name == "Ricky")
    updated = repo.update("accounts", ricky.id, {"is_default": True})
    assert updated.ok
    assert updated.data.bank == "CBC"
    assert [a.name for a in repo.list("accounts").data if a.is_default] == ["Ricky"]
    assert repo.catalog().default_account().id == ricky.id


def test_category_and_subcategory_update_and_delete() -> None:
    session, repo = _seeded()

    pets = repo.create("categories", {"name_fr": "Animaux", "name_en": "Pets", "icon": "paw"})
    assert pets.ok
    duplicate = repo.create("categories", {"name_fr": "animaux", "name_en": "Animals"})
    assert duplicate.error == "Category with this name already exists"

    renamed = repo.update("categories", pets.data.id, {"name_en": "Pet care"})
    assert renamed.data.name_en == "Pet care"
    assert renamed.data.icon == "paw"

    vet = repo.create(
        "subcategories", {"category_id": pets.data.id, "name_fr": "Vétérinaire", "name_en": "Vet"}
    )
    assert vet.ok
    moved = repo.update("subcategories", vet.data.id, {"category_id": 99999})
    assert moved.error == "Category not found"
    vet_renamed = repo.update("subcategories", vet.data.id, {"name_en": "Veterinary"})
    assert vet_renamed.data.name_en == "Veterinary"
    assert vet_renamed.data.category_id == pets.data.id

    txn = repo.create(
        "transactions",
        {"description": "Checkup", "amount_cents": 6000, "date": "2024-01-05", "subcategory_id": vet.data.id},
    )
    # Transactions keep their subcategory alive.
    assert not repo.delete("subcategories", vet.data.id).ok
    assert repo.get("subcategories", vet.data.id).ok

    assert repo.delete("transactions", txn.data.id).ok
    assert repo.delete("categories", pets.data.id).ok
    assert repo.list("subcategories", category_id=pets.data.id).data == []
    assert repo.get("categories", pets.data.id).not_found
