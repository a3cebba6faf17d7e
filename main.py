import logging
from datetime import date
from typing import Any, Optional

from fastapi import Body, Depends, FastAPI, File, Form, HTTPException, UploadFile
from pydantic import BaseModel
from sqlalchemy.orm import Session

from budgets import budget_alerts, evaluate_budgets, summarize_budgets
from csv_utils import detect_column_mapping, read_table
from database import SessionLocal, init_db, session_scope
from importer import UnresolvedCategoryError, commit_candidates, normalize_rows
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
from ledger import RepoResult
from periods import filter_by_month, filter_by_period, resolve_period, search_transactions
from recurrence import RecurringEngine, local_today, monthly_commitment
from scheduler import SchedulerManager
from schemas import (
    AccountIn,
    BudgetIn,
    CategoryIn,
    ColumnMapping,
    ImportCandidate,
    RecurringTemplateIn,
    SubcategoryIn,
    TransactionIn,
)
from services import LedgerRepository, seed_defaults

logger = logging.getLogger(__name__)


def _load_app_version() -> str:
    try:
        import tomllib
    except ImportError:
        return "unknown"
    try:
        with open("pyproject.toml", "rb") as f:
            data = tomllib.load(f)
        return str(data.get("project", {}).get("version", "unknown"))
    except (OSError, ValueError):
        return "unknown"


APP_VERSION = _load_app_version()

app = FastAPI(title="Finance Ledger", version=APP_VERSION)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_today() -> date:
    return local_today()


def get_repository(db: Session = Depends(get_db)) -> LedgerRepository:
    return LedgerRepository(db)


scheduler_manager = SchedulerManager()


@app.on_event("startup")
def startup_event():
    init_db()
    with session_scope() as session:
        seed_defaults(session)
    scheduler_manager.start()


@app.on_event("shutdown")
def shutdown_event():
    scheduler_manager.stop()


def _unwrap(result: RepoResult) -> Any:
    if result.ok:
        return result.data
    status = 404 if result.not_found else 400
    raise HTTPException(status_code=status, detail=result.error)


@app.get("/api/snapshot")
def api_snapshot(repo: LedgerRepository = Depends(get_repository)):
    snapshot = repo.snapshot()
    catalog = snapshot.catalog
    return {
        "accounts": catalog.accounts,
        "categories": catalog.categories,
        "subcategories": catalog.subcategories,
        "counts": {
            "transactions": len(snapshot.transactions),
            "budgets": len(snapshot.budgets),
            "recurring_templates": len(snapshot.recurring_templates),
        },
    }


@app.get("/api/accounts")
def api_accounts(repo: LedgerRepository = Depends(get_repository)):
    return _unwrap(repo.list("accounts"))


@app.post("/api/accounts", status_code=201)
def api_create_account(data: AccountIn, repo: LedgerRepository = Depends(get_repository)):
    return _unwrap(repo.create("accounts", data))


@app.put("/api/accounts/{account_id}")
def api_update_account(
    account_id: int,
    patch: dict[str, Any] = Body(...),
    repo: LedgerRepository = Depends(get_repository),
):
    return _unwrap(repo.update("accounts", account_id, patch))


@app.delete("/api/accounts/{account_id}", status_code=204)
def api_delete_account(account_id: int, repo: LedgerRepository = Depends(get_repository)):
    _unwrap(repo.delete("accounts", account_id))


@app.get("/api/categories")
def api_categories(repo: LedgerRepository = Depends(get_repository)):
    return _unwrap(repo.list("categories"))


@app.post("/api/categories", status_code=201)
def api_create_category(data: CategoryIn, repo: LedgerRepository = Depends(get_repository)):
    return _unwrap(repo.create("categories", data))


@app.put("/api/categories/{category_id}")
def api_update_category(
    category_id: int,
    patch: dict[str, Any] = Body(...),
    repo: LedgerRepository = Depends(get_repository),
):
    return _unwrap(repo.update("categories", category_id, patch))


@app.delete("/api/categories/{category_id}", status_code=204)
def api_delete_category(category_id: int, repo: LedgerRepository = Depends(get_repository)):
    _unwrap(repo.delete("categories", category_id))


@app.get("/api/subcategories")
def api_subcategories(
    category_id: Optional[int] = None, repo: LedgerRepository = Depends(get_repository)
):
    return _unwrap(repo.list("subcategories", category_id=category_id))


@app.post("/api/subcategories", status_code=201)
def api_create_subcategory(
    data: SubcategoryIn, repo: LedgerRepository = Depends(get_repository)
):
    return _unwrap(repo.create("subcategories", data))


@app.put("/api/subcategories/{subcategory_id}")
def api_update_subcategory(
    subcategory_id: int,
    patch: dict[str, Any] = Body(...),
    repo: LedgerRepository = Depends(get_repository),
):
    return _unwrap(repo.update("subcategories", subcategory_id, patch))


@app.delete("/api/subcategories/{subcategory_id}", status_code=204)
def api_delete_subcategory(
    subcategory_id: int, repo: LedgerRepository = Depends(get_repository)
):
    _unwrap(repo.delete("subcategories", subcategory_id))


@app.get("/api/transactions")
def api_transactions(
    month: Optional[int] = None,
    year: Optional[int] = None,
    q: Optional[str] = None,
    category_id: Optional[int] = None,
    account_id: Optional[int] = None,
    period: Optional[str] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
    repo: LedgerRepository = Depends(get_repository),
    today: date = Depends(get_today),
):
    snapshot = repo.snapshot()
    if month is not None and year is not None:
        return search_transactions(
            snapshot.transactions,
            snapshot.catalog,
            month=month,
            year=year,
            query=q,
            category_ids=[category_id] if category_id else None,
            account_ids=[account_id] if account_id else None,
        )
    try:
        window = resolve_period(period, start, end, today=today)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return filter_by_period(snapshot.transactions, window)


@app.post("/api/transactions", status_code=201)
def api_create_transaction(
    data: TransactionIn, repo: LedgerRepository = Depends(get_repository)
):
    return _unwrap(repo.create("transactions", data))


@app.put("/api/transactions/{transaction_id}")
def api_update_transaction(
    transaction_id: int,
    patch: dict[str, Any] = Body(...),
    repo: LedgerRepository = Depends(get_repository),
):
    return _unwrap(repo.update("transactions", transaction_id, patch))


@app.delete("/api/transactions/{transaction_id}", status_code=204)
def api_delete_transaction(
    transaction_id: int, repo: LedgerRepository = Depends(get_repository)
):
    _unwrap(repo.delete("transactions", transaction_id))


@app.get("/api/budgets")
def api_budgets(repo: LedgerRepository = Depends(get_repository)):
    return _unwrap(repo.list("budgets"))


@app.post("/api/budgets", status_code=201)
def api_create_budget(data: BudgetIn, repo: LedgerRepository = Depends(get_repository)):
    return _unwrap(repo.create("budgets", data))


@app.put("/api/budgets/{budget_id}")
def api_update_budget(
    budget_id: int,
    patch: dict[str, Any] = Body(...),
    repo: LedgerRepository = Depends(get_repository),
):
    return _unwrap(repo.update("budgets", budget_id, patch))


@app.delete("/api/budgets/{budget_id}", status_code=204)
def api_delete_budget(budget_id: int, repo: LedgerRepository = Depends(get_repository)):
    _unwrap(repo.delete("budgets", budget_id))


@app.get("/api/budgets/progress")
def api_budget_progress(
    repo: LedgerRepository = Depends(get_repository),
    today: date = Depends(get_today),
):
    snapshot = repo.snapshot()
    progress = evaluate_budgets(
        snapshot.budgets, snapshot.transactions, snapshot.catalog, today=today
    )
    return {
        "active": [p for p in progress if p.budget.is_active],
        "inactive": [p for p in progress if not p.budget.is_active],
        "summary": summarize_budgets(progress),
    }


@app.get("/api/recurring")
def api_recurring(
    is_active: Optional[bool] = None,
    repo: LedgerRepository = Depends(get_repository),
    today: date = Depends(get_today),
):
    templates = _unwrap(repo.list("recurring_templates", is_active=is_active))
    return {
        "templates": templates,
        "monthly_commitment_cents": monthly_commitment(templates, today),
    }


@app.post("/api/recurring", status_code=201)
def api_create_recurring(
    data: RecurringTemplateIn, repo: LedgerRepository = Depends(get_repository)
):
    return _unwrap(repo.create("recurring_templates", data))


@app.put("/api/recurring/{template_id}")
def api_update_recurring(
    template_id: int,
    patch: dict[str, Any] = Body(...),
    repo: LedgerRepository = Depends(get_repository),
):
    return _unwrap(repo.update("recurring_templates", template_id, patch))


@app.delete("/api/recurring/{template_id}", status_code=204)
def api_delete_recurring(
    template_id: int, repo: LedgerRepository = Depends(get_repository)
):
    _unwrap(repo.delete("recurring_templates", template_id))


@app.get("/api/recurring/pending")
def api_recurring_pending(
    repo: LedgerRepository = Depends(get_repository),
    today: date = Depends(get_today),
):
    return RecurringEngine(repo).pending(today)


@app.post("/api/recurring/{template_id}/generate", status_code=201)
def api_generate_recurring(
    template_id: int,
    repo: LedgerRepository = Depends(get_repository),
    today: date = Depends(get_today),
):
    return _unwrap(RecurringEngine(repo).generate_for_template(template_id, today))


@app.get("/api/dashboard")
def api_dashboard(
    repo: LedgerRepository = Depends(get_repository),
    today: date = Depends(get_today),
):
    snapshot = repo.snapshot()
    txns = snapshot.transactions
    this_month = filter_by_month(txns, today.month, today.year)
    return {
        "kpis": month_kpis(txns, today=today),
        "trend": monthly_trend(txns, today=today),
        "top_categories": category_ranking(this_month, snapshot.catalog),
        "alerts": budget_alerts(
            snapshot.budgets, txns, snapshot.catalog, today=today
        ),
        "recent": recent_transactions(txns),
    }


@app.get("/api/insights/{year}")
def api_insights(year: int, repo: LedgerRepository = Depends(get_repository)):
    snapshot = repo.snapshot()
    txns = snapshot.transactions
    year_txns = [t for t in txns if t.date.year == year]
    return {
        "kpis": year_kpis(txns, year),
        "months": calendar_year_trend(txns, year),
        "year_over_year": year_over_year(txns, year),
        "categories": category_ranking(year_txns, snapshot.catalog),
        "merchants": merchant_ranking(year_txns),
        "category_trends": category_trends(txns, snapshot.catalog, year),
    }


@app.post("/api/import/preview")
async def api_import_preview(
    file: UploadFile = File(...),
    date_column: Optional[str] = Form(None),
    description_column: Optional[str] = Form(None),
    amount_column: Optional[str] = Form(None),
    category_column: Optional[str] = Form(None),
    account_column: Optional[str] = Form(None),
    notes_column: Optional[str] = Form(None),
    repo: LedgerRepository = Depends(get_repository),
):
    content = await file.read()
    try:
        rows = read_table(file.filename or "", content)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    columns = list(rows[0].keys()) if rows else []
    detected = detect_column_mapping(columns)
    mapping = ColumnMapping(
        date=date_column or detected.date,
        description=description_column or detected.description,
        amount=amount_column or detected.amount,
        category=category_column or detected.category,
        account=account_column or detected.account,
        notes=notes_column or detected.notes,
    )
    if not mapping.is_usable:
        raise HTTPException(
            status_code=400, detail="Date, description and amount columns are required"
        )
    preview = normalize_rows(rows, mapping, repo.catalog())
    return {
        "columns": columns,
        "mapping": mapping,
        "total_rows": preview.total_rows,
        "valid_count": preview.valid_count,
        "candidates": preview.candidates,
        "errors": preview.errors,
    }


class ImportCommitIn(BaseModel):
    candidates: list[ImportCandidate]


@app.post("/api/import/commit")
def api_import_commit(
    data: ImportCommitIn, repo: LedgerRepository = Depends(get_repository)
):
    try:
        return commit_candidates(repo, data.candidates)
    except UnresolvedCategoryError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
