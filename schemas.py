import datetime as dt
from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from models import LAST_DAY_OF_MONTH, BudgetPeriod, Frequency


MONTH_DAY_FREQUENCIES = {Frequency.monthly, Frequency.trimestrial, Frequency.yearly}
WEEK_DAY_FREQUENCIES = {Frequency.weekly, Frequency.biweekly}

# Keeps stored cents well inside SQLite INTEGER range.
MAX_AMOUNT_CENTS = 100_000_000_000


class AccountIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    bank: Optional[str] = Field(default=None, max_length=100)
    color: Optional[str] = Field(default=None, max_length=9)
    is_default: bool = False
    sort_order: int = 0


class CategoryIn(BaseModel):
    name_fr: str = Field(..., min_length=1, max_length=100)
    name_en: str = Field(..., min_length=1, max_length=100)
    icon: Optional[str] = Field(default=None, max_length=40)
    color: Optional[str] = Field(default=None, max_length=9)
    is_default: bool = False
    sort_order: int = 0


class SubcategoryIn(BaseModel):
    category_id: int
    name_fr: str = Field(..., min_length=1, max_length=100)
    name_en: str = Field(..., min_length=1, max_length=100)
    is_default: bool = False
    sort_order: int = 0


class TransactionIn(BaseModel):
    description: str = Field(..., min_length=1, max_length=200)
    amount_cents: int = Field(..., ge=0, le=MAX_AMOUNT_CENTS)
    date: dt.date
    subcategory_id: int
    account_id: Optional[int] = None
    notes: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data):
        if isinstance(data, dict):
            data = dict(data)
            if isinstance(data.get("description"), str):
                data["description"] = data["description"].strip()
            if isinstance(data.get("amount_cents"), int):
                data["amount_cents"] = abs(data["amount_cents"])
            if isinstance(data.get("notes"), str):
                data["notes"] = data["notes"].strip() or None
        return data


class BudgetIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    amount_limit_cents: int = Field(..., gt=0, le=MAX_AMOUNT_CENTS)
    period: BudgetPeriod = BudgetPeriod.monthly
    color: Optional[str] = Field(default=None, max_length=9)
    icon: Optional[str] = Field(default=None, max_length=40)
    description: Optional[str] = None
    is_active: bool = True
    category_ids: list[int] = Field(default_factory=list)
    subcategory_ids: list[int] = Field(default_factory=list)

    @model_validator(mode="after")
    def _require_links(self) -> "BudgetIn":
        self.name = self.name.strip()
        if not self.name:
            raise ValueError("Budget name is required")
        if not self.category_ids and not self.subcategory_ids:
            raise ValueError("Select at least one category or subcategory")
        return self


class RecurringTemplateIn(BaseModel):
    description: str = Field(..., min_length=1, max_length=200)
    amount_cents: int = Field(..., gt=0, le=MAX_AMOUNT_CENTS)
    frequency: Frequency = Frequency.monthly
    day_of_month: Optional[int] = None
    day_of_week: Optional[int] = None
    subcategory_id: int
    account_id: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    notes: Optional[str] = None
    is_active: bool = True

    @model_validator(mode="after")
    def _check_schedule(self) -> "RecurringTemplateIn":
        self.description = self.description.strip()
        if not self.description:
            raise ValueError("Description is required")
        if self.frequency in MONTH_DAY_FREQUENCIES:
            day = self.day_of_month if self.day_of_month is not None else 1
            if not (1 <= day <= 28 or day == LAST_DAY_OF_MONTH):
                raise ValueError("day_of_month must be between 1 and 28, or 99")
            self.day_of_month = day
            self.day_of_week = None
        else:
            day = self.day_of_week if self.day_of_week is not None else 1
            if not 1 <= day <= 7:
                raise ValueError("day_of_week must be between 1 and 7")
            self.day_of_week = day
            self.day_of_month = None
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("End date must be on or after start date")
        return self


class ColumnMapping(BaseModel):
    model_config = ConfigDict(extra="forbid")

    date: Optional[str] = None
    description: Optional[str] = None
    amount: Optional[str] = None
    category: Optional[str] = None
    account: Optional[str] = None
    notes: Optional[str] = None

    @property
    def is_usable(self) -> bool:
        return bool(self.date and self.description and self.amount)


class ImportRowError(BaseModel):
    model_config = ConfigDict(frozen=True)

    row: int
    field: str
    kind: str
    raw_value: str = ""


class ImportCandidate(BaseModel):
    model_config = ConfigDict(frozen=True)

    row: int
    date: dt.date
    description: str
    amount_cents: int = Field(..., ge=0, le=MAX_AMOUNT_CENTS)
    subcategory_id: Optional[int] = None
    account_id: Optional[int] = None
    notes: Optional[str] = None
    category_label: str = ""
    account_label: str = ""
    suggestions: list[int] = Field(default_factory=list)

    @property
    def needs_category(self) -> bool:
        return self.subcategory_id is None

    def to_transaction(self) -> TransactionIn:
        if self.subcategory_id is None:
            raise ValueError(f"Row {self.row}: subcategory is required")
        return TransactionIn(
            description=self.description,
            amount_cents=self.amount_cents,
            date=self.date,
            subcategory_id=self.subcategory_id,
            account_id=self.account_id,
            notes=self.notes,
        )


class ImportResult(BaseModel):
    imported_count: int
    total_count: int
    failed_batches: int = 0
    cancelled: bool = False
