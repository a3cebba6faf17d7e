import csv
import math
import re
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from io import BytesIO, StringIO
from typing import Optional, Union

from dateutil import parser as date_parser
from openpyxl import load_workbook

from schemas import ColumnMapping


class InvalidDate(ValueError):
    pass


_EURO_DATE = re.compile(r"^(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{2,4})$")
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_NUMERIC = re.compile(r"^-?\d+(\.\d+)?$")
_CURRENCY_AND_SPACES = re.compile(r"[€$£\s]")

# 1899-12-30 is day zero for spreadsheet serials; 25569 is 1970-01-01.
_SERIAL_EPOCH_OFFSET = 25569
_SERIAL_MIN = 30000
_SERIAL_MAX = 60000

_UNIX_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _serial_to_date(serial: float) -> date:
    seconds = (serial - _SERIAL_EPOCH_OFFSET) * 86400
    return (_UNIX_EPOCH + timedelta(seconds=seconds)).date()


def parse_flexible_date(value: object) -> date:
    """Parse a date cell from a bank export or spreadsheet.

    Day-first formats win over everything else, so ``05/03/2024`` is the
    5th of March. Raises :class:`InvalidDate` when nothing matches.
    """
    if value is None or value == "":
        raise InvalidDate("Missing date")
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if _SERIAL_MIN < value < _SERIAL_MAX:
            return _serial_to_date(float(value))
        raise InvalidDate(f"Invalid date: {value}")

    text = str(value).strip()
    if not text:
        raise InvalidDate("Missing date")

    euro = _EURO_DATE.match(text)
    if euro:
        day, month, year = euro.groups()
        if len(year) == 2:
            year = "20" + year
        if int(day) <= 31 and int(month) <= 12:
            try:
                return date(int(year), int(month), int(day))
            except ValueError as exc:
                raise InvalidDate(f"Invalid date: {text}") from exc

    if _ISO_DATE.match(text):
        try:
            return date.fromisoformat(text)
        except ValueError as exc:
            raise InvalidDate(f"Invalid date: {text}") from exc

    if _NUMERIC.match(text):
        serial = float(text)
        if _SERIAL_MIN < serial < _SERIAL_MAX:
            return _serial_to_date(serial)
        raise InvalidDate(f"Invalid date: {text}")

    try:
        return date_parser.parse(text, dayfirst=True).date()
    except (ValueError, OverflowError) as exc:
        raise InvalidDate(f"Invalid date: {text}") from exc


def parse_flexible_amount(value: object) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        return Decimal(str(value))

    clean = str(value).strip().replace("−", "-")
    if not clean:
        return None
    if "," in clean:
        # European format: periods and spaces group thousands, comma is decimal
        clean = re.sub(r"[\s.]", "", clean)
        clean = clean.replace(",", ".", 1)
    clean = _CURRENCY_AND_SPACES.sub("", clean)
    try:
        amount = Decimal(clean)
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    return amount


def amount_to_cents(amount: Decimal) -> int:
    try:
        return int((amount * 100).quantize(Decimal("1")))
    except InvalidOperation as exc:
        raise ValueError(f"Amount out of range: {amount}") from exc


def read_csv_rows(content: Union[str, bytes]) -> list[dict[str, object]]:
    if isinstance(content, bytes):
        content = content.decode("utf-8-sig")
    reader = csv.DictReader(StringIO(content))
    rows: list[dict[str, object]] = []
    for raw in reader:
        if not any((v or "").strip() for v in raw.values() if isinstance(v, str)):
            continue
        rows.append({k: v for k, v in raw.items() if k is not None})
    return rows


def read_excel_rows(data: bytes) -> list[dict[str, object]]:
    wb = load_workbook(BytesIO(data), read_only=True, data_only=True)
    try:
        sheet = wb.worksheets[0]
        rows_iter = sheet.iter_rows(values_only=True)
        header_row = next(rows_iter, None)
        if header_row is None:
            return []
        header = [str(h).strip() if h is not None else "" for h in header_row]
        rows: list[dict[str, object]] = []
        for values in rows_iter:
            if all(v is None or str(v).strip() == "" for v in values):
                continue
            row = {
                name: "" if value is None else value
                for name, value in zip(header, values)
                if name
            }
            for name in header:
                if name:
                    row.setdefault(name, "")
            rows.append(row)
        return rows
    finally:
        wb.close()


def read_table(filename: str, data: bytes) -> list[dict[str, object]]:
    extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    if extension == "csv":
        return read_csv_rows(data)
    if extension in {"xlsx", "xlsm"}:
        return read_excel_rows(data)
    raise ValueError(f"Unsupported file type: .{extension or '?'}")


COLUMN_PATTERNS: dict[str, re.Pattern[str]] = {
    "date": re.compile(r"^(date|datum|jour|day)$", re.IGNORECASE),
    "description": re.compile(
        r"^(description|desc|libellé|libelle|merchant|commerce|nom)$", re.IGNORECASE
    ),
    "amount": re.compile(
        r"^(amount|montant|somme|total|prix|price|valeur)$", re.IGNORECASE
    ),
    "category": re.compile(r"^(category|catégorie|categorie|cat)$", re.IGNORECASE),
    "account": re.compile(r"^(account|compte|bank|banque)$", re.IGNORECASE),
    "notes": re.compile(r"^(notes|note|comment|commentaire|memo)$", re.IGNORECASE),
}


def detect_column_mapping(columns: list[str]) -> ColumnMapping:
    detected: dict[str, str] = {}
    for column in columns:
        for field_name, pattern in COLUMN_PATTERNS.items():
            if field_name not in detected and pattern.match(column.strip()):
                detected[field_name] = column
    return ColumnMapping(**detected)
