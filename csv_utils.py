import csv
import re
from datetime import date, datetime
from decimal import Decimal, DecimalException
from io import StringIO
from typing import Sequence

from models import TransactionType
from unified import UnifiedTransaction

EXPORT_COLUMNS = ["Date", "Type", "Amount", "Title", "Category", "Note", "Tags"]
DATE_FORMATS = ("%Y-%m-%d", "%d.%m.%Y")

# Spreadsheet apps evaluate cells that start with these.
_FORMULA_PREFIXES = ("=", "+", "-", "@", "\t", "\r")
_RISKY_VALUE = re.compile(
    r"^(cmd|powershell|bash|sh)\b|^\.|^https?://", re.IGNORECASE
)


def sanitize_csv_value(value: str) -> str:
    """Prefix values a spreadsheet could execute with a tab."""
    value = (value or "").strip()
    if not value:
        return ""
    if value.startswith(_FORMULA_PREFIXES) or _RISKY_VALUE.match(value):
        return "\t" + value
    return value


def parse_date(value: str) -> date:
    value = value.strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"Invalid date {value!r}")


def parse_amount(value: str) -> int:
    """Euro amount as typed into a filter field ("12,50 €", "1.234,56") to cents."""
    clean = re.sub(r"[€$\s]", "", value).replace(",", ".")
    whole, dot, fraction = clean.rpartition(".")
    if dot:
        clean = whole.replace(".", "") + "." + fraction
    try:
        amount = Decimal(clean)
        if not amount.is_finite():
            raise ValueError("Invalid amount")
        cents = int((amount * 100).quantize(Decimal("1")))
    except DecimalException as exc:
        raise ValueError("Invalid amount") from exc
    if cents < 0:
        raise ValueError("Amount must be positive")
    return cents


def _category_label(txn: UnifiedTransaction) -> str:
    if txn.type == TransactionType.expense:
        expense = txn.as_expense
        if expense.custom_category:
            return expense.custom_category.name
        return expense.category.display_name
    return txn.as_income.source.display_name


def _tag_names(txn: UnifiedTransaction) -> str:
    if txn.type != TransactionType.expense:
        return ""
    return ";".join(sorted(tag.name for tag in txn.as_expense.tags))


def export_transactions(transactions: Sequence[UnifiedTransaction]) -> str:
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(EXPORT_COLUMNS)
    for txn in transactions:
        record = txn.expense if txn.type == TransactionType.expense else txn.income
        writer.writerow(
            [
                txn.date.isoformat(timespec="minutes"),
                txn.type.value,
                f"{txn.signed_amount_cents / 100:.2f}",
                sanitize_csv_value(txn.title),
                sanitize_csv_value(_category_label(txn)),
                sanitize_csv_value(record.note or ""),
                sanitize_csv_value(_tag_names(txn)),
            ]
        )
    return output.getvalue()
