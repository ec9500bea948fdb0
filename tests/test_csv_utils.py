import csv
from datetime import date, datetime
from io import StringIO

import pytest
from sqlalchemy.orm import Session

from csv_utils import export_transactions, parse_amount, parse_date, sanitize_csv_value
from schemas import CustomCategoryIn
from services import CustomCategoryService, ExpenseService, IncomeService
from unified import unified_transactions

from helpers import add_expense, add_income


def test_sanitize_blocks_formula_injection() -> None:
    assert sanitize_csv_value("=SUM(A1:A3)") == "\t=SUM(A1:A3)"
    assert sanitize_csv_value("https://example.com") == "\thttps://example.com"
    assert sanitize_csv_value("  Coffee ") == "Coffee"
    assert sanitize_csv_value("   ") == ""


def test_parse_helpers() -> None:
    assert parse_date("2024-03-05") == date(2024, 3, 5)
    assert parse_date("05.03.2024") == date(2024, 3, 5)
    assert parse_amount("12,50 €") == 1250
    assert parse_amount("1.234,56") == 123456
    with pytest.raises(ValueError):
        parse_amount("abc")
    with pytest.raises(ValueError):
        parse_amount("-3")


def test_parse_amount_rejects_non_finite_values() -> None:
    for raw in ("Infinity", "-inf", "NaN", "sNaN", "1e999999"):
        with pytest.raises(ValueError, match="Invalid amount"):
            parse_amount(raw)


def test_export_writes_signed_amounts_and_labels(session: Session) -> None:
    expenses = ExpenseService(session)
    coffee = CustomCategoryService(session).create(CustomCategoryIn(name="Coffee"))
    add_expense(
        expenses,
        450,
        datetime(2024, 3, 4, 8, 15),
        merchant="Corner Cafe",
        note="=cmd",
        tags=["work", "Breakfast"],
        custom_category_id=coffee.id,
    )
    add_income(IncomeService(session), 200000, datetime(2024, 3, 1, 9, 0), note="Pay")

    content = export_transactions(
        unified_transactions(expenses, IncomeService(session), 2024, 3)
    )
    rows = list(csv.reader(StringIO(content)))

    assert rows[0] == ["Date", "Type", "Amount", "Title", "Category", "Note", "Tags"]
    assert rows[1] == [
        "2024-03-04T08:15",
        "expense",
        "-4.50",
        "Corner Cafe",
        "Coffee",
        "\t=cmd",
        "Breakfast;work",
    ]
    assert rows[2] == ["2024-03-01T09:00", "income", "2000.00", "Pay", "Salary", "Pay", ""]
