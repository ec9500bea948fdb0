import logging

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import Response
from pydantic import ValidationError
from sqlalchemy.orm import Session

from config import get_settings
from csv_utils import export_transactions, parse_amount, parse_date
from database import SessionLocal, init_db
from models import ExpenseCategory
from pagination import PageCursor
from periods import MonthCursor, local_today
from schemas import ExpenseFilter, ExpenseIn, IncomeIn
from services import ExpenseService, IncomeService, cents_to_euros
from unified import (
    TransactionFilter,
    UnifiedTransaction,
    apply_filters,
    apply_type_filter,
    has_search_or_filter,
    unified_transactions,
)


settings = get_settings()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Monthly Ledger")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@app.on_event("startup")
def startup_event():
    init_db()
    logger.info("Database schema ready")


def month_from_request(request: Request) -> MonthCursor:
    year = request.query_params.get("year")
    month = request.query_params.get("month")
    if not year and not month:
        return MonthCursor.current()
    if not year or not month:
        raise HTTPException(status_code=400, detail="year and month go together")
    try:
        return MonthCursor.jump(int(year), int(month), local_today())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def expense_filter_from_request(request: Request) -> ExpenseFilter:
    params = request.query_params
    try:
        categories = frozenset(
            ExpenseCategory(value) for value in params.getlist("category")
        )
        tag_ids = frozenset(int(value) for value in params.getlist("tag"))
        start = params.get("start")
        end = params.get("end")
        min_amount = params.get("min")
        max_amount = params.get("max")
        return ExpenseFilter(
            categories=categories,
            tag_ids=tag_ids,
            start_date=parse_date(start) if start else None,
            end_date=parse_date(end) if end else None,
            min_amount_cents=parse_amount(min_amount) if min_amount else None,
            max_amount_cents=parse_amount(max_amount) if max_amount else None,
        )
    except (ValidationError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def type_filter_from_request(request: Request) -> TransactionFilter:
    raw = request.query_params.get("type") or TransactionFilter.all.value
    try:
        return TransactionFilter(raw)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Unknown type {raw!r}") from exc


def serialize_transaction(txn: UnifiedTransaction) -> dict[str, object]:
    payload: dict[str, object] = {
        "key": txn.key,
        "id": txn.id,
        "type": txn.type.value,
        "date": txn.date.isoformat(),
        "title": txn.title,
        "subtitle": txn.subtitle,
        "amount_cents": txn.amount_cents,
        "signed_amount_cents": txn.signed_amount_cents,
        "amount": cents_to_euros(txn.signed_amount_cents),
        "is_from_recurring": txn.is_from_recurring,
    }
    if txn.expense is not None:
        payload["category"] = txn.expense.category.value
        payload["tag_ids"] = sorted(txn.expense.tag_ids)
    else:
        payload["source"] = txn.as_income.source.value
    return payload


@app.get("/api/transactions")
def api_transactions(request: Request, db: Session = Depends(get_db)):
    month = month_from_request(request)
    type_filter = type_filter_from_request(request)
    expense_filter = expense_filter_from_request(request)
    query = request.query_params.get("q", "")
    try:
        page = max(int(request.query_params.get("page", "0")), 0)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid page") from exc

    rows = unified_transactions(
        ExpenseService(db), IncomeService(db), month.year, month.month
    )
    matches = apply_filters(rows, type_filter, query, expense_filter)
    paginated = not has_search_or_filter(query, expense_filter)
    if paginated:
        cursor = PageCursor(settings.page_size, page)
        items = cursor.window(matches)
        more = cursor.has_more(len(matches))
    else:
        items = matches
        more = False

    return {
        "month": {"year": month.year, "month": month.month, "label": month.label},
        "items": [serialize_transaction(txn) for txn in items],
        "page": page if paginated else 0,
        "has_more": more,
        "matched": len(matches),
        "total": len(apply_type_filter(rows, type_filter)),
        "month_is_empty": not rows,
    }


@app.get("/api/summary")
def api_summary(request: Request, db: Session = Depends(get_db)):
    month = month_from_request(request)
    expenses = ExpenseService(db)
    expense_summary = expenses.month_summary(month.year, month.month)
    income_summary = IncomeService(db).month_summary(month.year, month.month)
    today = local_today()
    pace = (
        expenses.spending_pace(month.year, month.month, today)
        if month.is_current(today)
        else None
    )
    return {
        "month": {"year": month.year, "month": month.month, "label": month.label},
        "can_go_next": month.can_go_next(today),
        "expenses": {
            "total_cents": expense_summary.total_cents,
            "count": expense_summary.count,
            "breakdown": expense_summary.breakdown_rows(),
        },
        "income": {
            "total_cents": income_summary.total_cents,
            "count": income_summary.count,
            "breakdown": income_summary.breakdown_rows(),
        },
        "net_cents": income_summary.total_cents - expense_summary.total_cents,
        "spending_pace": None
        if pace is None
        else {
            "status": pace.status.value,
            "projected_total_cents": pace.projected_total_cents,
            "average_monthly_cents": pace.average_monthly_cents,
            "percentage_diff": round(pace.percentage_diff, 1),
        },
    }


@app.get("/transactions/export.csv")
def export_csv(request: Request, db: Session = Depends(get_db)):
    month = month_from_request(request)
    rows = unified_transactions(
        ExpenseService(db), IncomeService(db), month.year, month.month
    )
    rows = apply_filters(
        rows,
        type_filter_from_request(request),
        request.query_params.get("q", ""),
        expense_filter_from_request(request),
    )
    filename = f"transactions-{month.year}-{month.month:02d}.csv"
    return Response(
        content=export_transactions(rows),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.post("/api/expenses", status_code=201)
def create_expense(data: ExpenseIn, db: Session = Depends(get_db)):
    try:
        expense = ExpenseService(db).create(data)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return serialize_transaction(UnifiedTransaction.from_expense(expense))


@app.post("/api/incomes", status_code=201)
def create_income(data: IncomeIn, db: Session = Depends(get_db)):
    income = IncomeService(db).create(data)
    return serialize_transaction(UnifiedTransaction.from_income(income))


@app.post("/api/transactions/{kind}/{transaction_id}/delete", status_code=204)
def delete_transaction(
    kind: str, transaction_id: int, db: Session = Depends(get_db)
) -> Response:
    try:
        if kind == "expense":
            ExpenseService(db).delete(transaction_id)
        elif kind == "income":
            IncomeService(db).delete(transaction_id)
        else:
            raise HTTPException(status_code=404, detail=f"Unknown kind {kind!r}")
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=204)
