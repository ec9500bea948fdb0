import threading
import time
from datetime import date, datetime

import pytest
from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.orm import Session

from models import ExpenseCategory, IncomeSource, TransactionType
from periods import MonthCursor
from schemas import CustomCategoryIn, ExpenseFilter, ExpenseIn, IncomeIn
from services import CustomCategoryService, ExpenseService, IncomeService, TagService
from unified import TransactionFilter
from viewmodel import ListState, TransactionsViewModel

from helpers import add_expense, add_income


TODAY = date(2024, 3, 20)


def _view(session: Session, **kwargs) -> TransactionsViewModel:
    kwargs.setdefault("today", TODAY)
    kwargs.setdefault("page_size", 50)
    return TransactionsViewModel(
        ExpenseService(session),
        IncomeService(session),
        scheduler=BackgroundScheduler(timezone="UTC"),
        **kwargs,
    )


def _seed_march(vm: TransactionsViewModel) -> None:
    add_expense(
        vm.expense_service, 1000, datetime(2024, 3, 3, 9, 0), merchant="STARBUCKS"
    )
    add_expense(vm.expense_service, 2000, datetime(2024, 3, 10, 12, 0))
    add_expense(vm.expense_service, 3000, datetime(2024, 3, 18, 19, 0))
    add_income(vm.income_service, 10000, datetime(2024, 3, 1, 8, 0))
    add_income(vm.income_service, 5000, datetime(2024, 3, 15, 8, 0))


def test_attach_subscribes_and_detach_releases(session: Session) -> None:
    vm = _view(session)

    with vm:
        assert vm.attached
        assert vm.expense_service.listener_count == 1
        assert vm.income_service.listener_count == 1

    assert not vm.attached
    assert vm.expense_service.listener_count == 0
    assert vm.income_service.listener_count == 0


def test_store_writes_refresh_attached_view(session: Session) -> None:
    vm = _view(session).attach()
    notified = []
    vm.subscribe(lambda: notified.append(len(vm.transactions)))

    _seed_march(vm)

    assert len(vm.transactions) == 5
    assert notified[-1] == 5
    assert vm.expense_total_cents == 6000
    assert vm.income_total_cents == 15000
    assert vm.net_cents == 9000
    vm.detach()


def test_detached_view_ignores_store_writes(session: Session) -> None:
    vm = _view(session).attach()
    vm.detach()

    add_expense(vm.expense_service, 500, datetime(2024, 3, 5))

    assert vm.transactions == []


def test_delete_removes_row_and_lowers_total(session: Session) -> None:
    vm = _view(session).attach()
    _seed_march(vm)
    target = next(t for t in vm.transactions if t.amount_cents == 2000)

    vm.on_transaction_delete(target)

    assert target.key not in {t.key for t in vm.transactions}
    assert len(vm.transactions) == 4
    assert vm.expense_total_cents == 4000
    vm.detach()


def test_failed_delete_refreshes_and_reraises(session: Session) -> None:
    vm = _view(session).attach()
    _seed_march(vm)
    target = next(t for t in vm.transactions if t.type == TransactionType.income)
    # Another store instance removes the row without telling this view.
    IncomeService(session).delete(target.id)
    assert target.key in {t.key for t in vm.transactions}

    with pytest.raises(ValueError, match="Income not found"):
        vm.on_transaction_delete(target)

    assert target.key not in {t.key for t in vm.transactions}
    vm.detach()


def test_update_routes_to_owning_store(session: Session) -> None:
    vm = _view(session).attach()
    _seed_march(vm)
    expense_row = next(t for t in vm.transactions if t.amount_cents == 3000)
    income_row = next(t for t in vm.transactions if t.amount_cents == 5000)

    vm.on_transaction_update(
        expense_row,
        ExpenseIn(
            occurred_at=expense_row.date,
            amount_cents=3500,
            category=ExpenseCategory.bills,
        ),
    )
    vm.on_transaction_update(
        income_row,
        IncomeIn(
            occurred_at=income_row.date,
            amount_cents=5000,
            source=IncomeSource.gift,
            note="Birthday",
        ),
    )

    assert vm.expense_total_cents == 6500
    titles = {t.title for t in vm.transactions}
    assert "Bills & Utilities" in titles
    assert "Birthday" in titles

    with pytest.raises(ValueError):
        vm.on_transaction_update(
            expense_row, IncomeIn(occurred_at=expense_row.date, amount_cents=1)
        )
    vm.detach()


def test_tap_returns_underlying_record(session: Session) -> None:
    vm = _view(session).attach()
    _seed_march(vm)

    for row in vm.transactions:
        record = vm.on_transaction_tap(row)
        assert record.id == row.id
        assert record.amount_cents == row.amount_cents
    vm.detach()


def test_pagination_and_reset_on_filter_change(session: Session) -> None:
    vm = _view(session, page_size=2).attach()
    _seed_march(vm)

    assert len(vm.visible_transactions) == 2
    assert vm.has_more
    assert vm.load_more()
    assert len(vm.visible_transactions) == 4
    assert vm.load_more()
    assert len(vm.visible_transactions) == 5
    assert not vm.has_more
    assert not vm.load_more()

    vm.set_type_filter(TransactionFilter.expenses)

    assert vm.cursor.page == 0
    assert [t.amount_cents for t in vm.visible_transactions] == [3000, 2000]
    vm.detach()


def test_month_change_resets_page(session: Session) -> None:
    vm = _view(session, page_size=2).attach()
    _seed_march(vm)
    vm.load_more()

    vm.previous_month()

    assert vm.month == MonthCursor(2024, 2)
    assert vm.cursor.page == 0
    assert vm.list_state == ListState.empty
    assert vm.can_go_next
    assert vm.next_month()
    assert not vm.next_month()
    assert vm.month == MonthCursor(2024, 3)
    vm.detach()


def test_jump_to_month_validates_bounds(session: Session) -> None:
    vm = _view(session).attach()

    vm.jump_to_month(2023, 7)
    assert vm.month == MonthCursor(2023, 7)

    with pytest.raises(ValueError):
        vm.jump_to_month(2024, 4)
    with pytest.raises(ValueError):
        vm.jump_to_month(2019, 12)
    assert vm.month == MonthCursor(2023, 7)
    vm.detach()


def test_search_shows_all_matches_without_pagination(session: Session) -> None:
    vm = _view(session, page_size=2).attach()
    _seed_march(vm)

    vm.set_search_query("food")

    assert len(vm.visible_transactions) == 3
    assert len(vm.filtered_transactions) == 3
    assert not vm.has_more
    assert not vm.load_more()
    assert vm.filter_indicator() == "Showing 3 of 5 transactions"
    vm.detach()


def test_search_match_and_no_match_states(session: Session) -> None:
    vm = _view(session).attach()
    _seed_march(vm)

    vm.set_search_query("star")
    assert [t.title for t in vm.visible_transactions] == ["STARBUCKS"]
    assert vm.list_state == ListState.populated

    vm.set_search_query("xyz")
    assert vm.visible_transactions == []
    assert vm.list_state == ListState.no_match
    assert vm.filter_indicator() is None
    assert vm.no_match_message() == "No transactions match 'xyz'"

    vm.clear_filters()
    assert vm.list_state == ListState.populated
    assert not vm.has_search_or_filter
    vm.detach()


def test_empty_month_state(session: Session) -> None:
    vm = _view(session).attach()

    assert vm.list_state == ListState.empty
    assert vm.visible_transactions == []
    assert not vm.has_more
    vm.detach()


def test_expense_filter_indicator_and_message(session: Session) -> None:
    vm = _view(session).attach()
    _seed_march(vm)

    vm.set_type_filter(TransactionFilter.expenses)
    vm.set_expense_filter(ExpenseFilter(min_amount_cents=2000))
    assert vm.filter_indicator() == "Showing 2 of 3 expenses"

    vm.set_expense_filter(ExpenseFilter(min_amount_cents=99999))
    assert vm.list_state == ListState.no_match
    assert vm.no_match_message() == "No expenses match your filters"
    vm.detach()


def test_debounced_search_applies_last_value(session: Session) -> None:
    vm = _view(session).attach()
    _seed_march(vm)

    vm.on_search_input("s")
    vm.on_search_input("st")
    vm.on_search_input("star")

    assert vm.search_query == ""
    assert len(vm.debouncer.scheduler.get_jobs()) == 1
    assert vm.debouncer.flush()
    assert vm.search_query == "star"
    assert [t.title for t in vm.visible_transactions] == ["STARBUCKS"]
    vm.detach()


def test_detach_drops_pending_search(session: Session) -> None:
    vm = _view(session).attach()
    vm.on_search_input("star")

    vm.detach()

    assert not vm.debouncer.pending
    assert not vm.debouncer.flush()
    assert vm.search_query == ""


def test_spending_pace_only_for_current_month(session: Session) -> None:
    vm = _view(session).attach()
    add_expense(vm.expense_service, 30000, datetime(2024, 2, 10))
    add_expense(vm.expense_service, 20000, datetime(2024, 3, 10))

    pace = vm.spending_pace()
    assert pace is not None
    assert pace.months_in_average == 1

    vm.previous_month()
    assert vm.spending_pace() is None
    vm.detach()


def test_search_query_change_resets_page(session: Session) -> None:
    vm = _view(session, page_size=2).attach()
    _seed_march(vm)
    assert vm.load_more()
    assert vm.cursor.page == 1

    vm.set_search_query("food")
    assert vm.cursor.page == 0

    vm.set_search_query("")
    assert vm.cursor.page == 0
    assert len(vm.visible_transactions) == min(len(vm.transactions), 2)
    assert vm.has_more
    vm.detach()


def test_expense_filter_change_resets_page(session: Session) -> None:
    vm = _view(session, page_size=2).attach()
    _seed_march(vm)
    assert vm.load_more()

    vm.set_expense_filter(ExpenseFilter(min_amount_cents=1500))
    assert vm.cursor.page == 0
    assert len(vm.visible_transactions) == 4

    vm.clear_filters()
    assert vm.cursor.page == 0
    assert len(vm.visible_transactions) == min(len(vm.transactions), 2)
    vm.detach()


def test_debounced_search_is_applied_on_owner_thread(session: Session) -> None:
    vm = TransactionsViewModel(
        ExpenseService(session), IncomeService(session), today=TODAY, debounce_ms=20
    ).attach()
    _seed_march(vm)
    render_threads = []
    vm.subscribe(lambda: render_threads.append(threading.current_thread().name))
    try:
        vm.on_search_input("star")
        deadline = time.monotonic() + 5
        while vm.search_query != "star" and time.monotonic() < deadline:
            vm.process_pending()
            time.sleep(0.01)
    finally:
        vm.detach()

    assert vm.search_query == "star"
    assert render_threads == [threading.current_thread().name]
    assert [t.title for t in vm.visible_transactions] == ["STARBUCKS"]


def test_deleting_custom_category_refreshes_attached_view(session: Session) -> None:
    categories = CustomCategoryService(session)
    tags = TagService(session)
    coffee = categories.create(CustomCategoryIn(name="Coffee"))
    vm = _view(session, custom_category_service=categories, tag_service=tags)

    with vm:
        assert categories.listener_count == 1
        assert tags.listener_count == 1
        add_expense(
            vm.expense_service, 450, datetime(2024, 3, 6), custom_category_id=coffee.id
        )
        assert vm.transactions[0].title == "Coffee"

        categories.delete(coffee.id)

        assert vm.transactions[0].title == "Food & Dining"

    assert categories.listener_count == 0
    assert tags.listener_count == 0
