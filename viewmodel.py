from __future__ import annotations

import logging
import queue
from datetime import date
from enum import Enum
from typing import Callable, Optional, Union

from apscheduler.schedulers.base import BaseScheduler

from config import get_settings
from debounce import Dispatch, SearchDebouncer
from models import Expense, Income, TransactionType
from pagination import PageCursor
from periods import MonthCursor, local_today
from schemas import EMPTY_FILTER, ExpenseFilter, ExpenseIn, IncomeIn
from services import (
    ChangeNotifier,
    CustomCategoryService,
    ExpenseService,
    IncomeService,
    TagService,
)
from summaries import MonthSummary, SpendingPace
from unified import (
    TransactionFilter,
    UnifiedTransaction,
    apply_filters,
    apply_type_filter,
    build_unified_transactions,
    has_search_or_filter,
)


logger = logging.getLogger(__name__)


class ListState(str, Enum):
    empty = "empty"
    no_match = "no_match"
    populated = "populated"


class TransactionsViewModel(ChangeNotifier):
    """State behind one transactions screen.

    Owns the selected month, type filter, search query, structured expense
    filter and page cursor. While attached it listens to the expense and
    income stores (plus the tag and custom-category stores when given, since
    deleting either changes how rows read) and rebuilds the merged list
    synchronously on every change; renderers subscribe to the view model
    itself.

    All state changes happen on the owner's thread. Debounced search
    results are queued and applied by ``process_pending``, which the owner
    calls from its own loop; pass ``dispatch`` to route them elsewhere.

    Any change to month, type filter, query or expense filter puts the
    cursor back on the first page. While a query or expense filter is
    active pagination is off and every match is visible.
    """

    def __init__(
        self,
        expense_service: ExpenseService,
        income_service: IncomeService,
        *,
        tag_service: Optional[TagService] = None,
        custom_category_service: Optional[CustomCategoryService] = None,
        month: Optional[MonthCursor] = None,
        today: Optional[date] = None,
        page_size: Optional[int] = None,
        scheduler: Optional[BaseScheduler] = None,
        debounce_ms: Optional[int] = None,
        dispatch: Optional[Dispatch] = None,
    ) -> None:
        super().__init__()
        settings = get_settings()
        self.expense_service = expense_service
        self.income_service = income_service
        self.today = today
        self.month = month or MonthCursor.current(today)
        self.type_filter = TransactionFilter.all
        self.search_query = ""
        self.expense_filter: ExpenseFilter = EMPTY_FILTER
        self.cursor = PageCursor(page_size or settings.page_size)
        self._inbox: "queue.SimpleQueue[Callable[[], None]]" = queue.SimpleQueue()
        self.debouncer = SearchDebouncer(
            self.set_search_query,
            scheduler=scheduler,
            delay_ms=debounce_ms,
            dispatch=dispatch or self._inbox.put,
        )
        self.expense_summary: Optional[MonthSummary] = None
        self.income_summary: Optional[MonthSummary] = None
        self.transactions: list[UnifiedTransaction] = []
        self._stores: list[ChangeNotifier] = [expense_service, income_service]
        for store in (tag_service, custom_category_service):
            if store is not None:
                self._stores.append(store)
        self._attached = False

    # -- lifecycle ---------------------------------------------------------

    @property
    def attached(self) -> bool:
        return self._attached

    def attach(self) -> "TransactionsViewModel":
        if self._attached:
            return self
        for store in self._stores:
            store.subscribe(self._on_data_changed)
        self._attached = True
        self.refresh()
        return self

    def detach(self) -> None:
        self.debouncer.shutdown()
        if not self._attached:
            return
        for store in self._stores:
            store.unsubscribe(self._on_data_changed)
        self._attached = False

    def __enter__(self) -> "TransactionsViewModel":
        return self.attach()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.detach()

    def _on_data_changed(self) -> None:
        self.refresh()

    def process_pending(self) -> int:
        """Apply queued debounced updates on the calling thread."""
        handled = 0
        while True:
            try:
                task = self._inbox.get_nowait()
            except queue.Empty:
                return handled
            task()
            handled += 1

    def _today(self) -> date:
        return self.today or local_today()

    def refresh(self) -> None:
        year, month = self.month.year, self.month.month
        self.expense_summary = self.expense_service.month_summary(year, month)
        self.income_summary = self.income_service.month_summary(year, month)
        self.transactions = build_unified_transactions(
            self.expense_summary.records, self.income_summary.records
        )
        logger.debug(
            f"transactions_refreshed: month={year}-{month:02d} "
            f"rows={len(self.transactions)}"
        )
        self._notify()

    # -- month navigation --------------------------------------------------

    def set_month(self, month: MonthCursor) -> None:
        if month == self.month:
            return
        self.month = month
        self.cursor.reset()
        self.refresh()

    def next_month(self) -> bool:
        target = self.month.next(self._today())
        if target == self.month:
            return False
        self.set_month(target)
        return True

    def previous_month(self) -> None:
        self.set_month(self.month.previous())

    def jump_to_month(self, year: int, month: int) -> None:
        self.set_month(MonthCursor.jump(year, month, self._today()))

    @property
    def can_go_next(self) -> bool:
        return self.month.can_go_next(self._today())

    # -- filters -----------------------------------------------------------

    def set_type_filter(self, type_filter: TransactionFilter) -> None:
        if type_filter == self.type_filter:
            return
        self.type_filter = type_filter
        self.cursor.reset()
        self._notify()

    def on_search_input(self, query: str) -> None:
        self.debouncer.submit(query)

    def set_search_query(self, query: str) -> None:
        if query == self.search_query:
            return
        self.search_query = query
        self.cursor.reset()
        self._notify()

    def set_expense_filter(self, expense_filter: ExpenseFilter) -> None:
        if expense_filter == self.expense_filter:
            return
        self.expense_filter = expense_filter
        self.cursor.reset()
        self._notify()

    def clear_filters(self) -> None:
        self.debouncer.cancel()
        self.search_query = ""
        self.expense_filter = EMPTY_FILTER
        self.cursor.reset()
        self._notify()

    @property
    def has_search_or_filter(self) -> bool:
        return has_search_or_filter(self.search_query, self.expense_filter)

    # -- derived rows ------------------------------------------------------

    @property
    def type_filtered_transactions(self) -> list[UnifiedTransaction]:
        return apply_type_filter(self.transactions, self.type_filter)

    @property
    def filtered_transactions(self) -> list[UnifiedTransaction]:
        return apply_filters(
            self.transactions,
            self.type_filter,
            self.search_query,
            self.expense_filter,
        )

    @property
    def visible_transactions(self) -> list[UnifiedTransaction]:
        rows = self.filtered_transactions
        if self.has_search_or_filter:
            return rows
        return self.cursor.window(rows)

    @property
    def has_more(self) -> bool:
        if self.has_search_or_filter:
            return False
        return self.cursor.has_more(len(self.filtered_transactions))

    def load_more(self) -> bool:
        if self.has_search_or_filter:
            return False
        moved = self.cursor.load_more(len(self.filtered_transactions))
        if moved:
            self._notify()
        return moved

    @property
    def list_state(self) -> ListState:
        if not self.transactions:
            return ListState.empty
        if self.has_search_or_filter and not self.filtered_transactions:
            return ListState.no_match
        return ListState.populated

    def filter_indicator(self) -> Optional[str]:
        if not self.has_search_or_filter:
            return None
        shown = len(self.filtered_transactions)
        if not shown:
            return None
        total = len(self.type_filtered_transactions)
        return f"Showing {shown} of {total} {self.type_filter.label}"

    def no_match_message(self) -> str:
        label = self.type_filter.label
        has_search = bool(self.search_query.strip())
        has_filter = self.expense_filter.has_active_filters
        if has_search and not has_filter:
            return f"No {label} match '{self.search_query}'"
        if has_filter and not has_search:
            return f"No {label} match your filters"
        return f"No {label} match '{self.search_query}' with current filters"

    # -- aggregates --------------------------------------------------------

    @property
    def expense_total_cents(self) -> int:
        return self.expense_summary.total_cents if self.expense_summary else 0

    @property
    def income_total_cents(self) -> int:
        return self.income_summary.total_cents if self.income_summary else 0

    @property
    def net_cents(self) -> int:
        return self.income_total_cents - self.expense_total_cents

    def spending_pace(self) -> Optional[SpendingPace]:
        today = self._today()
        if not self.month.is_current(today):
            return None
        return self.expense_service.spending_pace(
            self.month.year, self.month.month, today
        )

    # -- mutations, forwarded to the owning store --------------------------

    def on_transaction_tap(self, transaction: UnifiedTransaction) -> Union[Expense, Income]:
        if transaction.type == TransactionType.expense:
            return transaction.as_expense
        return transaction.as_income

    def on_transaction_update(
        self,
        transaction: UnifiedTransaction,
        data: Union[ExpenseIn, IncomeIn],
    ) -> Union[Expense, Income]:
        if transaction.type == TransactionType.expense:
            if not isinstance(data, ExpenseIn):
                raise ValueError("Expense transactions take expense data")
            return self.expense_service.update(transaction.id, data)
        if not isinstance(data, IncomeIn):
            raise ValueError("Income transactions take income data")
        return self.income_service.update(transaction.id, data)

    def on_transaction_delete(self, transaction: UnifiedTransaction) -> None:
        # On success the store's change event already refreshed us.
        try:
            if transaction.type == TransactionType.expense:
                self.expense_service.delete(transaction.id)
            else:
                self.income_service.delete(transaction.id)
        except Exception:
            if self._attached:
                self.refresh()
            raise
