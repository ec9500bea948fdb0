import logging
import threading
from datetime import datetime, timedelta, timezone
from functools import partial
from typing import Callable, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.job import Job
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger

from config import get_settings


logger = logging.getLogger(__name__)

_UNSET = object()

Dispatch = Callable[[Callable[[], None]], None]


def _call_now(fn: Callable[[], None]) -> None:
    fn()


class SearchDebouncer:
    """Delays a callback until input has been quiet for ``delay_ms``.

    Each ``submit`` replaces the pending one-shot job, so only the last
    value within the window reaches the callback. ``cancel`` drops the
    pending value and ``flush`` delivers it right away.

    When the timer expires the delivery is handed to ``dispatch``. The
    default runs it on the scheduler's worker thread; owners with a thread
    of their own pass something that queues it there. Delivery rechecks
    the pending value under the lock, so a ``cancel`` that lands first
    always wins.
    """

    def __init__(
        self,
        callback: Callable[[str], None],
        scheduler: Optional[BaseScheduler] = None,
        delay_ms: Optional[int] = None,
        dispatch: Optional[Dispatch] = None,
    ) -> None:
        settings = get_settings()
        if delay_ms is None:
            delay_ms = settings.search_debounce_ms
        self.callback = callback
        self.delay = timedelta(milliseconds=delay_ms)
        self.dispatch = dispatch or _call_now
        self._owns_scheduler = scheduler is None
        self.scheduler = scheduler or BackgroundScheduler(timezone=settings.timezone)
        self._lock = threading.RLock()
        self._job: Optional[Job] = None
        self._pending: object = _UNSET
        self._generation = 0

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._pending is not _UNSET

    def submit(self, value: str) -> None:
        with self._lock:
            self.cancel()
            if self._owns_scheduler and not self.scheduler.running:
                self.scheduler.start()
            self._pending = value
            run_at = datetime.now(timezone.utc) + self.delay
            self._job = self.scheduler.add_job(
                self._fire,
                DateTrigger(run_date=run_at),
                args=[self._generation],
                misfire_grace_time=None,
            )

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._job = None
        self.dispatch(partial(self._deliver, generation))

    def _deliver(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or not self.pending:
                return
            value = self._pending
            self._generation += 1
            self._pending = _UNSET
            logger.debug(f"search_debounce_fired: query={value!r}")
            self.callback(value)

    def cancel(self) -> None:
        with self._lock:
            self._generation += 1
            self._pending = _UNSET
            job, self._job = self._job, None
            if job is None:
                return
            try:
                job.remove()
            except JobLookupError:
                # Already ran; the generation bump makes it a no-op.
                pass

    def flush(self) -> bool:
        with self._lock:
            if not self.pending:
                return False
            value = self._pending
            self.cancel()
            self.callback(value)
            return True

    def shutdown(self) -> None:
        self.cancel()
        if self._owns_scheduler and self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Search debounce scheduler stopped")
