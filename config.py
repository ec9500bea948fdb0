import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        page_size: int,
        search_debounce_ms: int,
        month_floor_year: int,
        log_level: str,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.page_size = page_size
        self.search_debounce_ms = search_debounce_ms
        self.month_floor_year = month_floor_year
        self.log_level = log_level


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("LEDGER_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    database_url = os.getenv("LEDGER_DATABASE_URL")
    if not database_url:
        default_db = _ensure_data_dir() / "ledger.db"
        database_url = f"sqlite:///{default_db}"
    timezone = os.getenv("LEDGER_TIMEZONE", "Europe/Berlin")
    page_size = int(os.getenv("LEDGER_PAGE_SIZE", "50"))
    if page_size < 1:
        raise ValueError("LEDGER_PAGE_SIZE must be positive")
    search_debounce_ms = int(os.getenv("LEDGER_SEARCH_DEBOUNCE_MS", "300"))
    month_floor_year = int(os.getenv("LEDGER_MONTH_FLOOR_YEAR", "2020"))
    log_level = os.getenv("LEDGER_LOG_LEVEL", "INFO").upper()
    return Settings(
        database_url=database_url,
        timezone=timezone,
        page_size=page_size,
        search_debounce_ms=search_debounce_ms,
        month_floor_year=month_floor_year,
        log_level=log_level,
    )
