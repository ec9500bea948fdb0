import os
from typing import Iterator

import pytest

# Keep the module-level engine off the on-disk default database.
os.environ.setdefault("LEDGER_DATABASE_URL", "sqlite:///:memory:")

from sqlalchemy.orm import Session  # noqa: E402

from database import init_db, make_engine  # noqa: E402


@pytest.fixture
def session() -> Iterator[Session]:
    engine = make_engine("sqlite://")
    init_db(engine)
    with Session(engine) as session:
        yield session
