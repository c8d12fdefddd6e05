from __future__ import annotations

import pytest

from stockwatch.storage.db import get_engine, init_db, make_session
from stockwatch.storage.ledger import TrackingLedger


@pytest.fixture(autouse=True)
def no_human_waits(monkeypatch):
    monkeypatch.setenv("STOCKWATCH_WAIT_MULTIPLIER", "0")


@pytest.fixture()
def ledger(tmp_path):
    engine = get_engine(str(tmp_path / "stockwatch.sqlite"))
    init_db(engine)
    try:
        yield TrackingLedger(make_session(engine))
    finally:
        engine.dispose()
