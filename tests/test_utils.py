from __future__ import annotations

import logging

from sqlalchemy import text

from stockwatch.logging_config import get_logger, log_file_path
from stockwatch.normalizers import clean_text, normalize_location_code, product_id_from_url
from stockwatch.playwright_env import apply_wait_policy, context_kwargs, navigation_attempts
from stockwatch.storage.db import get_engine, init_db, make_session
from stockwatch.storage.ledger import TrackingLedger


def test_clean_text_collapses_whitespace() -> None:
    assert clean_text("  Amul\n  High   Protein ") == "Amul High Protein"
    assert clean_text("   ") is None
    assert clean_text(None) is None


def test_normalize_location_code_strips_spaces() -> None:
    assert normalize_location_code(" 560 001 ") == "560001"
    assert normalize_location_code("") is None


def test_product_id_from_url_uses_last_slug() -> None:
    assert product_id_from_url("https://shop.amul.com/en/product/amul-high-protein-milk-1l/") == "amul-high-protein-milk-1l"
    assert product_id_from_url("https://shop.amul.com/en/product/paneer?utm=x") == "paneer"


def test_wait_policy_multiplier(monkeypatch) -> None:
    monkeypatch.setenv("STOCKWATCH_WAIT_MULTIPLIER", "0.5")
    assert apply_wait_policy(1000, 2000) == (500, 1000)

    monkeypatch.setenv("STOCKWATCH_WAIT_MULTIPLIER", "0")
    assert apply_wait_policy(1000, 2000) == (0, 0)


def test_navigation_attempts_from_env(monkeypatch) -> None:
    monkeypatch.setenv("STOCKWATCH_NAV_ATTEMPTS", "4")
    assert navigation_attempts() == 4


def test_context_kwargs_isolated_session() -> None:
    kwargs = context_kwargs("TestAgent/1.0")

    assert kwargs["user_agent"] == "TestAgent/1.0"
    assert kwargs["storage_state"] is None


def test_logger_writes_to_configured_directory(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("STOCKWATCH_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("LOG_LEVEL", "debug")

    logger = get_logger("stockwatch.tests.logfile")
    logger.debug("tick finished")
    for handler in logger.handlers:
        handler.flush()

    assert log_file_path() == str(tmp_path / "logs" / "stockwatch.log")
    assert "tick finished" in (tmp_path / "logs" / "stockwatch.log").read_text(encoding="utf-8")
    assert logger.propagate is False
    assert logging.getLogger("apscheduler.executors").level == logging.WARNING


def test_engine_creates_parent_directory_and_uses_wal(tmp_path) -> None:
    path = tmp_path / "data" / "nested" / "watch.sqlite"
    engine = get_engine(str(path))
    try:
        init_db(engine)
        with engine.connect() as connection:
            mode = connection.execute(text("PRAGMA journal_mode")).scalar()
    finally:
        engine.dispose()

    assert path.exists()
    assert mode == "wal"


def test_memory_engine_is_shared_across_sessions() -> None:
    engine = get_engine(":memory:")
    init_db(engine)
    ledger = TrackingLedger(make_session(engine))

    ledger.register_subscriber("42")

    assert ledger.get_subscriber("42") is not None
    engine.dispose()
