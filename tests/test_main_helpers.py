from __future__ import annotations

import json

import pytest

pytest.importorskip("uvicorn")

from stockwatch.main import _is_admin_command, main, parse_args


def test_parse_args_defaults_to_scheduler() -> None:
    args = parse_args([])

    assert args.once is False
    assert _is_admin_command(args) is False


def test_parse_args_pairs() -> None:
    args = parse_args(["--select", "42", "milk-1l"])
    assert args.select == ["42", "milk-1l"]
    assert _is_admin_command(args) is True

    args = parse_args(["--check", "https://shop.example/product/milk-1l", "--location", "560001"])
    assert args.check.endswith("milk-1l")
    assert args.location == "560001"


def test_location_requires_check() -> None:
    with pytest.raises(SystemExit):
        parse_args(["--location", "560001"])


def test_missing_token_exits_with_status_one(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("TELEGRAM_BOT_TOKEN", raising=False)
    monkeypatch.setenv("STOCKWATCH_DB", str(tmp_path / "watch.sqlite"))

    with pytest.raises(SystemExit) as excinfo:
        main(["--once"])

    assert excinfo.value.code == 1
    assert not (tmp_path / "watch.sqlite").exists()


def test_admin_commands_manage_tracking(tmp_path, monkeypatch, capsys) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("TELEGRAM_BOT_TOKEN", raising=False)
    monkeypatch.setenv("STOCKWATCH_DB", str(tmp_path / "watch.sqlite"))
    catalog = tmp_path / "catalog"
    catalog.mkdir()
    (catalog / "products.yml").write_text(
        "products:\n"
        "  - id: milk-1l\n"
        "    name: High Protein Milk 1L\n"
        "    url: https://shop.example/product/milk-1l\n"
        "    category: Milk\n",
        encoding="utf-8",
    )

    main(["--register", "42"])
    main(["--select", "42", "milk-1l"])
    main(["--track", "42", "milk-1l"])
    capsys.readouterr()
    main(["--stats"])

    stats = json.loads(capsys.readouterr().out)
    assert stats == {"total_subscribers": 1, "active_tracking": 1, "total_tracking": 1}

    main(["--mute", "42", "milk-1l"])
    assert "Alerts muted for milk-1l" in capsys.readouterr().out
    main(["--unmute", "42", "milk-1l"])
    assert "Alerts enabled for milk-1l" in capsys.readouterr().out

    with pytest.raises(SystemExit) as excinfo:
        main(["--untrack", "42", "unknown-item"])
    assert excinfo.value.code == 1
