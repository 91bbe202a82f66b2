from __future__ import annotations

import json
from pathlib import Path

import pytest

from schoolpay_credit.cli import main


SNAPSHOT = {
    "line_items": [
        {"id": "INV-2024-001", "student_id": "1", "price_minor": 1550000, "kind": "invoice"},
        {"id": "mandatory-001", "student_id": "1", "price_minor": 5000, "is_mandatory": True},
        {"id": "mandatory-002", "student_id": "2", "price_minor": 4000, "is_mandatory": True},
    ],
    "credit_notes": [
        {
            "id": "CN-2024-001",
            "student_id": "1",
            "amount_minor": 250000,
            "issued_at": "2024-11-15T10:30:00",
            "expiry_date": "2025-12-31",
        },
        {
            "id": "CN-2024-002",
            "student_id": "2",
            "amount_minor": 180000,
            "issued_at": "2024-11-10T14:20:00",
            "expiry_date": "2025-12-31",
        },
        {
            "id": "CN-2024-003",
            "student_id": "1",
            "amount_minor": 50000,
            "issued_at": "2024-10-25T09:15:00",
            "expiry_date": "2025-06-30",
        },
        {
            "id": "CN-2024-004",
            "student_id": "3",
            "amount_minor": 320000,
            "issued_at": "2024-11-01T11:45:00",
        },
        {
            "id": "CN-2023-010",
            "student_id": "1",
            "amount_minor": 120000,
            "issued_at": "2023-08-20T08:00:00",
            "status": "used",
            "academic_year": "2023-2024",
        },
    ],
}


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch) -> None:
    for name in (
        "SCHOOLPAY_CURRENCY",
        "SCHOOLPAY_CURRENCY_SYMBOL",
        "SCHOOLPAY_MINOR_UNIT_DIGITS",
        "SCHOOLPAY_EXCLUDE_EXPIRED",
        "LOG_LEVEL",
        "LOG_FILE",
    ):
        monkeypatch.delenv(name, raising=False)


def _snapshot(tmp_path: Path, data: dict = SNAPSHOT) -> Path:
    p = tmp_path / "cart.json"
    p.write_text(json.dumps(data), encoding="utf-8")
    return p


def _run(tmp_path: Path, *args: str) -> int:
    return main(["--env-file", str(tmp_path / ".env"), *args])


def _common(tmp_path: Path) -> list[str]:
    return ["--snapshot", str(_snapshot(tmp_path)), "--config", str(tmp_path / "missing.yaml")]


def test_allocate_json(tmp_path: Path, capsys) -> None:
    rc = _run(tmp_path, "allocate", *_common(tmp_path), "--as-of", "2024-12-01", "--json")
    assert rc == 0

    payload = json.loads(capsys.readouterr().out)
    assert payload["currency"] == "THB"
    assert payload["subtotal_minor"] == 1559000
    assert payload["total_credit_applied_minor"] == 304000
    assert payload["total_remaining_credit_minor"] == 176000
    assert payload["final_total_minor"] == 1255000
    assert list(payload["per_student"]) == ["1", "2"]
    emma = payload["per_student"]["1"]
    assert [u["credit_note_id"] for u in emma["used_credits"]] == ["CN-2024-003", "CN-2024-001"]


def test_allocate_skips_expired_notes(tmp_path: Path, capsys) -> None:
    rc = _run(tmp_path, "allocate", *_common(tmp_path), "--as-of", "2025-07-01", "--json")
    assert rc == 0

    payload = json.loads(capsys.readouterr().out)
    emma = payload["per_student"]["1"]
    assert [u["credit_note_id"] for u in emma["used_credits"]] == ["CN-2024-001"]
    assert payload["total_credit_applied_minor"] == 250000 + 4000


def test_allocate_expired_kept_when_config_says_so(tmp_path: Path, capsys, monkeypatch) -> None:
    monkeypatch.setenv("SCHOOLPAY_EXCLUDE_EXPIRED", "false")
    rc = _run(tmp_path, "allocate", *_common(tmp_path), "--as-of", "2025-07-01", "--json")
    assert rc == 0
    assert json.loads(capsys.readouterr().out)["total_credit_applied_minor"] == 304000


def test_allocate_text_output(tmp_path: Path, capsys) -> None:
    rc = _run(tmp_path, "allocate", *_common(tmp_path), "--as-of", "2024-12-01")
    assert rc == 0

    out = capsys.readouterr().out
    assert "Student 1: total ฿15,550.00" in out
    assert "CN-2024-003: uses ฿500.00 (full)" in out
    assert "CN-2024-002: uses ฿40.00 of ฿1,800.00" in out
    assert "Remaining credit: ฿1,760.00" in out
    assert "Total due:        ฿12,550.00" in out


def test_allocate_with_nothing_selected(tmp_path: Path, capsys) -> None:
    data = dict(SNAPSHOT, selected_item_ids=[])
    rc = _run(
        tmp_path,
        "allocate",
        "--snapshot",
        str(_snapshot(tmp_path, data)),
        "--config",
        str(tmp_path / "missing.yaml"),
        "--as-of",
        "2024-12-01",
    )
    assert rc == 0
    assert "No items selected." in capsys.readouterr().out


def test_allocate_rejects_unknown_selection(tmp_path: Path, capsys) -> None:
    data = dict(SNAPSHOT, selected_item_ids=["INV-2024-001", "ghost"])
    rc = _run(
        tmp_path,
        "allocate",
        "--snapshot",
        str(_snapshot(tmp_path, data)),
        "--config",
        str(tmp_path / "missing.yaml"),
    )
    assert rc == 2
    assert capsys.readouterr().out == ""


def test_allocate_missing_snapshot_returns_error(tmp_path: Path) -> None:
    rc = _run(
        tmp_path,
        "allocate",
        "--snapshot",
        str(tmp_path / "nope.json"),
        "--config",
        str(tmp_path / "missing.yaml"),
    )
    assert rc == 2


def test_allocate_uses_configured_currency(tmp_path: Path, capsys) -> None:
    cfg = tmp_path / "cfg.yaml"
    cfg.write_text("currency:\n  code: USD\n  symbol: '$'\n", encoding="utf-8")
    rc = _run(
        tmp_path,
        "allocate",
        "--snapshot",
        str(_snapshot(tmp_path)),
        "--config",
        str(cfg),
        "--as-of",
        "2024-12-01",
    )
    assert rc == 0
    assert "Total due:        $12,550.00" in capsys.readouterr().out


def test_history_out(tmp_path: Path, capsys) -> None:
    rc = _run(tmp_path, "history", *_common(tmp_path), "--direction", "out")
    assert rc == 0

    out = capsys.readouterr().out
    assert "CN-2023-010" in out
    assert "CN-2024-001" not in out
    assert "Total in:  ฿0.00" in out
    assert "Total out: ฿1,200.00" in out


def test_history_filters_by_student_and_year(tmp_path: Path, capsys) -> None:
    rc = _run(tmp_path, "history", *_common(tmp_path), "--student", "1", "--year", "2024")
    assert rc == 0

    lines = [ln for ln in capsys.readouterr().out.splitlines() if ln.startswith("20")]
    # newest first
    assert [ln.split("\t")[1] for ln in lines] == ["CN-2024-001", "CN-2024-003"]


def test_history_no_matches(tmp_path: Path, capsys) -> None:
    rc = _run(tmp_path, "history", *_common(tmp_path), "--student", "99")
    assert rc == 0
    assert "No credit notes found." in capsys.readouterr().out


def test_allocate_rejects_malformed_as_of(tmp_path: Path, capsys) -> None:
    with pytest.raises(SystemExit) as exc:
        _run(tmp_path, "allocate", *_common(tmp_path), "--as-of", "not-a-date")

    assert exc.value.code == 2
    assert "not a date" in capsys.readouterr().err


def test_history_student_filter_is_exact(tmp_path: Path, capsys) -> None:
    data = dict(SNAPSHOT)
    data["credit_notes"] = SNAPSHOT["credit_notes"] + [
        {"id": "CN-ALL", "student_id": "all", "amount_minor": 700, "issued_at": "2024-02-01T08:00:00"}
    ]
    rc = _run(
        tmp_path,
        "history",
        "--snapshot",
        str(_snapshot(tmp_path, data)),
        "--config",
        str(tmp_path / "missing.yaml"),
        "--student",
        "all",
    )
    assert rc == 0

    lines = [ln for ln in capsys.readouterr().out.splitlines() if ln.startswith("20")]
    assert [ln.split("\t")[1] for ln in lines] == ["CN-ALL"]
