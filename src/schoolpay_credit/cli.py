from __future__ import annotations

import argparse
import json
import logging
import os
from datetime import date
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .allocation import allocate
from .config import AppConfig, load_config
from .credit_notes import (
    academic_year_of,
    active_credit_notes,
    filter_history,
    history_totals,
    is_partially_used,
    split_applicable,
    students_in_cart,
)
from .errors import InvalidInputError
from .logging_config import configure_logging
from .models import AllocationSummary
from .snapshot import CartSnapshot, load_snapshot
from .util.dates import parse_iso_date
from .util.money import minor_units_to_money_str


logger = logging.getLogger("schoolpay_credit")


def _as_of_date(value: str) -> date:
    try:
        return parse_iso_date(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"not a date (expected YYYY-MM-DD): {value!r}") from e


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="schoolpay-credit")
    p.add_argument(
        "--env-file",
        default=".env",
        help="Path to a dotenv file (default: .env). If missing, env vars must already be set.",
    )

    sub = p.add_subparsers(dest="cmd", required=True)

    alloc = sub.add_parser("allocate", help="Preview how selected credit notes offset a cart, per student")
    alloc.add_argument("--snapshot", required=True, help="Path to a cart snapshot (.json or .yaml)")
    alloc.add_argument("--config", default="config.yaml", help="Path to YAML config (default: config.yaml)")
    alloc.add_argument("--json", action="store_true", help="Print the allocation summary as JSON")
    alloc.add_argument(
        "--as-of",
        type=_as_of_date,
        default=None,
        help="Treat notes that expired before this date (YYYY-MM-DD) as unavailable (default: today).",
    )

    history = sub.add_parser("history", help="List credit note history with in/out totals")
    history.add_argument("--snapshot", required=True, help="Path to a cart snapshot (.json or .yaml)")
    history.add_argument("--config", default="config.yaml", help="Path to YAML config (default: config.yaml)")
    history.add_argument(
        "--year",
        default=None,
        help="Academic year filter, e.g. 2024 or 2023-2024 (default: every year)",
    )
    history.add_argument(
        "--direction",
        choices=["all", "in", "out"],
        default="all",
        help="'in' = credit received and still active, 'out' = credit already used (default: all)",
    )
    history.add_argument("--student", default=None, help="Student id filter (default: every student)")
    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    env_path = Path(args.env_file)
    if env_path.exists():
        load_dotenv(env_path)

    # Default logging: can be overridden once config is loaded.
    configure_logging(level=os.getenv("LOG_LEVEL", "INFO"))

    cfg = load_config(args.config)
    configure_logging(level=cfg.logging.level, file_path=cfg.logging.file_path or None)

    try:
        snap = load_snapshot(args.snapshot)

        if args.cmd == "allocate":
            return _run_allocate(cfg, snap, as_of=args.as_of or date.today(), as_json=args.json)

        if args.cmd == "history":
            return _run_history(cfg, snap, year=args.year, direction=args.direction, student_id=args.student)
    except InvalidInputError as e:
        logger.error("Invalid input: %s", e)
        return 2

    raise AssertionError("Unhandled command")


def _fmt(cfg: AppConfig, amount_minor: int) -> str:
    return minor_units_to_money_str(
        amount_minor,
        symbol=cfg.currency.symbol,
        digits=cfg.currency.minor_unit_digits,
    )


def _run_allocate(cfg: AppConfig, snap: CartSnapshot, *, as_of: date, as_json: bool) -> int:
    notes = active_credit_notes(snap.credit_notes, as_of=as_of if cfg.credit.exclude_expired else None)
    offered_ids = {n.id for n in notes}

    selected_notes = snap.credit_note_selection(offered=notes)
    # Known but inactive/expired notes are dropped; unknown ids still reach the engine and fail there.
    inactive_ids = {n.id for n in snap.credit_notes} - offered_ids
    dropped = sorted(selected_notes & inactive_ids)
    if dropped:
        logger.warning("Ignoring selected credit notes that are not active: %s", ", ".join(dropped))
        selected_notes = selected_notes - inactive_ids

    _, non_applicable = split_applicable(notes, students_in_cart(snap.line_items))
    if non_applicable:
        logger.warning(
            "%d credit note(s) belong to students with nothing in the cart and cannot be applied: %s",
            len(non_applicable),
            ", ".join(n.id for n in non_applicable),
        )

    summary = allocate(snap.line_items, notes, snap.item_selection(), selected_notes)

    if as_json:
        payload = summary.model_dump(mode="json")
        payload["currency"] = cfg.currency.code
        print(json.dumps(payload, indent=2, sort_keys=False, ensure_ascii=False))
        return 0

    _print_summary(cfg, summary)
    return 0


def _print_summary(cfg: AppConfig, summary: AllocationSummary) -> None:
    if not summary.per_student:
        print("No items selected.")
        return

    for student_id, res in summary.per_student.items():
        print(f"Student {student_id}: total {_fmt(cfg, res.student_total_minor)}")
        for used in res.used_credits:
            if used.consumed_minor == 0:
                note = "not needed this time"
            elif is_partially_used(used):
                note = f"uses {_fmt(cfg, used.consumed_minor)} of {_fmt(cfg, used.face_amount_minor)}"
            else:
                note = f"uses {_fmt(cfg, used.consumed_minor)} (full)"
            print(f"  - {used.credit_note_id}: {note}")
        if res.credit_applied_minor:
            print(f"  credit: -{_fmt(cfg, res.credit_applied_minor)}")
        if res.remaining_credit_minor:
            print(f"  remaining credit: {_fmt(cfg, res.remaining_credit_minor)}")

    print()
    print(f"Subtotal:         {_fmt(cfg, summary.subtotal_minor)}")
    if summary.total_credit_applied_minor:
        print(f"Credit applied:   -{_fmt(cfg, summary.total_credit_applied_minor)}")
    if summary.total_remaining_credit_minor:
        print(f"Remaining credit: {_fmt(cfg, summary.total_remaining_credit_minor)}")
    print(f"Total due:        {_fmt(cfg, summary.final_total_minor)}")


def _run_history(
    cfg: AppConfig,
    snap: CartSnapshot,
    *,
    year: Optional[str],
    direction: str,
    student_id: Optional[str],
) -> int:
    notes = filter_history(snap.credit_notes, year=year, direction=direction, student_id=student_id)
    notes = sorted(notes, key=lambda n: n.issued_at, reverse=True)

    if not notes:
        print("No credit notes found.")
        return 0

    for n in notes:
        detail = f"\t{n.details}" if n.details else ""
        print(
            f"{n.issued_at.date().isoformat()}\t{n.id}\tstudent={n.student_id}\t"
            f"{n.status.value}\t{academic_year_of(n)}\t{_fmt(cfg, n.amount_minor)}{detail}"
        )

    total_in, total_out = history_totals(notes)
    print()
    print(f"Total in:  {_fmt(cfg, total_in)}")
    print(f"Total out: {_fmt(cfg, total_out)}")
    return 0
