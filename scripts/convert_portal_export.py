#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path


def _ensure_src_on_path() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    src = repo_root / "src"
    if str(src) not in sys.path:
        sys.path.insert(0, str(src))


def _read_json(path: str) -> dict:
    p = Path(path)
    if not p.exists():
        raise SystemExit(f"File not found: {p}")
    data = json.loads(p.read_text(encoding="utf-8", errors="replace"))
    if not isinstance(data, dict):
        raise SystemExit(f"Expected a JSON object in {p}")
    return data


def main(argv: list[str] | None = None) -> int:
    _ensure_src_on_path()

    from schoolpay_credit.snapshot import CartSnapshot, save_snapshot
    from schoolpay_credit.util.money import money_to_minor_units

    p = argparse.ArgumentParser(
        prog="convert_portal_export",
        description=(
            "Convert a parent-portal export (cart items + credit notes with decimal amounts)\n"
            "into a cart snapshot with integer minor units, ready for `schoolpay-credit allocate`."
        ),
    )
    p.add_argument("--file", required=True, help="Path to the portal export JSON")
    p.add_argument("--digits", type=int, default=2, help="Minor unit digits of the currency (default: 2)")
    p.add_argument("--out", default="", help="Optional output JSON path (otherwise prints to stdout)")
    args = p.parse_args(argv)

    raw = _read_json(args.file)

    items = []
    for item in raw.get("items") or []:
        items.append(
            {
                "id": item["id"],
                "student_id": item.get("studentId") or item.get("student_id"),
                "price_minor": money_to_minor_units(item["price"], digits=args.digits),
                "name": item.get("name") or "",
                "kind": item.get("type") or "course",
                "is_mandatory": bool(item.get("isMandatory", False)),
            }
        )

    notes = []
    for note in raw.get("creditNotes") or raw.get("credit_notes") or []:
        notes.append(
            {
                "id": note["id"],
                "student_id": note.get("student_id") or note.get("studentId"),
                "amount_minor": money_to_minor_units(note["amount"], digits=args.digits),
                "issued_at": note.get("timestamp") or note.get("issued_at"),
                "status": note.get("status") or "active",
                "details": note.get("details") or "",
                "expiry_date": note.get("expiry_date") or None,
                "used_at": note.get("used_at") or None,
                "used_for": note.get("used_for") or "",
                "academic_year": note.get("academic_year") or "",
            }
        )

    snap = CartSnapshot.model_validate(
        {
            "line_items": items,
            "credit_notes": notes,
            "selected_item_ids": raw.get("selectedItems"),
            "selected_credit_note_ids": raw.get("selectedCreditNotes"),
        }
    )

    if args.out:
        save_snapshot(args.out, snap)
    else:
        print(json.dumps(snap.model_dump(mode="json"), indent=2, sort_keys=False, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
