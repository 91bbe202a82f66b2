from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional, Sequence, Union

import yaml
from pydantic import BaseModel, Field, ValidationError

from .credit_notes import default_credit_note_selection
from .errors import InvalidInputError
from .models import CreditNote, LineItem


logger = logging.getLogger(__name__)


class CartSnapshot(BaseModel):
    """
    Everything the cart hands to the allocation engine at one point in time.

    A missing selection means "the cart's default": every item selected, and every
    active credit note of a student in the cart selected.
    """

    line_items: list[LineItem] = Field(default_factory=list)
    credit_notes: list[CreditNote] = Field(default_factory=list)
    selected_item_ids: Optional[list[str]] = None
    selected_credit_note_ids: Optional[list[str]] = None

    def item_selection(self) -> frozenset[str]:
        if self.selected_item_ids is None:
            return frozenset(i.id for i in self.line_items)
        return frozenset(str(x) for x in self.selected_item_ids)

    def credit_note_selection(self, offered: Optional[Sequence[CreditNote]] = None) -> frozenset[str]:
        if self.selected_credit_note_ids is None:
            notes = self.credit_notes if offered is None else offered
            return default_credit_note_selection(notes, self.line_items)
        return frozenset(str(x) for x in self.selected_credit_note_ids)


def load_snapshot(path: Union[str, Path]) -> CartSnapshot:
    """
    Load a cart snapshot from ``.json`` or YAML.
    Unreadable or malformed files raise ``InvalidInputError`` naming the path.
    """
    p = Path(path)
    if not p.exists():
        raise InvalidInputError(f"Snapshot not found: {p}")

    text = p.read_text(encoding="utf-8")
    try:
        if p.suffix.lower() == ".json":
            raw = json.loads(text)
        else:
            raw = yaml.safe_load(text) or {}
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise InvalidInputError(f"Snapshot {p} is not valid {p.suffix.lstrip('.') or 'YAML'}: {e}") from e

    if not isinstance(raw, dict):
        raise InvalidInputError(f"Snapshot {p} must contain a mapping at the top level")

    try:
        snap = CartSnapshot.model_validate(raw)
    except ValidationError as e:
        raise InvalidInputError(f"Snapshot {p} failed validation: {e}") from e

    logger.debug(
        "Loaded snapshot %s (items=%d credit_notes=%d)", p, len(snap.line_items), len(snap.credit_notes)
    )
    return snap


def save_snapshot(path: Union[str, Path], snapshot: CartSnapshot) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    data = snapshot.model_dump(mode="json")
    p.write_text(json.dumps(data, indent=2, sort_keys=False, ensure_ascii=False), encoding="utf-8")
