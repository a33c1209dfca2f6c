"""
Formula Edit Sessions

An EditSession owns a private deep copy ("draft") of one formula while the
user edits it. The canonical copy it was started from is kept separately and
is only replaced by a fresh fetch after a successful save.

State machine::

    CLEAN --begin--> EDITING --mark_saving--> SAVING --mark_saved--> CLEAN
                        ^                        |
                        +-----mark_save_failed---+
"""

from __future__ import annotations

import copy
import enum
import logging
from typing import Any, Optional

from ._errors import SessionStateError
from ._parsing import parse_flag, parse_or_default
from ._types import METADATA_FIELDS, Formula

logger = logging.getLogger(__name__)


class SessionState(str, enum.Enum):
    CLEAN = "clean"
    EDITING = "editing"
    SAVING = "saving"


class EditSession:
    """Mutable draft of a formula plus the canonical snapshot it diverged from."""

    def __init__(self):
        self._canonical: Optional[Formula] = None
        self._draft: Optional[Formula] = None
        self._state = SessionState.CLEAN

    # -- Introspection -----------------------------------------------------------
    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def draft(self) -> Optional[Formula]:
        return self._draft

    @property
    def canonical(self) -> Optional[Formula]:
        return self._canonical

    @property
    def is_active(self) -> bool:
        return self._state is not SessionState.CLEAN

    @property
    def is_dirty(self) -> bool:
        """True when the draft no longer matches the canonical snapshot."""
        if self._draft is None:
            return False
        return self._draft != self._canonical

    # -- Lifecycle ---------------------------------------------------------------
    def begin(self, canonical: Formula) -> Formula:
        if self._state is SessionState.SAVING:
            raise SessionStateError("Cannot start editing while a save is in progress.")
        # Both copies are private so callers can't alias either one
        self._canonical = copy.deepcopy(canonical)
        self._draft = copy.deepcopy(canonical)
        self._state = SessionState.EDITING
        logger.debug("Edit session started for formula %s", canonical.id)
        return self._draft

    def discard(self) -> None:
        if self._state is SessionState.SAVING:
            raise SessionStateError("Cannot discard edits while a save is in progress.")
        if self._draft is not None:
            logger.debug("Edit session discarded for formula %s", self._draft.id)
        self._draft = None
        self._canonical = None
        self._state = SessionState.CLEAN

    def mark_saving(self) -> Formula:
        self._require_editing()
        self._state = SessionState.SAVING
        return self._draft

    def mark_saved(self, refreshed: Formula) -> None:
        if self._state is not SessionState.SAVING:
            raise SessionStateError("No save in progress.")
        self._canonical = copy.deepcopy(refreshed)
        self._draft = None
        self._state = SessionState.CLEAN

    def mark_save_failed(self) -> None:
        if self._state is not SessionState.SAVING:
            raise SessionStateError("No save in progress.")
        self._state = SessionState.EDITING

    # -- Mutations ---------------------------------------------------------------
    def update_metadata_field(self, field: str, value: Any) -> None:
        self._require_editing()
        if field not in METADATA_FIELDS:
            raise ValueError(f"Unknown formula field: {field!r}. Expected one of {list(METADATA_FIELDS)}.")
        if field == "total_weight":
            value = parse_or_default(value)
        elif field == "is_public":
            value = parse_flag(value, default=self._draft.is_public)
        setattr(self._draft, field, value)

    def update_ingredient_percentage(self, ingredient_id, raw_value: Any) -> bool:
        """Set one line's percentage. Unparseable input becomes 0; unknown ids are ignored."""
        self._require_editing()
        entry = self._draft.find_ingredient(ingredient_id)
        if entry is None:
            return False
        entry.percentage = parse_or_default(raw_value)
        return True

    def update_step_description(self, step_id, text: str) -> bool:
        self._require_editing()
        for step in self._draft.steps:
            if step.id == step_id:
                step.description = "" if text is None else str(text)
                return True
        return False

    def move_ingredient(self, ingredient_id, new_index: int) -> bool:
        """Move one line to ``new_index`` and renumber every line's order 0..n-1."""
        self._require_editing()
        lines = sorted(self._draft.ingredients, key=lambda entry: entry.order)
        entry = next((line for line in lines if line.ingredient_id == ingredient_id), None)
        if entry is None:
            return False
        lines.remove(entry)
        new_index = max(0, min(int(new_index), len(lines)))
        lines.insert(new_index, entry)
        for position, line in enumerate(lines):
            line.order = position
        self._draft.ingredients = lines
        return True

    def _require_editing(self) -> None:
        if self._state is SessionState.SAVING:
            raise SessionStateError("Formula is being saved; edits are blocked until it finishes.")
        if self._state is not SessionState.EDITING or self._draft is None:
            raise SessionStateError("No formula is being edited.")
