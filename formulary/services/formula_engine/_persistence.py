"""
Formula Persistence

Commits an EditSession's draft to a FormulaStore and refreshes the canonical
formula afterwards.

Stores that advertise ``supports_atomic_save`` receive the whole draft as a
single :class:`FormulaSaveCommand`. Other stores get the sub-resource
protocol: metadata, then the full ingredient list, then the full step list,
issued one after another and abandoned at the first failure. In that mode an
abort after the metadata call leaves the remote side partially updated.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ._errors import FormulaStoreError, PersistenceFailure
from ._session import EditSession
from ._types import Formula

logger = logging.getLogger(__name__)

STAGE_METADATA = "metadata"
STAGE_INGREDIENTS = "ingredients"
STAGE_STEPS = "steps"
STAGE_SAVE = "save"
STAGE_REFRESH = "refresh"


@dataclass(frozen=True)
class FormulaSaveCommand:
    """Everything one save writes, reduced to the store's payload shapes."""

    formula_id: Any
    metadata: Dict[str, Any]
    ingredients: List[Dict[str, Any]] = field(default_factory=list)
    steps: List[Dict[str, Any]] = field(default_factory=list)
    base_version: Optional[int] = None

    @classmethod
    def from_draft(cls, draft: Formula, base_version: Optional[int] = None) -> "FormulaSaveCommand":
        return cls(
            formula_id=draft.id,
            metadata={
                "name": draft.name,
                "description": draft.description,
                "type": draft.type,
                "is_public": draft.is_public,
                "total_weight": draft.total_weight,
            },
            ingredients=[
                {
                    "ingredient_id": entry.ingredient_id,
                    "percentage": entry.percentage,
                    "order": entry.order or 0,
                }
                for entry in draft.ingredients
            ],
            steps=[
                {"description": step.description, "order": step.order}
                for step in draft.steps
            ],
            base_version=base_version,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metadata": dict(self.metadata),
            "ingredients": [dict(row) for row in self.ingredients],
            "steps": [dict(row) for row in self.steps],
            "version": self.base_version,
        }


class PersistenceCoordinator:
    """Sequences the writes for one save and refreshes the canonical formula."""

    def __init__(self, store):
        self.store = store

    @property
    def atomic(self) -> bool:
        return bool(getattr(self.store, "supports_atomic_save", False))

    def save(self, session: EditSession) -> Formula:
        """Persist ``session``'s draft.

        On success the session returns to CLEAN holding the refreshed formula,
        which is also returned. On failure the session goes back to EDITING with
        its draft untouched and :class:`PersistenceFailure` is raised.
        """
        draft = session.mark_saving()
        base_version = session.canonical.version if session.canonical else None
        command = FormulaSaveCommand.from_draft(draft, base_version=base_version)

        try:
            if self.atomic:
                self._run_stage(STAGE_SAVE, self.store.apply_save, command)
            else:
                self._run_stage(STAGE_METADATA, self.store.update_formula_metadata,
                                command.formula_id, command.metadata)
                self._run_stage(STAGE_INGREDIENTS, self.store.update_formula_ingredients,
                                command.formula_id, {"ingredients": command.ingredients})
                self._run_stage(STAGE_STEPS, self.store.update_formula_steps,
                                command.formula_id, {"steps": command.steps})
            refreshed = self._run_stage(STAGE_REFRESH, self.store.get_formula, command.formula_id)
        except PersistenceFailure as failure:
            session.mark_save_failed()
            logger.warning(
                "Save of formula %s aborted at %s stage: %s",
                command.formula_id, failure.stage, failure.__cause__,
            )
            raise
        except Exception:
            # Unexpected errors still release the session back to editing
            session.mark_save_failed()
            raise

        session.mark_saved(refreshed)
        logger.info("Formula %s saved", command.formula_id)
        return refreshed

    @staticmethod
    def _run_stage(stage: str, operation, *args):
        try:
            return operation(*args)
        except FormulaStoreError as exc:
            raise PersistenceFailure(stage, f"Failed to save changes ({stage}): {exc}") from exc
