"""
Formula Workspace

Page-level controller for one formula: loads the canonical copy, runs the
edit session, derives composition and batch summaries, and triggers saves,
duplication and exports. Every summary is recomputed on call from whichever
snapshot is current, so nothing is cached between calls.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from ._composition import composition_summary
from ._duplicate import DuplicateFlow
from ._errors import PersistenceFailure
from ._export_dispatch import ExportDispatcher, ExportJob
from ._persistence import PersistenceCoordinator
from ._scaling import BatchView, scale_batch
from ._session import EditSession, SessionState
from ._types import Formula

logger = logging.getLogger(__name__)


class FormulaWorkspace:
    def __init__(self, store, *, export_service=None, notifier=None, navigate=None):
        self.store = store
        self.notifier = notifier
        self.session = EditSession()
        self.coordinator = PersistenceCoordinator(store)
        self.duplicates = DuplicateFlow(store, notifier=notifier, navigate=navigate)
        self.exports = ExportDispatcher(export_service or store, notifier=notifier)
        self.formula: Optional[Formula] = None

    def load(self, formula_id) -> Formula:
        if self.session.is_active:
            self.session.discard()
        self.formula = self.store.get_formula(formula_id)
        return self.formula

    @property
    def current(self) -> Formula:
        """The draft while editing, otherwise the canonical formula."""
        if self.session.state is not SessionState.CLEAN and self.session.draft is not None:
            return self.session.draft
        if self.formula is None:
            raise LookupError("No formula loaded.")
        return self.formula

    def begin_edit(self) -> Formula:
        if self.formula is None:
            raise LookupError("No formula loaded.")
        return self.session.begin(self.formula)

    def cancel_edit(self) -> None:
        self.session.discard()

    def save(self) -> Formula:
        try:
            self.formula = self.coordinator.save(self.session)
        except PersistenceFailure as failure:
            if self.notifier:
                self.notifier.notify_failure(str(failure))
            raise
        if self.notifier:
            self.notifier.notify_success("Formula saved.")
        return self.formula

    def composition(self) -> Dict[str, Any]:
        return composition_summary(self.current)

    def batch(self, requested_batch_size, unit: str = "g") -> BatchView:
        # Scaling always reads the persisted formula, not the in-progress draft
        if self.formula is None:
            raise LookupError("No formula loaded.")
        return scale_batch(self.formula, requested_batch_size, unit)

    def duplicate(self, new_name: Optional[str] = None):
        return self.duplicates.duplicate(self.current.id, new_name)

    def export(self, export_format) -> ExportJob:
        return self.exports.export(self.current.id, export_format)
