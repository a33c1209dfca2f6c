"""Formula duplication trigger."""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from ._errors import DuplicationFailure, FormulaStoreError

logger = logging.getLogger(__name__)

DUPLICATE_FAILED_MESSAGE = "Failed to duplicate formula. Please try again."


class DuplicateFlow:
    """Asks the store for a copy and hands the new id to ``navigate``.

    No local formula state is touched; failures are reported, never retried.
    """

    def __init__(self, store, *, notifier=None, navigate: Optional[Callable[[Any], None]] = None):
        self.store = store
        self.notifier = notifier
        self.navigate = navigate

    def duplicate(self, formula_id, new_name: Optional[str] = None):
        try:
            result = self.store.duplicate_formula(formula_id, new_name)
        except FormulaStoreError as exc:
            logger.warning("Failed to duplicate formula %s: %s", formula_id, exc)
            self._report_failure()
            raise DuplicationFailure(str(exc)) from exc

        new_id = (result or {}).get("id")
        if new_id is None:
            self._report_failure()
            raise DuplicationFailure("Store did not return an id for the duplicated formula.")

        logger.info("Formula %s duplicated as %s", formula_id, new_id)
        if self.navigate:
            self.navigate(new_id)
        return new_id

    def _report_failure(self) -> None:
        if self.notifier:
            self.notifier.notify_failure(DUPLICATE_FAILED_MESSAGE)
