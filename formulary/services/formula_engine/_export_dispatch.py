"""Fire-and-forget export triggering with an explicit job status."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Optional

from ._errors import FormulaStoreError
from ._types import ExportFormat

logger = logging.getLogger(__name__)

EXPORT_FAILED_MESSAGE = "Failed to export formula. Please try again."


class ExportJobStatus(str, enum.Enum):
    SUBMITTED = "submitted"
    REJECTED = "rejected"
    # Completion of a submitted export is never reported back
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ExportJob:
    formula_id: Any
    export_format: Any
    status: ExportJobStatus
    error: Optional[str] = None

    @property
    def outcome(self) -> ExportJobStatus:
        """What is known about the produced artifact."""
        if self.status is ExportJobStatus.REJECTED:
            return ExportJobStatus.REJECTED
        return ExportJobStatus.UNKNOWN


class ExportDispatcher:
    """Initiates an export and reports success once the request is accepted.

    Whether an artifact was actually produced is not observable here.
    """

    def __init__(self, export_service, *, notifier=None):
        self.export_service = export_service
        self.notifier = notifier

    def export(self, formula_id, export_format) -> ExportJob:
        try:
            fmt = ExportFormat.parse(export_format)
        except ValueError as exc:
            self._report_failure()
            return ExportJob(formula_id, export_format, ExportJobStatus.REJECTED, str(exc))

        try:
            self.export_service.export_formula(formula_id, fmt)
        except FormulaStoreError as exc:
            logger.warning("Failed to export formula %s as %s: %s", formula_id, fmt.value, exc)
            self._report_failure()
            return ExportJob(formula_id, fmt, ExportJobStatus.REJECTED, str(exc))

        if self.notifier:
            self.notifier.notify_success(f"Exporting formula as {fmt.value.upper()}...")
        return ExportJob(formula_id, fmt, ExportJobStatus.SUBMITTED)

    def _report_failure(self) -> None:
        if self.notifier:
            self.notifier.notify_failure(EXPORT_FAILED_MESSAGE)
