"""Collaborator contracts consumed by the formula engine."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Protocol, runtime_checkable

from ._types import ExportFormat, Formula


@runtime_checkable
class FormulaStore(Protocol):
    """Read/write access to formulas keyed by id.

    Implementations raise :class:`NotFoundError` / :class:`UnauthorizedError`
    (or another :class:`FormulaStoreError`) on rejection.
    """

    def get_formula(self, formula_id) -> Formula: ...

    def update_formula_metadata(self, formula_id, metadata: Mapping[str, Any]) -> None: ...

    def update_formula_ingredients(self, formula_id, payload: Mapping[str, List[Dict[str, Any]]]) -> None: ...

    def update_formula_steps(self, formula_id, payload: Mapping[str, List[Dict[str, Any]]]) -> None: ...

    def duplicate_formula(self, formula_id, new_name: Optional[str] = None) -> Dict[str, Any]: ...


@runtime_checkable
class ExportService(Protocol):
    def export_formula(self, formula_id, export_format: ExportFormat) -> None: ...


@runtime_checkable
class Notifier(Protocol):
    def notify_success(self, message: str) -> None: ...

    def notify_failure(self, message: str) -> None: ...
