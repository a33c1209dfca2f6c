"""
Formula Engine Package

Composition checks, batch scaling, edit sessions and save coordination for
cosmetic formulas.

Callers import from this module only; the underscore modules are internal.
"""

from ._composition import (
    BALANCE_TOLERANCE, UNCATEGORIZED_PHASE, BalanceStatus, balance_message,
    balance_status, composition_summary, composition_warnings, group_by_phase,
    total_percentage,
)
from ._duplicate import DUPLICATE_FAILED_MESSAGE, DuplicateFlow
from ._export_dispatch import (
    EXPORT_FAILED_MESSAGE, ExportDispatcher, ExportJob, ExportJobStatus,
)
from ._errors import (
    ConflictError, DuplicationFailure, ForbiddenError, FormulaEngineError,
    FormulaStoreError, InvalidBatchSizeError, NotFoundError, PersistenceFailure,
    SessionStateError, StoreValidationError, UnauthorizedError, ValidationWarning,
)
from ._parsing import parse_flag, parse_or_default
from ._persistence import FormulaSaveCommand, PersistenceCoordinator
from ._scaling import (
    BATCH_UNITS, COMMON_BATCH_SIZES, BatchView, ScaledLine, round_amount, scale_batch,
    scale_factor, scaled_amount, to_grams,
)
from ._session import EditSession, SessionState
from ._store import ExportService, FormulaStore, Notifier
from ._types import (
    METADATA_FIELDS, ExportFormat, Formula, FormulaIngredient, FormulaType,
    Ingredient, ManufacturingStep,
)
from ._workspace import FormulaWorkspace

__all__ = [
    'BALANCE_TOLERANCE', 'UNCATEGORIZED_PHASE', 'BalanceStatus', 'balance_message',
    'balance_status', 'composition_summary', 'composition_warnings', 'group_by_phase',
    'total_percentage',
    'DUPLICATE_FAILED_MESSAGE', 'DuplicateFlow',
    'EXPORT_FAILED_MESSAGE', 'ExportDispatcher', 'ExportJob', 'ExportJobStatus',
    'ConflictError', 'DuplicationFailure', 'ForbiddenError', 'FormulaEngineError',
    'FormulaStoreError', 'InvalidBatchSizeError', 'NotFoundError', 'PersistenceFailure',
    'SessionStateError', 'StoreValidationError', 'UnauthorizedError', 'ValidationWarning',
    'parse_flag', 'parse_or_default',
    'FormulaSaveCommand', 'PersistenceCoordinator',
    'BATCH_UNITS', 'COMMON_BATCH_SIZES', 'BatchView', 'ScaledLine', 'round_amount', 'scale_batch',
    'scale_factor', 'scaled_amount', 'to_grams',
    'EditSession', 'SessionState',
    'ExportService', 'FormulaStore', 'Notifier',
    'METADATA_FIELDS', 'ExportFormat', 'Formula', 'FormulaIngredient', 'FormulaType',
    'Ingredient', 'ManufacturingStep',
    'FormulaWorkspace',
]
