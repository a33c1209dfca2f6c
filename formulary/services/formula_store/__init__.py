"""FormulaStore implementations: local database and remote HTTP API."""

from .http_store import HttpFormulaStore
from .sql_store import SqlFormulaStore, formula_to_snapshot, ingredient_to_snapshot

__all__ = [
    'HttpFormulaStore',
    'SqlFormulaStore',
    'formula_to_snapshot',
    'ingredient_to_snapshot',
]
