"""Models package - imports all models for the application"""
from ..extensions import db

from .user import User
from .ingredient import Ingredient
from .formula import Formula, FormulaIngredient, ManufacturingStep

__all__ = [
    'db',
    'User',
    'Ingredient',
    'Formula',
    'FormulaIngredient',
    'ManufacturingStep',
]
