"""
SQL Formula Store

FormulaStore backed by the application's Flask-SQLAlchemy models. The
acting user is passed in explicitly; nothing here reads request globals.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, Iterable, List, Mapping, Optional

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from ...extensions import db
from ...models import Formula as FormulaModel
from ...models import FormulaIngredient as FormulaIngredientModel
from ...models import Ingredient as IngredientModel
from ...models import ManufacturingStep as ManufacturingStepModel
from ..formula_engine import (
    ConflictError, ForbiddenError, Formula, FormulaIngredient, FormulaSaveCommand,
    FormulaStoreError, FormulaType, Ingredient, ManufacturingStep, NotFoundError,
    StoreValidationError, UnauthorizedError, parse_flag,
)

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 128


def ingredient_to_snapshot(model: IngredientModel) -> Ingredient:
    return Ingredient(
        id=model.id,
        name=model.name,
        inci_name=model.inci_name,
        phase=model.phase,
        function=model.function,
        recommended_max_percentage=model.recommended_max_percentage,
        is_allergen=bool(model.is_allergen),
    )


def formula_to_snapshot(model: FormulaModel) -> Formula:
    return Formula(
        id=model.id,
        name=model.name,
        type=model.type,
        description=model.description,
        total_weight=model.total_weight,
        is_public=bool(model.is_public),
        created_at=model.created_at,
        updated_at=model.updated_at,
        version=model.version,
        ingredients=[
            FormulaIngredient(
                ingredient_id=line.ingredient_id,
                percentage=line.percentage,
                order=line.order,
                ingredient=ingredient_to_snapshot(line.ingredient) if line.ingredient else None,
            )
            for line in model.ingredients
        ],
        steps=[
            ManufacturingStep(id=step.id, order=step.order, description=step.description)
            for step in model.steps
        ],
    )


class SqlFormulaStore:
    supports_atomic_save = True

    def __init__(self, user=None, *, user_id: Optional[int] = None):
        self.user_id = user_id if user_id is not None else getattr(user, "id", None)

    # -- Reads ---------------------------------------------------------------------
    def get_formula(self, formula_id) -> Formula:
        return formula_to_snapshot(self._load(formula_id))

    def list_formulas(self) -> List[Formula]:
        """Own formulas plus every public one."""
        self._require_user()
        rows = (
            FormulaModel.query.filter(
                or_(FormulaModel.owner_id == self.user_id, FormulaModel.is_public.is_(True))
            )
            .order_by(FormulaModel.updated_at.desc(), FormulaModel.id.desc())
            .all()
        )
        return [formula_to_snapshot(row) for row in rows]

    # -- Sub-resource writes ---------------------------------------------------
    def update_formula_metadata(self, formula_id, metadata: Mapping[str, Any]) -> None:
        formula = self._load(formula_id, for_write=True)
        with self._transaction(formula_id):
            self._apply_metadata(formula, metadata)
            formula.touch()

    def update_formula_ingredients(self, formula_id, payload: Mapping[str, Any]) -> None:
        formula = self._load(formula_id, for_write=True)
        rows = self._validated_ingredients((payload or {}).get("ingredients"))
        with self._transaction(formula_id):
            self._replace_ingredients(formula, rows)
            formula.touch()

    def update_formula_steps(self, formula_id, payload: Mapping[str, Any]) -> None:
        formula = self._load(formula_id, for_write=True)
        rows = self._validated_steps((payload or {}).get("steps"))
        with self._transaction(formula_id):
            self._replace_steps(formula, rows)
            formula.touch()

    # -- Atomic save -------------------------------------------------------------
    def apply_save(self, command: FormulaSaveCommand) -> None:
        """Write metadata, ingredients and steps in one transaction."""
        formula = self._load(command.formula_id, for_write=True)
        if command.base_version is not None and formula.version != command.base_version:
            raise ConflictError(
                f"Formula {formula.id} is at version {formula.version}, "
                f"but the edit started from version {command.base_version}.",
                expected_version=command.base_version,
                actual_version=formula.version,
            )
        ingredients = self._validated_ingredients(command.ingredients)
        steps = self._validated_steps(command.steps)
        with self._transaction(command.formula_id):
            self._apply_metadata(formula, command.metadata)
            self._replace_ingredients(formula, ingredients)
            self._replace_steps(formula, steps)
            formula.touch()

    # -- Creation / duplication ----------------------------------------------------
    def create_formula(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        self._require_user()
        ingredients = self._validated_ingredients(data.get("ingredients") or [])
        steps = self._validated_steps(data.get("steps") or [])
        formula = FormulaModel(owner_id=self.user_id, version=1)
        self._apply_metadata(formula, {
            "name": data.get("name"),
            "description": data.get("description"),
            "type": data.get("type") or FormulaType.SERUM.value,
            "total_weight": data.get("total_weight", 100.0),
            "is_public": data.get("is_public", False),
        })
        with self._transaction(None):
            db.session.add(formula)
            self._replace_ingredients(formula, ingredients)
            self._replace_steps(formula, steps)
        logger.info("Formula %s created", formula.id)
        return {"id": formula.id}

    def duplicate_formula(self, formula_id, new_name: Optional[str] = None) -> Dict[str, Any]:
        original = self._load(formula_id)
        name = (new_name or "").strip() or f"{original.name} (Copy)"
        copy_model = FormulaModel(
            name=name[:MAX_NAME_LENGTH],
            type=original.type,
            description=original.description,
            total_weight=original.total_weight,
            is_public=False,
            owner_id=self.user_id,
            version=1,
        )
        with self._transaction(formula_id):
            db.session.add(copy_model)
            for line in original.ingredients:
                copy_model.ingredients.append(FormulaIngredientModel(
                    ingredient_id=line.ingredient_id,
                    percentage=line.percentage,
                    order=line.order,
                ))
            for step in original.steps:
                copy_model.steps.append(ManufacturingStepModel(
                    order=step.order,
                    description=step.description,
                ))
        logger.info("Formula %s duplicated as %s", formula_id, copy_model.id)
        return {"id": copy_model.id}

    # -- Helpers -------------------------------------------------------------------
    def _require_user(self) -> None:
        if self.user_id is None:
            raise UnauthorizedError()

    def _load(self, formula_id, *, for_write: bool = False) -> FormulaModel:
        self._require_user()
        try:
            key = int(formula_id)
        except (TypeError, ValueError):
            raise NotFoundError(f"Formula {formula_id!r} not found.")
        formula = db.session.get(FormulaModel, key)
        if formula is None:
            raise NotFoundError(f"Formula {formula_id} not found.")
        is_owner = formula.owner_id == self.user_id
        if not is_owner and not formula.is_public:
            raise NotFoundError(f"Formula {formula_id} not found.")
        if for_write and not is_owner:
            raise ForbiddenError()
        return formula

    def _transaction(self, formula_id):
        return _Transaction(formula_id)

    @staticmethod
    def _apply_metadata(formula: FormulaModel, metadata: Mapping[str, Any]) -> None:
        metadata = metadata or {}
        if "name" in metadata:
            name = (metadata.get("name") or "").strip()
            if not name:
                raise StoreValidationError("Formula name is required.")
            if len(name) > MAX_NAME_LENGTH:
                raise StoreValidationError(f"Formula name must be less than {MAX_NAME_LENGTH} characters.")
            formula.name = name
        if "type" in metadata:
            formula_type = metadata.get("type")
            if formula_type not in FormulaType.values():
                raise StoreValidationError(
                    f"Unknown formula type {formula_type!r}. Expected one of {FormulaType.values()}."
                )
            formula.type = formula_type
        if "description" in metadata:
            formula.description = metadata.get("description") or None
        if "total_weight" in metadata:
            weight = _as_number(metadata.get("total_weight"), "Total weight")
            if weight <= 0:
                raise StoreValidationError("Total weight must be greater than zero.")
            formula.total_weight = weight
        if "is_public" in metadata:
            formula.is_public = parse_flag(metadata.get("is_public"))

    @staticmethod
    def _validated_ingredients(rows: Iterable[Mapping[str, Any]] | None) -> List[Dict[str, Any]]:
        if not isinstance(rows, (list, tuple)):
            raise StoreValidationError("An ingredients list is required.")
        cleaned: List[Dict[str, Any]] = []
        seen = set()
        for position, row in enumerate(rows):
            if not isinstance(row, Mapping):
                raise StoreValidationError(f"Ingredient line {position + 1} must be an object.")
            try:
                ingredient_id = int(row.get("ingredient_id"))
            except (TypeError, ValueError):
                raise StoreValidationError(f"Ingredient line {position + 1} has no valid ingredient_id.")
            if ingredient_id in seen:
                raise StoreValidationError(f"Ingredient #{ingredient_id} is listed more than once.")
            seen.add(ingredient_id)
            percentage = _as_number(row.get("percentage"), f"Percentage for ingredient #{ingredient_id}")
            if percentage < 0 or percentage > 100:
                raise StoreValidationError(
                    f"Percentage for ingredient #{ingredient_id} must be between 0 and 100."
                )
            try:
                order = _as_order(row.get("order"), position)
            except (TypeError, ValueError):
                raise StoreValidationError(f"Ingredient #{ingredient_id} has an invalid order.")
            cleaned.append({"ingredient_id": ingredient_id, "percentage": percentage, "order": order})

        if cleaned:
            known = {
                row.id for row in IngredientModel.query.filter(
                    IngredientModel.id.in_([row["ingredient_id"] for row in cleaned])
                ).all()
            }
            missing = sorted(seen - known)
            if missing:
                raise StoreValidationError(f"Unknown ingredient ids: {missing}")
        return cleaned

    @staticmethod
    def _validated_steps(rows: Iterable[Mapping[str, Any]] | None) -> List[Dict[str, Any]]:
        if not isinstance(rows, (list, tuple)):
            raise StoreValidationError("A steps list is required.")
        cleaned: List[Dict[str, Any]] = []
        for position, row in enumerate(rows):
            if not isinstance(row, Mapping):
                raise StoreValidationError(f"Step {position + 1} must be an object.")
            try:
                order = _as_order(row.get("order"), position + 1)
            except (TypeError, ValueError):
                raise StoreValidationError(f"Step {position + 1} has an invalid order.")
            cleaned.append({"order": order, "description": str(row.get("description") or "")})
        return cleaned

    @staticmethod
    def _replace_ingredients(formula: FormulaModel, rows: List[Dict[str, Any]]) -> None:
        formula.ingredients.clear()
        # Flush the orphan deletes before re-adding ids covered by the unique constraint
        db.session.flush()
        for row in rows:
            formula.ingredients.append(FormulaIngredientModel(**row))

    @staticmethod
    def _replace_steps(formula: FormulaModel, rows: List[Dict[str, Any]]) -> None:
        formula.steps.clear()
        db.session.flush()
        for row in rows:
            formula.steps.append(ManufacturingStepModel(**row))


class _Transaction:
    """Commit on success; roll back and re-raise as a store error on DB failure."""

    def __init__(self, formula_id):
        self.formula_id = formula_id

    def __enter__(self):
        return db.session

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            try:
                db.session.commit()
            except SQLAlchemyError as commit_error:
                db.session.rollback()
                logger.error("Commit failed for formula %s: %s", self.formula_id, commit_error)
                raise FormulaStoreError("Could not save formula.") from commit_error
            return False
        db.session.rollback()
        if isinstance(exc, SQLAlchemyError):
            logger.error("Database error writing formula %s: %s", self.formula_id, exc)
            raise FormulaStoreError("Could not save formula.") from exc
        return False


def _as_number(value: Any, label: str) -> float:
    if isinstance(value, bool):
        raise StoreValidationError(f"{label} must be a number.")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise StoreValidationError(f"{label} must be a number.")
    if not math.isfinite(number):
        raise StoreValidationError(f"{label} must be a finite number.")
    return number


def _as_order(value: Any, fallback: int) -> int:
    if value is None:
        return fallback
    if isinstance(value, bool):
        raise ValueError(value)
    return int(value)
