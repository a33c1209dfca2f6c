"""
Formula Engine Value Types

Plain snapshots of formulas as the engine sees them, independent of the
storage layer. Stores convert their own representation to and from these.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from ...utils.timezone_utils import TimezoneUtils


class FormulaType(str, enum.Enum):
    SERUM = "Serum"
    MOISTURIZER = "Moisturizer"
    CLEANSER = "Cleanser"
    TONER = "Toner"
    MASK = "Mask"
    ESSENCE = "Essence"

    @classmethod
    def values(cls) -> List[str]:
        return [member.value for member in cls]


class ExportFormat(str, enum.Enum):
    """Export targets, valued by their wire names."""

    DOCUMENT = "pdf"
    SPREADSHEET = "csv"
    STRUCTURED_DATA = "json"
    PRINT_FRIENDLY = "print"

    @classmethod
    def parse(cls, raw: "ExportFormat | str") -> "ExportFormat":
        if isinstance(raw, cls):
            return raw
        candidate = str(raw or "").strip().lower()
        for member in cls:
            if candidate in (member.value, member.name.lower(), member.name.lower().replace("_", "-")):
                return member
        raise ValueError(f"Unsupported export format: {raw!r}")


METADATA_FIELDS = ("name", "description", "type", "total_weight", "is_public")


@dataclass
class Ingredient:
    id: int
    name: str
    inci_name: Optional[str] = None
    phase: Optional[str] = None
    function: Optional[str] = None
    recommended_max_percentage: Optional[float] = None
    is_allergen: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "inci_name": self.inci_name,
            "phase": self.phase,
            "function": self.function,
            "recommended_max_percentage": self.recommended_max_percentage,
            "is_allergen": self.is_allergen,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Ingredient":
        return cls(
            id=data.get("id"),
            name=data.get("name") or "",
            inci_name=data.get("inci_name"),
            phase=data.get("phase"),
            function=data.get("function"),
            recommended_max_percentage=data.get("recommended_max_percentage"),
            is_allergen=bool(data.get("is_allergen")),
        )


@dataclass
class FormulaIngredient:
    ingredient_id: int
    # Kept loosely typed: live edits may hold anything until parsed
    percentage: Any = 0.0
    order: int = 0
    ingredient: Optional[Ingredient] = None

    @property
    def phase(self) -> Optional[str]:
        return self.ingredient.phase if self.ingredient else None

    @property
    def name(self) -> str:
        if self.ingredient and self.ingredient.name:
            return self.ingredient.name
        return f"Ingredient #{self.ingredient_id}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ingredient_id": self.ingredient_id,
            "percentage": self.percentage,
            "order": self.order,
            "ingredient": self.ingredient.to_dict() if self.ingredient else None,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FormulaIngredient":
        ingredient = data.get("ingredient")
        return cls(
            ingredient_id=data.get("ingredient_id"),
            percentage=data.get("percentage", 0.0),
            order=data.get("order") or 0,
            ingredient=Ingredient.from_dict(ingredient) if ingredient else None,
        )


@dataclass
class ManufacturingStep:
    id: int
    order: int
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "order": self.order, "description": self.description}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ManufacturingStep":
        return cls(
            id=data.get("id"),
            order=data.get("order") or 0,
            description=data.get("description") or "",
        )


@dataclass
class Formula:
    id: Any
    name: str
    type: str = FormulaType.SERUM.value
    description: Optional[str] = None
    total_weight: float = 100.0
    is_public: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    ingredients: List[FormulaIngredient] = field(default_factory=list)
    steps: List[ManufacturingStep] = field(default_factory=list)
    version: Optional[int] = None

    def sorted_steps(self) -> List[ManufacturingStep]:
        """Steps in display order; ordering is never edited by the engine."""
        return sorted(self.steps, key=lambda step: (step.order, step.id or 0))

    def find_ingredient(self, ingredient_id) -> Optional[FormulaIngredient]:
        for entry in self.ingredients:
            if entry.ingredient_id == ingredient_id:
                return entry
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "description": self.description,
            "total_weight": self.total_weight,
            "is_public": self.is_public,
            "version": self.version,
            "created_at": TimezoneUtils.to_iso(self.created_at),
            "updated_at": TimezoneUtils.to_iso(self.updated_at),
            "ingredients": [entry.to_dict() for entry in self.ingredients],
            "steps": [step.to_dict() for step in self.steps],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Formula":
        return cls(
            id=data.get("id"),
            name=data.get("name") or "",
            type=data.get("type") or FormulaType.SERUM.value,
            description=data.get("description"),
            total_weight=data.get("total_weight") if data.get("total_weight") is not None else 100.0,
            is_public=bool(data.get("is_public")),
            created_at=TimezoneUtils.parse_iso(data.get("created_at")),
            updated_at=TimezoneUtils.parse_iso(data.get("updated_at")),
            ingredients=[FormulaIngredient.from_dict(row) for row in data.get("ingredients") or []],
            steps=[ManufacturingStep.from_dict(row) for row in data.get("steps") or []],
            version=data.get("version"),
        )
