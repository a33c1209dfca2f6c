"""
Batch Scaling Operations

Derives absolute ingredient weights for a requested batch size from a
formula's percentages and its reference total weight. Produces read-only
views; the formula itself is never touched.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional

from ._composition import group_by_phase, total_percentage
from ._errors import InvalidBatchSizeError
from ._parsing import parse_or_default
from ._types import Formula

logger = logging.getLogger(__name__)

# Grams per unit
BATCH_UNITS: Dict[str, float] = {
    "g": 1.0,
    "kg": 1000.0,
    "oz": 28.349523125,
    "lb": 453.59237,
}

COMMON_BATCH_SIZES: Dict[str, List[float]] = {
    "g": [50, 100, 250, 500, 1000],
    "oz": [2, 4, 8, 16, 32],
    "kg": [0.5, 1, 2.5, 5, 10],
    "lb": [0.25, 0.5, 1, 2, 5],
}

_CENTS = Decimal("0.01")


def round_amount(value: float) -> float:
    """Half-up to 2 decimals, the rounding used wherever gram amounts are shown."""
    if not math.isfinite(value):
        return value
    return float(Decimal(repr(value)).quantize(_CENTS, rounding=ROUND_HALF_UP))


def to_grams(amount: Any, unit: str = "g") -> float:
    """Convert a batch size in ``unit`` to grams. Unknown units raise ValueError."""
    factor = BATCH_UNITS.get((unit or "g").strip().lower())
    if factor is None:
        raise ValueError(f"Unsupported batch unit: {unit!r}. Expected one of {sorted(BATCH_UNITS)}.")
    return parse_or_default(amount) * factor


def scale_factor(requested_batch_size: Any, reference_total_weight: Any) -> float:
    """Multiplier from the formula's reference weight to the requested batch.

    A zero reference weight yields ``math.inf`` rather than an exception;
    :func:`scale_batch` handles that case without dividing.
    """
    requested = parse_or_default(requested_batch_size)
    if requested <= 0:
        raise InvalidBatchSizeError(requested_batch_size)
    reference = parse_or_default(reference_total_weight)
    if reference == 0:
        return math.inf
    return requested / reference


def scaled_amount(percentage: Any, reference_total_weight: Any, factor: float) -> float:
    """Absolute grams for one line, rounded to 2 decimals for display."""
    raw = (parse_or_default(percentage) / 100.0) * parse_or_default(reference_total_weight) * factor
    return round_amount(raw)


@dataclass(frozen=True)
class ScaledLine:
    ingredient_id: int
    name: str
    phase: Optional[str]
    percentage: float
    base_amount: float
    scaled_amount: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ingredient_id": self.ingredient_id,
            "name": self.name,
            "phase": self.phase,
            "percentage": self.percentage,
            "base_amount": self.base_amount,
            "scaled_amount": self.scaled_amount,
        }


@dataclass(frozen=True)
class BatchView:
    formula_id: Any
    requested_batch_size: float
    unit: str
    requested_grams: float
    reference_total_weight: float
    scale_factor: float
    total_percentage: float
    rows: List[ScaledLine] = field(default_factory=list)
    phases: Dict[str, List[ScaledLine]] = field(default_factory=dict)

    @property
    def amounts(self) -> Dict[int, float]:
        return {row.ingredient_id: row.scaled_amount for row in self.rows}

    @property
    def total_amount(self) -> float:
        return round_amount(sum(row.scaled_amount for row in self.rows))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "formula_id": self.formula_id,
            "requested_batch_size": self.requested_batch_size,
            "unit": self.unit,
            "requested_grams": round_amount(self.requested_grams),
            "reference_total_weight": self.reference_total_weight,
            "scale_factor": self.scale_factor if math.isfinite(self.scale_factor) else None,
            "total_percentage": round(self.total_percentage, 1),
            "total_amount": self.total_amount,
            "rows": [row.to_dict() for row in self.rows],
            "phases": [
                {"phase": phase, "ingredient_ids": [row.ingredient_id for row in rows]}
                for phase, rows in self.phases.items()
            ],
        }


def scale_batch(formula: Formula, requested_batch_size: Any, unit: str = "g") -> BatchView:
    """Build the batch calculator view for ``formula`` at the requested size."""
    requested_grams = to_grams(requested_batch_size, unit)
    reference = parse_or_default(formula.total_weight)
    factor = scale_factor(requested_grams, reference)

    rows: List[ScaledLine] = []
    for entry in formula.ingredients:
        pct = parse_or_default(entry.percentage)
        if math.isfinite(factor):
            amount = scaled_amount(pct, reference, factor)
        else:
            # pct/100 * ref * (req/ref) reduces to pct/100 * req
            amount = round_amount(pct / 100.0 * requested_grams)
        row = ScaledLine(
            ingredient_id=entry.ingredient_id,
            name=entry.name,
            phase=entry.phase,
            percentage=pct,
            base_amount=round_amount(pct / 100.0 * reference),
            scaled_amount=amount,
        )
        rows.append(row)

    # Rows carry their line's phase, so grouping them keeps repeated ids apart
    phases = group_by_phase(rows)

    if not math.isfinite(factor):
        logger.debug("Formula %s has no reference weight; scaled by direct percentage", formula.id)

    return BatchView(
        formula_id=formula.id,
        requested_batch_size=parse_or_default(requested_batch_size),
        unit=(unit or "g").strip().lower(),
        requested_grams=requested_grams,
        reference_total_weight=reference,
        scale_factor=factor,
        total_percentage=total_percentage(formula.ingredients),
        rows=rows,
        phases=phases,
    )
