"""
Formula Composition Checks

Aggregate percentage, balance classification and phase grouping for a
formula's ingredient lines. Everything here is pure and backs live-typing
displays, so nothing raises for odd numeric input.
"""

from __future__ import annotations

import enum
from collections import Counter
from typing import Dict, Iterable, List, Sequence

from ._errors import ValidationWarning
from ._parsing import parse_or_default
from ._types import Formula, FormulaIngredient

TARGET_PERCENTAGE = 100.0
BALANCE_TOLERANCE = 0.1
UNCATEGORIZED_PHASE = "Uncategorized"

# Deviations are compared after rounding so that 99.9 and 100.1 land on the
# Balanced side of the boundary regardless of float noise.
_DEVIATION_PRECISION = 6


class BalanceStatus(str, enum.Enum):
    BALANCED = "balanced"
    OVER = "over"
    UNDER = "under"


def total_percentage(ingredients: Iterable[FormulaIngredient] | None) -> float:
    """Sum of all ingredient percentages; unparseable values count as 0."""
    if not ingredients:
        return 0.0
    return sum(parse_or_default(entry.percentage) for entry in ingredients)


def balance_status(total: float) -> BalanceStatus:
    deviation = round(abs(total - TARGET_PERCENTAGE), _DEVIATION_PRECISION)
    if deviation <= BALANCE_TOLERANCE:
        return BalanceStatus.BALANCED
    if total > TARGET_PERCENTAGE:
        return BalanceStatus.OVER
    return BalanceStatus.UNDER


def balance_message(total: float) -> str:
    status = balance_status(total)
    if status is BalanceStatus.OVER:
        return f"+{total - TARGET_PERCENTAGE:.1f}% over 100%"
    if status is BalanceStatus.UNDER:
        return f"{TARGET_PERCENTAGE - total:.1f}% short of 100%"
    return "Balanced at 100%"


def group_by_phase(ingredients: Iterable[FormulaIngredient] | None) -> Dict[str, List[FormulaIngredient]]:
    """Bucket lines by their catalog phase, keeping first-seen phase order.

    Works on anything with a ``phase`` attribute. Phase names are used as-is;
    only a missing or empty phase falls into :data:`UNCATEGORIZED_PHASE`.
    """
    groups: Dict[str, List[FormulaIngredient]] = {}
    for entry in ingredients or []:
        phase = entry.phase or UNCATEGORIZED_PHASE
        groups.setdefault(phase, []).append(entry)
    return groups


def composition_warnings(formula: Formula) -> List[ValidationWarning]:
    """Advisory findings for display. Never a precondition for saving."""
    warnings: List[ValidationWarning] = []

    if not (formula.name or "").strip():
        warnings.append(ValidationWarning("empty_name", "Formula name is required."))

    if parse_or_default(formula.total_weight) <= 0:
        warnings.append(ValidationWarning("invalid_total_weight", "Total batch weight must be greater than zero."))

    total = total_percentage(formula.ingredients)
    status = balance_status(total)
    if status is BalanceStatus.OVER:
        warnings.append(ValidationWarning(
            "over_100",
            f"Total percentage exceeds 100% by {total - TARGET_PERCENTAGE:.1f}%. Please adjust ingredient percentages.",
        ))
    elif status is BalanceStatus.UNDER:
        warnings.append(ValidationWarning(
            "under_100",
            f"Total percentage is {TARGET_PERCENTAGE - total:.1f}% short of 100%. Please adjust ingredient percentages.",
        ))

    counts = Counter(entry.ingredient_id for entry in formula.ingredients)
    for ingredient_id, count in counts.items():
        if count > 1:
            warnings.append(ValidationWarning(
                "duplicate_ingredient",
                f"Ingredient #{ingredient_id} appears {count} times.",
                ingredient_id,
            ))

    warnings.extend(_range_warnings(formula.ingredients))
    return warnings


def _range_warnings(ingredients: Sequence[FormulaIngredient]) -> List[ValidationWarning]:
    found: List[ValidationWarning] = []
    for entry in ingredients:
        pct = parse_or_default(entry.percentage)
        if pct < 0 or pct > TARGET_PERCENTAGE:
            found.append(ValidationWarning(
                "out_of_range",
                f"{entry.name} must be between 0% and 100% (currently {pct:g}%).",
                entry.ingredient_id,
            ))
            continue
        limit = entry.ingredient.recommended_max_percentage if entry.ingredient else None
        if limit is None:
            continue
        max_pct = parse_or_default(limit, default=TARGET_PERCENTAGE)
        if pct > max_pct:
            found.append(ValidationWarning(
                "above_recommended_max",
                f"{entry.name} is at {pct:g}%, above its recommended maximum of {max_pct:g}%.",
                entry.ingredient_id,
            ))
    return found


def composition_summary(formula: Formula) -> Dict:
    """Everything the ingredients panel shows, computed from one snapshot."""
    total = total_percentage(formula.ingredients)
    groups = group_by_phase(formula.ingredients)
    return {
        "total_percentage": round(total, 1),
        "balance_status": balance_status(total).value,
        "balance_message": balance_message(total),
        "phases": [
            {"phase": phase, "ingredients": [entry.to_dict() for entry in entries]}
            for phase, entries in groups.items()
        ],
        "warnings": [warning.to_dict() for warning in composition_warnings(formula)],
    }
