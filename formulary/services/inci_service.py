"""INCI label list generation.

Synopsis:
Build the ingredient declaration for a formula: INCI names in descending
order of concentration, with optional allergen highlighting.

Glossary:
- INCI: International Nomenclature of Cosmetic Ingredients.
- Highlight: allergen names wrapped in ``**`` so clients can emphasise them.
"""

from __future__ import annotations

from typing import Any, Dict, List

from .formula_engine import Formula, parse_or_default

ALLERGEN_MARKER = "**"
SEPARATOR = ", "


def _label_name(entry) -> str:
    ingredient = entry.ingredient
    if ingredient is not None and ingredient.inci_name:
        return ingredient.inci_name
    return entry.name


def build_inci_list(formula: Formula, highlight_allergens: bool = True) -> Dict[str, Any]:
    # sorted() is stable, so equal percentages keep their formula order
    ordered = sorted(
        sorted(formula.ingredients, key=lambda e: e.order or 0),
        key=lambda e: parse_or_default(e.percentage),
        reverse=True,
    )

    breakdown: List[Dict[str, Any]] = []
    plain: List[str] = []
    marked: List[str] = []
    for entry in ordered:
        label = _label_name(entry)
        is_allergen = bool(entry.ingredient and entry.ingredient.is_allergen)
        plain.append(label)
        if highlight_allergens and is_allergen:
            marked.append(f"{ALLERGEN_MARKER}{label}{ALLERGEN_MARKER}")
        else:
            marked.append(label)
        breakdown.append({
            "ingredient_id": entry.ingredient_id,
            "inci_name": label,
            "common_name": entry.name,
            "percentage": parse_or_default(entry.percentage),
            "is_allergen": is_allergen,
        })

    return {
        "formula_name": formula.name,
        "inci_list": SEPARATOR.join(plain),
        "inci_list_with_allergens": SEPARATOR.join(marked),
        "ingredients_by_percentage": breakdown,
    }
