import math

import pytest

from formulary.services.formula_engine import (
    COMMON_BATCH_SIZES, Formula, FormulaIngredient, Ingredient, InvalidBatchSizeError,
    round_amount, scale_batch, scale_factor, scaled_amount, to_grams,
)


def _formula(total_weight=100.0):
    water = Ingredient(id=1, name='Water', phase='Water Phase')
    glycerin = Ingredient(id=2, name='Glycerin', phase='Water Phase')
    oil = Ingredient(id=3, name='Jojoba', phase='Oil Phase')
    return Formula(
        id=7,
        name='Lotion',
        total_weight=total_weight,
        ingredients=[
            FormulaIngredient(ingredient_id=1, percentage=80, order=0, ingredient=water),
            FormulaIngredient(ingredient_id=3, percentage=10, order=1, ingredient=oil),
            FormulaIngredient(ingredient_id=2, percentage=10, order=2, ingredient=glycerin),
        ],
    )


def test_scale_factor_and_amount():
    factor = scale_factor(250, 100)
    assert factor == 2.5
    assert scaled_amount(10, 100, factor) == 25.00


def test_scaled_amount_rounds_half_up():
    assert scaled_amount(50, 2.25, 1) == 1.13
    assert scaled_amount(33.333, 100, 1) == 33.33


@pytest.mark.parametrize('requested', [0, -5, '', 'abc', None])
def test_non_positive_batch_size_is_rejected(requested):
    with pytest.raises(InvalidBatchSizeError) as excinfo:
        scale_factor(requested, 100)
    assert excinfo.value.requested_batch_size == requested
    assert isinstance(excinfo.value, ValueError)


def test_zero_reference_weight_gives_infinite_factor():
    assert math.isinf(scale_factor(250, 0))


def test_to_grams_units():
    assert to_grams(2, 'kg') == 2000.0
    assert to_grams(1, 'lb') == pytest.approx(453.59237)
    assert to_grams('4', 'OZ') == pytest.approx(113.3980925)
    with pytest.raises(ValueError):
        to_grams(1, 'gallon')


def test_common_batch_sizes_cover_every_unit():
    assert set(COMMON_BATCH_SIZES) == {'g', 'kg', 'oz', 'lb'}


def test_scale_batch_rows_and_totals():
    view = scale_batch(_formula(), 250)

    assert view.scale_factor == 2.5
    assert view.amounts == {1: 200.0, 3: 25.0, 2: 25.0}
    assert view.total_amount == 250.0
    assert [row.base_amount for row in view.rows] == [80.0, 10.0, 10.0]
    assert list(view.phases) == ['Water Phase', 'Oil Phase']
    assert [row.ingredient_id for row in view.phases['Water Phase']] == [1, 2]


def test_scale_batch_in_kilograms():
    view = scale_batch(_formula(), 1, 'kg')
    assert view.requested_grams == 1000.0
    assert view.amounts[1] == 800.0


def test_scale_batch_with_zero_reference_weight_uses_percentages():
    view = scale_batch(_formula(total_weight=0), 500)

    assert math.isinf(view.scale_factor)
    assert view.amounts == {1: 400.0, 3: 50.0, 2: 50.0}
    assert view.to_dict()['scale_factor'] is None


def test_scale_batch_does_not_touch_formula():
    formula = _formula()
    before = formula.to_dict()
    scale_batch(formula, 1000)
    assert formula.to_dict() == before


def test_scale_batch_rejects_zero():
    with pytest.raises(InvalidBatchSizeError):
        scale_batch(_formula(), 0)


def test_repeated_ingredient_keeps_each_line_in_phase_view():
    water = Ingredient(id=1, name='Water', phase='Water Phase')
    formula = Formula(id=8, name='Split', total_weight=100.0, ingredients=[
        FormulaIngredient(ingredient_id=1, percentage=60, order=0, ingredient=water),
        FormulaIngredient(ingredient_id=1, percentage=40, order=1, ingredient=water),
    ])

    view = scale_batch(formula, 100)

    assert [row.scaled_amount for row in view.rows] == [60.0, 40.0]
    assert [row.scaled_amount for row in view.phases['Water Phase']] == [60.0, 40.0]


def test_round_amount_is_half_up():
    assert round_amount(0.125) == 0.13
    assert round_amount(2.675) == 2.68
    assert math.isinf(round_amount(math.inf))
