import csv
import io
import json
import os

import pytest

from formulary.services.exports import ExportService, FileExportService
from formulary.services.formula_engine import (
    EXPORT_FAILED_MESSAGE, ExportDispatcher, ExportJobStatus, Formula, FormulaIngredient,
    FormulaStoreError, Ingredient, ManufacturingStep, scale_batch,
)
from formulary.services.inci_service import build_inci_list


def _formula():
    return Formula(
        id=5,
        name='Calm Balm!',
        type='Moisturizer',
        total_weight=200.0,
        version=2,
        ingredients=[
            FormulaIngredient(ingredient_id=1, percentage=10.0, order=1,
                              ingredient=Ingredient(id=1, name='Shea Butter', inci_name='Butyrospermum Parkii Butter',
                                                    phase='Oil Phase')),
            FormulaIngredient(ingredient_id=2, percentage=89.0, order=0,
                              ingredient=Ingredient(id=2, name='Water', inci_name='Aqua', phase='Water Phase')),
            FormulaIngredient(ingredient_id=3, percentage=1.0, order=2,
                              ingredient=Ingredient(id=3, name='Limonene Blend', phase='Cool Down', is_allergen=True)),
        ],
        steps=[
            ManufacturingStep(id=2, order=2, description='Cool\nand pour'),
            ManufacturingStep(id=1, order=1, description='Melt'),
        ],
    )


def test_csv_sheet_lists_ingredients_in_order():
    rows = list(csv.reader(io.StringIO(ExportService.formula_csv(_formula()))))

    assert rows[0] == ['Formula Sheet - Calm Balm!']
    header = rows.index(['Phase', 'Ingredient', 'INCI Name', 'Percentage', 'Amount (g)'])
    assert [row[1] for row in rows[header + 1:header + 4]] == ['Water', 'Shea Butter', 'Limonene Blend']
    assert rows[header + 1][4] == '178.0'
    assert rows[-2:] == [['1', 'Melt'], ['2', 'Cool and pour']]


def test_json_document_includes_total():
    payload = json.loads(ExportService.formula_json(_formula()))
    assert payload['total_percentage'] == 100.0
    assert payload['version'] == 2


@pytest.mark.usefixtures('app_context')
def test_render_print_and_unknown_format():
    artifact = ExportService.render(_formula(), 'print')

    assert artifact.mimetype == 'text/html'
    assert artifact.filename == 'calm-balm.html'
    html = artifact.content.decode('utf-8')
    assert html.index('Water Phase') < html.index('Oil Phase')
    assert 'Balanced at 100%' in html

    with pytest.raises(ValueError):
        ExportService.render(_formula(), 'xlsx')


@pytest.mark.usefixtures('app_context')
def test_file_export_service_writes_artifact(seeded_formula, tmp_path):
    from formulary.models import User
    from formulary.services.formula_store import SqlFormulaStore

    store = SqlFormulaStore(user=User.query.filter_by(email='test@example.com').one())
    exporter = FileExportService(store, str(tmp_path))

    exporter.export_formula(seeded_formula['id'], 'json')

    assert exporter.last_path == os.path.join(str(tmp_path), f"{seeded_formula['id']}-test-serum.json")
    with open(exporter.last_path) as handle:
        assert json.load(handle)['name'] == 'Test Serum'


def test_inci_list_orders_by_percentage_and_highlights_allergens():
    result = build_inci_list(_formula(), highlight_allergens=True)

    assert result['formula_name'] == 'Calm Balm!'
    assert result['inci_list'] == 'Aqua, Butyrospermum Parkii Butter, Limonene Blend'
    assert result['inci_list_with_allergens'] == 'Aqua, Butyrospermum Parkii Butter, **Limonene Blend**'
    assert [row['percentage'] for row in result['ingredients_by_percentage']] == [89.0, 10.0, 1.0]
    assert result['ingredients_by_percentage'][2]['is_allergen'] is True


def test_inci_list_without_highlighting_and_stable_ties():
    formula = Formula(id=1, name='Tie', ingredients=[
        FormulaIngredient(ingredient_id=1, percentage=50, order=0, ingredient=Ingredient(id=1, name='A', is_allergen=True)),
        FormulaIngredient(ingredient_id=2, percentage=50, order=1, ingredient=Ingredient(id=2, name='B')),
    ])

    result = build_inci_list(formula, highlight_allergens=False)

    assert result['inci_list'] == 'A, B'
    assert result['inci_list_with_allergens'] == 'A, B'


def test_csv_amounts_round_like_the_batch_view():
    formula = Formula(id=9, name='Drops', total_weight=1.0, ingredients=[
        FormulaIngredient(ingredient_id=1, percentage=12.5, order=0, ingredient=Ingredient(id=1, name='Oil')),
        FormulaIngredient(ingredient_id=2, percentage=87.5, order=1, ingredient=Ingredient(id=2, name='Water')),
    ])

    rows = list(csv.reader(io.StringIO(ExportService.formula_csv(formula))))
    header = rows.index(['Phase', 'Ingredient', 'INCI Name', 'Percentage', 'Amount (g)'])
    batch = scale_batch(formula, 1)

    assert [float(row[4]) for row in rows[header + 1:header + 3]] == [row.scaled_amount for row in batch.rows]
    assert rows[header + 1][4] == '0.13'


class _Notes:
    def __init__(self):
        self.failures = []

    def notify_success(self, message):
        pass

    def notify_failure(self, message):
        self.failures.append(message)


@pytest.mark.usefixtures('app_context')
def test_unwritable_folder_is_a_rejected_export(seeded_formula, tmp_path):
    from formulary.models import User
    from formulary.services.formula_store import SqlFormulaStore

    blocker = tmp_path / 'not-a-folder'
    blocker.write_text('occupied')
    store = SqlFormulaStore(user=User.query.filter_by(email='test@example.com').one())
    exporter = FileExportService(store, str(blocker))
    notifier = _Notes()

    with pytest.raises(FormulaStoreError):
        exporter.export_formula(seeded_formula['id'], 'csv')

    job = ExportDispatcher(exporter, notifier=notifier).export(seeded_formula['id'], 'csv')

    assert job.status is ExportJobStatus.REJECTED
    assert notifier.failures == [EXPORT_FAILED_MESSAGE]
    assert exporter.last_path is None
