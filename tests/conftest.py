"""
Pytest configuration and shared fixtures for formulary tests.
"""
import os
import tempfile

os.environ.setdefault('FLASK_ENV', 'testing')

import pytest  # noqa: E402

from formulary import create_app  # noqa: E402
from formulary.extensions import db  # noqa: E402
from formulary.models import Formula, FormulaIngredient, Ingredient, ManufacturingStep, User  # noqa: E402

TEST_FORMULA_NAME = 'Test Serum'

CATALOG = [
    # name, inci_name, phase, recommended max %, allergen
    ('Distilled Water', 'Aqua', 'Water Phase', None, False),
    ('Glycerin', 'Glycerin', 'Water Phase', 10.0, False),
    ('Niacinamide', 'Niacinamide', 'Water Phase', 10.0, False),
    ('Lavender Oil', 'Lavandula Angustifolia Oil', 'Cool Down', 1.0, True),
    ('Vitamin E', None, 'Oil Phase', 1.0, False),
]

FORMULA_LINES = [
    ('Distilled Water', 85.0),
    ('Glycerin', 5.0),
    ('Niacinamide', 9.5),
    ('Lavender Oil', 0.5),
]


@pytest.fixture(scope='function')
def app():
    """Create and configure a new app instance for each test."""
    db_fd, db_path = tempfile.mkstemp()
    export_dir = tempfile.mkdtemp()

    app = create_app({
        'TESTING': True,
        'DATABASE_URL': f'sqlite:///{db_path}',
        'SECRET_KEY': 'test-secret-key',
        'RATELIMIT_ENABLED': False,
        'FORMULA_EXPORT_FOLDER': export_dir,
    })

    with app.app_context():
        db.create_all()
        _create_test_data()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()

    os.close(db_fd)
    os.unlink(db_path)


@pytest.fixture
def client(app):
    """A test client for the app."""
    return app.test_client()


@pytest.fixture
def runner(app):
    """A test runner for the app's Click commands."""
    return app.test_cli_runner()


@pytest.fixture
def app_context(app):
    """Provide an application context for tests that need it."""
    with app.app_context():
        yield


@pytest.fixture
def test_user(app):
    """Owner of the seeded formula, as plain values safe to use outside a context."""
    with app.app_context():
        user = User.query.filter_by(email='test@example.com').one()
        return {'id': user.id, 'email': user.email, 'token': user.api_token}


@pytest.fixture
def other_user(app):
    with app.app_context():
        user = User.query.filter_by(email='other@example.com').one()
        return {'id': user.id, 'email': user.email, 'token': user.api_token}


@pytest.fixture
def api_headers(test_user):
    """Headers for authenticated requests."""
    return {
        'Authorization': f"Bearer {test_user['token']}",
        'Content-Type': 'application/json',
    }


@pytest.fixture
def other_headers(other_user):
    return {
        'Authorization': f"Bearer {other_user['token']}",
        'Content-Type': 'application/json',
    }


@pytest.fixture
def seeded_formula(app):
    """Ids of the seeded formula and of every catalog ingredient."""
    with app.app_context():
        formula = Formula.query.filter_by(name=TEST_FORMULA_NAME).one()
        return {
            'id': formula.id,
            'version': formula.version,
            'ingredient_ids': {row.name: row.id for row in Ingredient.query.all()},
            'step_ids': [step.id for step in formula.steps],
        }


def _create_test_data():
    owner = User(email='test@example.com', username='testuser')
    owner.issue_api_token()
    other = User(email='other@example.com', username='otheruser')
    other.issue_api_token()
    db.session.add_all([owner, other])

    catalog = {}
    for name, inci, phase, max_pct, allergen in CATALOG:
        ingredient = Ingredient(
            name=name,
            inci_name=inci,
            phase=phase,
            recommended_max_percentage=max_pct,
            is_allergen=allergen,
        )
        db.session.add(ingredient)
        catalog[name] = ingredient
    db.session.flush()

    formula = Formula(
        name=TEST_FORMULA_NAME,
        type='Serum',
        description='Seeded for tests',
        total_weight=100.0,
        owner_id=owner.id,
    )
    db.session.add(formula)
    for order, (name, pct) in enumerate(FORMULA_LINES):
        formula.ingredients.append(
            FormulaIngredient(ingredient_id=catalog[name].id, percentage=pct, order=order)
        )
    formula.steps.append(ManufacturingStep(order=1, description='Combine the water phase.'))
    formula.steps.append(ManufacturingStep(order=2, description='Add lavender oil below 40C.'))
    db.session.commit()
