"""
Management commands for database setup and working with formulas from the shell
"""
import json

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Formula, FormulaIngredient, Ingredient, ManufacturingStep, User
from .services.exports import FileExportService
from .services.formula_engine import (
    DuplicationFailure, FormulaStoreError, FormulaWorkspace, PersistenceFailure,
)
from .services.formula_store import SqlFormulaStore
from .services.notifications import LoggingNotifier

DEMO_EMAIL = 'demo@formulary.local'

DEMO_INGREDIENTS = [
    # name, inci_name, phase, function, recommended max %, allergen
    ('Distilled Water', 'Aqua', 'Water Phase', 'Solvent', None, False),
    ('Glycerin', 'Glycerin', 'Water Phase', 'Humectant', 10.0, False),
    ('Niacinamide', 'Niacinamide', 'Water Phase', 'Active', 10.0, False),
    ('Hyaluronic Acid', 'Sodium Hyaluronate', 'Water Phase', 'Humectant', 2.0, False),
    ('Jojoba Oil', 'Simmondsia Chinensis Seed Oil', 'Oil Phase', 'Emollient', 30.0, False),
    ('Emulsifying Wax', 'Cetearyl Alcohol, Polysorbate 60', 'Oil Phase', 'Emulsifier', 8.0, False),
    ('Geogard ECT', 'Benzyl Alcohol, Salicylic Acid, Glycerin, Sorbic Acid', 'Cool Down', 'Preservative', 1.0, False),
    ('Lavender Essential Oil', 'Lavandula Angustifolia Oil', 'Cool Down', 'Fragrance', 1.0, True),
]

DEMO_FORMULA = {
    'name': 'Daily Hydrating Serum',
    'type': 'Serum',
    'description': 'Lightweight niacinamide serum.',
    'total_weight': 100.0,
    'lines': [
        ('Distilled Water', 80.5),
        ('Glycerin', 5.0),
        ('Niacinamide', 5.0),
        ('Hyaluronic Acid', 1.0),
        ('Jojoba Oil', 3.0),
        ('Emulsifying Wax', 4.0),
        ('Geogard ECT', 1.0),
        ('Lavender Essential Oil', 0.5),
    ],
    'steps': [
        'Heat the water phase and oil phase separately to 70C.',
        'Add the oil phase to the water phase while blending.',
        'Cool to below 40C and add the cool down phase.',
        'Check pH and adjust to 5.0 - 5.5.',
    ],
}


def _store_for(email):
    user = User.query.filter_by(email=email).first()
    if user is None:
        raise click.ClickException(f'No user with email {email}.')
    return SqlFormulaStore(user=user)


def _print_json(payload):
    click.echo(json.dumps(payload, indent=2, default=str))


user_option = click.option('--user-email', default=DEMO_EMAIL, show_default=True,
                           help='Act as this user.')


@click.group('formulas')
def formulas_cli():
    """Formula maintenance and inspection commands"""


@formulas_cli.command('init-db')
@with_appcontext
def init_db_command():
    """Create all database tables"""
    db.create_all()
    click.echo('Database tables created.')


@formulas_cli.command('seed-demo')
@click.option('--email', default=DEMO_EMAIL, show_default=True)
@with_appcontext
def seed_demo_command(email):
    """Seed a demo user, the ingredient catalog and one formula (idempotent)"""
    db.create_all()
    user = User.query.filter_by(email=email).first()
    if user is None:
        user = User(email=email, username=email.split('@')[0])
        db.session.add(user)
    if not user.api_token:
        user.issue_api_token()

    catalog = {}
    for name, inci, phase, function, max_pct, allergen in DEMO_INGREDIENTS:
        ingredient = Ingredient.query.filter_by(name=name).first()
        if ingredient is None:
            ingredient = Ingredient(name=name)
            db.session.add(ingredient)
        ingredient.inci_name = inci
        ingredient.phase = phase
        ingredient.function = function
        ingredient.recommended_max_percentage = max_pct
        ingredient.is_allergen = allergen
        catalog[name] = ingredient
    db.session.flush()

    formula = Formula.query.filter_by(owner_id=user.id, name=DEMO_FORMULA['name']).first()
    if formula is None:
        formula = Formula(
            name=DEMO_FORMULA['name'],
            type=DEMO_FORMULA['type'],
            description=DEMO_FORMULA['description'],
            total_weight=DEMO_FORMULA['total_weight'],
            owner_id=user.id,
        )
        db.session.add(formula)
        for order, (name, pct) in enumerate(DEMO_FORMULA['lines']):
            formula.ingredients.append(
                FormulaIngredient(ingredient_id=catalog[name].id, percentage=pct, order=order)
            )
        for order, text in enumerate(DEMO_FORMULA['steps'], start=1):
            formula.steps.append(ManufacturingStep(order=order, description=text))

    db.session.commit()
    click.echo(f'Demo formula #{formula.id} ready for {user.email}.')
    click.echo(f'API token: {user.api_token}')


@formulas_cli.command('show')
@click.argument('formula_id', type=int)
@user_option
@with_appcontext
def show_command(formula_id, user_email):
    """Print a formula with its composition summary"""
    workspace = FormulaWorkspace(_store_for(user_email), notifier=LoggingNotifier())
    try:
        formula = workspace.load(formula_id)
    except FormulaStoreError as exc:
        raise click.ClickException(str(exc))
    payload = formula.to_dict()
    payload['composition'] = workspace.composition()
    _print_json(payload)


@formulas_cli.command('scale')
@click.argument('formula_id', type=int)
@click.option('--size', required=True, help='Requested batch size.')
@click.option('--unit', default='g', show_default=True, type=click.Choice(['g', 'kg', 'oz', 'lb']))
@user_option
@with_appcontext
def scale_command(formula_id, size, unit, user_email):
    """Print ingredient amounts for a batch size"""
    workspace = FormulaWorkspace(_store_for(user_email))
    try:
        workspace.load(formula_id)
        view = workspace.batch(size, unit)
    except (FormulaStoreError, ValueError) as exc:
        raise click.ClickException(str(exc))
    for row in view.rows:
        click.echo(f'{row.name:<32} {row.percentage:>6.2f}%  {row.scaled_amount:>10.2f} g')
    click.echo(f'{"Total":<32} {view.total_percentage:>6.1f}%  {view.total_amount:>10.2f} g')


@formulas_cli.command('edit')
@click.argument('formula_id', type=int)
@click.option('--name', help='New formula name.')
@click.option('--description', help='New description.')
@click.option('--total-weight', help='New reference batch weight in grams.')
@click.option('--public/--private', 'is_public', default=None)
@click.option('--set-percentage', 'percentages', nargs=2, multiple=True,
              metavar='INGREDIENT_ID VALUE', help='Set one ingredient percentage.')
@click.option('--move', 'moves', nargs=2, type=int, multiple=True,
              metavar='INGREDIENT_ID INDEX', help='Move an ingredient to a new position.')
@user_option
@with_appcontext
def edit_command(formula_id, name, description, total_weight, is_public, percentages, moves, user_email):
    """Edit a formula and save it in one step"""
    workspace = FormulaWorkspace(_store_for(user_email), notifier=LoggingNotifier())
    try:
        workspace.load(formula_id)
    except FormulaStoreError as exc:
        raise click.ClickException(str(exc))

    session = workspace.session
    workspace.begin_edit()
    for field, value in (('name', name), ('description', description),
                         ('total_weight', total_weight), ('is_public', is_public)):
        if value is not None:
            session.update_metadata_field(field, value)
    for ingredient_id, value in percentages:
        if not session.update_ingredient_percentage(int(ingredient_id), value):
            click.echo(f'Ingredient #{ingredient_id} is not in this formula; skipped.', err=True)
    for ingredient_id, index in moves:
        session.move_ingredient(ingredient_id, index)

    if not session.is_dirty:
        workspace.cancel_edit()
        click.echo('Nothing to save.')
        return

    summary = workspace.composition()
    for warning in summary['warnings']:
        click.echo(f"warning: {warning['message']}", err=True)
    try:
        saved = workspace.save()
    except PersistenceFailure as exc:
        raise click.ClickException(f'{exc} (stage: {exc.stage})')
    click.echo(f'Saved formula #{saved.id} at version {saved.version}. {summary["balance_message"]}')


@formulas_cli.command('duplicate')
@click.argument('formula_id', type=int)
@click.option('--name', 'new_name', help='Name for the copy.')
@user_option
@with_appcontext
def duplicate_command(formula_id, new_name, user_email):
    """Copy a formula"""
    store = _store_for(user_email)
    workspace = FormulaWorkspace(store, notifier=LoggingNotifier(),
                                 navigate=lambda new_id: click.echo(f'Created formula #{new_id}.'))
    try:
        workspace.load(formula_id)
        workspace.duplicate(new_name)
    except (FormulaStoreError, DuplicationFailure) as exc:
        raise click.ClickException(str(exc))


@formulas_cli.command('export')
@click.argument('formula_id', type=int)
@click.option('--format', 'export_format', default='pdf', show_default=True,
              type=click.Choice(['pdf', 'csv', 'json', 'print']))
@click.option('--folder', help='Output folder (defaults to FORMULA_EXPORT_FOLDER).')
@user_option
@with_appcontext
def export_command(formula_id, export_format, folder, user_email):
    """Render a formula export into a folder"""
    store = _store_for(user_email)
    exporter = FileExportService(store, folder or current_app.config.get('FORMULA_EXPORT_FOLDER'))
    workspace = FormulaWorkspace(store, export_service=exporter, notifier=LoggingNotifier())
    try:
        workspace.load(formula_id)
    except FormulaStoreError as exc:
        raise click.ClickException(str(exc))
    job = workspace.export(export_format)
    if job.error:
        raise click.ClickException(job.error)
    click.echo(exporter.last_path)


def register_commands(app):
    """Register CLI commands"""
    app.cli.add_command(formulas_cli)
