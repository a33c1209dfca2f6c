"""Formula REST routes.

Synopsis:
JSON API over the SQL formula store: reads, sub-resource writes, the atomic
save command, duplication, exports, INCI lists, composition and batch views.

Glossary:
- Sub-resource write: Full replacement of one part of a formula (metadata,
  ingredients or steps).
- Save command: All three parts plus the version the edit started from.
"""

from __future__ import annotations

import logging

from flask import Response, current_app, jsonify, request
from flask_login import current_user, login_required

from ...extensions import limiter
from ...services.exports import ExportService
from ...services.formula_engine import (
    FormulaSaveCommand, composition_summary, scale_batch,
)
from ...services.formula_store import SqlFormulaStore
from ...services.inci_service import build_inci_list
from . import formulas_bp

logger = logging.getLogger(__name__)

_TRUE_VALUES = {'1', 'true', 'yes', 'on'}


def _store() -> SqlFormulaStore:
    return SqlFormulaStore(user=current_user)


def _json_body() -> dict:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def _export_rate_limit() -> str:
    return current_app.config.get('EXPORT_RATE_LIMIT', '30 per minute')


def _bad_request(message: str):
    return jsonify({'error': message}), 400


# =========================================================
# READS
# =========================================================
@formulas_bp.route('/read_formulas', methods=['GET'])
@login_required
def read_formulas():
    formulas = _store().list_formulas()
    return jsonify([formula.to_dict() for formula in formulas])


@formulas_bp.route('/<int:formula_id>', methods=['GET'])
@login_required
def get_formula(formula_id: int):
    return jsonify(_store().get_formula(formula_id).to_dict())


@formulas_bp.route('/<int:formula_id>/composition', methods=['GET'])
@login_required
def formula_composition(formula_id: int):
    return jsonify(composition_summary(_store().get_formula(formula_id)))


@formulas_bp.route('/<int:formula_id>/batch', methods=['GET'])
@login_required
def formula_batch(formula_id: int):
    formula = _store().get_formula(formula_id)
    size = request.args.get('size')
    unit = request.args.get('unit', 'g')
    try:
        view = scale_batch(formula, size, unit)
    except ValueError as exc:
        return _bad_request(str(exc))
    return jsonify(view.to_dict())


@formulas_bp.route('/<int:formula_id>/inci-list', methods=['GET'])
@login_required
def formula_inci_list(formula_id: int):
    highlight = request.args.get('highlight_allergens', 'true').strip().lower() in _TRUE_VALUES
    return jsonify(build_inci_list(_store().get_formula(formula_id), highlight_allergens=highlight))


# =========================================================
# WRITES
# =========================================================
@formulas_bp.route('/<int:formula_id>', methods=['PUT'])
@login_required
def update_formula(formula_id: int):
    _store().update_formula_metadata(formula_id, _json_body())
    return jsonify({'id': formula_id, 'status': 'updated'})


@formulas_bp.route('/<int:formula_id>/ingredients', methods=['PUT'])
@login_required
def update_formula_ingredients(formula_id: int):
    _store().update_formula_ingredients(formula_id, _json_body())
    return jsonify({'id': formula_id, 'status': 'updated'})


@formulas_bp.route('/<int:formula_id>/steps', methods=['PUT'])
@login_required
def update_formula_steps(formula_id: int):
    _store().update_formula_steps(formula_id, _json_body())
    return jsonify({'id': formula_id, 'status': 'updated'})


@formulas_bp.route('/<int:formula_id>/save', methods=['PUT'])
@login_required
def save_formula(formula_id: int):
    """Apply metadata, ingredients and steps together or not at all."""
    body = _json_body()
    command = FormulaSaveCommand(
        formula_id=formula_id,
        metadata=body.get('metadata') or {},
        ingredients=body.get('ingredients'),
        steps=body.get('steps'),
        base_version=body.get('version'),
    )
    store = _store()
    store.apply_save(command)
    saved = store.get_formula(formula_id)
    logger.info("Formula %s saved at version %s", formula_id, saved.version)
    return jsonify(saved.to_dict())


@formulas_bp.route('/duplicate/<int:formula_id>', methods=['POST'])
@login_required
def duplicate_formula(formula_id: int):
    new_name = _json_body().get('new_name')
    result = _store().duplicate_formula(formula_id, new_name)
    return jsonify(result), 201


# =========================================================
# EXPORTS
# =========================================================
@formulas_bp.route('/<int:formula_id>/export', methods=['GET'])
@login_required
@limiter.limit(_export_rate_limit)
def export_formula(formula_id: int):
    formula = _store().get_formula(formula_id)
    try:
        artifact = ExportService.render(formula, request.args.get('format', 'pdf'))
    except ValueError as exc:
        return _bad_request(str(exc))
    disposition = 'inline' if artifact.mimetype == 'text/html' else 'attachment'
    return Response(
        artifact.content,
        mimetype=artifact.mimetype,
        headers={'Content-Disposition': f'{disposition}; filename="{artifact.filename}"'},
    )
