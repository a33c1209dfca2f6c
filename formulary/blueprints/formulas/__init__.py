from flask import Blueprint

formulas_bp = Blueprint('formulas', __name__, url_prefix='/formulas')

# Import routes after blueprint creation to avoid circular imports
from . import routes  # noqa: E402,F401
