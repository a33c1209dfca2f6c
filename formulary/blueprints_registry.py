import logging

logger = logging.getLogger(__name__)


def register_blueprints(app):
    """Register all blueprints with the Flask app."""
    from .blueprints.formulas import formulas_bp

    app.register_blueprint(formulas_bp)
    logger.debug("Registered blueprints: %s", sorted(app.blueprints))
