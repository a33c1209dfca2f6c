"""WSGI entry point, e.g. ``gunicorn wsgi:app``."""
from formulary import create_app

app = create_app()
