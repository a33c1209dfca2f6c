#!/usr/bin/env python3
"""Run formulary with the Flask development server."""
import logging
import os

from formulary import create_app

app = create_app()


if __name__ == '__main__':
    environment = os.environ.get('FLASK_ENV', 'development').strip().lower()
    if environment == 'production':
        raise SystemExit("The development server is not for production; run `gunicorn wsgi:app` instead.")

    debug = os.environ.get('FLASK_DEBUG', '1').strip().lower() not in {'0', 'false', 'no', 'off'}
    logging.basicConfig(level=logging.DEBUG if debug else logging.INFO)
    app.run(host=os.environ.get('HOST', '127.0.0.1'), port=int(os.environ.get('PORT', 5000)), debug=debug)
