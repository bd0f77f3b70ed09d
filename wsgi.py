"""
WSGI entry point.

Usage:
    gunicorn wsgi:app
    flask --app wsgi seed-demo
"""

from fieldtrack import create_app

app = create_app()
