"""
WSGI entry point for the scheduling API.

Also the app Flask-Migrate / Alembic resolves for schema commands.

Usage:
    gunicorn wsgi:app
    FLASK_APP=wsgi flask db upgrade
    FLASK_APP=wsgi flask run
"""

from app import create_app

app = create_app()
