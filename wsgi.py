"""
WSGI entry point for the Governance Checklist API.

Usage:
    gunicorn wsgi:app
    flask --app wsgi db migrate -m "description"
    flask --app wsgi db upgrade
"""

from app import create_app

app = create_app()
