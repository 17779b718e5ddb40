"""
WSGI / Flask-Migrate entry point.

Usage:
    flask db upgrade
    flask create-user admin@agency.co.th <password>
    gunicorn wsgi:app
"""

from budget_tracker import create_app

app = create_app()
