"""
WSGI / Flask-Migrate entry point.

Usage:
    flask --app wsgi db upgrade
    flask --app wsgi recount-counters
    gunicorn wsgi:app
"""

from stepwise import create_app

app = create_app()
