# wsgi.py
"""Production WSGI entry point, e.g. ``gunicorn --threads 8 wsgi:application``"""

from app import create_app

application = create_app()
