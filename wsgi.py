"""
WSGI entry point for the Murajaah Tracker API.

Point the host's WSGI configuration at this file, e.g.:
  - Source code:    /home/<your-username>/murajaah-tracker
  - WSGI file:      /home/<your-username>/murajaah-tracker/wsgi.py
  - Environment:    DATABASE_URL, SECRET_KEY, CORS_ORIGINS

or run it under any WSGI server: `gunicorn wsgi:application`.
"""
import sys
import os

# Make sure the project directory is on the path
project_dir = os.path.dirname(os.path.abspath(__file__))
if project_dir not in sys.path:
    sys.path.insert(0, project_dir)

from app import app as application  # noqa: F401  (WSGI servers look for 'application')
