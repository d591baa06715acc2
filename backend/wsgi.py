# backend/wsgi.py
from stockpilot import create_app

app = create_app()
