# backend/wsgi.py
from officine import create_app

app = create_app()
