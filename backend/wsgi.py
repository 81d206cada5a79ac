# backend/wsgi.py
from urban_store import create_app

app = create_app()
