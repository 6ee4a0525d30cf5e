# backend/wsgi.py
from trailledger import create_app

app = create_app()
