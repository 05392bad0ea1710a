"""
ASGI entry point for the Chamber chat gateway.

Run with:
    uvicorn app.main:app --host 0.0.0.0 --port 8000
"""

from chamber.webapp import create_app

app = create_app()
