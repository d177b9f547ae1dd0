"""
asgi.py -- ASGI entry point for Inkwell.

Kept separate from api/main.py so process managers have a stable import
path that does not change if the app module is reorganised.

Run with:  uvicorn asgi:app --reload
"""

from api.main import app

__all__ = ["app"]
