"""
asgi.py -- ASGI entry point for Aquarium Monitor.

Run with:  uvicorn asgi:app --reload
"""

from api.main import app

__all__ = ["app"]
