"""
asgi.py -- ASGI entry point for Monitorium.

Kept separate from api/main.py so servers and the CLI import one stable
dotted path ("asgi:app") regardless of how the api package is laid out.

Run with:  uvicorn asgi:app --reload
           python main.py serve
"""

from api.main import app

__all__ = ["app"]
