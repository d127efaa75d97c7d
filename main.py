"""
ASGI entry point.

Re-exports the FastAPI application defined in ``bookshelf.main`` so that
a server can be pointed at ``main:app``::

    uvicorn main:app
"""

from bookshelf.main import app as app  # noqa: F401  re-export FastAPI instance
