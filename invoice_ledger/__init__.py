# invoice_ledger/__init__.py
"""
Package entrypoint for the FastAPI application.

This lets us run:
    uvicorn invoice_ledger:app --reload
"""

from .main import app, create_app

__all__ = ["app", "create_app"]
