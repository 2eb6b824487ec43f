# invoice_ledger/api/deps.py

from fastapi import Request

from invoice_ledger.db.engine import Database


def get_database(request: Request) -> Database:
    """The handle created in the app lifespan; there is no global engine."""
    return request.app.state.database
