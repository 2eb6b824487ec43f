import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from invoice_ledger.api.credit import router as credit_router
from invoice_ledger.api.purchases import router as purchases_router
from invoice_ledger.api.sales import router as sales_router
from invoice_ledger.api.stock import router as stock_router
from invoice_ledger.config import Settings, configure_logging
from invoice_ledger.db.engine import Database
from invoice_ledger.errors import ErrorKind, LedgerError

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.VALIDATION: 400,
    ErrorKind.CONFLICT: 409,
    ErrorKind.TRANSIENT: 503,
    ErrorKind.FATAL: 500,
}


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings)
        database = Database(settings)
        if settings.create_schema:
            database.create_schema()
        app.state.database = database
        try:
            yield
        finally:
            database.dispose()

    app = FastAPI(
        title="Invoice & Credit Ledger API",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    @app.get("/health")
    def health_check():
        return {"status": "ok"}

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError):
        status_code = STATUS_BY_KIND[exc.kind]
        if status_code >= 500:
            logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.code)
        else:
            logger.warning("%s %s rejected: %s (%s)", request.method, request.url.path, exc.message, exc.code)
        return JSONResponse(status_code=status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        logger.warning("%s %s rejected: invalid request", request.method, request.url.path)
        return JSONResponse(
            status_code=400,
            content={
                "detail": "Request validation failed.",
                "code": "validation_error",
                "errors": jsonable_encoder(exc.errors()),
            },
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("Unexpected error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "code": "internal_error"},
        )

    app.include_router(sales_router)
    app.include_router(purchases_router)
    app.include_router(credit_router)
    app.include_router(stock_router)
    return app


app = create_app()
