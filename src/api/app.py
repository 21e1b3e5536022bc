"""FastAPI application exposing the ledger."""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.api.ledger import router as ledger_router
from src.services.errors import LedgerError, error_response

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Rental Ledger",
    description="Obligations, payments and owner settlements",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(ledger_router)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    """Answer ledger errors with {"error": {"code", "message"}} and their HTTP status."""
    if exc.http_status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info(
            "%s %s rejected: %s (%s)", request.method, request.url.path, exc.code, exc.message
        )
    return JSONResponse(status_code=exc.http_status, content=error_response(exc))


@app.get("/health")
async def health_check() -> dict:
    """Health check endpoint for monitoring."""
    return {"status": "ok"}


__all__ = ["app"]
