"""
Credit Ledger - FastAPI Backend
Local API behind the desktop UI: customers, vendors, credit purchases and sales.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from config import settings, validate_ledger_settings
from database import Base, engine, ensure_database_directory
import models  # noqa: F401
from routers import (
    health,
    customers,
    vendors,
    credits,
    subscriptions,
    business,
)
from services.errors import LedgerError

logging.basicConfig(
    level=getattr(logging, str(settings.LOG_LEVEL).upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    print("🚀 Starting Credit Ledger API...")
    validate_ledger_settings()
    if settings.AUTO_CREATE_DB_SCHEMA:
        ensure_database_directory(settings.DATABASE_URL)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        print("🗄️ Database schema verified.")
    print(
        f"📒 Ledger policies: oversell={settings.OVERSELL_POLICY} "
        f"missing_balance={settings.MISSING_BALANCE_POLICY}"
    )
    yield
    # Shutdown
    await engine.dispose()
    print("👋 Shutting down API...")


app = FastAPI(
    title="Credit Ledger API",
    description="Customers, vendors, credit purchases and point-of-sale ledger",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()) if part != 'body')}: {error.get('msg')}"
        for error in errors
    )
    return JSONResponse(
        status_code=422,
        content={"error": message or "Invalid request", "code": "validation_error", "details": jsonable_encoder(errors)},
    )


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning("%s %s violated a constraint: %s", request.method, request.url.path, exc.orig)
    return JSONResponse(status_code=409, content={"error": str(exc.orig), "code": "integrity_error"})


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("%s %s hit a database error", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": str(exc), "code": "persistence_error"})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("%s %s failed", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": str(exc), "code": "internal_error"})


# Include routers
app.include_router(health.router, prefix="/api", tags=["Health"])
app.include_router(customers.router, prefix="/api", tags=["Customers"])
app.include_router(vendors.router, prefix="/api", tags=["Vendors"])
app.include_router(credits.router, prefix="/api", tags=["Credits"])
app.include_router(subscriptions.router, prefix="/api", tags=["Subscriptions"])
app.include_router(business.router, prefix="/api", tags=["Business"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Credit Ledger API",
        "version": "0.1.0",
        "status": "running"
    }


def run() -> None:
    """Console entry point: serve the API for the local UI."""
    import uvicorn

    uvicorn.run(app, host=settings.API_HOST, port=settings.API_PORT)


if __name__ == "__main__":
    run()
