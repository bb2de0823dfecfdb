"""
Guardian Claims Backend - Main Application Entry Point
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from guardian.core import logger
from guardian.core.config import settings
from guardian.core.exceptions import (
    CarrierError,
    CarrierTimeout,
    ClaimEngineError,
    ConcurrencyConflict,
    InvalidState,
    InvalidTransition,
    InvariantViolation,
    NotFound,
    UnsupportedOperation,
    ValidationError,
)
from guardian.api.routes import carriers, claims
from guardian.services.carriers.registry import build_carrier_registry
from guardian.services.claims.locks import ClaimLockManager


# Most specific first: CarrierTimeout is a CarrierError
ERROR_STATUS_CODES = [
    (CarrierTimeout, 504),
    (CarrierError, 502),
    (ConcurrencyConflict, 409),
    (NotFound, 404),
    (InvalidTransition, 422),
    (InvariantViolation, 422),
    (ValidationError, 400),
    (InvalidState, 400),
    (UnsupportedOperation, 400),
]


def status_code_for(exc: ClaimEngineError) -> int:
    for error_cls, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_cls):
            return status_code
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle management."""
    # Startup
    logger.info(f"Starting {settings.APP_NAME} in {settings.APP_ENV} mode")
    app.state.carrier_registry = build_carrier_registry(settings)
    app.state.claim_locks = ClaimLockManager(timeout_seconds=settings.CLAIM_LOCK_TIMEOUT_SECONDS)
    yield
    # Shutdown
    logger.info("Shutting down...")
    await app.state.carrier_registry.aclose()


app = FastAPI(
    title=settings.APP_NAME,
    description="Insurance claim lifecycle engine for the Guardian roofing dashboard",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:3001"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ClaimEngineError)
async def claim_engine_error_handler(request: Request, exc: ClaimEngineError):
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} -> {status_code}: {exc}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {status_code}: {exc}")
    return JSONResponse(status_code=status_code, content={"error": exc.to_dict()})


# Include API Routers
app.include_router(claims.router, prefix="/claims", tags=["Claims"])
app.include_router(carriers.router, prefix="/carriers", tags=["Carriers"])


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "env": settings.APP_ENV,
    }
