"""
Slabline - Sales Commission Engine

Main FastAPI application with:
- Slab table management per sales person
- Commission reconciliation reports (JSON / CSV)
- Manual commission overrides with history
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from slabline.api import api_router
from slabline.config import settings
from slabline.db import engine
from slabline.services.exceptions import (
    ComputationError,
    NotFoundError,
    SlabValidationError,
    ValidationError,
)

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup: logs the active commission configuration.
    Shutdown: releases database connections.
    """
    logger.info("Starting Slabline...")
    logger.info(
        f"Commission mode: {settings.commission_mode}; "
        f"closing statuses: {', '.join(settings.closing_status_aliases)}"
    )

    yield

    logger.info("Shutting down Slabline...")
    await engine.dispose()


# Create FastAPI application
app = FastAPI(
    title="Slabline",
    description="Sales commission calculation and reconciliation",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if not settings.is_production else None,
    redoc_url="/redoc" if not settings.is_production else None,
)

app.include_router(api_router)  # /api/* endpoints


# Domain error handlers
@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    """Rejected input: 400 with the offending field."""
    content = {"detail": exc.message, "field": exc.field}
    if isinstance(exc, SlabValidationError):
        content["index"] = exc.index
    return JSONResponse(status_code=400, content=content)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    """Unknown user, lead or commission."""
    return JSONResponse(status_code=404, content={"detail": exc.message})


@app.exception_handler(ComputationError)
async def computation_error_handler(request: Request, exc: ComputationError):
    """Invariant violation inside the calculator; reported, never absorbed."""
    logger.error(f"Commission computation failed on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=500,
        content={"detail": f"Commission computation failed: {exc.message}"},
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "slabline.main:app",
        host="0.0.0.0",
        port=8000,
        reload=not settings.is_production,
    )
