"""PULSE — FastAPI Application Entry Point.

Social metrics reconciliation: deduplicated, time-bucketed employee,
campaign and global series across TikTok, Instagram and YouTube.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pulse.database import backend_name, check_connection, db_url, init_db, mask_url
from pulse.api.series_routes import router as series_router
from pulse.core.errors import ErrorKind, PulseError
from pulse.core.logging import get_logger

logger = get_logger("main")

STATUS_BY_KIND = {
    ErrorKind.INVALID_RANGE: 400,
    ErrorKind.ENTITY_NOT_FOUND: 404,
    ErrorKind.ADAPTER_UNAVAILABLE: 503,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    logger.info("🚀 PULSE starting up...")
    if check_connection():
        try:
            init_db()
        except Exception as e:
            logger.error(f"❌ Table creation failed: {e}")
    else:
        logger.error("❌ Database NOT connected — endpoints will fail")
    yield
    logger.info("PULSE shut down")


app = FastAPI(
    title="PULSE",
    description="Reconciled social metrics — post-date and accrual series for employees, campaigns and the whole program.",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(series_router)


@app.exception_handler(PulseError)
async def pulse_error_handler(request: Request, exc: PulseError):
    status_code = STATUS_BY_KIND.get(exc.kind, 500)
    logger.warning(
        f"{request.url.path} → {exc.kind.value}: {exc.message}",
        extra={"kind": exc.kind.value, "status_code": status_code},
    )
    return JSONResponse(status_code=status_code, content=exc.to_dict())


@app.get("/health", tags=["System"])
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "pulse",
        "version": "1.0.0",
    }


@app.get("/debug/db", tags=["System"])
async def debug_db():
    """Debug endpoint — check database connectivity."""
    return {
        "connected": check_connection(),
        "backend": backend_name(db_url),
        "url": mask_url(db_url),
    }
