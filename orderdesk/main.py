import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from orderdesk.config import settings
from orderdesk.api.v1.router import api_router
from orderdesk.core.exceptions import (
    InvalidInputError,
    NotFoundError,
    OrderDeskError,
    TransactionFailureError,
)
from orderdesk.database import init_db, async_session_factory


logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup creates any missing tables; there is no background work to stop.
    """
    # Startup
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    await init_db()

    yield

    # Shutdown
    logger.info("Shutting down...")


OPENAPI_TAGS = [
    {"name": "Manufacturers", "description": "Manufacturer contacts and lifecycle"},
    {"name": "Resolution", "description": "Product to manufacturer links and resolution lookups"},
    {"name": "Option Mappings", "description": "Option-level manufacturer overrides"},
    {"name": "Exclusion", "description": "Fulfillment-type exclusion switch, patterns and excluded orders"},
    {"name": "Couriers", "description": "Courier names, aliases and codes"},
    {"name": "Invoices", "description": "Courier / tracking reconciliation from manufacturer invoices"},
    {"name": "Orders", "description": "Order ingestion and matching reports"},
]

# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=OPENAPI_TAGS,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router)


_STATUS_BY_ERROR = {
    InvalidInputError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    TransactionFailureError: status.HTTP_409_CONFLICT,
}


@app.exception_handler(OrderDeskError)
async def orderdesk_exception_handler(request: Request, exc: OrderDeskError):
    """Map service errors to HTTP status codes."""
    status_code = _STATUS_BY_ERROR.get(type(exc), status.HTTP_400_BAD_REQUEST)
    if isinstance(exc, TransactionFailureError):
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content={
            "error": exc.message,
            "type": type(exc).__name__,
            "details": exc.details,
            "path": str(request.url.path),
        },
    )


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint with database validation."""
    from sqlalchemy import text
    from datetime import datetime, timezone

    health_status = {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {
            "database": "unknown"
        }
    }

    try:
        async with async_session_factory() as session:
            await session.execute(text("SELECT 1"))
        health_status["checks"]["database"] = "connected"
    except Exception as e:
        logger.warning(f"Health check database error: {e}")
        health_status["status"] = "unhealthy"
        health_status["checks"]["database"] = f"error: {type(e).__name__}"

    return health_status


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("orderdesk.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
