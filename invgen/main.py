from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
from contextlib import asynccontextmanager

from invgen.core.config import settings
from invgen.core.database import init_db
from invgen.core.middleware import SessionContextMiddleware
from invgen.core.redis import redis_client
from invgen.repositories import BACKENDS
from invgen.api.v1 import auth, profile, clients, invoices
from invgen.utils.exceptions import InvoiceSendError

# Configure logging

logging.basicConfig(level=settings.LOG_LEVEL.upper(), format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info("Starting up application...")
    try:
        if settings.PERSISTENCE_BACKEND not in BACKENDS:
            raise RuntimeError(f"Unknown persistence backend: {settings.PERSISTENCE_BACKEND}")

        if settings.DB_CREATE_TABLES:
            await init_db()
            logger.info("Database tables ready")

        # Connect to Redis
        await redis_client.connect()
        logger.info("Connected to Redis")

    except Exception as e:
        logger.error(f"Error during startup: {e}")
        raise

    yield

    # Shutdown
    logger.info("Shutting down application...")

    try:
        await redis_client.disconnect()
        logger.info("Disconnected from Redis")

    except Exception as e:
        logger.error(f"Error during shutdown: {e}")

# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    debug=settings.DEBUG,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(SessionContextMiddleware)


@app.exception_handler(InvoiceSendError)
async def invoice_send_error_handler(request: Request, exc: InvoiceSendError):
    logger.error(f"Invoice send failed at step {exc.step}: {exc.__cause__ or exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Failed to send invoice", "step": exc.step},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "An internal server error occurred."},
    )


# Include routers
app.include_router(auth.router, prefix=settings.API_V1_PREFIX)
app.include_router(profile.router, prefix=settings.API_V1_PREFIX)
app.include_router(clients.router, prefix=settings.API_V1_PREFIX)
app.include_router(invoices.router, prefix=settings.API_V1_PREFIX)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Invoice Generator API",
        "version": "0.1.0",
        "docs": "/docs"
    }

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "redis": await redis_client.ping(),
    }
