# signfast/main.py

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from signfast.core.config import settings
from signfast.core.db import init_models
from signfast.utils.logger import setup_app_logging, get_logger
# Local application imports - Routes
from signfast.documents.router import router as document_routes
from signfast.signing.router import router as signing_routes
from signfast.billing.router import router as billing_routes


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Create database tables on startup when configured to
    """
    if settings.create_tables_on_startup:
        await init_models()
    yield


# Create the FastAPI app
signfast_app = FastAPI(
    title=f"SignFast - {settings.environment}",
    description="SignFast e-signature API",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# Configure logging
setup_app_logging(
    signfast_app,
    log_level=settings.log_level,
    use_json=settings.log_json or settings.environment.lower() == "production",
    log_file=settings.log_file,
    app_name="SignFast",
    environment=settings.environment,
)
logger = get_logger(__name__)

# Add CORS middleware
signfast_app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_cors_urls.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
signfast_app.include_router(document_routes)
signfast_app.include_router(signing_routes)
signfast_app.include_router(billing_routes)


# Root API to check if the server is up
@signfast_app.get("/", tags=["Base"])
async def health_check():
    """
    Root API to check if the server is up
    """
    logger.info("Calling root API for testing")
    return {"status": "ok"}
