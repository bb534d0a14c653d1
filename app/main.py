# ============================================================================
# FastAPI Application Entry Point
# ============================================================================
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from datetime import datetime
import logging

from app.config import get_settings
from app.core.exceptions import ReportingException
from app.schemas.responses import ErrorResponse, HealthCheckResponse
from app.api.v1.router import api_router

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

settings = get_settings()

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown"""
    logger.info("🚀 Starting Yoga Platform Reporting...")

    # Register every model on the metadata before create_all
    from app import models  # noqa: F401
    from app.core.database import engine, Base, async_session_maker

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("✅ Database tables created/verified")
    except Exception as e:
        logger.error(f"❌ Database initialization failed: {e}")
        raise

    # Widget catalog (optional - continue if fails)
    if settings.SEED_DEFAULT_WIDGETS:
        from app.services.reporting.dashboard_service import DashboardService
        try:
            async with async_session_maker() as session:
                count = await DashboardService(session).seed_default_widgets()
            logger.info(f"✅ Default widgets seeded ({count})")
        except Exception as e:
            logger.warning(f"⚠️ Widget seeding failed (non-critical): {e}")

    logger.info("🎉 Application started successfully!")

    yield

    # Shutdown
    logger.info("👋 Shutting down...")
    await engine.dispose()

app = FastAPI(
    title=settings.APP_NAME,
    description="Analytics and configurable admin dashboards for the yoga platform",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json"
)

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allow all for development
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Exception Handlers
@app.exception_handler(ReportingException)
async def reporting_exception_handler(request: Request, exc: ReportingException):
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=exc.detail, error_code=exc.error_code).model_dump()
    )

@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(error="Internal server error").model_dump(exclude_none=True)
    )

# Health Check - Root level
@app.get("/")
async def root():
    return {
        "app": settings.APP_NAME,
        "status": "running",
        "docs": "/docs",
        "health": "/health"
    }

@app.get("/health", response_model=HealthCheckResponse)
async def health_check():
    return HealthCheckResponse(
        status="healthy",
        app=settings.APP_NAME,
        version=app.version,
        timestamp=datetime.utcnow()
    )

app.include_router(api_router, prefix=settings.API_V1_PREFIX)
logger.info(f"✅ API router mounted at {settings.API_V1_PREFIX}")
