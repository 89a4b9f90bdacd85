"""
FastAPI ASGI Application Entry Point for the BillGuard audit service.

Run with:
    uvicorn billguard.server:app --reload --port 8001

Architecture:
- server.py: FastAPI app definition (THIS FILE)
- api/routes.py: API endpoint definitions
- auditor/: Audit core (hierarchy, discrepancy, deductions, reconciliation)
- main.py: CLI entry point
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from billguard import __version__
from billguard.api.routes import router as api_router
from billguard.config import CORS_ORIGINS, HOST, LOG_FORMAT, LOG_LEVEL, PORT
from billguard.utils.dependency_check import DependencyError, check_all_dependencies

# Configure logging
logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
logger = logging.getLogger(__name__)


# ============================================================================
# Application Lifespan: Dependency Validation
# ============================================================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run startup checks when the server starts."""
    logger.info("=" * 80)
    logger.info("Starting BillGuard Audit API Server")
    logger.info("=" * 80)

    try:
        check_all_dependencies()
        logger.info("✅ All startup checks passed. API server ready.")
        logger.info(f"📚 API Documentation: http://localhost:{PORT}/docs")
    except DependencyError as e:
        logger.error(f"❌ Startup validation failed: {e}")
        logger.warning("⚠️  Server will start but some features may not work correctly")

    yield

    logger.info("Shutting down BillGuard Audit API...")


# ============================================================================
# FastAPI Application Instance
# ============================================================================
app = FastAPI(
    title="BillGuard Audit API",
    description="Hospital bill total-hierarchy and deduction-validation audit engine",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# ============================================================================
# CORS Configuration
# ============================================================================
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# Health Check Endpoint
# ============================================================================
@app.get("/health", tags=["System"])
async def health_check():
    """Health check endpoint to verify the API is running."""
    return {
        "status": "healthy",
        "service": "BillGuard Audit API",
        "version": __version__,
    }


# ============================================================================
# Root Endpoint
# ============================================================================
@app.get("/", tags=["System"])
async def root():
    """Root endpoint with API information."""
    return {
        "message": "BillGuard Audit API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "audit": "POST /audit",
            "hierarchy": "POST /hierarchy",
            "classify": "POST /classify",
            "deductions": "POST /deductions/validate",
            "keywords": "GET /keywords",
        }
    }


app.include_router(api_router)


# ============================================================================
# Global Exception Handler
# ============================================================================
@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """
    Global exception handler for unhandled errors.

    The API always returns a JSON response, even for unexpected errors.
    """
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "message": str(exc),
            "type": type(exc).__name__
        }
    )


# ============================================================================
# Development Server
# ============================================================================
if __name__ == "__main__":
    import uvicorn

    logger.info("Starting development server...")
    uvicorn.run(
        "billguard.server:app",
        host=HOST,
        port=PORT,
        reload=True,
        log_level=LOG_LEVEL.lower(),
    )
