"""
FastAPI application entry point
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from app.config import settings
from app.core import (
    setup_logging,
    RequestLoggingMiddleware,
    ExceptionHandlingMiddleware,
    CallAuditException,
    api_logger
)
from app.core.exceptions import call_audit_exception_to_http_exception
from app.db.init_db import init_database
from app.services.pipeline import close_pipeline_orchestrator


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle"""
    api_logger.info(f"Starting {settings.app_name}...")

    try:
        await init_database()
        api_logger.info("Database initialized successfully")
    except Exception as e:
        api_logger.error(f"Failed to initialize application: {e}")
        raise

    api_logger.info(f"{settings.app_name} started successfully")

    yield

    api_logger.info(f"Shutting down {settings.app_name}...")

    try:
        await close_pipeline_orchestrator()
        api_logger.info("Upstream clients closed")
    except Exception as e:
        api_logger.error(f"Error closing upstream clients: {e}")

    api_logger.info(f"{settings.app_name} shutdown completed")


setup_logging()

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Call recording transcription, analysis and scoring API",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan
)

# Last added runs first: request logging wraps exception handling
app.add_middleware(ExceptionHandlingMiddleware)
app.add_middleware(RequestLoggingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CallAuditException)
async def call_audit_exception_handler(request: Request, exc: CallAuditException):
    http_exc = call_audit_exception_to_http_exception(exc)
    api_logger.warning(f"{type(exc).__name__} ({exc.code}) on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=http_exc.status_code,
        content={"success": False, **http_exc.detail}
    )


@app.get("/health")
async def health_check():
    return {"status": "healthy", "version": settings.app_version}


from app.api.v1.api import api_router  # noqa: E402
app.include_router(api_router, prefix="/api/v1")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="info" if not settings.debug else "debug"
    )
