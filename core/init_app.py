from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from core.config import settings
from core.exceptions import MediaIngestError
from routers import upload_router

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def media_ingest_error_handler(request: Request, exc: MediaIngestError) -> JSONResponse:
    """Turns the media error family into a single JSON failure shape."""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
    content = {"success": False, "error": exc.message, "code": exc.code}
    if exc.file_name:
        content["fileName"] = exc.file_name
    return JSONResponse(status_code=exc.status_code, content=content)


def create_application() -> FastAPI:
    """
    Creates and configures the FastAPI application instance.
    """
    configure_logging()
    app = FastAPI(title=settings.PROJECT_NAME)

    # 1. CORS Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 2. Error mapping for the upload pipeline
    app.add_exception_handler(MediaIngestError, media_ingest_error_handler)

    # 3. Include Routers
    app.include_router(upload_router.router)

    # 4. Root & Health Check Endpoints
    @app.get("/")
    async def root():
        """Health check endpoint"""
        return {
            "message": "Listing Media Upload API is running",
            "status": "healthy",
            "storage_configured": settings.storage_configured,
            "missing_storage_settings": settings.missing_storage_settings,
        }

    if not settings.storage_configured:
        logger.warning(
            "Storage not configured, uploads will be refused. Missing: %s",
            ", ".join(settings.missing_storage_settings),
        )

    return app
