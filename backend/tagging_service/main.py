"""FastAPI application."""
import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tagging_service.api.v1.router import api_router
from tagging_service.core.config import settings
from tagging_service.core.errors import TagConflictError, TaggingError, TagNotFoundError
from tagging_service.core.logging import setup_logging

logger = logging.getLogger(__name__)


async def tagging_error_handler(request: Request, exc: TaggingError) -> JSONResponse:
    """Map service errors to 404 / 409 responses."""
    if isinstance(exc, TagNotFoundError):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, TagConflictError):
        status_code = status.HTTP_409_CONFLICT
    else:
        status_code = status.HTTP_400_BAD_REQUEST
    logger.info(f"{request.method} {request.url.path} -> {status_code}: {exc.message}")
    return JSONResponse(status_code=status_code, content={"error": exc.to_dict()})


def create_app() -> FastAPI:
    """Build the API application."""
    setup_logging(settings.LOG_LEVEL)

    app = FastAPI(title=settings.PROJECT_NAME)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(TaggingError, tagging_error_handler)
    app.include_router(api_router, prefix="/api/v1")

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()
