"""FastAPI application factory and main entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import kidquiz.models  # noqa: F401  (registers every table on Base.metadata)
from kidquiz.api.v1.router import api_router
from kidquiz.common.request_id import RequestIDMiddleware
from kidquiz.core.config import settings
from kidquiz.core.errors import register_error_handlers
from kidquiz.core.logging import get_logger, setup_logging
from kidquiz.db.base import Base
from kidquiz.db.engine import engine

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    setup_logging()
    # Create tables outside production; production schemas are provisioned ahead of deploy
    if settings.ENV in ("dev", "test"):
        Base.metadata.create_all(bind=engine)
    logger.info("Application started", extra={"env": settings.ENV, "llm_provider": settings.LLM_PROVIDER})
    yield


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version="1.0.0",
        description="Quiz authoring, attempt scoring and analytics for young learners",
        openapi_url="/openapi.json" if settings.ENV != "prod" else None,
        docs_url="/docs" if settings.ENV != "prod" else None,
        redoc_url="/redoc" if settings.ENV != "prod" else None,
        lifespan=lifespan,
    )

    # First added is innermost
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    app.include_router(api_router, prefix=settings.API_PREFIX)

    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint - API information."""
        return {
            "message": settings.PROJECT_NAME,
            "version": "1.0.0",
            "docs_url": "/docs" if settings.ENV != "prod" else None,
        }

    return app


# Create app instance
app = create_app()
