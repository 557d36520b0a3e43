import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sopgate import __version__
from sopgate.api.routers import documents, approvals, approvers, history, health
from sopgate.api.schemas.common import ErrorResponse
from sopgate.core.auth import AttemptLimiter
from sopgate.core.config import Settings, get_settings
from sopgate.core.errors import SopGateError
from sopgate.core.logging import configure_from_settings
from sopgate.services.notifications import Notifier

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    "not_found": 404,
    "conflict": 409,
    "invalid_argument": 400,
    "unauthorized": 401,
    "execution_failure": 500,
}


async def sopgate_error_handler(request: Request, exc: SopGateError) -> JSONResponse:
    status_code = ERROR_STATUS.get(exc.code, 500)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=exc.code, detail=exc.message).model_dump(),
    )


def create_app(
    settings: Optional[Settings] = None,
    notifier: Optional[Notifier] = None,
    attempt_limiter: Optional[AttemptLimiter] = None,
) -> FastAPI:
    """
    Build the API application.

    Args:
        settings: Settings override
        notifier: Notifier override (defaults to the configured one per request)
        attempt_limiter: Limiter override, one instance per application
    """
    settings = settings or get_settings()
    configure_from_settings(settings)

    app = FastAPI(
        title=settings.app_name,
        description="Approval-gated changes to SOP documents",
        version=__version__,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    app.state.attempt_limiter = attempt_limiter or AttemptLimiter.from_settings(settings)
    app.state.notifier = notifier

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(SopGateError, sopgate_error_handler)

    # Include routers
    app.include_router(documents.router, prefix="/api")
    app.include_router(approvals.router, prefix="/api")
    app.include_router(approvers.router, prefix="/api")
    app.include_router(history.router, prefix="/api")
    app.include_router(health.router)

    @app.get("/")
    async def root():
        return {
            "name": settings.app_name,
            "version": __version__,
            "docs": "/docs" if settings.debug else None,
        }

    return app


app = create_app()
