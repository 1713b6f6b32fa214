# src/roaster_api/main.py
"""Main entry point for the Roaster API application."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from roaster_api.api.v1 import auth_router, onchain_router, roast_router
from roaster_api.core.context import ServiceContext
from roaster_api.core.errors import RoasterError
from roaster_api.core.settings import Settings, settings
from roaster_api.schemas import ErrorResponse

logger = logging.getLogger(__name__)

ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    status: {"model": ErrorResponse} for status in (400, 401, 402, 429, 500, 502)
}


def configure_logging(config: Settings) -> None:
    """Apply the configured root log level."""
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def roaster_error_handler(_request: Request, exc: RoasterError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_envelope())


async def validation_error_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        message = str(error.get("msg", "invalid")).removeprefix("Value error, ")
        problems.append(f"{location}: {message}" if location else message)
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "Invalid request", "hint": "; ".join(problems)},
    )


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"success": False, "error": "Internal error"})


def create_app(context: ServiceContext | None = None, config: Settings | None = None) -> FastAPI:
    """Build the FastAPI application.

    When `context` is given (tests, embedding) the caller owns its lifecycle;
    otherwise the lifespan opens one from `config` and closes it at shutdown.
    """
    config = config or (context.settings if context is not None else settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owned = context is None
        app.state.context = ServiceContext.open(config) if owned else context
        try:
            yield
        finally:
            if owned:
                await app.state.context.close()

    app = FastAPI(
        title=config.app_name,
        description="Entitlement-gated API keys and daily quotas for The Roaster",
        version=config.app_version,
        lifespan=lifespan,
    )
    if context is not None:
        app.state.context = context

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_methods=config.cors_allow_methods,
        allow_headers=config.cors_allow_headers,
    )

    app.add_exception_handler(RoasterError, roaster_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unexpected_error_handler)

    app.include_router(auth_router, prefix="/api/v1", responses=ERROR_RESPONSES)
    app.include_router(onchain_router, prefix="/api/v1", responses=ERROR_RESPONSES)
    app.include_router(roast_router, prefix="/api/v1", responses=ERROR_RESPONSES)

    @app.get("/health")
    async def health_check() -> dict[str, bool]:
        """Health check endpoint to verify the service is running."""
        return {"ok": True}

    return app


configure_logging(settings)
app = create_app()

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "roaster_api.main:app",
        host="127.0.0.1",
        port=settings.port,
        proxy_headers=True,
        reload=settings.debug,
    )
