from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from identity_api.api.v1.routes import health, identify
from identity_api.api.v1.schemas import ErrorResponse
from identity_api.core.config import get_settings
from identity_api.core.errors import IdentityError, InvalidRequest
from identity_api.core.logging import configure_logging
from identity_api.db.pg.base import Base
from identity_api.db.pg import models as _models  # noqa: F401
from identity_api.db.pg.session import engine

configure_logging()
logger = logging.getLogger(__name__)
settings = get_settings()
app = FastAPI(title=settings.app_name)
allowed_origins = [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()]
if allowed_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.on_event("startup")
def on_startup() -> None:
    Base.metadata.create_all(bind=engine)
    logger.info("database_schema_ready", extra={"backend": engine.url.get_backend_name()})


@app.exception_handler(InvalidRequest)
def invalid_request_handler(request: Request, exc: InvalidRequest) -> JSONResponse:
    logger.warning("identify_invalid_request", extra={"path": request.url.path, "reason": str(exc)})
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorResponse(error="Bad request", message=str(exc)).model_dump(),
    )


@app.exception_handler(IdentityError)
def identity_error_handler(request: Request, exc: IdentityError) -> JSONResponse:
    logger.error(
        "identify_failed",
        exc_info=exc,
        extra={"path": request.url.path, "error_type": type(exc).__name__},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(error="Internal server error", message=str(exc)).model_dump(),
    )


@app.exception_handler(Exception)
def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("unhandled_request_error", exc_info=exc, extra={"path": request.url.path})
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(error="Internal server error", message=str(exc) or "Unknown error").model_dump(),
    )


app.include_router(health.router, prefix=settings.api_prefix)
app.include_router(identify.router, prefix=settings.api_prefix)


def run() -> None:
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
