import logging

from contextlib import asynccontextmanager
from importlib.metadata import version, PackageNotFoundError
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from activator.app.api.routes import (
    NO_FILE_UPLOADED,
    get_correlation_id,
    router as activation_router,
)
from activator.app.core.config import Settings, get_settings
from activator.app.schemas.responses import ActivationErrorResponse
from activator.app.services.keys import PublicKeyError, load_public_key

logger = logging.getLogger("activator.main")


def get_app_version() -> str:
    """
    Resolve application version deterministically.

    Falls back to the source version when the distribution is not installed.
    """
    try:
        return version("activation-key-verifier")
    except PackageNotFoundError:
        return "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Guarantees:
    - Fail-fast startup if the trusted public key cannot be loaded
    - The key is loaded once and shared read-only by all requests
    """
    settings: Settings = app.state.settings

    logger.info(
        "activation_verifier_startup_begin",
        extra={
            "service": "activator",
            "version": get_app_version(),
        },
    )

    # ------------------------------------------------------------------
    # Load the trust anchor (FAIL FAST)
    # ------------------------------------------------------------------
    try:
        public_key = load_public_key(settings.public_key_path)
    except PublicKeyError:
        logger.exception(
            "public_key_load_failed",
            extra={"public_key_path": str(settings.public_key_path)},
        )
        raise

    app.state.public_key = public_key

    logger.info(
        "public_key_loaded",
        extra={
            "public_key_path": str(settings.public_key_path),
            "key_size": public_key.key_size,
        },
    )

    try:
        yield
    finally:
        logger.info("activation_verifier_shutdown_begin")
        app.state.public_key = None


async def _missing_upload_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """
    The only validated request input is the activation key file; a form
    field that is not a file is reported the same way as a missing one.
    """
    correlation_id = get_correlation_id(request.headers.get("X-Correlation-ID"))

    logger.info(
        "activation_key_not_a_file",
        extra={
            "trace_id": correlation_id,
            "error_count": len(exc.errors()),
        },
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ActivationErrorResponse(error=NO_FILE_UPLOADED).model_dump(),
        headers={"X-Correlation-ID": correlation_id},
    )


async def _http_error_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """
    Keep framework-raised errors in the activation response shape.

    A 400 raised before the route runs means the multipart body could not
    be parsed, so no file was received.
    """
    correlation_id = get_correlation_id(request.headers.get("X-Correlation-ID"))

    if exc.status_code == status.HTTP_400_BAD_REQUEST:
        error = NO_FILE_UPLOADED
    else:
        error = str(exc.detail)

    logger.info(
        "activation_request_rejected",
        extra={
            "trace_id": correlation_id,
            "status_code": exc.status_code,
            "reason": str(exc.detail),
        },
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=ActivationErrorResponse(error=error).model_dump(),
        headers={**(exc.headers or {}), "X-Correlation-ID": correlation_id},
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Application factory for the activation key verifier.
    """
    app = FastAPI(
        title="Activation Key Verifier",
        description=(
            "Verifies signed activation keys and returns the enclosed "
            "license record."
        ),
        version=get_app_version(),
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )

    app.state.settings = settings if settings is not None else get_settings()

    app.add_exception_handler(RequestValidationError, _missing_upload_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.include_router(activation_router)
    return app


app = create_app()


def run() -> None:
    """Serve the application with uvicorn."""
    settings = get_settings()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    logger.info(
        "activation_verifier_listening",
        extra={"host": settings.host, "port": settings.port},
    )

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
    )


if __name__ == "__main__":
    run()
