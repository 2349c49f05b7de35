import logging
import uuid
from typing import Annotated, Optional

from cryptography.hazmat.primitives.asymmetric.rsa import RSAPublicKey
from fastapi import (
    APIRouter,
    Depends,
    File,
    Header,
    Request,
    UploadFile,
    status,
)
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from activator.app.core.config import Settings
from activator.app.schemas.responses import (
    ActivationErrorResponse,
    ActivationSuccessResponse,
)
from activator.app.schemas.verification import VerificationResult
from activator.app.services.verifier import verify_activation_key

logger = logging.getLogger("activator.api")

router = APIRouter(tags=["Activation"])

ACTIVATION_KEY_FIELD = "activationKey"

NO_FILE_UPLOADED = "No file uploaded"
INVALID_ACTIVATION_KEY = "Invalid Activation Key"
ACTIVATION_KEY_TOO_LARGE = "Activation key file too large"

# =============================================================================
# Dependency providers
# =============================================================================

def get_correlation_id(
    x_correlation_id: Annotated[
        Optional[str],
        Header(description="Audit trace ID"),
    ] = None,
) -> str:
    """Extract or generate a correlation ID for end-to-end traceability."""
    if x_correlation_id and len(x_correlation_id) > 128:
        return str(uuid.uuid4())
    return x_correlation_id or str(uuid.uuid4())


def get_public_key(request: Request) -> RSAPublicKey:
    """
    Trusted public key loaded once during application startup.
    """
    public_key = getattr(request.app.state, "public_key", None)
    if public_key is None:
        raise RuntimeError("public key not initialized")
    return public_key


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


# =============================================================================
# Response helpers
# =============================================================================

def _error_response(
    status_code: int,
    error: str,
    correlation_id: str,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ActivationErrorResponse(error=error).model_dump(),
        headers={"X-Correlation-ID": correlation_id},
    )


def _result_response(
    result: VerificationResult,
    correlation_id: str,
) -> JSONResponse:
    """
    Map a verification result onto the public response contract.

    Every rejection collapses to the same body. The failure kind is
    logged, never returned.
    """
    if not result.valid:
        logger.info(
            "activation_key_rejected",
            extra={
                "trace_id": correlation_id,
                "failure": result.failure.value,
                "detail": result.detail,
            },
        )
        return _error_response(
            status.HTTP_400_BAD_REQUEST,
            INVALID_ACTIVATION_KEY,
            correlation_id,
        )

    logger.info(
        "activation_key_accepted",
        extra={"trace_id": correlation_id},
    )
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content=ActivationSuccessResponse(
            data=result.license_record,
        ).model_dump(),
        headers={"X-Correlation-ID": correlation_id},
    )


# =============================================================================
# POST /validate-activation-key
# =============================================================================

@router.post(
    "/validate-activation-key",
    summary="Verify an uploaded activation key and return its license",
    response_model=ActivationSuccessResponse,
    responses={
        400: {
            "model": ActivationErrorResponse,
            "description": "Missing file or invalid activation key",
        },
        413: {
            "model": ActivationErrorResponse,
            "description": "Payload too large",
        },
    },
)
async def validate_activation_key(
    public_key: Annotated[RSAPublicKey, Depends(get_public_key)],
    settings: Annotated[Settings, Depends(get_app_settings)],
    correlation_id: Annotated[str, Depends(get_correlation_id)],
    activation_key: Annotated[
        Optional[UploadFile],
        File(
            alias=ACTIVATION_KEY_FIELD,
            description="Activation key artifact (base64 envelope)",
        ),
    ] = None,
) -> JSONResponse:
    """
    Decode, verify and unwrap an activation key.

    - 400 "No file uploaded" when the file field is missing or empty
    - 400 "Invalid Activation Key" for any verification failure
    - 200 with the license record otherwise
    """
    if activation_key is None:
        logger.info("activation_key_missing", extra={"trace_id": correlation_id})
        return _error_response(
            status.HTTP_400_BAD_REQUEST,
            NO_FILE_UPLOADED,
            correlation_id,
        )

    max_bytes = settings.max_key_size_bytes

    try:
        # ------------------------------------------------------------------
        # Bounded read
        # ------------------------------------------------------------------

        raw_bytes = await activation_key.read(max_bytes + 1)

        if not raw_bytes:
            logger.info(
                "activation_key_empty",
                extra={
                    "trace_id": correlation_id,
                    "upload_filename": activation_key.filename,
                },
            )
            return _error_response(
                status.HTTP_400_BAD_REQUEST,
                NO_FILE_UPLOADED,
                correlation_id,
            )

        if len(raw_bytes) > max_bytes:
            logger.warning(
                "activation_key_too_large",
                extra={
                    "trace_id": correlation_id,
                    "max_key_size_kb": settings.max_key_size_kb,
                },
            )
            return _error_response(
                status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                ACTIVATION_KEY_TOO_LARGE,
                correlation_id,
            )

        logger.info(
            "activation_key_received",
            extra={
                "trace_id": correlation_id,
                "upload_filename": activation_key.filename,
                "size_bytes": len(raw_bytes),
            },
        )

        # ------------------------------------------------------------------
        # Verification
        # ------------------------------------------------------------------

        # RSA verify and JSON parsing are CPU-bound
        result = await run_in_threadpool(
            verify_activation_key, raw_bytes, public_key
        )
        return _result_response(result, correlation_id)

    except Exception as exc:
        logger.exception(
            "activation_key_verification_error",
            extra={
                "trace_id": correlation_id,
                "error_type": type(exc).__name__,
            },
        )
        return _error_response(
            status.HTTP_400_BAD_REQUEST,
            INVALID_ACTIVATION_KEY,
            correlation_id,
        )

    finally:
        await activation_key.close()
