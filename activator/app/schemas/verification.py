"""
Verification schemas.

Defines the signed envelope carried inside an activation key and the
tagged result produced by the verifier.

The failure kinds are internal diagnostics. They are logged by the HTTP
boundary but MUST NOT be returned to callers.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ---------------------------------------------------------------------------
# Enumerations (FROZEN CONTRACTS)
# ---------------------------------------------------------------------------

class VerificationFailure(str, Enum):
    """
    Pipeline stage at which an activation key was rejected.
    """

    MALFORMED_ENCODING = "malformed_encoding"
    MALFORMED_ENVELOPE = "malformed_envelope"
    INVALID_SIGNATURE = "invalid_signature"
    MALFORMED_PAYLOAD = "malformed_payload"


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------

class Envelope(BaseModel):
    """
    Outer JSON structure of a decoded activation key.

    `licenseData` is the exact string that was signed. It is kept as a
    string and never re-serialized before verification.
    """

    licenseData: str = Field(
        ...,
        description="Signed license payload (JSON text)",
    )

    signature: str = Field(
        ...,
        description="Base64-encoded RSA-SHA256 signature over licenseData",
    )

    model_config = ConfigDict(
        frozen=True,
        strict=True,
        extra="ignore",
    )


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------

class VerificationResult(BaseModel):
    """
    Outcome of verifying one activation key.

    A valid result carries the parsed license record and no failure.
    A rejected result carries a failure kind and no record.
    """

    valid: bool

    license_record: Any = Field(
        None,
        description="Parsed licenseData; only set when valid",
    )

    failure: Optional[VerificationFailure] = None

    detail: Optional[str] = Field(
        None,
        description="Diagnostic message (never returned to callers)",
    )

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    @model_validator(mode="after")
    def _check_consistency(self) -> "VerificationResult":
        if self.valid and self.failure is not None:
            raise ValueError("a valid result cannot carry a failure")
        if not self.valid and self.failure is None:
            raise ValueError("a rejected result must carry a failure")
        if not self.valid and self.license_record is not None:
            raise ValueError("a rejected result cannot carry a license record")
        return self

    @classmethod
    def accepted(cls, license_record: Any) -> "VerificationResult":
        return cls(valid=True, license_record=license_record)

    @classmethod
    def rejected(
        cls,
        failure: VerificationFailure,
        detail: Optional[str] = None,
    ) -> "VerificationResult":
        return cls(valid=False, failure=failure, detail=detail)
