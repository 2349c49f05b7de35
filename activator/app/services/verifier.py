"""
Activation key verification pipeline.

An activation key is base64 text wrapping a JSON envelope:

    {"licenseData": "<json text>", "signature": "<base64 RSA-SHA256>"}

The pipeline runs strictly in this order:

    1. decode      raw bytes -> UTF-8 text -> base64 -> UTF-8 text
    2. envelope    JSON text -> Envelope(licenseData, signature)
    3. verify      RSA PKCS#1 v1.5 / SHA-256 over licenseData's UTF-8 bytes
    4. parse       licenseData -> license record (only after step 3 passes)

licenseData is verified byte-for-byte as received and the same string is
parsed afterwards. It is never re-serialized or normalized in between.

Exception handling policy:
    Each stage raises a VerificationError subclass tagged with its
    VerificationFailure. verify_activation_key converts only those into a
    rejected VerificationResult. Anything else is a logic error and
    propagates to the caller.

The module performs no I/O and holds no state.
"""

from __future__ import annotations

import json
from typing import Any

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPublicKey
from pydantic import ValidationError

from activator.app.schemas.verification import (
    Envelope,
    VerificationFailure,
    VerificationResult,
)
from activator.app.utils.encoding import b64decode_strict


# ----------------------------------------------------------------------
# Error hierarchy
# ----------------------------------------------------------------------

class VerificationError(Exception):
    """Base class for activation key rejections."""

    failure: VerificationFailure


class MalformedEncodingError(VerificationError):
    failure = VerificationFailure.MALFORMED_ENCODING


class MalformedEnvelopeError(VerificationError):
    failure = VerificationFailure.MALFORMED_ENVELOPE


class InvalidSignatureError(VerificationError):
    failure = VerificationFailure.INVALID_SIGNATURE


class MalformedPayloadError(VerificationError):
    failure = VerificationFailure.MALFORMED_PAYLOAD


# ----------------------------------------------------------------------
# JSON parsing
# ----------------------------------------------------------------------

def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-standard JSON constant: {name}")


def _loads(text: str) -> Any:
    # NaN / Infinity are not JSON
    return json.loads(text, parse_constant=_reject_constant)


# ----------------------------------------------------------------------
# Stages
# ----------------------------------------------------------------------

def decode_activation_key(raw_bytes: bytes) -> str:
    """
    Decode the uploaded bytes into the envelope's JSON text.
    """
    try:
        text = raw_bytes.decode("utf-8")
        decoded = b64decode_strict(text)
        return decoded.decode("utf-8")
    except ValueError as exc:
        # binascii.Error and UnicodeDecodeError are both ValueErrors
        raise MalformedEncodingError(
            f"activation key is not base64-encoded UTF-8: {exc}"
        ) from exc


def parse_envelope(text: str) -> Envelope:
    """
    Parse the decoded text into an Envelope.
    """
    try:
        data = _loads(text)
    except (ValueError, RecursionError) as exc:
        raise MalformedEnvelopeError(f"envelope is not valid JSON: {exc}") from exc

    try:
        return Envelope.model_validate(data)
    except ValidationError as exc:
        raise MalformedEnvelopeError(
            f"envelope lacks string licenseData/signature fields "
            f"({exc.error_count()} errors)"
        ) from exc


def verify_signature(envelope: Envelope, public_key: RSAPublicKey) -> bool:
    """
    Verify the envelope signature over the exact UTF-8 bytes of licenseData.

    Returns False for any input that cannot carry a valid signature.
    """
    try:
        signature = b64decode_strict(envelope.signature)
        message = envelope.licenseData.encode("utf-8")
    except ValueError:
        # Undecodable signature, or lone surrogates in licenseData
        return False

    try:
        public_key.verify(
            signature,
            message,
            padding.PKCS1v15(),
            hashes.SHA256(),
        )
    except InvalidSignature:
        return False

    return True


def parse_license_data(license_data: str) -> Any:
    """
    Parse verified licenseData into the license record.

    MUST only be called with a string whose signature has been verified.
    """
    try:
        return _loads(license_data)
    except (ValueError, RecursionError) as exc:
        raise MalformedPayloadError(
            f"signed licenseData is not valid JSON: {exc}"
        ) from exc


# ----------------------------------------------------------------------
# Public entry point
# ----------------------------------------------------------------------

def verify_activation_key(
    raw_bytes: bytes,
    public_key: RSAPublicKey,
) -> VerificationResult:
    """
    Run the full decode / envelope / verify / parse pipeline.

    Pure and deterministic: the same inputs always produce an equal result.
    """
    try:
        envelope = parse_envelope(decode_activation_key(raw_bytes))

        if not verify_signature(envelope, public_key):
            raise InvalidSignatureError("signature does not match licenseData")

        license_record = parse_license_data(envelope.licenseData)
    except VerificationError as exc:
        return VerificationResult.rejected(exc.failure, str(exc))

    return VerificationResult.accepted(license_record)
