"""
Activation key issuing.

Signer-side counterpart of the verifier. The license record is serialized
exactly once; that string is what gets signed and what is embedded as
licenseData, so the verifier sees the signed bytes unchanged.
"""

import json
from typing import Any

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from activator.app.utils.encoding import b64encode_text


def serialize_license_record(license_record: Any) -> str:
    """Compact JSON text for a license record."""
    return json.dumps(
        license_record,
        ensure_ascii=False,
        allow_nan=False,
        separators=(",", ":"),
    )


def sign_license_data(license_data: str, private_key: RSAPrivateKey) -> str:
    """
    Sign licenseData with RSA PKCS#1 v1.5 / SHA-256.

    Returns the base64-encoded signature.
    """
    signature = private_key.sign(
        license_data.encode("utf-8"),
        padding.PKCS1v15(),
        hashes.SHA256(),
    )
    return b64encode_text(signature)


def encode_envelope(license_data: str, signature: str) -> bytes:
    """
    Wrap licenseData and its signature into activation key bytes.
    """
    envelope = json.dumps(
        {"licenseData": license_data, "signature": signature},
        ensure_ascii=False,
    )
    return b64encode_text(envelope.encode("utf-8")).encode("ascii")


def issue_activation_key(
    license_record: Any,
    private_key: RSAPrivateKey,
) -> bytes:
    """
    Produce a complete activation key for a license record.
    """
    license_data = serialize_license_record(license_record)
    return encode_envelope(
        license_data,
        sign_license_data(license_data, private_key),
    )
