"""
Trusted public key loading.

The verifier accepts RSA keys only. Key material may be supplied as:
- PEM SubjectPublicKeyInfo or PKCS#1 public key
- PEM X.509 certificate
- DER public key or DER certificate
"""

from pathlib import Path
from typing import Union

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPublicKey
from cryptography.hazmat.primitives.serialization import (
    load_der_public_key,
    load_pem_public_key,
)


class PublicKeyError(RuntimeError):
    """Raised when the trusted public key cannot be loaded."""


def _parse_public_key(data: bytes):
    data = data.strip()

    if data.startswith(b"-----BEGIN"):
        if b"CERTIFICATE" in data.split(b"\n", 1)[0]:
            return x509.load_pem_x509_certificate(data).public_key()
        return load_pem_public_key(data)

    # Raw DER: public key first, then certificate
    try:
        return load_der_public_key(data)
    except ValueError:
        pass

    return x509.load_der_x509_certificate(data).public_key()


def parse_public_key(data: bytes) -> RSAPublicKey:
    """
    Parse RSA public key material from PEM or DER bytes.
    """
    try:
        key = _parse_public_key(data)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise PublicKeyError(
            "Public key material is not a PEM/DER public key or X.509 certificate"
        ) from exc

    if not isinstance(key, RSAPublicKey):
        raise PublicKeyError(
            f"Unsupported public key type: {type(key).__name__} "
            "(RSA required)"
        )

    return key


def load_public_key(path: Union[str, Path]) -> RSAPublicKey:
    """
    Load the trusted RSA public key from disk.
    """
    path = Path(path)

    try:
        data = path.read_bytes()
    except OSError as exc:
        raise PublicKeyError(f"Cannot read public key file: {path}") from exc

    return parse_public_key(data)
