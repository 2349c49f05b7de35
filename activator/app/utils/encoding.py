"""
Base64 helpers shared by the verification and issuing paths.

Decoding is strict about the alphabet and padding but tolerates
whitespace, so line-wrapped key files (e.g. `base64` CLI output) verify.
"""

import base64
import re

_WHITESPACE = re.compile(r"\s+")


def b64decode_strict(text: str) -> bytes:
    """
    Decode standard base64 text, ignoring any whitespace.

    Raises ValueError (binascii.Error for alphabet or padding problems)
    when the text is not valid base64.
    """
    compact = _WHITESPACE.sub("", text)
    return base64.b64decode(compact, validate=True)


def b64encode_text(data: bytes) -> str:
    """Encode bytes as unwrapped standard base64 text."""
    return base64.b64encode(data).decode("ascii")
