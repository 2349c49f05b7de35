"""
Centralized configuration management for the activation key verifier.

Pydantic v2 settings management to enforce strict validation and
fast-failure on invalid configuration.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


LogLevel = Literal["critical", "error", "warning", "info", "debug"]


# -------------------------------------------------------------------------
# Settings Model
# -------------------------------------------------------------------------

class Settings(BaseSettings):
    """
    Application settings parsed from the environment.

    Fails fast at startup if any value is malformed.
    """

    # ---------------------------------------------------------------------
    # Network
    # ---------------------------------------------------------------------

    # PORT is read without prefix so hosting platforms can inject it.
    port: Annotated[
        int,
        Field(
            default=8080,
            ge=0,
            le=65535,
            validation_alias=AliasChoices("PORT", "ACTIVATOR_PORT"),
            description="Listening port",
        ),
    ]

    host: Annotated[
        str,
        Field(default="0.0.0.0", min_length=1),
    ]

    # ---------------------------------------------------------------------
    # Trust anchor
    # ---------------------------------------------------------------------

    public_key_path: Annotated[
        Path,
        Field(
            default=Path("public.pem"),
            description=(
                "Path to the PEM- or DER-encoded RSA public key (or X.509 "
                "certificate) that activation keys are verified against"
            ),
        ),
    ]

    # ---------------------------------------------------------------------
    # Operational Boundaries
    # ---------------------------------------------------------------------

    max_key_size_kb: Annotated[
        int,
        Field(
            default=64,
            ge=1,
            le=1024,
            description="Upper bound on the uploaded activation key size",
        ),
    ]

    log_level: LogLevel = "info"

    model_config = SettingsConfigDict(
        env_prefix="ACTIVATOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        populate_by_name=True,
        frozen=True,
    )

    @property
    def max_key_size_bytes(self) -> int:
        return self.max_key_size_kb * 1024


# -------------------------------------------------------------------------
# Settings Dependency Provider
# -------------------------------------------------------------------------

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings singleton."""
    return Settings()
