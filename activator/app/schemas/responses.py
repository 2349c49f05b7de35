"""
HTTP response bodies for the activation key endpoint.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict


class ActivationSuccessResponse(BaseModel):
    success: Literal[True] = True
    data: Any

    model_config = ConfigDict(frozen=True)


class ActivationErrorResponse(BaseModel):
    success: Literal[False] = False
    error: str

    model_config = ConfigDict(frozen=True)
