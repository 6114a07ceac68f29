"""Pydantic request and response models for the pass server API."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ListSecretsRequest(BaseModel):
    """Body of POST /secrets (an empty object)."""

    model_config = ConfigDict(extra="ignore")


class SecretRequest(BaseModel):
    """Body of POST /secret.

    Both fields are required; they default to "" so that a missing field is
    reported with the same message as an empty one.
    """

    model_config = ConfigDict(extra="ignore")

    path: str = Field(default="", examples=["work/example.com"])
    username: str = Field(default="", examples=["alice"])

    @field_validator("path", "username", mode="before")
    @classmethod
    def null_as_empty(cls, value):
        """A JSON null counts as an empty field."""
        return "" if value is None else value


class SecretResponse(BaseModel):
    """Armored ciphertext (the encrypted index or one secret)."""

    response: str


class ErrorResponse(BaseModel):
    """Error response."""

    error: str


class DependencyStatus(BaseModel):
    """Dependency status information."""

    name: str = Field(..., examples=["password_store"])
    status: Literal["ok", "degraded", "unavailable"]
    message: str | None = None


class StatusResponse(BaseModel):
    """Service status response."""

    status: Literal["ok", "degraded", "unavailable"]
    version: str | None = None
    timestamp: datetime
    cache_state: Literal["empty", "loading", "loaded"]
    secret_count: int = Field(default=0, ge=0)
    dependencies: list[DependencyStatus] = Field(default_factory=list)
