"""Backend configuration.

Settings are read from environment variables or a ``.env`` file. Exactly one
backend must be resolvable: a hosted Gemini API key, or a Vertex AI project
(plus location and an optional service-account file).
"""

import logging
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from shotgen.agents.base import ConfigurationError
from shotgen.schemas.segment import BackendKind


logger = logging.getLogger(__name__)


class BackendSettings(BaseSettings):
    """Credentials and fixed generation parameters for the backends."""

    # Hosted Gemini API
    google_api_key: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("GOOGLE_API_KEY", "GEMINI_API_KEY"),
    )
    gemini_model: str = Field(
        "gemini-2.5-flash",
        validation_alias=AliasChoices("GEMINI_MODEL"),
    )

    # Vertex AI
    vertex_project: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("VERTEX_PROJECT", "GCP_PROJECT_ID"),
    )
    vertex_location: str = Field(
        "us-central1",
        validation_alias=AliasChoices("VERTEX_LOCATION", "GCP_LOCATION", "GCP_REGION"),
    )
    google_application_credentials: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("GOOGLE_APPLICATION_CREDENTIALS"),
    )
    vertex_model: str = Field(
        "gemini-2.5-pro",
        validation_alias=AliasChoices("VERTEX_MODEL"),
    )

    # Shared
    preferred_backend: Optional[BackendKind] = Field(
        None,
        validation_alias=AliasChoices("SHOTGEN_BACKEND"),
    )
    temperature: float = Field(
        0.4,
        ge=0.0,
        le=2.0,
        validation_alias=AliasChoices("SHOTGEN_TEMPERATURE"),
    )
    max_output_tokens: int = Field(
        8192,
        gt=0,
        validation_alias=AliasChoices("SHOTGEN_MAX_OUTPUT_TOKENS"),
    )
    request_timeout_seconds: float = Field(
        60.0,
        gt=0.0,
        validation_alias=AliasChoices("SHOTGEN_REQUEST_TIMEOUT_SECONDS"),
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    def has_gemini_credentials(self) -> bool:
        return bool(self.google_api_key and self.google_api_key.strip())

    def has_vertex_credentials(self) -> bool:
        return bool(self.vertex_project and self.vertex_project.strip())


def load_settings() -> BackendSettings:
    """Load settings from the environment (and ``.env`` when present)."""
    return BackendSettings()


def resolve_backend_kind(
    settings: BackendSettings,
    requested: Optional[BackendKind] = None
) -> BackendKind:
    """Decide which backend serves calls.

    Order: an explicit request, then ``SHOTGEN_BACKEND``, then the hosted API
    key, then the Vertex project.

    Raises:
        ConfigurationError: If the chosen (or any) backend lacks credentials
    """
    wanted = requested or settings.preferred_backend

    if wanted == BackendKind.GEMINI:
        if not settings.has_gemini_credentials():
            raise ConfigurationError(
                "Gemini backend requested but GOOGLE_API_KEY / GEMINI_API_KEY is not set",
                {"backend": wanted.value}
            )
        return BackendKind.GEMINI

    if wanted == BackendKind.VERTEX:
        if not settings.has_vertex_credentials():
            raise ConfigurationError(
                "Vertex backend requested but VERTEX_PROJECT / GCP_PROJECT_ID is not set",
                {"backend": wanted.value}
            )
        return BackendKind.VERTEX

    if settings.has_gemini_credentials():
        if settings.has_vertex_credentials():
            logger.info(
                "Both Gemini and Vertex credentials are configured; using Gemini "
                "(set SHOTGEN_BACKEND=vertex to override)"
            )
        return BackendKind.GEMINI

    if settings.has_vertex_credentials():
        return BackendKind.VERTEX

    raise ConfigurationError(
        "No backend configured: set GOOGLE_API_KEY for the Gemini API "
        "or VERTEX_PROJECT for Vertex AI"
    )
