# ABOUTME: Configuration management for the ArgoCD repository provider
# ABOUTME: Reads the ArgoCD endpoint, token, transport and logging settings from the environment

"""
Configuration management using pydantic-settings.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

This module holds the provider configuration. It:

1. READS environment variables (ARGOCD_URL, ARGOCD_TOKEN, ...)
2. VALIDATES them (URL normalization, log level pattern, numeric ranges)
3. PROVIDES typed access to settings for the session factory

=============================================================================
ENVIRONMENT VARIABLE MAPPING
=============================================================================

ArgoCD connection:
    ARGOCD_URL          -> ArgoCD server URL
    ARGOCD_TOKEN        -> API authentication token
    ARGOCD_INSECURE     -> Skip TLS certificate verification

Provider behaviour (ARGOCD_PROVIDER_ prefix):
    ARGOCD_PROVIDER_REQUEST_TIMEOUT -> Per-request HTTP timeout in seconds
    ARGOCD_PROVIDER_LOG_LEVEL       -> DEBUG, INFO, WARNING, ERROR, CRITICAL
    ARGOCD_PROVIDER_JSON_LOGS       -> Render logs as JSON lines
    ARGOCD_PROVIDER_AUDIT_LOG       -> Path of the JSON-lines audit log
    ARGOCD_PROVIDER_MASK_SECRETS    -> Mask secrets in logged API errors
    ARGOCD_PROVIDER_ENV_FILE        -> Optional .env file read by load_settings()
"""

from __future__ import annotations

import os
from pathlib import Path  # noqa: TC003 - Required at runtime for Pydantic
from typing import Annotated

from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# =============================================================================
# ARGOCD INSTANCE CONFIGURATION
# =============================================================================


class ArgocdInstance(BaseModel):
    """
    Connection details for the ArgoCD server the provider manages.

    This is a BaseModel (not BaseSettings) because it is derived from
    ProviderSettings rather than read from the environment directly. Tests
    construct it by hand:

        instance = ArgocdInstance(
            url="https://argocd.example.com",
            token=SecretStr("my-api-token"),
        )
    """

    model_config = {"extra": "ignore"}

    url: str = Field(description="ArgoCD server URL")
    # Base URL; API paths such as "/api/v1/repositories" are appended to it.

    token: SecretStr = Field(description="ArgoCD API token")
    # SecretStr keeps the token out of reprs and logs.
    # Use token.get_secret_value() to read it.

    name: str = Field(default="default", description="Instance identifier")
    # Bound into every log line emitted by the client.

    insecure: bool = Field(default=False, description="Skip TLS verification")

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """
        Ensure URL has a scheme and no trailing slash.

        "argocd.example.com"         -> "https://argocd.example.com"
        "https://argocd.example.com/" -> "https://argocd.example.com"
        """
        if not v.startswith(("http://", "https://")):
            v = f"https://{v}"
        return v.rstrip("/")


# =============================================================================
# PROVIDER SETTINGS
# =============================================================================


class ProviderSettings(BaseSettings):
    """
    Top-level provider configuration.

    USAGE:
    ------
        settings = load_settings()
        print(settings.instance.url)
        print(settings.request_timeout)
    """

    model_config = SettingsConfigDict(
        env_prefix="ARGOCD_PROVIDER_",
        extra="ignore",
        populate_by_name=True,
        # Lets tests pass argocd_url=... while the environment uses ARGOCD_URL
    )

    # -------------------------------------------------------------------------
    # ARGOCD CONNECTION
    # -------------------------------------------------------------------------

    argocd_url: str = Field(
        default="",
        validation_alias="ARGOCD_URL",
        description="ArgoCD server URL",
    )

    argocd_token: SecretStr = Field(
        default=SecretStr(""),
        validation_alias="ARGOCD_TOKEN",
        description="ArgoCD API token",
    )
    # HOW TO GET AN ARGOCD TOKEN:
    #    argocd account generate-token --account <account-name>

    argocd_insecure: bool = Field(
        default=False,
        validation_alias="ARGOCD_INSECURE",
        description="Skip TLS verification",
    )

    # -------------------------------------------------------------------------
    # TRANSPORT
    # -------------------------------------------------------------------------

    request_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Per-request HTTP timeout in seconds",
    )
    # Applies to a single HTTP exchange. Timed out requests are retried by the
    # client; there is no timeout spanning a whole create/read/update/delete.

    mask_secrets: bool = Field(
        default=True,
        description="Mask sensitive values in logged API errors",
    )

    # -------------------------------------------------------------------------
    # LOGGING AND AUDIT
    # -------------------------------------------------------------------------

    log_level: Annotated[str, Field(pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")] = Field(
        default="INFO",
        description="Logging level",
    )

    json_logs: bool = Field(
        default=False,
        description="Render logs as JSON instead of colored console output",
    )

    audit_log: Path | None = Field(
        default=None,
        description="Path to audit log file",
    )
    # When None, audit entries go through structlog like every other log line.

    @property
    def instance(self) -> ArgocdInstance | None:
        """
        ArgoCD instance built from ARGOCD_URL / ARGOCD_TOKEN / ARGOCD_INSECURE.

        Returns None if ARGOCD_URL is not set.
        """
        if not self.argocd_url:
            return None
        return ArgocdInstance(
            url=self.argocd_url,
            token=self.argocd_token,
            name="primary",
            insecure=self.argocd_insecure,
        )


# =============================================================================
# SETTINGS LOADER
# =============================================================================


def load_settings() -> ProviderSettings:
    """
    Load settings from environment with validation.

    If ARGOCD_PROVIDER_ENV_FILE is set, variables are also read from that file.

    Raises:
        pydantic.ValidationError: If configuration is invalid.
    """
    return ProviderSettings(
        _env_file=os.environ.get("ARGOCD_PROVIDER_ENV_FILE"),
    )
