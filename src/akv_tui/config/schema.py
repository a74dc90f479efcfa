"""
Pydantic configuration schema for akv-tui.

This module defines all configuration models with validation.
"""

from pydantic import BaseModel, ConfigDict, Field

# =============================================================================
# Authentication Configuration
# =============================================================================


class AuthConfig(BaseModel):
    """Credential acquisition and token caching configuration."""

    model_config = ConfigDict(extra="allow")

    management_scope: str = "https://management.azure.com/.default"
    vault_scope: str = "https://vault.azure.net/.default"

    skew_margin_seconds: float = Field(
        default=120.0,
        ge=0.0,
        description="Upper bound on how long before expiry a cached token is refreshed",
    )

    exclude_interactive: bool = Field(
        default=True,
        description="Never fall back to an interactive browser login",
    )


# =============================================================================
# Remote API Configuration
# =============================================================================


class RemoteConfig(BaseModel):
    """Remote secret-store endpoints and request limits."""

    model_config = ConfigDict(extra="allow")

    management_endpoint: str = "https://management.azure.com"
    subscriptions_api_version: str = "2020-01-01"
    vaults_api_version: str = "2025-05-01"
    secrets_api_version: str = "7.5"

    timeout_seconds: float = Field(default=30.0, gt=0.0, le=600.0)
    page_size: int = Field(default=25, ge=1, le=25)

    cli_fallback: bool = Field(
        default=True,
        description="Use `az keyvault list` when ARM discovery finds no vaults",
    )


class RetryConfig(BaseModel):
    """Retry policy for transient remote failures."""

    max_attempts: int = Field(default=3, ge=1, le=10)
    backoff_base_seconds: float = Field(default=0.5, ge=0.0)
    backoff_max_seconds: float = Field(default=8.0, ge=0.0)


# =============================================================================
# Cache Configuration
# =============================================================================


class CacheConfig(BaseModel):
    """Resource cache behaviour."""

    model_config = ConfigDict(extra="allow")

    preload_all: bool = Field(
        default=False,
        description="Warm every vault's secret listing after vault discovery",
    )
    preload_concurrency: int = Field(default=4, ge=1, le=32)


# =============================================================================
# UI Configuration
# =============================================================================


class UIConfig(BaseModel):
    """Terminal UI preferences."""

    model_config = ConfigDict(extra="allow")

    dark: bool = True
    mask_values: bool = True


class GeneralConfig(BaseModel):
    """General settings."""

    model_config = ConfigDict(extra="allow")

    debug: bool = False
    log_file: str = "~/.akv/akv.log"


# =============================================================================
# Root Configuration Model
# =============================================================================


class Config(BaseModel):
    """
    Root configuration model for akv-tui.

    Configuration can be loaded from a YAML file and environment variables,
    merged in order of priority.
    """

    model_config = ConfigDict(extra="allow")

    auth: AuthConfig = Field(default_factory=AuthConfig)
    remote: RemoteConfig = Field(default_factory=RemoteConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    ui: UIConfig = Field(default_factory=UIConfig)
    general: GeneralConfig = Field(default_factory=GeneralConfig)
