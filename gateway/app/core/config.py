"""
Centralized configuration for the Paynexus gateway.

Pydantic v2 settings management. Every value is read once at startup
and frozen; the operating mode derived from it never changes for the
lifetime of the process.

Mode resolution:
    sandbox     PAYNEXUS_ENV=sandbox  OR  MCP_ENV=demo (the default)
    production  anything else
"""

from functools import lru_cache
from typing import Annotated, Literal, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


SANDBOX = "sandbox"
PRODUCTION = "production"

Mode = Literal["sandbox", "production"]


# -------------------------------------------------------------------------
# Settings Model
# -------------------------------------------------------------------------

class Settings(BaseSettings):
    """
    Gateway settings parsed from the environment.

    Environment variable names are unprefixed to match the deployment
    manifests (PAYNEXUS_API_URL, MCP_ENV, PORT, ...).
    """

    # ---------------------------------------------------------------------
    # Backend
    # ---------------------------------------------------------------------

    paynexus_api_url: Annotated[
        str,
        Field(
            default="http://localhost:3001",
            min_length=1,
            validation_alias=AliasChoices("PAYNEXUS_API_URL", "paynexus_api_url"),
            description="Base URL of the Paynexus backend (production only)",
        ),
    ]

    backend_timeout_seconds: Annotated[
        float,
        Field(
            default=10.0,
            gt=0,
            le=120,
            validation_alias=AliasChoices(
                "BACKEND_TIMEOUT_SECONDS", "backend_timeout_seconds"
            ),
            description="Upper bound for a single outbound backend call",
        ),
    ]

    # ---------------------------------------------------------------------
    # Mode flags
    # ---------------------------------------------------------------------

    paynexus_env: Annotated[
        Optional[str],
        Field(
            default=None,
            validation_alias=AliasChoices("PAYNEXUS_ENV", "paynexus_env"),
        ),
    ]

    mcp_env: Annotated[
        str,
        Field(
            default="demo",
            validation_alias=AliasChoices("MCP_ENV", "mcp_env"),
        ),
    ]

    # ---------------------------------------------------------------------
    # Listener
    # ---------------------------------------------------------------------

    host: Annotated[
        str,
        Field(default="0.0.0.0", validation_alias=AliasChoices("HOST", "host")),
    ]

    port: Annotated[
        int,
        Field(
            default=3000,
            ge=1,
            le=65535,
            validation_alias=AliasChoices("PORT", "port"),
        ),
    ]

    log_level: Annotated[
        Literal["debug", "info", "warn", "warning", "error"],
        Field(default="info", validation_alias=AliasChoices("LOG_LEVEL", "log_level")),
    ]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        frozen=True,
        populate_by_name=True,
    )

    # ---------------------------------------------------------------------
    # Validators
    # ---------------------------------------------------------------------

    @field_validator("paynexus_api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("log_level", mode="before")
    @classmethod
    def lowercase_level(cls, v):
        return v.lower() if isinstance(v, str) else v

    # ---------------------------------------------------------------------
    # Derived mode
    # ---------------------------------------------------------------------

    @property
    def is_sandbox(self) -> bool:
        # Either flag alone forces sandbox behavior.
        return self.paynexus_env == SANDBOX or self.mcp_env == "demo"

    @property
    def mode(self) -> Mode:
        return SANDBOX if self.is_sandbox else PRODUCTION


# -------------------------------------------------------------------------
# Settings Dependency Provider
# -------------------------------------------------------------------------

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings singleton."""
    return Settings()
