"""Application configuration using Pydantic Settings.

This project loads configuration from environment variables.

Optionally, you may point `ENV_FILE` at a local env file (for development).
The env file is opt-in; nothing is auto-discovered.
"""

import os
from enum import Enum

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppEnvironment(str, Enum):
    """Application environment values."""

    LOCAL = "local"
    TEST = "test"
    PROD = "prod"


class Settings(BaseSettings):
    """
    Application settings with type validation.

    Configuration is loaded from environment variables, with support
    for .env files in development.
    """

    model_config = SettingsConfigDict(
        env_file=os.getenv("ENV_FILE") or None, env_prefix="", extra="ignore"
    )

    # Application
    app_env: AppEnvironment = AppEnvironment.LOCAL
    app_name: str = "attendance-policy-graph"
    app_log_level: str = "INFO"

    # Observability
    observability_enabled: bool = True
    observability_structured_logs: bool = True
    observability_request_id_header: str = "X-Request-ID"

    # Metrics token for protecting /metrics endpoint
    metrics_token: str | None = None

    # CORS Configuration
    cors_origins: str = "http://localhost:3000,http://localhost:5173"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins string into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    # Canvas / viewport
    canvas_zoom_min: float = 0.1
    canvas_zoom_max: float = 3.0
    canvas_zoom_step: float = 0.1
    canvas_wheel_zoom_sensitivity: float = 0.001

    # Rule tree import layout
    import_column_spacing: float = 250.0
    import_row_spacing: float = 100.0
    import_result_x: float = 900.0

    # Type catalog
    # Path to a JSON list of {"label", "key", "type"} entries. When unset the
    # built-in attendance catalog is used.
    variable_catalog_file: str | None = None
    allow_unknown_variables_on_import: bool = True

    # Request guards for rule trees posted to the API
    max_rule_tree_depth: int = 32
    max_rule_tree_nodes: int = 2000

    @field_validator("app_env", mode="before")
    @classmethod
    def validate_app_env(cls, v: str | AppEnvironment) -> AppEnvironment:
        """Validate and parse app_env to AppEnvironment enum."""
        if isinstance(v, AppEnvironment):
            return v
        try:
            return AppEnvironment(v.lower())
        except ValueError:
            raise ValueError(
                f"app_env must be one of {[e.value for e in AppEnvironment]}, got '{v}'"
            )

    @field_validator("canvas_zoom_min", "canvas_zoom_step", "canvas_wheel_zoom_sensitivity")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        """Zoom parameters must be strictly positive."""
        if v <= 0:
            raise ValueError("must be greater than 0")
        return v

    @model_validator(mode="after")
    def validate_settings(self) -> "Settings":
        """
        Validate cross-field and production-specific settings.
        """
        if self.canvas_zoom_min >= self.canvas_zoom_max:
            raise ValueError(
                f"canvas_zoom_min ({self.canvas_zoom_min}) must be lower than "
                f"canvas_zoom_max ({self.canvas_zoom_max})"
            )

        if self.app_env == AppEnvironment.PROD:
            if not self.metrics_token:
                raise ValueError("METRICS_TOKEN must be set in production")

            # CORS must not allow localhost in production
            for origin in self.cors_origins_list:
                if "localhost" in origin or "127.0.0.1" in origin:
                    raise ValueError(
                        f"CORS origins must not contain localhost in production: {origin}"
                    )

        return self


settings = Settings()
