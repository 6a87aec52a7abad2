"""
gcplog — Configuration
========================

What:  Settings for the logging middleware, loaded with Pydantic Settings.
How:   Environment variables prefixed with GCPLOG_ (or a .env file) are read,
       type-coerced and validated when Settings() is constructed. There is no
       module-level instance: build one explicitly and hand it to GcpLog.

Environment variables:
    GCPLOG_PROJECT_ID          Google Cloud project id (required)
    GCPLOG_SERVICE_NAME        Log name / error-reporting service (required)
    GCPLOG_RESOURCE_TYPE       Monitored resource type, e.g. "cloud_run_revision"
    GCPLOG_SINK                "cloud" (API clients) or "stderr" (JSON lines)
    GCPLOG_ENVIRONMENT         Error reporting is enabled only for "production"
    GCPLOG_CAPTURE_BODY        Mirror response bodies for error messages
    GCPLOG_MAX_BODY_BYTES      Cap on the mirrored body
    GCPLOG_COUNT_HEADER_BYTES  Include encoded headers in the response size
    GCPLOG_SKIP_PATHS          Comma-separated paths that are never logged
    GCPLOG_LOG_LEVEL           Level for gcplog's own diagnostics
"""

from typing import List, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from gcplog.exceptions import ConfigurationError

PRODUCTION = "production"


class Settings(BaseSettings):
    """
    Logging middleware settings.

    project_id and service_name default to empty so that a missing value is
    reported as a ConfigurationError by validate_required() rather than as a
    Pydantic validation error at import time.
    """

    # ── Identity ──────────────────────────────────────────────────────────
    project_id: str = Field(default="", description="Google Cloud project id")
    service_name: str = Field(default="", description="Log name and error-reporting service")

    # What: Monitored resource type attached to every entry (optional)
    # Labels are always {"project_id", "service_name"}
    resource_type: str = Field(default="")

    # ── Sink ──────────────────────────────────────────────────────────────
    sink: Literal["cloud", "stderr"] = Field(default="cloud")

    # What: Runtime-environment indicator gating error reporting
    environment: str = Field(default="")

    # ── Response capture ──────────────────────────────────────────────────
    capture_body: bool = Field(default=True)
    max_body_bytes: int = Field(default=8192, ge=0, le=1_048_576)
    count_header_bytes: bool = Field(default=True)

    skip_paths: str = Field(default="")

    # ── Diagnostics ───────────────────────────────────────────────────────
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(
        env_prefix="GCPLOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() == PRODUCTION

    @property
    def skip_paths_list(self) -> List[str]:
        """Splits comma-separated skip paths into a list, dropping blanks."""
        return [p.strip() for p in self.skip_paths.split(",") if p.strip()]

    @property
    def body_capture_limit(self) -> int:
        """Effective snapshot cap: 0 when body capture is disabled."""
        return self.max_body_bytes if self.capture_body else 0

    def validate_required(self) -> None:
        """
        What:  Checks that the project id and service name are configured.
        When:  Called by GcpLog on construction.
        Raises ConfigurationError listing every missing setting.
        """
        missing = []
        if not self.project_id.strip():
            missing.append("GCPLOG_PROJECT_ID")
        if not self.service_name.strip():
            missing.append("GCPLOG_SERVICE_NAME")
        if missing:
            raise ConfigurationError(
                "gcplog is not correctly configured: " + ", ".join(missing) + " not set",
                missing=missing,
            )
