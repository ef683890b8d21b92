"""Configuration models for catalog caching, networking, and logging.

Defaults live on pydantic models so that values are validated on assignment;
environment variables prefixed with ``NISTCAT_`` are read through
``pydantic-settings`` and layered on top by :func:`get_default_settings`.
Tests build :class:`CatalogSettings` directly with an isolated ``cache_dir``.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Dict, Optional

import platformdirs
from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from . import __version__
from .errors import ConfigurationError

__all__ = [
    "CACHE_DIR",
    "HttpConfiguration",
    "LoggingConfiguration",
    "CatalogSettings",
    "EnvironmentOverrides",
    "get_default_settings",
    "reset_default_settings",
]

LOGGER = logging.getLogger(__name__)

CACHE_DIR = Path(platformdirs.user_cache_dir("nist-catalog"))
LOG_DIR = Path(platformdirs.user_log_dir("nist-catalog"))


class HttpConfiguration(BaseModel):
    """Timeouts, retry budget, and politeness headers for upstream requests."""

    timeout_sec: float = Field(default=30.0, gt=0.0, le=300.0)
    connect_timeout_sec: float = Field(default=5.0, gt=0.0, le=60.0)
    download_timeout_sec: float = Field(default=300.0, gt=0.0, le=3600.0)
    max_retries: int = Field(default=3, ge=0, le=10)
    backoff_max_sec: float = Field(default=10.0, ge=0.0, le=120.0)
    max_connections: int = Field(default=10, ge=1, le=100)
    max_keepalive_connections: int = Field(default=5, ge=0, le=100)
    polite_headers: Dict[str, str] = Field(
        default_factory=lambda: {"User-Agent": f"nist-catalog/{__version__}"}
    )

    model_config = {"validate_assignment": True}

    def polite_http_headers(self, correlation_id: Optional[str] = None) -> Dict[str, str]:
        """Return headers applied to every request, plus an optional correlation id."""

        headers = dict(self.polite_headers)
        if correlation_id:
            headers["X-Request-ID"] = correlation_id
        return headers


class LoggingConfiguration(BaseModel):
    """Logging-related configuration for catalog resolution."""

    level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    max_log_size_mb: int = Field(default=10, gt=0, description="Maximum size of rotated log files")
    retention_days: int = Field(default=30, ge=1, description="Retention period for log files")

    @field_validator("level")
    @classmethod
    def validate_level(cls, value: str) -> str:
        """Normalise logging levels and ensure they match the supported set."""

        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR"}
        upper = value.upper()
        if upper not in valid_levels:
            raise ValueError(f"level must be one of {valid_levels}")
        return upper

    model_config = {"validate_assignment": True}


class CatalogSettings(BaseModel):
    """Upstream locations, cache placement, and nested HTTP/logging settings."""

    domain: str = Field(default="https://csrc.nist.gov")
    pubs_export_path: str = Field(default="/CSRC/media/feeds/metanorma/pubs-export")
    search_path: str = Field(default="/publications/search")
    cache_dir: Path = Field(default_factory=lambda: CACHE_DIR / "nist")
    archive_name: str = Field(default="pubs-export.zip")
    lock_timeout_sec: float = Field(default=60.0, gt=0.0)
    http: HttpConfiguration = Field(default_factory=HttpConfiguration)
    logging: LoggingConfiguration = Field(default_factory=LoggingConfiguration)

    model_config = {"validate_assignment": True}

    @field_validator("domain")
    @classmethod
    def _strip_domain(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if not value.startswith(("http://", "https://")):
            raise ValueError("domain must be an http(s) URL")
        return value

    @property
    def archive_path(self) -> Path:
        return Path(self.cache_dir).expanduser() / self.archive_name

    @property
    def meta_url(self) -> str:
        return f"{self.domain}{self.pubs_export_path}.meta"

    @property
    def archive_url(self) -> str:
        return f"{self.domain}{self.pubs_export_path}.zip"

    @property
    def search_url(self) -> str:
        return f"{self.domain}{self.search_path}"


class EnvironmentOverrides(BaseSettings):
    """Pydantic settings model exposing environment-derived overrides."""

    cache_dir: Optional[Path] = None
    domain: Optional[str] = None
    timeout_sec: Optional[float] = None
    max_retries: Optional[int] = None
    log_level: Optional[str] = None

    model_config = SettingsConfigDict(env_prefix="NISTCAT_", case_sensitive=False, extra="ignore")


def _apply_env_overrides(settings: CatalogSettings) -> None:
    overrides = EnvironmentOverrides()
    if overrides.cache_dir is not None:
        settings.cache_dir = overrides.cache_dir
    if overrides.domain is not None:
        settings.domain = overrides.domain
    if overrides.timeout_sec is not None:
        settings.http.timeout_sec = overrides.timeout_sec
    if overrides.max_retries is not None:
        settings.http.max_retries = overrides.max_retries
    if overrides.log_level is not None:
        settings.logging.level = overrides.log_level


_DEFAULT_SETTINGS_LOCK = threading.RLock()
_DEFAULT_SETTINGS: Optional[CatalogSettings] = None


def get_default_settings() -> CatalogSettings:
    """Return process-wide settings built from defaults and ``NISTCAT_*`` variables.

    Raises:
        ConfigurationError: If an environment override fails validation.
    """

    global _DEFAULT_SETTINGS
    with _DEFAULT_SETTINGS_LOCK:
        if _DEFAULT_SETTINGS is None:
            try:
                settings = CatalogSettings()
                _apply_env_overrides(settings)
            except PydanticValidationError as exc:
                raise ConfigurationError(f"invalid NISTCAT_ environment override: {exc}") from exc
            _DEFAULT_SETTINGS = settings
        return _DEFAULT_SETTINGS


def reset_default_settings() -> None:
    """Forget memoised settings so the next call re-reads the environment."""

    global _DEFAULT_SETTINGS
    with _DEFAULT_SETTINGS_LOCK:
        _DEFAULT_SETTINGS = None
