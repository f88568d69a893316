# === NAVMAP v1 ===
# {
#   "module": "AdbcFlightSQL.DriverFetch.settings",
#   "purpose": "Typed configuration populated from build environment variables",
#   "sections": [
#     {"id": "defaults", "name": "Defaults & Environment Names", "anchor": "DEF", "kind": "constants"},
#     {"id": "http", "name": "HttpSettings", "anchor": "HTTP", "kind": "class"},
#     {"id": "logging", "name": "LoggingSettings", "anchor": "LOG", "kind": "class"},
#     {"id": "fetch", "name": "FetchSettings", "anchor": "FET", "kind": "class"},
#     {"id": "loader", "name": "load_settings", "anchor": "LOAD", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Configuration models for the driver fetch pipeline.

Build systems hand inputs to this tool through environment variables (``TARGET``
and ``OUT_DIR`` from the surrounding build, ``ADBC_FLIGHTSQL_*`` overrides from
the operator). :class:`FetchSettings` reads them once through
``pydantic-settings`` and the resulting object is passed explicitly to every
stage so nothing downstream consults ``os.environ`` ad hoc.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError
from .targets import PlatformVariant, detect_host_target, variant_for_target

DEFAULT_VERSION = "1.9.0"
DEFAULT_CONDA_VERSION = "1.9.0"
PYPI_PACKAGE = "adbc-driver-flightsql"
CONDA_PACKAGE = "libadbc-driver-flightsql"
PYPI_BASE = "https://pypi.org/pypi"
CONDA_BASE = "https://conda.anaconda.org"
CONDA_CHANNEL = "conda-forge"

ENV_VERSION = "ADBC_FLIGHTSQL_VERSION"
ENV_CONDA_VERSION = "ADBC_FLIGHTSQL_CONDA_VERSION"
ENV_LIB_PATH = "ADBC_FLIGHTSQL_LIB_PATH"
ENV_SOURCE = "ADBC_FLIGHTSQL_SOURCE"
ENV_PYPI_BASE = "ADBC_FLIGHTSQL_PYPI_BASE"
ENV_CONDA_BASE_URL = "ADBC_FLIGHTSQL_CONDA_BASE_URL"
ENV_CONDA_CHANNEL = "ADBC_FLIGHTSQL_CONDA_CHANNEL"
ENV_CONDA_BUILD = "ADBC_FLIGHTSQL_CONDA_BUILD"
ENV_TIMEOUT = "ADBC_FLIGHTSQL_TIMEOUT_SEC"
ENV_MAX_RETRIES = "ADBC_FLIGHTSQL_MAX_RETRIES"
ENV_LOG_LEVEL = "ADBC_FLIGHTSQL_LOG_LEVEL"
ENV_LOG_DIR = "ADBC_FLIGHTSQL_LOG_DIR"

_VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR"}


class HttpSettings(BaseModel):
    """HTTP client settings: timeouts, retry budget, and identification."""

    model_config = ConfigDict(frozen=True)

    timeout_sec: float = Field(default=60.0, gt=0.0, le=3600.0, description="Read/write timeout")
    connect_timeout_sec: float = Field(default=10.0, gt=0.0, le=120.0)
    max_attempts: int = Field(default=3, ge=1, le=10, description="Total attempts per request")
    backoff_base: float = Field(default=0.5, ge=0.0, le=30.0, description="Backoff multiplier")
    backoff_max: float = Field(default=8.0, ge=0.0, le=120.0, description="Backoff cap (seconds)")
    user_agent: str = Field(default="adbc-flightsql-fetch/0.1.0")

    def timeout(self) -> httpx.Timeout:
        """Return an ``httpx.Timeout`` matching these settings."""

        return httpx.Timeout(
            connect=self.connect_timeout_sec,
            read=self.timeout_sec,
            write=self.timeout_sec,
            pool=self.connect_timeout_sec,
        )


class LoggingSettings(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(frozen=True)

    level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    log_dir: Optional[Path] = Field(
        default=None,
        description="Directory for JSON-lines logs; console only when unset",
    )

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, value: str) -> str:
        """Normalise logging levels and ensure they match the supported set."""

        upper = str(value).upper()
        if upper not in _VALID_LEVELS:
            raise ValueError(f"level must be one of {sorted(_VALID_LEVELS)}, got '{value}'")
        return upper


class FetchSettings(BaseSettings):
    """Inputs of one fetch run, read from the build environment.

    Every field is optional in the environment; the defaults reproduce a plain
    PyPI fetch of :data:`DEFAULT_VERSION` for the host platform into
    ``build/adbc-flightsql``.
    """

    model_config = SettingsConfigDict(
        case_sensitive=False,
        extra="ignore",
        frozen=True,
        populate_by_name=True,
        env_ignore_empty=True,
    )

    target: Optional[str] = Field(default=None, validation_alias="TARGET")
    out_dir: Path = Field(default=Path("build") / "adbc-flightsql", validation_alias="OUT_DIR")
    source: Literal["pypi", "conda"] = Field(default="pypi", validation_alias=ENV_SOURCE)
    version: str = Field(default=DEFAULT_VERSION, min_length=1, validation_alias=ENV_VERSION)
    conda_version: str = Field(
        default=DEFAULT_CONDA_VERSION, min_length=1, validation_alias=ENV_CONDA_VERSION
    )
    lib_path: Optional[Path] = Field(default=None, validation_alias=ENV_LIB_PATH)
    pypi_base_url: str = Field(default=PYPI_BASE, validation_alias=ENV_PYPI_BASE)
    conda_base_url: str = Field(default=CONDA_BASE, validation_alias=ENV_CONDA_BASE_URL)
    conda_channel: str = Field(default=CONDA_CHANNEL, validation_alias=ENV_CONDA_CHANNEL)
    conda_build: Optional[str] = Field(default=None, validation_alias=ENV_CONDA_BUILD)
    timeout_sec: float = Field(default=60.0, gt=0.0, le=3600.0, validation_alias=ENV_TIMEOUT)
    max_retries: int = Field(default=3, ge=1, le=10, validation_alias=ENV_MAX_RETRIES)
    log_level: str = Field(default="INFO", validation_alias=ENV_LOG_LEVEL)
    log_dir: Optional[Path] = Field(default=None, validation_alias=ENV_LOG_DIR)

    @field_validator("source", mode="before")
    @classmethod
    def normalize_source(cls, value: object) -> object:
        """Accept ``PyPI``/``Conda`` spelled in any case."""

        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("pypi_base_url", "conda_base_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        """Drop trailing slashes so URL joins stay single-slashed."""

        stripped = value.strip().rstrip("/")
        if not stripped.startswith(("http://", "https://")):
            raise ValueError(f"base URL must use http or https, got '{value}'")
        return stripped

    def resolve_target(self) -> str:
        """Return the configured target, falling back to the host triple."""

        return self.target or detect_host_target()

    def resolve_variant(self) -> PlatformVariant:
        """Return the platform variant for :meth:`resolve_target`."""

        return variant_for_target(self.resolve_target())

    def effective_version(self) -> str:
        """Return the driver version of the active source."""

        return self.conda_version if self.source == "conda" else self.version

    def effective_conda_build(self, variant: PlatformVariant) -> str:
        """Return the channel build string, preferring the operator override.

        The per-target defaults name the packages of :data:`DEFAULT_CONDA_VERSION`
        only; any other version must come with ``ADBC_FLIGHTSQL_CONDA_BUILD``.
        """

        if self.conda_build:
            return self.conda_build
        if not variant.conda_build:
            raise ConfigurationError(
                f"No conda build string known for target '{variant.target}'; "
                f"set {ENV_CONDA_BUILD}"
            )
        if self.conda_version != DEFAULT_CONDA_VERSION:
            raise ConfigurationError(
                f"No conda build string known for version '{self.conda_version}'; "
                f"set {ENV_CONDA_BUILD}"
            )
        return variant.conda_build

    def resolve_output_path(self, variant: PlatformVariant) -> Path:
        """Return where the library is installed for ``variant``.

        An existing directory given via ``ADBC_FLIGHTSQL_LIB_PATH`` receives the
        library under its own filename; any other override value is used as the
        file path itself. Without an override the library lands in ``out_dir``.
        """

        if self.lib_path is not None:
            custom = self.lib_path
            if custom.is_dir():
                return (custom / variant.lib_filename).absolute()
            return custom.absolute()
        return (self.out_dir / variant.lib_filename).absolute()

    def http_settings(self) -> HttpSettings:
        """Return HTTP settings derived from the environment overrides."""

        return HttpSettings(timeout_sec=self.timeout_sec, max_attempts=self.max_retries)

    def logging_settings(self) -> LoggingSettings:
        """Return logging settings derived from the environment overrides."""

        return LoggingSettings(level=self.log_level, log_dir=self.log_dir)


def load_settings(**overrides: object) -> FetchSettings:
    """Build :class:`FetchSettings` from the environment plus ``overrides``.

    Raises:
        ConfigurationError: If any value fails validation.
    """

    try:
        settings = FetchSettings(**overrides)
        settings.logging_settings()
    except PydanticValidationError as exc:
        raise ConfigurationError(f"Invalid fetch configuration: {exc}") from exc
    return settings


__all__ = [
    "DEFAULT_VERSION",
    "DEFAULT_CONDA_VERSION",
    "HttpSettings",
    "LoggingSettings",
    "FetchSettings",
    "load_settings",
]
