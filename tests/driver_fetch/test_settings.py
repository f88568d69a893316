"""Environment-driven configuration of a fetch run."""

from __future__ import annotations

from pathlib import Path

import pytest

from AdbcFlightSQL.DriverFetch.errors import ConfigurationError, UnsupportedTargetError
from AdbcFlightSQL.DriverFetch.settings import (
    DEFAULT_CONDA_VERSION,
    DEFAULT_VERSION,
    LoggingSettings,
    load_settings,
)
from AdbcFlightSQL.DriverFetch.targets import variant_for_target


def test_defaults_without_environment(monkeypatch):
    monkeypatch.setenv("TARGET", "x86_64-unknown-linux-gnu")

    settings = load_settings()

    assert settings.source == "pypi"
    assert settings.version == DEFAULT_VERSION
    assert settings.conda_version == DEFAULT_CONDA_VERSION
    assert settings.pypi_base_url == "https://pypi.org/pypi"
    assert settings.conda_base_url == "https://conda.anaconda.org"
    assert settings.conda_channel == "conda-forge"
    assert settings.out_dir == Path("build") / "adbc-flightsql"
    assert settings.timeout_sec == 60.0
    assert settings.max_retries == 3


def test_environment_overrides_are_read(monkeypatch, tmp_path):
    monkeypatch.setenv("TARGET", "aarch64-apple-darwin")
    monkeypatch.setenv("OUT_DIR", str(tmp_path))
    monkeypatch.setenv("ADBC_FLIGHTSQL_SOURCE", "Conda")
    monkeypatch.setenv("ADBC_FLIGHTSQL_VERSION", "1.8.0")
    monkeypatch.setenv("ADBC_FLIGHTSQL_CONDA_VERSION", "1.7.0")
    monkeypatch.setenv("ADBC_FLIGHTSQL_PYPI_BASE", "https://mirror.example/pypi/")
    monkeypatch.setenv("ADBC_FLIGHTSQL_CONDA_CHANNEL", "my-channel")
    monkeypatch.setenv("ADBC_FLIGHTSQL_TIMEOUT_SEC", "5")
    monkeypatch.setenv("ADBC_FLIGHTSQL_MAX_RETRIES", "1")

    settings = load_settings()

    assert settings.resolve_target() == "aarch64-apple-darwin"
    assert settings.out_dir == tmp_path
    assert settings.source == "conda"
    assert settings.version == "1.8.0"
    assert settings.effective_version() == "1.7.0"
    assert settings.pypi_base_url == "https://mirror.example/pypi"
    assert settings.conda_channel == "my-channel"
    http = settings.http_settings()
    assert http.timeout_sec == 5.0
    assert http.max_attempts == 1


def test_empty_environment_values_fall_back_to_defaults(monkeypatch):
    monkeypatch.setenv("ADBC_FLIGHTSQL_VERSION", "")

    assert load_settings().version == DEFAULT_VERSION


def test_effective_version_follows_source(monkeypatch):
    monkeypatch.setenv("ADBC_FLIGHTSQL_VERSION", "1.8.0")
    monkeypatch.setenv("ADBC_FLIGHTSQL_CONDA_VERSION", "1.6.0")

    assert load_settings().effective_version() == "1.8.0"
    monkeypatch.setenv("ADBC_FLIGHTSQL_SOURCE", "conda")
    assert load_settings().effective_version() == "1.6.0"


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("ADBC_FLIGHTSQL_SOURCE", "homebrew"),
        ("ADBC_FLIGHTSQL_PYPI_BASE", "ftp://pypi.example"),
        ("ADBC_FLIGHTSQL_MAX_RETRIES", "0"),
        ("ADBC_FLIGHTSQL_TIMEOUT_SEC", "-1"),
        ("ADBC_FLIGHTSQL_LOG_LEVEL", "chatty"),
    ],
)
def test_invalid_values_raise_configuration_error(monkeypatch, name, value):
    monkeypatch.setenv(name, value)

    with pytest.raises(ConfigurationError):
        load_settings()


def test_unknown_target_surfaces_on_resolution(monkeypatch):
    monkeypatch.setenv("TARGET", "wasm32-unknown-unknown")
    settings = load_settings()

    with pytest.raises(UnsupportedTargetError):
        settings.resolve_variant()


def test_output_path_defaults_to_out_dir(monkeypatch, tmp_path):
    monkeypatch.setenv("OUT_DIR", str(tmp_path / "build"))
    settings = load_settings()
    variant = variant_for_target("x86_64-unknown-linux-gnu")

    path = settings.resolve_output_path(variant)

    assert path == (tmp_path / "build" / "libadbc_driver_flightsql.so").absolute()
    assert path.is_absolute()


def test_output_path_override_to_existing_directory(monkeypatch, tmp_path):
    target_dir = tmp_path / "drivers"
    target_dir.mkdir()
    monkeypatch.setenv("ADBC_FLIGHTSQL_LIB_PATH", str(target_dir))
    variant = variant_for_target("x86_64-pc-windows-msvc")

    path = load_settings().resolve_output_path(variant)

    assert path == (target_dir / "adbc_driver_flightsql.dll").absolute()


def test_output_path_override_to_file(monkeypatch, tmp_path):
    custom = tmp_path / "custom" / "libflightsql.so"
    monkeypatch.setenv("ADBC_FLIGHTSQL_LIB_PATH", str(custom))
    variant = variant_for_target("x86_64-unknown-linux-gnu")

    assert load_settings().resolve_output_path(variant) == custom.absolute()


def test_relative_output_path_is_made_absolute(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("OUT_DIR", "relative/out")
    variant = variant_for_target("x86_64-unknown-linux-gnu")

    path = load_settings().resolve_output_path(variant)

    assert path == tmp_path / "relative" / "out" / "libadbc_driver_flightsql.so"


def test_conda_build_override_wins(monkeypatch):
    variant = variant_for_target("x86_64-unknown-linux-gnu")
    assert load_settings().effective_conda_build(variant) == "h5888daf_0"

    monkeypatch.setenv("ADBC_FLIGHTSQL_CONDA_BUILD", "hdeadbee_1")
    assert load_settings().effective_conda_build(variant) == "hdeadbee_1"


def test_conda_build_required_for_non_default_version(monkeypatch):
    variant = variant_for_target("x86_64-unknown-linux-gnu")
    monkeypatch.setenv("ADBC_FLIGHTSQL_CONDA_VERSION", "1.7.0")

    with pytest.raises(ConfigurationError, match="version '1.7.0'.*ADBC_FLIGHTSQL_CONDA_BUILD"):
        load_settings().effective_conda_build(variant)

    monkeypatch.setenv("ADBC_FLIGHTSQL_CONDA_BUILD", "habc1234_2")
    assert load_settings().effective_conda_build(variant) == "habc1234_2"


def test_logging_settings_normalise_level(monkeypatch, tmp_path):
    monkeypatch.setenv("ADBC_FLIGHTSQL_LOG_LEVEL", "debug")
    monkeypatch.setenv("ADBC_FLIGHTSQL_LOG_DIR", str(tmp_path))

    logging_settings = load_settings().logging_settings()

    assert logging_settings == LoggingSettings(level="DEBUG", log_dir=tmp_path)


def test_keyword_overrides_take_effect(tmp_path):
    settings = load_settings(target="x86_64-pc-windows-msvc", out_dir=tmp_path)

    assert settings.resolve_target() == "x86_64-pc-windows-msvc"
    assert settings.out_dir == tmp_path
