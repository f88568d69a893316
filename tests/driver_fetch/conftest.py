"""Shared fixtures for the driver_fetch test suite."""

from __future__ import annotations

import logging
import os

import httpx
import pytest

from AdbcFlightSQL.DriverFetch.logging_config import LOGGER_NAME
from AdbcFlightSQL.DriverFetch.net import reset_http_client
from AdbcFlightSQL.DriverFetch.testing import RegistryStub, use_mock_http_client


@pytest.fixture(autouse=True)
def clean_fetch_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Drop build inputs inherited from the invoking shell."""

    for name in list(os.environ):
        if name.upper().startswith("ADBC_FLIGHTSQL_") or name.upper() in {"TARGET", "OUT_DIR"}:
            monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def reset_driverfetch_state():
    """Detach handlers and clients installed by a test."""

    yield
    reset_http_client()
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if getattr(handler, "_driverfetch_managed", False):
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def fetch_env(monkeypatch: pytest.MonkeyPatch, tmp_path):
    """Point ``TARGET``/``OUT_DIR`` at a Linux x86_64 build inside ``tmp_path``."""

    out_dir = tmp_path / "out"
    monkeypatch.setenv("TARGET", "x86_64-unknown-linux-gnu")
    monkeypatch.setenv("OUT_DIR", str(out_dir))
    return out_dir


@pytest.fixture
def registry():
    """Install a :class:`RegistryStub` as the shared HTTP client."""

    stub = RegistryStub()
    with use_mock_http_client(httpx.MockTransport(stub.handler)):
        yield stub
