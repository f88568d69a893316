"""Target triple resolution and per-platform naming."""

from __future__ import annotations

import pytest

from AdbcFlightSQL.DriverFetch.errors import ConfigurationError, UnsupportedTargetError
from AdbcFlightSQL.DriverFetch.targets import (
    SUPPORTED_TARGETS,
    detect_host_target,
    variant_for_target,
)


@pytest.mark.parametrize(
    ("target", "lib_filename", "suffix_fragment"),
    [
        ("x86_64-unknown-linux-gnu", "libadbc_driver_flightsql.so", "manylinux_2_17_x86_64"),
        ("aarch64-unknown-linux-gnu", "libadbc_driver_flightsql.so", "manylinux_2_17_aarch64"),
        ("x86_64-apple-darwin", "libadbc_driver_flightsql.so", "macosx_10_15_x86_64"),
        ("aarch64-apple-darwin", "libadbc_driver_flightsql.so", "macosx_11_0_arm64"),
        ("x86_64-pc-windows-msvc", "adbc_driver_flightsql.dll", "win_amd64"),
    ],
)
def test_variant_for_each_supported_target(target, lib_filename, suffix_fragment):
    variant = variant_for_target(target)

    assert variant.target == target
    assert variant.lib_filename == lib_filename
    assert suffix_fragment in variant.wheel_suffix
    assert variant.wheel_suffix.endswith(".whl")


def test_wheel_filename_joins_package_version_and_suffix():
    variant = variant_for_target("x86_64-pc-windows-msvc")

    assert variant.wheel_filename("1.9.0") == "adbc_driver_flightsql-1.9.0-py3-none-win_amd64.whl"


def test_linux_wheel_filename_matches_published_name():
    variant = variant_for_target("x86_64-unknown-linux-gnu")

    assert variant.wheel_filename("1.9.0") == (
        "adbc_driver_flightsql-1.9.0-py3-none-manylinux1_x86_64.manylinux2014_x86_64"
        ".manylinux_2_17_x86_64.manylinux_2_5_x86_64.whl"
    )


def test_conda_library_name_uses_native_dylib_on_macos():
    mac = variant_for_target("aarch64-apple-darwin")
    linux = variant_for_target("x86_64-unknown-linux-gnu")

    assert mac.conda_library_name == "libadbc_driver_flightsql.dylib"
    assert mac.lib_filename == "libadbc_driver_flightsql.so"
    assert linux.conda_library_name == linux.lib_filename


def test_windows_conda_library_lives_under_library_bin():
    assert variant_for_target("x86_64-pc-windows-msvc").conda_lib_dir == "Library/bin"
    assert variant_for_target("x86_64-unknown-linux-gnu").conda_lib_dir == "lib"


def test_unsupported_target_is_a_configuration_error():
    with pytest.raises(UnsupportedTargetError) as excinfo:
        variant_for_target("riscv64gc-unknown-linux-gnu")

    assert isinstance(excinfo.value, ConfigurationError)
    assert excinfo.value.target == "riscv64gc-unknown-linux-gnu"
    assert str(excinfo.value) == (
        "Unsupported target 'riscv64gc-unknown-linux-gnu' for ADBC FlightSQL driver"
    )


def test_supported_targets_is_read_only():
    with pytest.raises(TypeError):
        SUPPORTED_TARGETS["foo"] = SUPPORTED_TARGETS["x86_64-unknown-linux-gnu"]  # type: ignore[index]


@pytest.mark.parametrize(
    ("system", "machine", "expected"),
    [
        ("Linux", "x86_64", "x86_64-unknown-linux-gnu"),
        ("Linux", "aarch64", "aarch64-unknown-linux-gnu"),
        ("Darwin", "arm64", "aarch64-apple-darwin"),
        ("Darwin", "x86_64", "x86_64-apple-darwin"),
        ("Windows", "AMD64", "x86_64-pc-windows-msvc"),
    ],
)
def test_detect_host_target(system, machine, expected):
    assert detect_host_target(system=system, machine=machine) == expected


def test_detect_host_target_rejects_unknown_hosts():
    with pytest.raises(UnsupportedTargetError):
        detect_host_target(system="SunOS", machine="sparc")
