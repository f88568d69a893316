"""Publishing the library path and version to the surrounding build."""

from __future__ import annotations

import json
import runpy
from pathlib import Path

import pytest

from AdbcFlightSQL.DriverFetch import publish
from AdbcFlightSQL.DriverFetch.errors import InstallError
from AdbcFlightSQL.DriverFetch.publish import (
    RERUN_IF_ENV_CHANGED,
    BuildOutputs,
    append_env_file,
    build_fingerprint,
    env_lines,
    is_stale,
    read_stamp,
    write_constants_module,
    write_stamp,
)


@pytest.fixture
def outputs(tmp_path) -> BuildOutputs:
    library = tmp_path / "out" / "libadbc_driver_flightsql.so"
    library.parent.mkdir()
    library.write_bytes(b"driver")
    return BuildOutputs(lib_path=library, version="1.9.0")


def test_env_lines_use_published_names(outputs):
    assert env_lines(outputs) == [
        f"ADBC_FLIGHTSQL_LIB_PATH={outputs.lib_path}",
        "ADBC_FLIGHTSQL_LIB_VERSION=1.9.0",
    ]


def test_append_env_file_keeps_existing_lines(tmp_path, outputs):
    env_file = tmp_path / "github_env"
    env_file.write_text("OTHER=1\n", encoding="utf-8")

    append_env_file(env_file, outputs)

    assert env_file.read_text(encoding="utf-8").splitlines() == ["OTHER=1", *env_lines(outputs)]


def test_constants_module_exposes_driver_path_and_version(tmp_path, outputs):
    module_path = tmp_path / "gen" / "_driver_build.py"

    assert write_constants_module(outputs, module_path) == module_path
    namespace = runpy.run_path(str(module_path))

    assert namespace["DRIVER_PATH"] == str(outputs.lib_path)
    assert namespace["DRIVER_VERSION"] == "1.9.0"


def test_constants_module_quotes_awkward_paths(tmp_path):
    odd = BuildOutputs(lib_path=Path("/opt/it's \"here\"/lib.so"), version="1.9.0")
    module_path = tmp_path / "_driver_build.py"

    write_constants_module(odd, module_path)

    assert runpy.run_path(str(module_path))["DRIVER_PATH"] == str(odd.lib_path)


def test_fingerprint_tracks_watched_variables_only():
    base = {"ADBC_FLIGHTSQL_VERSION": "1.9.0", "HOME": "/home/a"}

    assert build_fingerprint(base) == build_fingerprint({**base, "HOME": "/home/b"})
    assert build_fingerprint(base) != build_fingerprint({**base, "ADBC_FLIGHTSQL_VERSION": "1.8.0"})
    assert build_fingerprint(base) != build_fingerprint({**base, "ADBC_FLIGHTSQL_LIB_PATH": "/x"})


def test_fingerprint_distinguishes_unset_from_empty():
    assert build_fingerprint({}) != build_fingerprint({"ADBC_FLIGHTSQL_VERSION": ""})


def test_rerun_triggers_include_version_and_lib_path():
    assert "ADBC_FLIGHTSQL_VERSION" in RERUN_IF_ENV_CHANGED
    assert "ADBC_FLIGHTSQL_LIB_PATH" in RERUN_IF_ENV_CHANGED
    assert "OUT_DIR" in RERUN_IF_ENV_CHANGED


def test_stamp_round_trip_and_staleness(tmp_path, outputs):
    stamp = tmp_path / "stamp.json"
    environ = {"ADBC_FLIGHTSQL_VERSION": "1.9.0"}

    assert is_stale(stamp, environ) is True

    write_stamp(stamp, outputs, environ)

    assert read_stamp(stamp) == outputs
    assert is_stale(stamp, environ) is False
    assert is_stale(stamp, {"ADBC_FLIGHTSQL_VERSION": "1.10.0"}) is True
    payload = json.loads(stamp.read_text(encoding="utf-8"))
    assert payload["watched_env"] == list(RERUN_IF_ENV_CHANGED)


def test_stamp_is_stale_when_library_disappears(tmp_path, outputs):
    stamp = tmp_path / "stamp.json"
    write_stamp(stamp, outputs, {})

    outputs.lib_path.write_bytes(b"")
    assert is_stale(stamp, {}) is True

    outputs.lib_path.unlink()
    assert is_stale(stamp, {}) is True


def test_stamp_is_stale_when_package_source_changes(tmp_path, outputs, monkeypatch):
    stamp = tmp_path / "stamp.json"
    write_stamp(stamp, outputs, {})

    fake_package = tmp_path / "pkg"
    fake_package.mkdir()
    (fake_package / "pipeline.py").write_text("# changed\n", encoding="utf-8")
    monkeypatch.setattr(publish, "PACKAGE_DIR", fake_package)

    assert is_stale(stamp, {}) is True


def test_unreadable_stamp_is_stale(tmp_path):
    stamp = tmp_path / "stamp.json"
    stamp.write_text("{not json", encoding="utf-8")

    assert read_stamp(stamp) is None
    assert is_stale(stamp, {}) is True


def test_stamp_is_stale_when_out_dir_changes(tmp_path, outputs):
    stamp = tmp_path / "stamp.json"
    environ = {"OUT_DIR": str(tmp_path / "a")}
    write_stamp(stamp, outputs, environ)

    assert is_stale(stamp, environ) is False
    assert is_stale(stamp, {"OUT_DIR": str(tmp_path / "b")}) is True


def test_constants_module_under_a_file_raises_install_error(tmp_path, outputs):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")

    with pytest.raises(InstallError, match="Failed to write"):
        write_constants_module(outputs, blocker / "driver_build.py")

    assert blocker.read_text(encoding="utf-8") == "not a directory"
