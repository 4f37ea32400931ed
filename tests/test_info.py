from importlib import metadata
from unittest import mock

import pytest

from numaflow_sdk import info
from numaflow_sdk.info import (
    END,
    ContainerType,
    Language,
    MapMode,
    Protocol,
    ServerInfo,
    ServerInfoNotReadyError,
)


def test_get_sdk_version_unknown():
    with mock.patch(
        "importlib.metadata.version",
        side_effect=metadata.PackageNotFoundError("numaflow-sdk"),
    ):
        assert info.get_sdk_version() == ""


def test_get_sdk_version_installed():
    with mock.patch("importlib.metadata.version", return_value="11"):
        assert info.get_sdk_version() == "11"


def test_default_server_info():
    with mock.patch("importlib.metadata.version", return_value="11"):
        got = info.get_default_server_info()
    assert got.protocol is Protocol.UDS
    assert got.version == "11"
    assert got.metadata is None


def test_wait_until_ready_timeout(tmp_path):
    with pytest.raises(TimeoutError):
        info.wait_until_ready(tmp_path / "not-exist", timeout=0.3, interval=0.05)


def test_wait_until_ready_empty_file_times_out(tmp_path):
    path = tmp_path / "server-info"
    path.write_bytes(b"")
    with pytest.raises(TimeoutError):
        info.wait_until_ready(path, timeout=0.2, interval=0.05)


def test_wait_until_ready_success(tmp_path):
    path = tmp_path / "server-info"
    path.write_bytes(b"test")
    assert info.wait_until_ready(path, timeout=3, interval=0.05) is None
    assert path.stat().st_size == 4


def test_read_write(tmp_path):
    path = tmp_path / "server-info"
    server_info = ServerInfo(
        protocol=Protocol.TCP,
        language=Language.GO,
        minimum_numaflow_version="1.3.1-z",
        version="11",
        metadata={"key1": "value1", "key2": "value2"},
    )
    info.write(server_info, path)
    with pytest.raises(FileNotFoundError):
        info.read(tmp_path / "not-exist")
    assert info.read(path) == server_info


def test_written_file_ends_with_marker(tmp_path):
    path = tmp_path / "server-info"
    info.write(ServerInfo(protocol=Protocol.TCP, language=Language.GO), path)
    content = path.read_text(encoding="utf-8")
    assert content.endswith(END)
    assert content.startswith('{"protocol":"tcp","language":"go"')


def test_write_replaces_existing(tmp_path):
    path = tmp_path / "server-info"
    path.write_text("stale content that is long" * 10)
    server_info = ServerInfo(version="2")
    info.write(server_info, path)
    assert info.read(path) == server_info


def test_read_incomplete_file(tmp_path):
    path = tmp_path / "server-info"
    path.write_text('{"protocol":"uds"')
    with pytest.raises(ServerInfoNotReadyError):
        info.read(path, retries=2, interval=0.01)


def test_read_bad_json(tmp_path):
    path = tmp_path / "server-info"
    path.write_text("not json" + END)
    with pytest.raises(ValueError, match="failed to unmarshal"):
        info.read(path, retries=0)


def test_json_round_trip_with_map_mode():
    server_info = ServerInfo(
        minimum_numaflow_version=info.MINIMUM_NUMAFLOW_VERSION[ContainerType.MAPPER],
        metadata={info.MAP_MODE_KEY: MapMode.BATCH_MAP.value},
    )
    restored = ServerInfo.from_json(server_info.to_json())
    assert restored == server_info
    assert restored.metadata == {"MAP_MODE": "batch-map"}


def test_minimum_version_written_for_every_container(tmp_path):
    assert set(info.MINIMUM_NUMAFLOW_VERSION) == set(ContainerType)
    path = tmp_path / "server-info"
    server_info = ServerInfo(
        minimum_numaflow_version=info.MINIMUM_NUMAFLOW_VERSION[ContainerType.FBSINKER]
    )
    info.write(server_info, path)
    assert info.read(path).minimum_numaflow_version == "1.3.1-z"