import json
import os
import uuid

import pytest

from skywire.cipher import generate_key_pair
from skywire.transport.logstore import FileLogStore, InMemoryLogStore, LogEntry
from skywire.visor.config import (
    AppConfig,
    Config,
    ConfigError,
    DmsgPtyConfig,
    HypervisorConfig,
    InterfaceConfig,
    ensure_dir,
    format_duration,
    parse_duration,
)


def test_messaging_discovery():
    pk, sk = generate_key_pair()
    conf = Config(static_pub_key=pk, static_sec_key=sk)
    conf.messaging_discovery = "discovery.example.com:8001"
    conf.messaging_server_count = 10

    c = conf.messaging_config()

    assert c.discovery == "discovery.example.com:8001"
    assert not c.pub_key.is_null()
    assert not c.sec_key.is_null()
    assert c.retries == 5
    assert c.retry_delay == 1.0


def test_messaging_config_requires_discovery():
    with pytest.raises(ConfigError, match="empty discovery"):
        Config().messaging_config()


def test_transport_log_store(tmp_path):
    directory = tmp_path / "foo"
    conf = Config(log_store_type="file", log_store_location=str(directory))
    ls = conf.transport_log_store()
    assert isinstance(ls, FileLogStore)
    assert directory.is_dir()
    tp_id = uuid.uuid4()
    ls.record(tp_id, LogEntry(recv_bytes=3, sent_bytes=4))
    assert ls.entry(tp_id).sent_bytes == 4

    conf.log_store_type = "memory"
    conf.log_store_location = ""
    ls = conf.transport_log_store()
    assert isinstance(ls, InMemoryLogStore)
    ls.record(tp_id, LogEntry(recv_bytes=1))
    assert ls.entry(tp_id).recv_bytes == 1


def test_apps_config():
    conf = Config(version="1.0")
    conf.apps = [
        AppConfig(app="foo", version="1.1", port=1),
        AppConfig(app="bar", auto_start=True, port=2),
    ]

    apps_conf = conf.apps_config()

    app1 = apps_conf[0]
    assert app1.app == "foo"
    assert app1.version == "1.1"
    assert app1.port == 1
    assert app1.auto_start is False

    app2 = apps_conf[1]
    assert app2.app == "bar"
    assert app2.version == "1.0"
    assert app2.port == 2
    assert app2.auto_start is True

    assert conf.apps[1].version == ""


def test_apps_dir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    directory = Config(apps_path="apps").apps_dir()
    assert os.path.isabs(directory)
    assert os.path.basename(directory) == "apps"
    assert os.path.isdir(directory)


def test_local_dir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    directory = Config(local_path="local").local_dir()
    assert os.path.isabs(directory)
    assert os.path.basename(directory) == "local"
    assert os.path.isdir(directory)


def test_empty_paths_raise():
    with pytest.raises(ConfigError, match="empty AppsPath"):
        Config().apps_dir()
    with pytest.raises(ConfigError, match="empty AppsPath"):
        Config().local_dir()


def test_ensure_dir_existing_and_new(tmp_path):
    target = tmp_path / "a" / "b"
    result = ensure_dir(str(target))
    assert target.is_dir()
    assert ensure_dir(str(target)) == result


@pytest.mark.parametrize(
    "seconds, text",
    [
        (0, "0s"),
        (10, "10s"),
        (60, "1m0s"),
        (3600, "1h0m0s"),
        (1.5, "1.5s"),
        (0.1, "100ms"),
        (0.000001, "1\u00b5s"),
        (90, "1m30s"),
        (-2, "-2s"),
    ],
)
def test_format_duration(seconds, text):
    assert format_duration(seconds) == text


@pytest.mark.parametrize(
    "value, seconds",
    [
        ("10s", 10.0),
        ("1m30s", 90.0),
        ("1.5h", 5400.0),
        ("0", 0.0),
        ("100ms", 0.1),
        ("-3s", -3.0),
        (1_000_000_000, 1.0),
        (2.5e9, 2.5),
    ],
)
def test_parse_duration(value, seconds):
    assert parse_duration(value) == pytest.approx(seconds)


@pytest.mark.parametrize("value", ["", "10", "5x", ".s", True, None, [1]])
def test_parse_duration_invalid(value):
    with pytest.raises(ConfigError):
        parse_duration(value)


def test_duration_round_trip():
    for seconds in (0.25, 42, 3725, 0.003):
        assert parse_duration(format_duration(seconds)) == pytest.approx(seconds)


def test_to_dict_defaults():
    data = Config().to_dict()
    assert data["shutdown_timeout"] == "0s"
    assert data["node"] == {"static_public_key": "", "static_secret_key": ""}
    assert "dmsg_pty" not in data
    assert data["interfaces"] == {"rpc": ""}


def test_dict_round_trip():
    pk, sk = generate_key_pair()
    other, _ = generate_key_pair()
    conf = Config(
        version="1.0",
        static_pub_key=pk,
        static_sec_key=sk,
        stcp_pk_table={other: "127.0.0.1:7777"},
        stcp_local_addr="127.0.0.1:7778",
        messaging_discovery="discovery.example.com",
        messaging_server_count=2,
        dmsg_pty=DmsgPtyConfig(port=22, auth_file="auth.json", cli_net="unix", cli_addr="/tmp/p"),
        transport_discovery="tpd.example.com",
        log_store_type="file",
        log_store_location="tp_logs",
        setup_nodes=[other],
        route_finder="rf.example.com",
        route_finder_timeout=10.0,
        routing_table_type="memory",
        apps=[AppConfig(app="skychat", version="1.0", auto_start=True, port=1, args=["-x"])],
        trusted_nodes=[other],
        hypervisors=[HypervisorConfig(pub_key=other, addr="127.0.0.1:7080")],
        apps_path="./apps",
        local_path="./local",
        log_level="info",
        shutdown_timeout=30.0,
        interfaces=InterfaceConfig(rpc_address="localhost:3435"),
    )
    data = json.loads(json.dumps(conf.to_dict()))
    assert data["routing"]["route_finder_timeout"] == "10s"
    assert data["shutdown_timeout"] == "30s"
    assert data["stcp"]["pk_table"] == {other.hex(): "127.0.0.1:7777"}
    assert Config.from_dict(data) == conf


def test_from_dict_numeric_duration():
    conf = Config.from_dict({"shutdown_timeout": 5_000_000_000})
    assert conf.shutdown_timeout == 5.0


def test_from_dict_invalid_duration():
    with pytest.raises(ConfigError):
        Config.from_dict({"shutdown_timeout": "soon"})