from pathlib import Path

import pytest

from latency_monitor.cli import parse_args
from latency_monitor.config import build_config, parse_bool
from latency_monitor.errors import ConfigurationError

BASE_ENV = {
    "UHTTP_LM_CLIENT_ID": "client-1",
    "UHTTP_LM_RPC_PROVIDER": "https://rpc.example",
    "UHTTP_LM_ZERO_HOP": "false",
}


def _build(argv=(), **env):
    environ = {**BASE_ENV, **env}
    return build_config(parse_args(list(argv)), environ=environ)


def test_defaults() -> None:
    config = _build()

    assert config.client_id == "client-1"
    assert config.rpc_provider == "https://rpc.example"
    assert config.force_zero_hop is False
    assert config.hops == 1
    assert config.interval_ms == 60_000
    assert config.offset_ms == 0
    assert config.push_gateway is None
    assert config.push_mode == "replace"
    assert config.grouping_labels == ("instance",)
    assert config.labels == {}
    assert config.routing_factory is None


@pytest.mark.parametrize("missing", ["UHTTP_LM_CLIENT_ID", "UHTTP_LM_RPC_PROVIDER", "UHTTP_LM_ZERO_HOP"])
def test_missing_required_setting(missing: str) -> None:
    environ = {key: value for key, value in BASE_ENV.items() if key != missing}

    with pytest.raises(ConfigurationError, match=missing):
        build_config(parse_args([]), environ=environ)


@pytest.mark.parametrize("value, expected", [("1", True), ("YES", True), ("true", True), ("0", False), ("no", False)])
def test_parse_bool(value: str, expected: bool) -> None:
    assert parse_bool(value) is expected


def test_zero_hop_sets_hops_label() -> None:
    assert _build(UHTTP_LM_ZERO_HOP="yes").hops == 0


def test_descriptive_labels_are_trimmed_and_optional() -> None:
    config = _build(UHTTP_LM_INSTANCE=" monitor-1 ", UHTTP_LM_REGION="eu", UHTTP_LM_LOCATION="   ")

    assert config.labels == {"instance": "monitor-1", "region": "eu"}


def test_cli_flags_override_environment() -> None:
    config = _build(
        ["--interval-ms", "30000", "--offset-ms", "250", "--push-gateway", "http://cli:9091", "--push-mode", "add"],
        UHTTP_LM_INTERVAL_MS="90000",
        UHTTP_LM_PUSH_GATEWAY="http://env:9091",
    )

    assert config.interval_ms == 30_000
    assert config.offset_ms == 250
    assert config.push_gateway == "http://cli:9091"
    assert config.push_mode == "add"


def test_yaml_file_is_overridden_by_environment(tmp_path: Path) -> None:
    path = tmp_path / "monitor.yaml"
    path.write_text(
        "client_id: from-file\n"
        "rpc_provider: https://file.example\n"
        "zero_hop: true\n"
        "interval_ms: 120000\n"
        "grouping_labels: [instance, region]\n"
        "labels:\n"
        "  instance: file-instance\n"
        "  latitude: 47.37\n",
        encoding="utf-8",
    )

    config = build_config(parse_args(["--config", str(path)]), environ={"UHTTP_LM_CLIENT_ID": "from-env"})

    assert config.client_id == "from-env"
    assert config.rpc_provider == "https://file.example"
    assert config.force_zero_hop is True
    assert config.interval_ms == 120_000
    assert config.grouping_labels == ("instance", "region")
    assert config.labels == {"instance": "file-instance", "latitude": "47.37"}


def test_missing_config_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        _build(["--config", str(tmp_path / "absent.yaml")])


@pytest.mark.parametrize(
    "env",
    [
        {"UHTTP_LM_INTERVAL_MS": "0"},
        {"UHTTP_LM_INTERVAL_MS": "soon"},
        {"UHTTP_LM_OFFSET_MS": "-1"},
        {"UHTTP_LM_PUSH_MODE": "merge"},
    ],
)
def test_invalid_values(env: dict) -> None:
    with pytest.raises(ConfigurationError):
        _build(**env)


def test_grouping_labels_from_environment() -> None:
    assert _build(UHTTP_LM_GROUPING_LABELS="instance, zone,").grouping_labels == ("instance", "zone")


def test_log_file_directory_is_created(tmp_path: Path) -> None:
    config = _build(["--log-file", str(tmp_path / "logs" / "monitor.log")])

    assert config.log_file == tmp_path / "logs" / "monitor.log"
    assert config.log_file.parent.is_dir()
