from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml
from dotenv import load_dotenv

from .errors import ConfigurationError

ENV_PREFIX = "UHTTP_LM_"
DESCRIPTIVE_LABELS = ("instance", "region", "zone", "location", "latitude", "longitude")
PUSH_MODES = ("replace", "add")
DEFAULT_INTERVAL_MS = 60_000
DEFAULT_OFFSET_MS = 0


@dataclass(slots=True)
class MonitorConfig:
    """Container for user configurable runtime options."""

    client_id: str
    rpc_provider: str
    force_zero_hop: bool
    discovery_platform: Optional[str] = None
    interval_ms: int = DEFAULT_INTERVAL_MS
    offset_ms: int = DEFAULT_OFFSET_MS
    push_gateway: Optional[str] = None
    push_mode: str = "replace"
    grouping_labels: Tuple[str, ...] = ("instance",)
    labels: Dict[str, str] = field(default_factory=dict)
    routing_factory: Optional[str] = None
    log_file: Optional[Path] = None
    verbose: bool = False

    @property
    def hops(self) -> int:
        return 0 if self.force_zero_hop else 1


def load_environment() -> None:
    """Load environment variables from .env files if present."""

    load_dotenv(override=False)


def load_config_file(path: Path) -> dict[str, Any]:
    """Load a YAML configuration file whose keys mirror the environment variables."""

    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}")
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file {path} must contain a mapping")
    return data


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in ("1", "yes", "true")


def _parse_int(name: str, value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from exc


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _file_settings(data: Mapping[str, Any]) -> dict[str, Any]:
    """Flatten a YAML document into ``UHTTP_LM_*`` style keys."""

    settings: dict[str, Any] = {}
    for key, value in data.items():
        if key == "labels" and isinstance(value, Mapping):
            for label, label_value in value.items():
                settings[f"{ENV_PREFIX}{str(label).upper()}"] = label_value
        elif key == "grouping_labels" and isinstance(value, (list, tuple)):
            settings[f"{ENV_PREFIX}GROUPING_LABELS"] = ",".join(str(item) for item in value)
        else:
            settings[f"{ENV_PREFIX}{str(key).upper()}"] = value
    return settings


def build_config(args, environ: Optional[Mapping[str, str]] = None) -> MonitorConfig:
    """Create a :class:`MonitorConfig` from a config file, the environment and CLI arguments.

    Later sources win: file values are overridden by environment variables, which are
    overridden by explicit command line flags.
    """

    if environ is None:
        load_environment()
        environ = os.environ

    settings: dict[str, Any] = {}
    config_path = getattr(args, "config", None) or environ.get(f"{ENV_PREFIX}CONFIG")
    if config_path:
        settings.update(_file_settings(load_config_file(Path(config_path).expanduser())))
    settings.update({key: value for key, value in environ.items() if key.startswith(ENV_PREFIX)})

    def setting(name: str, cli_attr: Optional[str] = None) -> Any:
        if cli_attr is not None:
            cli_value = getattr(args, cli_attr, None)
            if cli_value is not None:
                return cli_value
        return settings.get(f"{ENV_PREFIX}{name}")

    client_id = _clean(setting("CLIENT_ID"))
    if not client_id:
        raise ConfigurationError(f"Missing '{ENV_PREFIX}CLIENT_ID' env var.")
    rpc_provider = _clean(setting("RPC_PROVIDER"))
    if not rpc_provider:
        raise ConfigurationError(f"Missing '{ENV_PREFIX}RPC_PROVIDER' env var.")
    zero_hop = setting("ZERO_HOP")
    if zero_hop is None or _clean(zero_hop) is None:
        raise ConfigurationError(f"Missing '{ENV_PREFIX}ZERO_HOP' env var.")

    interval_raw = setting("INTERVAL_MS", "interval_ms")
    interval_ms = DEFAULT_INTERVAL_MS if interval_raw in (None, "") else _parse_int("interval", interval_raw)
    if interval_ms <= 0:
        raise ConfigurationError("interval must be a positive number of milliseconds")
    offset_raw = setting("OFFSET_MS", "offset_ms")
    offset_ms = DEFAULT_OFFSET_MS if offset_raw in (None, "") else _parse_int("offset", offset_raw)
    if offset_ms < 0:
        raise ConfigurationError("offset must not be negative")

    push_mode = (_clean(setting("PUSH_MODE", "push_mode")) or "replace").lower()
    if push_mode not in PUSH_MODES:
        raise ConfigurationError(f"push mode must be one of {', '.join(PUSH_MODES)}, got {push_mode!r}")

    grouping_raw = setting("GROUPING_LABELS")
    if grouping_raw is None:
        grouping_labels: Tuple[str, ...] = ("instance",)
    else:
        grouping_labels = tuple(item.strip() for item in str(grouping_raw).split(",") if item.strip())

    labels: Dict[str, str] = {}
    for label in DESCRIPTIVE_LABELS:
        value = _clean(setting(label.upper()))
        if value is not None:
            labels[label] = value

    log_file_raw = _clean(setting("LOG_FILE", "log_file"))
    log_file: Optional[Path] = None
    if log_file_raw:
        log_file = Path(log_file_raw).expanduser()
        log_file.parent.mkdir(parents=True, exist_ok=True)

    return MonitorConfig(
        client_id=client_id,
        rpc_provider=rpc_provider,
        force_zero_hop=parse_bool(zero_hop),
        discovery_platform=_clean(setting("DISCOVERY_PLATFORM")),
        interval_ms=interval_ms,
        offset_ms=offset_ms,
        push_gateway=_clean(setting("PUSH_GATEWAY", "push_gateway")),
        push_mode=push_mode,
        grouping_labels=grouping_labels,
        labels=labels,
        routing_factory=_clean(setting("ROUTING_FACTORY")),
        log_file=log_file,
        verbose=bool(getattr(args, "verbose", False)) or parse_bool(setting("VERBOSE")),
    )
