from __future__ import annotations

import importlib
from typing import Optional

from ..config import MonitorConfig
from ..errors import ConfigurationError
from .capability import (
    LatencyRecorder,
    LatencyStatistics,
    RoutingCapability,
    RoutingFactory,
    RoutingResponse,
    RoutingSettings,
    is_latency_statistics,
    parse_latency_statistics,
)
from .direct import DirectRoutingClient


def load_routing_factory(path: Optional[str]) -> RoutingFactory:
    """Resolve a ``module:attribute`` import path to a routing client factory."""

    if not path:
        return DirectRoutingClient
    module_name, _, attribute = path.partition(":")
    if not module_name or not attribute:
        raise ConfigurationError(f"Routing factory must look like 'module:attribute', got {path!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigurationError(f"Cannot import routing factory module {module_name!r}: {exc}") from exc
    try:
        factory = getattr(module, attribute)
    except AttributeError as exc:
        raise ConfigurationError(f"Module {module_name!r} has no attribute {attribute!r}") from exc
    if not callable(factory):
        raise ConfigurationError(f"Routing factory {path!r} is not callable")
    return factory


def create_routing_client(config: MonitorConfig) -> RoutingCapability:
    factory = load_routing_factory(config.routing_factory)
    settings = RoutingSettings(
        discovery_platform=config.discovery_platform,
        force_zero_hop=config.force_zero_hop,
        measure_latency=True,
    )
    return factory(config.client_id, settings)


__all__ = [
    "DirectRoutingClient",
    "LatencyRecorder",
    "LatencyStatistics",
    "RoutingCapability",
    "RoutingFactory",
    "RoutingResponse",
    "RoutingSettings",
    "create_routing_client",
    "is_latency_statistics",
    "load_routing_factory",
    "parse_latency_statistics",
]
