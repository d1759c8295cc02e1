from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Optional, Protocol

WIRE_FIELDS = {
    "rpcDur": "rpc_dur",
    "exitAppDur": "exit_app_dur",
    "segDur": "seg_dur",
    "hoprDur": "hopr_dur",
}


@dataclass(frozen=True, slots=True)
class LatencyStatistics:
    """Per-request latency phases reported by a routing client, in milliseconds."""

    rpc_dur: int
    exit_app_dur: int
    seg_dur: int
    hopr_dur: int


@dataclass(frozen=True, slots=True)
class RoutingSettings:
    discovery_platform: Optional[str] = None
    force_zero_hop: bool = False
    measure_latency: bool = True


class RoutingResponse(Protocol):
    ok: bool

    def json(self) -> Any:
        """Return the decoded body; may also return an awaitable."""


class RoutingCapability(Protocol):
    on_latency_statistics: Optional[Callable[[Any], None]]

    async def is_ready(self, timeout_ms: int) -> bool:
        """Resolve once the client can serve requests, or raise when ``timeout_ms`` elapses."""

    def fetch(self, url: str, request: Mapping[str, Any]) -> Awaitable[RoutingResponse]:
        """Send ``request`` (``method``, ``body``, ``headers``) to ``url`` through the client."""


RoutingFactory = Callable[[str, RoutingSettings], RoutingCapability]


def _valid_duration(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value >= 0


def parse_latency_statistics(payload: Any) -> Optional[LatencyStatistics]:
    """Return normalised statistics for a valid payload, ``None`` for anything else."""

    if isinstance(payload, LatencyStatistics):
        return payload
    if not isinstance(payload, Mapping):
        return None

    values = {}
    for wire_name, field_name in WIRE_FIELDS.items():
        value = payload.get(wire_name)
        if not _valid_duration(value):
            return None
        values[field_name] = int(round(value))
    return LatencyStatistics(**values)


def is_latency_statistics(payload: Any) -> bool:
    return parse_latency_statistics(payload) is not None


class LatencyRecorder:
    """Latency-statistics handler that keeps the last valid payload it receives."""

    def __init__(self) -> None:
        self.latest: Optional[LatencyStatistics] = None

    def __call__(self, payload: Any) -> None:
        stats = parse_latency_statistics(payload)
        if stats is not None:
            self.latest = stats
