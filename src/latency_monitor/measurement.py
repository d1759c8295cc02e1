from __future__ import annotations

import inspect
import json
import random
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .errors import FetchError, ReadinessTimeout, RequestError
from .routing.capability import LatencyRecorder, LatencyStatistics, RoutingCapability

READY_TIMEOUT_MS = 10_000
RPC_METHOD = "eth_getBlockTransactionCountByNumber"
REQUEST_HEADERS = {"Content-Type": "application/json"}


@dataclass(frozen=True, slots=True)
class DurationBreakdown:
    """Latency phases of one successful measurement, in whole milliseconds.

    ``fetch_dur`` is timed locally around the outbound call and includes client-side
    overhead, so it is not the sum of the other four. Those come from the routing
    client and are zero when it reported nothing (``has_statistics`` is then False).
    """

    fetch_dur: int
    rpc_dur: int = 0
    exit_app_dur: int = 0
    seg_dur: int = 0
    hopr_dur: int = 0
    has_statistics: bool = False

    @classmethod
    def combine(cls, fetch_dur: int, stats: Optional[LatencyStatistics]) -> "DurationBreakdown":
        if stats is None:
            return cls(fetch_dur=fetch_dur)
        return cls(
            fetch_dur=fetch_dur,
            rpc_dur=stats.rpc_dur,
            exit_app_dur=stats.exit_app_dur,
            seg_dur=stats.seg_dur,
            hopr_dur=stats.hopr_dur,
            has_statistics=True,
        )


def build_payload(request_id: str) -> dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "method": RPC_METHOD,
        "params": ["latest"],
        "id": request_id,
    }


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


async def measure_once(
    client: RoutingCapability,
    rpc_provider: str,
    *,
    ready_timeout_ms: int = READY_TIMEOUT_MS,
    rng: Optional[random.Random] = None,
    clock: Callable[[], float] = time.perf_counter,
) -> DurationBreakdown:
    """Send one JSON-RPC request through ``client`` and return its duration breakdown.

    Raises :class:`ReadinessTimeout`, :class:`FetchError` or :class:`RequestError`.
    No retry is attempted.
    """

    request_id = str((rng or random).randrange(100))
    payload = build_payload(request_id)

    try:
        ready = await client.is_ready(ready_timeout_ms)
    except Exception as exc:
        raise ReadinessTimeout(f"Routing client not ready within {ready_timeout_ms} ms: {exc}") from exc
    if ready is False:
        raise ReadinessTimeout(f"Routing client not ready within {ready_timeout_ms} ms")

    # must be attached before the request goes out; statistics may arrive early
    recorder = LatencyRecorder()
    client.on_latency_statistics = recorder

    try:
        started_at = clock()
        try:
            response = await client.fetch(
                rpc_provider,
                {"method": "POST", "body": json.dumps(payload), "headers": dict(REQUEST_HEADERS)},
            )
        except Exception as exc:
            raise FetchError(f"Request to {rpc_provider} failed: {exc}") from exc
        fetch_dur = max(0, round((clock() - started_at) * 1000))

        if not response.ok:
            raise FetchError(f"Request to {rpc_provider} returned an unsuccessful response")

        try:
            body = await _maybe_await(response.json())
        except ValueError as exc:
            raise RequestError(f"Response is not valid JSON: {exc}") from exc
        if not isinstance(body, dict) or body.get("id") != request_id:
            echoed = body.get("id") if isinstance(body, dict) else None
            raise RequestError(f"Response id {echoed!r} does not match request id {request_id!r}")

        return DurationBreakdown.combine(fetch_dur, recorder.latest)
    finally:
        if client.on_latency_statistics is recorder:
            client.on_latency_statistics = None
