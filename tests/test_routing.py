import asyncio
import json

import httpx
import pytest

from latency_monitor.config import MonitorConfig
from latency_monitor.errors import ConfigurationError, FetchError, RequestError
from latency_monitor.measurement import measure_once
from latency_monitor.routing import (
    DirectRoutingClient,
    RoutingSettings,
    create_routing_client,
    is_latency_statistics,
    load_routing_factory,
)
from tests.doubles import stats_payload


def _echo(request: httpx.Request) -> httpx.Response:
    body = json.loads(request.content)
    assert request.headers["content-type"] == "application/json"
    return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": "0x10"})


def test_direct_client_measures_fetch_only() -> None:
    async def scenario():
        client = DirectRoutingClient("client-1", transport=httpx.MockTransport(_echo))
        try:
            return await measure_once(client, "https://rpc.example")
        finally:
            await client.aclose()

    breakdown = asyncio.run(scenario())

    assert breakdown.fetch_dur >= 0
    assert not breakdown.has_statistics


def test_direct_client_error_status_is_fetch_error() -> None:
    async def scenario():
        transport = httpx.MockTransport(lambda request: httpx.Response(502, text="bad gateway"))
        client = DirectRoutingClient("client-1", transport=transport)
        try:
            await measure_once(client, "https://rpc.example")
        finally:
            await client.aclose()

    with pytest.raises(FetchError):
        asyncio.run(scenario())


def test_direct_client_transport_error_is_fetch_error() -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    async def scenario():
        client = DirectRoutingClient("client-1", transport=httpx.MockTransport(refuse))
        try:
            await measure_once(client, "https://rpc.example")
        finally:
            await client.aclose()

    with pytest.raises(FetchError):
        asyncio.run(scenario())


@pytest.mark.parametrize(
    "payload, valid",
    [
        (stats_payload(), True),
        (stats_payload(rpc=0.4), True),
        (stats_payload(rpc=True), False),
        (stats_payload(seg=float("nan")), False),
        ({"rpcDur": 1, "exitAppDur": 1, "segDur": 1}, False),
        ([1, 2, 3, 4], False),
    ],
)
def test_latency_statistics_validation(payload, valid: bool) -> None:
    assert is_latency_statistics(payload) is valid


def test_default_factory_is_direct_client() -> None:
    assert load_routing_factory(None) is DirectRoutingClient


def test_factory_is_loaded_from_import_path() -> None:
    assert load_routing_factory("latency_monitor.routing.direct:DirectRoutingClient") is DirectRoutingClient


@pytest.mark.parametrize("path", ["no_colon", "latency_monitor_missing:Factory", "latency_monitor.routing:Missing"])
def test_bad_factory_path(path: str) -> None:
    with pytest.raises(ConfigurationError):
        load_routing_factory(path)


def test_create_routing_client_passes_settings() -> None:
    config = MonitorConfig(
        client_id="client-1",
        rpc_provider="https://rpc.example",
        force_zero_hop=True,
        discovery_platform="https://discovery.example",
    )

    client = create_routing_client(config)
    try:
        assert isinstance(client, DirectRoutingClient)
        assert client.client_id == "client-1"
        assert client.settings == RoutingSettings(
            discovery_platform="https://discovery.example", force_zero_hop=True, measure_latency=True
        )
    finally:
        asyncio.run(client.aclose())


def test_direct_client_non_json_body_is_request_error() -> None:
    async def scenario():
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>maintenance</html>"))
        client = DirectRoutingClient("client-1", transport=transport)
        try:
            await measure_once(client, "https://rpc.example")
        finally:
            await client.aclose()

    with pytest.raises(RequestError):
        asyncio.run(scenario())
