from __future__ import annotations


class LatencyMonitorError(Exception):
    """Base class for every error raised by the latency monitor."""


class ConfigurationError(LatencyMonitorError, ValueError):
    """Missing or malformed startup settings."""


class MeasurementError(LatencyMonitorError):
    """A single measurement could not produce a duration breakdown."""


class ReadinessTimeout(MeasurementError):
    """The routing client did not become ready within the readiness bound."""


class FetchError(MeasurementError):
    """Transport failure or unsuccessful response status for the measurement request."""


class RequestError(MeasurementError):
    """The measurement response could not be matched to the request that was sent."""


class ExportError(LatencyMonitorError):
    """Pushing a metrics snapshot to the gateway failed."""
