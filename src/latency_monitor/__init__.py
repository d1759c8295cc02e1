"""Periodic latency monitor for mixnet-routed HTTP requests with push-gateway export."""

__version__ = "0.1.0"
