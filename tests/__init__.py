"""Test suite for the uHTTP latency monitor."""
