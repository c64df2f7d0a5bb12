"""Counters and gauges, a Graphite push bridge and an HTTP API v1 client."""

__version__ = "0.1.0"