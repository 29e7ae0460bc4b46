"""Asset discovery: TTL-gated, rate-limited source pipelines over a shared graph."""

__version__ = "0.1.0"
