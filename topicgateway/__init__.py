"""
TopicGateway - an HTTP gateway over an append-only, offset-addressed log store.

Producers append entries to named topics and receive the assigned offset;
consumers read an entry at a known offset or long-poll until one arrives.

The package is organized as:
- core: segment-file log engine (record format, segments, offset index)
- store: the log-store capability and its durable and in-memory engines
- gateway: the FastAPI application exposing produce, consume and poll
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
