"""Async client for the rrdcached daemon protocol."""

from rrdcached_client.batch import BatchResult
from rrdcached_client.client import RrdCachedClient
from rrdcached_client.connection import Connection, ConnectionState
from rrdcached_client.errors import (
    BatchResultError,
    CommandError,
    ConnectionClosed,
    ConnectionFailed,
    ProtocolViolation,
    RrdCachedError,
    UnexpectedReply,
    UsageError,
)
from rrdcached_client.frames import FlagReply, LinesReply, Reply, TextReply

__all__ = [
    "BatchResult",
    "BatchResultError",
    "CommandError",
    "Connection",
    "ConnectionClosed",
    "ConnectionFailed",
    "ConnectionState",
    "FlagReply",
    "LinesReply",
    "ProtocolViolation",
    "Reply",
    "RrdCachedClient",
    "RrdCachedError",
    "TextReply",
    "UnexpectedReply",
    "UsageError",
]
