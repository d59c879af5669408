"""Retry, pagination and locking utilities for DynamoDB operations."""

from .pagination import decode_cursor, encode_cursor
from .retry_with_backoff import (
    ErrorVerdict,
    RetryPolicy,
    call_with_retry,
    clamp_retries,
    clamp_timeout,
)
from .rwlock import ReadWriteLock

__all__ = [
    "ErrorVerdict",
    "ReadWriteLock",
    "RetryPolicy",
    "call_with_retry",
    "clamp_retries",
    "clamp_timeout",
    "decode_cursor",
    "encode_cursor",
]
