# ==============================
# Store Client
# ==============================
"""
Connection helpers for the key-value store (Redis protocol, redis-py).

Rules:
- No connection is opened at import or registration time.
- connect() is the handshake run by BackendResourceManager: open + PING.
- scan_page() adapts SCAN to the CursorEnumerator page contract.
"""

from __future__ import annotations

from typing import Any, List, Optional, Tuple

import redis

from broker.errors import ArgumentError, BackendConnectionError


CONNECTION_ERRORS = (redis.exceptions.ConnectionError, redis.exceptions.TimeoutError)


def connect(url: str, *, socket_timeout: Optional[float] = None) -> "redis.Redis":
    client = redis.from_url(
        url,
        decode_responses=True,
        socket_timeout=socket_timeout,
        socket_connect_timeout=socket_timeout,
    )
    try:
        client.ping()
    except redis.exceptions.RedisError as e:
        client.close()
        raise BackendConnectionError(f"Failed to connect to store: {e}", details={"backend": "store"}) from e
    return client


def close(client: Any) -> None:
    client.close()


def scan_page(client: Any, cursor: str, match: Optional[str], count: int) -> Tuple[str, List[str]]:
    """One SCAN step. Cursors stay opaque strings outside this function."""
    try:
        raw_cursor = int(cursor)
    except (TypeError, ValueError) as e:
        raise ArgumentError(f"Invalid cursor: {cursor}", field="cursor") from e
    next_cursor, keys = client.scan(cursor=raw_cursor, match=match, count=count)
    return str(next_cursor), list(keys)
