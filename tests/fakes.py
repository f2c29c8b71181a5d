# ==============================
# Test Fakes
# ==============================
"""
In-memory stand-ins for the store client and the control-plane HTTP session.

Both record what they were asked to do so tests can assert that a backend was
(or was not) contacted.
"""
from __future__ import annotations

import fnmatch
from typing import Any, Dict, List, Optional, Tuple

from broker.resources.manager import BackendResourceManager, CredentialResourceManager
from integrations.neon.client import NeonClient
from integrations.store import client as store_client


STORE_URL = "redis://:s3cret@localhost:6379/2"
NEON_KEY = "napi_testkey0123456789abcdef"
NEON_BASE = "https://neon.test/api/v2"


# ==============================
# Fake key-value store
# ==============================
class FakeStore:
    """
    In-memory stand-in for the redis-py client subset the store handlers use.

    SCAN cursors are positions in insertion order; deleted keys leave their slot
    behind, so deleting while scanning never skips or repeats a key.
    """

    def __init__(self, data: Optional[Dict[str, Any]] = None) -> None:
        self.data: Dict[str, Any] = {}
        self.expiry: Dict[str, int] = {}
        self.slots: List[str] = []
        self.calls: Dict[str, int] = {}
        self.scan_pages = 0
        self.closed = False
        self.fail_with: Optional[Exception] = None
        self.published: List[Tuple[str, str]] = []
        for key, value in (data or {}).items():
            self._put(key, value)

    # ------------------------------
    # Bookkeeping
    # ------------------------------
    @property
    def contacted(self) -> bool:
        return bool(self.calls)

    def _hit(self, name: str) -> None:
        self.calls[name] = self.calls.get(name, 0) + 1
        if self.fail_with is not None:
            raise self.fail_with

    def _put(self, key: str, value: Any) -> None:
        if key not in self.slots:
            self.slots.append(key)
        self.data[key] = value

    def _drop(self, key: str) -> bool:
        self.expiry.pop(key, None)
        return self.data.pop(key, None) is not None

    # ------------------------------
    # Connection
    # ------------------------------
    def ping(self) -> bool:
        self._hit("ping")
        return True

    def close(self) -> None:
        self.closed = True

    # ------------------------------
    # Keys / strings
    # ------------------------------
    def get(self, key: str) -> Optional[str]:
        self._hit("get")
        value = self.data.get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str, ex: Optional[int] = None) -> bool:
        self._hit("set")
        self._put(key, value)
        self.expiry.pop(key, None)
        if ex:
            self.expiry[key] = ex
        return True

    def delete(self, *keys: str) -> int:
        self._hit("delete")
        return sum(1 for k in keys if self._drop(k))

    def exists(self, *keys: str) -> int:
        self._hit("exists")
        return sum(1 for k in keys if k in self.data)

    def ttl(self, key: str) -> int:
        self._hit("ttl")
        if key not in self.data:
            return -2
        return self.expiry.get(key, -1)

    def expire(self, key: str, seconds: int) -> bool:
        self._hit("expire")
        if key not in self.data:
            return False
        self.expiry[key] = seconds
        return True

    def persist(self, key: str) -> bool:
        self._hit("persist")
        return self.expiry.pop(key, None) is not None

    def rename(self, old: str, new: str) -> bool:
        self._hit("rename")
        value = self.data[old]
        self._drop(old)
        self._put(new, value)
        return True

    def type(self, key: str) -> str:
        self._hit("type")
        value = self.data.get(key)
        if value is None:
            return "none"
        kinds = {str: "string", dict: "hash", list: "list", set: "set"}
        return "zset" if isinstance(value, ZSet) else kinds[type(value)]

    def mget(self, keys: List[str]) -> List[Optional[str]]:
        self._hit("mget")
        return [self.data.get(k) if isinstance(self.data.get(k), str) else None for k in keys]

    def incrby(self, key: str, amount: int) -> int:
        self._hit("incrby")
        value = int(self.data.get(key) or 0) + amount
        self._put(key, str(value))
        return value

    def incr(self, key: str) -> int:
        return self.incrby(key, 1)

    def decr(self, key: str) -> int:
        return self.incrby(key, -1)

    def decrby(self, key: str, amount: int) -> int:
        return self.incrby(key, -amount)

    def append(self, key: str, value: str) -> int:
        self._hit("append")
        self._put(key, (self.data.get(key) or "") + value)
        return len(self.data[key])

    def strlen(self, key: str) -> int:
        self._hit("strlen")
        return len(self.data.get(key) or "")

    # ------------------------------
    # Enumeration / server
    # ------------------------------
    def scan(self, cursor: int = 0, match: Optional[str] = None, count: Optional[int] = None) -> Tuple[int, List[str]]:
        self._hit("scan")
        self.scan_pages += 1
        step = count or 10
        window = self.slots[cursor : cursor + step]
        keys = [k for k in window if k in self.data and (match is None or fnmatch.fnmatchcase(k, match))]
        nxt = cursor + step
        return (nxt if nxt < len(self.slots) else 0), keys

    def flushdb(self) -> bool:
        self._hit("flushdb")
        self.data.clear()
        self.expiry.clear()
        return True

    def dbsize(self) -> int:
        self._hit("dbsize")
        return len(self.data)

    def info(self, section: Optional[str] = None) -> Dict[str, Any]:
        self._hit("info")
        info = {"redis_version": "7.2.0", "used_memory": 1024, "connected_clients": 1}
        if section == "memory":
            return {"used_memory": 1024}
        return info

    def memory_usage(self, key: str) -> Optional[int]:
        self._hit("memory_usage")
        return 56 if key in self.data else None

    def publish(self, channel: str, message: str) -> int:
        self._hit("publish")
        self.published.append((channel, message))
        return 2

    # ------------------------------
    # Hashes
    # ------------------------------
    def _hash(self, key: str) -> Dict[str, str]:
        if key not in self.data:
            self._put(key, {})
        return self.data[key]

    def hset(self, key: str, field: str, value: str) -> int:
        self._hit("hset")
        h = self._hash(key)
        added = 0 if field in h else 1
        h[field] = value
        return added

    def hget(self, key: str, field: str) -> Optional[str]:
        self._hit("hget")
        return (self.data.get(key) or {}).get(field)

    def hgetall(self, key: str) -> Dict[str, str]:
        self._hit("hgetall")
        return dict(self.data.get(key) or {})

    def hdel(self, key: str, *fields: str) -> int:
        self._hit("hdel")
        h = self.data.get(key) or {}
        return sum(1 for f in fields if h.pop(f, None) is not None)

    def hexists(self, key: str, field: str) -> bool:
        self._hit("hexists")
        return field in (self.data.get(key) or {})

    def hkeys(self, key: str) -> List[str]:
        self._hit("hkeys")
        return list((self.data.get(key) or {}).keys())

    def hvals(self, key: str) -> List[str]:
        self._hit("hvals")
        return list((self.data.get(key) or {}).values())

    def hlen(self, key: str) -> int:
        self._hit("hlen")
        return len(self.data.get(key) or {})

    # ------------------------------
    # Lists
    # ------------------------------
    def _list(self, key: str) -> List[str]:
        if key not in self.data:
            self._put(key, [])
        return self.data[key]

    def lpush(self, key: str, *values: str) -> int:
        self._hit("lpush")
        lst = self._list(key)
        for v in values:
            lst.insert(0, v)
        return len(lst)

    def rpush(self, key: str, *values: str) -> int:
        self._hit("rpush")
        lst = self._list(key)
        lst.extend(values)
        return len(lst)

    def lpop(self, key: str) -> Optional[str]:
        self._hit("lpop")
        lst = self.data.get(key) or []
        return lst.pop(0) if lst else None

    def rpop(self, key: str) -> Optional[str]:
        self._hit("rpop")
        lst = self.data.get(key) or []
        return lst.pop() if lst else None

    def lrange(self, key: str, start: int, stop: int) -> List[str]:
        self._hit("lrange")
        lst = self.data.get(key) or []
        end = len(lst) if stop == -1 else stop + 1
        return lst[start:end]

    def llen(self, key: str) -> int:
        self._hit("llen")
        return len(self.data.get(key) or [])

    # ------------------------------
    # Sets
    # ------------------------------
    def sadd(self, key: str, *members: str) -> int:
        self._hit("sadd")
        if key not in self.data:
            self._put(key, set())
        before = len(self.data[key])
        self.data[key].update(members)
        return len(self.data[key]) - before

    def smembers(self, key: str) -> set:
        self._hit("smembers")
        return set(self.data.get(key) or set())

    def srem(self, key: str, *members: str) -> int:
        self._hit("srem")
        s = self.data.get(key) or set()
        removed = [m for m in members if m in s]
        s.difference_update(removed)
        return len(removed)

    def sismember(self, key: str, member: str) -> bool:
        self._hit("sismember")
        return member in (self.data.get(key) or set())

    def scard(self, key: str) -> int:
        self._hit("scard")
        return len(self.data.get(key) or set())

    # ------------------------------
    # Sorted sets
    # ------------------------------
    def zadd(self, key: str, mapping: Dict[str, float]) -> int:
        self._hit("zadd")
        if key not in self.data:
            self._put(key, ZSet())
        z = self.data[key]
        added = sum(1 for m in mapping if m not in z)
        z.update(mapping)
        return added

    def _ranked(self, key: str) -> List[Tuple[str, float]]:
        z = self.data.get(key) or {}
        return sorted(z.items(), key=lambda kv: (kv[1], kv[0]))

    def zrange(self, key: str, start: int, stop: int, withscores: bool = False) -> List[Any]:
        self._hit("zrange")
        ranked = self._ranked(key)
        end = len(ranked) if stop == -1 else stop + 1
        window = ranked[start:end]
        return window if withscores else [m for m, _ in window]

    def zrem(self, key: str, *members: str) -> int:
        self._hit("zrem")
        z = self.data.get(key) or {}
        return sum(1 for m in members if z.pop(m, None) is not None)

    def zscore(self, key: str, member: str) -> Optional[float]:
        self._hit("zscore")
        return (self.data.get(key) or {}).get(member)

    def zcard(self, key: str) -> int:
        self._hit("zcard")
        return len(self.data.get(key) or {})

    def zrank(self, key: str, member: str) -> Optional[int]:
        self._hit("zrank")
        members = [m for m, _ in self._ranked(key)]
        return members.index(member) if member in members else None


class ZSet(dict):
    """member -> score"""


class CountingConnector:
    """Connector for BackendResourceManager that hands out one FakeStore."""

    def __init__(self, store: FakeStore, *, fail_times: int = 0) -> None:
        self.store = store
        self.fail_times = fail_times
        self.calls = 0

    def __call__(self) -> FakeStore:
        self.calls += 1
        if self.calls <= self.fail_times:
            raise ConnectionRefusedError("connection refused")
        self.store.ping()
        return self.store


def make_store_manager(connector: Optional[CountingConnector]) -> BackendResourceManager:
    return BackendResourceManager(
        name="store",
        connector=connector,
        setting="REDIS_URL",
        not_configured_message="Store connection not configured. Set REDIS_URL environment variable.",
        closer=store_client.close,
        connection_errors=store_client.CONNECTION_ERRORS,
    )


# ==============================
# Fake HTTP session
# ==============================
class FakeResponse:
    def __init__(self, status_code: int = 200, body: Any = None) -> None:
        self.status_code = status_code
        self._body = body

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    @property
    def content(self) -> bytes:
        return b"" if self._body is None else b"{}"

    def json(self) -> Any:
        if isinstance(self._body, Exception):
            raise self._body
        return self._body


class FakeSession:
    """
    Records requests and answers from a route table keyed by (METHOD, path suffix).

    Unrouted requests answer 404 with an API-style message.
    """

    def __init__(self, routes: Optional[Dict[Tuple[str, str], Any]] = None) -> None:
        self.headers: Dict[str, str] = {}
        self.routes: Dict[Tuple[str, str], Any] = dict(routes or {})
        self.requests: List[Dict[str, Any]] = []
        self.closed = False

    @property
    def contacted(self) -> bool:
        return bool(self.requests)

    def request(self, method: str, url: str, params: Any = None, json: Any = None, timeout: Any = None) -> FakeResponse:
        self.requests.append({"method": method, "url": url, "params": params, "json": json, "timeout": timeout})
        for (m, suffix), answer in self.routes.items():
            if m == method and url.endswith(suffix):
                if isinstance(answer, Exception):
                    raise answer
                if callable(answer):
                    return answer(json)
                if isinstance(answer, FakeResponse):
                    return answer
                return FakeResponse(200, answer)
        return FakeResponse(404, {"message": "not found"})

    def close(self) -> None:
        self.closed = True


def make_neon_manager(session: Optional[FakeSession]) -> CredentialResourceManager:
    client = None
    if session is not None:
        client = NeonClient(api_key=NEON_KEY, base_url=NEON_BASE, session=session)  # type: ignore[arg-type]
    return CredentialResourceManager(
        name="neon",
        client=client,
        setting="NEON_API_KEY",
        not_configured_message="Neon API key not configured. Set NEON_API_KEY environment variable.",
    )
