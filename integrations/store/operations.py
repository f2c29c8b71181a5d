# ==============================
# Store Operations
# ==============================
"""
Handlers for key-value store operations.

Rules:
- Each handler parses its own input model, issues its store command(s) on the
  injected client and renders a CallResponse.
- Scalars render as a short sentence; collections render as indented JSON.
- Key enumeration always goes through CursorEnumerator (SCAN), never KEYS.
- Bulk deletes are issued one enumeration page per DEL.
- Redis errors propagate; the dispatcher renders them.
"""

from __future__ import annotations

import json
from typing import Any, List, Mapping, Optional
from urllib.parse import urlparse

from broker.contracts.operation_schema import CallResponse
from broker.operations.arguments import NoArgs, parse_args
from broker.resources.cursor import DEFAULT_PAGE_SIZE, CursorEnumerator
from broker.utils.redaction import redact_url
from integrations.store import args as a
from integrations.store.client import scan_page


Args = Mapping[str, Any]


class StoreHandlers:
    """Handlers bound to the store settings they need (page size, limits, url)."""

    def __init__(
        self,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        list_limit: int = 100,
        url: Optional[str] = None,
    ) -> None:
        self.page_size = page_size
        self.list_limit = list_limit
        self.url = url

    def enumerator(self, client: Any) -> CursorEnumerator:
        return CursorEnumerator(
            lambda cursor, match, count: scan_page(client, cursor, match, count),
            page_size=self.page_size,
        )

    def _delete_matching(self, client: Any, pattern: str) -> int:
        deleted = 0
        for chunk in self.enumerator(client).chunks(match=pattern):
            deleted += int(client.delete(*chunk))
        return deleted

    # ------------------------------
    # Basic
    # ------------------------------
    def get_value(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.KeyArgs, arguments)
        value = client.get(p.key)
        return CallResponse.text(value if value is not None else f'Key "{p.key}" not found')

    def set_value(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.SetValueArgs, arguments)
        if p.ttl:
            client.set(p.key, p.value, ex=p.ttl)
            return CallResponse.text(f"Set {p.key} with TTL {p.ttl}s")
        client.set(p.key, p.value)
        return CallResponse.text(f"Set {p.key}")

    def delete_keys(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.KeysArgs, arguments)
        count = client.delete(*p.keys)
        return CallResponse.text(f"Deleted {count} key(s)")

    def exists_keys(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.KeysArgs, arguments)
        count = client.exists(*p.keys)
        return CallResponse.text(f"{count} of {len(p.keys)} key(s) exist")

    def get_ttl(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.KeyArgs, arguments)
        ttl = client.ttl(p.key)
        if ttl == -2:
            return CallResponse.text(f'Key "{p.key}" does not exist')
        if ttl == -1:
            return CallResponse.text(f'Key "{p.key}" has no expiration')
        return CallResponse.text(f"TTL: {ttl} seconds")

    def expire_key(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.ExpireArgs, arguments)
        if client.expire(p.key, p.seconds):
            return CallResponse.text(f"Set expiration for {p.key} to {p.seconds}s")
        return CallResponse.text(f'Key "{p.key}" not found')

    def persist_key(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.KeyArgs, arguments)
        if client.persist(p.key):
            return CallResponse.text(f"Removed expiration from {p.key}")
        return CallResponse.text(f"{p.key} does not have an expiration")

    def rename_key(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.RenameArgs, arguments)
        client.rename(p.old_key, p.new_key)
        return CallResponse.text(f"Renamed {p.old_key} to {p.new_key}")

    def key_type(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.KeyArgs, arguments)
        return CallResponse.text(f"Type of {p.key}: {client.type(p.key)}")

    def get_many(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.KeysArgs, arguments)
        values = client.mget(p.keys)
        return CallResponse.structured([{"key": k, "value": v} for k, v in zip(p.keys, values)])

    # ------------------------------
    # Enumeration
    # ------------------------------
    def list_keys(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.ListKeysArgs, arguments)
        keys = self.enumerator(client).collect(match=p.pattern or "*", limit=p.limit or self.list_limit)
        return CallResponse.text(_found(keys, "key(s)"))

    def scan_keys(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.ScanArgs, arguments)
        page = self.enumerator(client).page(p.cursor, match=p.match, count=p.count)
        return CallResponse.structured({"cursor": page.next_cursor, "keys": page.keys})

    # ------------------------------
    # Guarded-destructive (wrapped with guarded() at registration)
    # ------------------------------
    def delete_by_pattern(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.DeleteByPatternArgs, arguments)
        deleted = self._delete_matching(client, p.pattern)
        if deleted == 0:
            return CallResponse.text(f'No keys found matching pattern "{p.pattern}"')
        return CallResponse.text(f'Deleted {deleted} key(s) matching pattern "{p.pattern}"')

    def clear_tenant_cache(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.ClearTenantCacheArgs, arguments)
        deleted = self._delete_matching(client, f"*:{p.tenant_id}:*")
        if deleted == 0:
            return CallResponse.text(f'No cache entries found for tenant "{p.tenant_id}"')
        return CallResponse.text(f'Cleared {deleted} cache entries for tenant "{p.tenant_id}"')

    def flush_db(self, arguments: Args, client: Any) -> CallResponse:
        parse_args(a.FlushArgs, arguments)
        client.flushdb()
        return CallResponse.text("Database flushed. All keys have been deleted.")

    # ------------------------------
    # Application views
    # ------------------------------
    def list_sessions(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.ListSessionsArgs, arguments)
        pattern = f"session:{p.tenant_id}:*" if p.tenant_id else "session:*"
        sessions = self.enumerator(client).collect(match=pattern, limit=p.limit)
        return CallResponse.text(_found(sessions, "session(s)"))

    def inspect_session(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.InspectSessionArgs, arguments)
        key = p.session_id if p.session_id.startswith("session:") else f"session:{p.session_id}"
        value = client.get(key)
        if value is None:
            return CallResponse.text(f'Session "{p.session_id}" not found')
        ttl = client.ttl(key)
        return CallResponse.text(f"Session: {key}\nTTL: {ttl}s\nData:\n{value}")

    def list_rate_limits(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.ListRateLimitsArgs, arguments)
        pattern = f"ratelimit:{p.user_id}:*" if p.user_id else "ratelimit:*"
        entries = self.enumerator(client).collect(match=pattern, limit=p.limit)
        return CallResponse.text(_found(entries, "rate limit(s)"))

    # ------------------------------
    # Server
    # ------------------------------
    def server_info(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.InfoArgs, arguments)
        info = client.info(p.section) if p.section else client.info()
        return CallResponse.structured(info)

    def db_size(self, arguments: Args, client: Any) -> CallResponse:
        parse_args(NoArgs, arguments)
        return CallResponse.text(f"Database contains {client.dbsize()} keys")

    def memory_usage(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.KeyArgs, arguments)
        used = client.memory_usage(p.key)
        if not used:
            return CallResponse.text(f'Key "{p.key}" not found')
        return CallResponse.text(f"Memory usage: {used} bytes")

    def current_db(self, arguments: Args, client: Any) -> CallResponse:
        """Local: describes the configured connection without contacting it."""
        if not self.url:
            return CallResponse.text("Current database: 0\nConnection: not configured")
        return CallResponse.text(f"Current database: {_db_index(self.url)}\nConnection: {redact_url(self.url)}")

    # ------------------------------
    # Counters / strings
    # ------------------------------
    def increment(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.KeyArgs, arguments)
        return CallResponse.text(f"Incremented {p.key} to {client.incr(p.key)}")

    def decrement(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.KeyArgs, arguments)
        return CallResponse.text(f"Decremented {p.key} to {client.decr(p.key)}")

    def increment_by(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.IncrementByArgs, arguments)
        value = client.incrby(p.key, p.increment)
        return CallResponse.text(f"Incremented {p.key} by {p.increment} to {value}")

    def decrement_by(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.DecrementByArgs, arguments)
        value = client.decrby(p.key, p.decrement)
        return CallResponse.text(f"Decremented {p.key} by {p.decrement} to {value}")

    def append_value(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.AppendArgs, arguments)
        length = client.append(p.key, p.value)
        return CallResponse.text(f"Appended to {p.key}, new length: {length}")

    def string_length(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.KeyArgs, arguments)
        return CallResponse.text(f"Length of {p.key}: {client.strlen(p.key)}")

    # ------------------------------
    # Hashes
    # ------------------------------
    def hash_set(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.HashSetArgs, arguments)
        client.hset(p.key, p.field, p.value)
        return CallResponse.text(f"Set {p.field} in hash {p.key}")

    def hash_get(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.HashFieldArgs, arguments)
        value = client.hget(p.key, p.field)
        return CallResponse.text(value if value is not None else f"Field {p.field} not found in {p.key}")

    def hash_get_all(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.KeyArgs, arguments)
        return CallResponse.structured(client.hgetall(p.key))

    def hash_delete(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.HashDeleteArgs, arguments)
        count = client.hdel(p.key, *p.fields)
        return CallResponse.text(f"Deleted {count} field(s) from hash {p.key}")

    def hash_exists(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.HashFieldArgs, arguments)
        state = "exists" if client.hexists(p.key, p.field) else "does not exist"
        return CallResponse.text(f"Field {p.field} {state} in {p.key}")

    def hash_keys(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.KeyArgs, arguments)
        return CallResponse.structured(client.hkeys(p.key))

    def hash_values(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.KeyArgs, arguments)
        return CallResponse.structured(client.hvals(p.key))

    def hash_length(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.KeyArgs, arguments)
        return CallResponse.text(f"Hash {p.key} has {client.hlen(p.key)} field(s)")

    # ------------------------------
    # Lists
    # ------------------------------
    def list_push_left(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.ListPushArgs, arguments)
        length = client.lpush(p.key, *p.values)
        return CallResponse.text(f"Prepended {len(p.values)} value(s) to list {p.key}, new length: {length}")

    def list_push_right(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.ListPushArgs, arguments)
        length = client.rpush(p.key, *p.values)
        return CallResponse.text(f"Appended {len(p.values)} value(s) to list {p.key}, new length: {length}")

    def list_pop_left(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.KeyArgs, arguments)
        return _popped(p.key, client.lpop(p.key))

    def list_pop_right(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.KeyArgs, arguments)
        return _popped(p.key, client.rpop(p.key))

    def list_range(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.ListRangeArgs, arguments)
        return CallResponse.structured(client.lrange(p.key, p.start, p.stop))

    def list_length(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.KeyArgs, arguments)
        return CallResponse.text(f"List {p.key} has {client.llen(p.key)} element(s)")

    # ------------------------------
    # Sets
    # ------------------------------
    def set_add(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.SetMembersArgs, arguments)
        count = client.sadd(p.key, *p.members)
        return CallResponse.text(f"Added {count} member(s) to set {p.key}")

    def set_members(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.KeyArgs, arguments)
        return CallResponse.structured(sorted(client.smembers(p.key)))

    def set_remove(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.SetMembersArgs, arguments)
        count = client.srem(p.key, *p.members)
        return CallResponse.text(f"Removed {count} member(s) from set {p.key}")

    def set_is_member(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.SetMemberArgs, arguments)
        verdict = "is" if client.sismember(p.key, p.member) else "is not"
        return CallResponse.text(f"{p.member} {verdict} a member of {p.key}")

    def set_cardinality(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.KeyArgs, arguments)
        return CallResponse.text(f"Set {p.key} has {client.scard(p.key)} member(s)")

    # ------------------------------
    # Sorted sets
    # ------------------------------
    def zset_add(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.ZAddArgs, arguments)
        count = client.zadd(p.key, {m.value: m.score for m in p.members})
        return CallResponse.text(f"Added {count} member(s) to sorted set {p.key}")

    def zset_range(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.ZRangeArgs, arguments)
        if p.with_scores:
            pairs = client.zrange(p.key, p.start, p.stop, withscores=True)
            return CallResponse.structured([{"value": v, "score": s} for v, s in pairs])
        return CallResponse.structured(client.zrange(p.key, p.start, p.stop))

    def zset_remove(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.ZRemoveArgs, arguments)
        count = client.zrem(p.key, *p.members)
        return CallResponse.text(f"Removed {count} member(s) from sorted set {p.key}")

    def zset_score(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.ZMemberArgs, arguments)
        score = client.zscore(p.key, p.member)
        if score is None:
            return CallResponse.text(f"Member {p.member} not found in {p.key}")
        return CallResponse.text(f"Score: {_number(score)}")

    def zset_cardinality(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.KeyArgs, arguments)
        return CallResponse.text(f"Sorted set {p.key} has {client.zcard(p.key)} member(s)")

    def zset_rank(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.ZMemberArgs, arguments)
        rank = client.zrank(p.key, p.member)
        if rank is None:
            return CallResponse.text(f"Member {p.member} not found in {p.key}")
        return CallResponse.text(f"Rank: {rank}")

    # ------------------------------
    # Pub/Sub
    # ------------------------------
    def publish_message(self, arguments: Args, client: Any) -> CallResponse:
        p = parse_args(a.PublishArgs, arguments)
        receivers = client.publish(p.channel, p.message)
        return CallResponse.text(f"Published message to {p.channel}, received by {receivers} subscriber(s)")


# ==============================
# Rendering helpers
# ==============================
def _found(items: List[str], noun: str) -> str:
    return f"Found {len(items)} {noun}:\n" + "\n".join(items)


def _popped(key: str, value: Optional[str]) -> CallResponse:
    if value is None:
        return CallResponse.text(f"List {key} is empty")
    return CallResponse.text(json.dumps(value))


def _number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def _db_index(url: str) -> int:
    path = urlparse(url).path.strip("/")
    return int(path) if path.isdigit() else 0
