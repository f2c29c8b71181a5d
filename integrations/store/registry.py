# ==============================
# Store Integration (Registration Entrypoint)
# ==============================
"""
integrations/store/registry.py

Canonical registration entrypoint for the key-value store integration.

Rules:
- Keep this module side-effect safe:
  - No network calls (the connection opens on first use)
  - No env reads (Settings arrive through registrations)
- build_resource() creates the store's BackendResourceManager.
- register() adds every store operation to the catalog.
"""

from __future__ import annotations

from functools import partial
from typing import List, Tuple, Type

from pydantic import BaseModel

from broker.app import IntegrationRegistrations
from broker.config.schema import Settings
from broker.operations.arguments import NoArgs
from broker.resources.manager import BackendResourceManager
from integrations.store import args as a
from integrations.store import client as store_client
from integrations.store.operations import StoreHandlers


BACKEND = "store"

NOT_CONFIGURED_MESSAGE = "Store connection not configured. Set REDIS_URL environment variable."

DELETE_CANCELLED = "Deletion cancelled. Set confirm=true to proceed."
CLEAR_CANCELLED = "Cache clear cancelled. Set confirm=true to proceed."
FLUSH_CANCELLED = "Flush cancelled. Set confirm=true to proceed. WARNING: This will delete ALL keys!"


def build_resource(settings: Settings) -> BackendResourceManager:
    url = settings.store.url
    connector = None
    if url:
        connector = partial(store_client.connect, url, socket_timeout=settings.store.socket_timeout)
    return BackendResourceManager(
        name=BACKEND,
        connector=connector,
        setting="REDIS_URL",
        not_configured_message=NOT_CONFIGURED_MESSAGE,
        closer=store_client.close,
        connection_errors=store_client.CONNECTION_ERRORS,
    )


# (name, description, input model); the handler is the StoreHandlers method of the same name
_PASS_THROUGH: List[Tuple[str, str, Type[BaseModel]]] = [
    # basic
    ("get_value", "Get the value stored at a key", a.KeyArgs),
    ("set_value", "Set a key to a value, optionally with a TTL", a.SetValueArgs),
    ("delete_keys", "Delete one or more keys", a.KeysArgs),
    ("exists_keys", "Count how many of the given keys exist", a.KeysArgs),
    ("get_ttl", "Get the remaining time to live of a key", a.KeyArgs),
    ("expire_key", "Set a key's time to live in seconds", a.ExpireArgs),
    ("persist_key", "Remove the expiration from a key", a.KeyArgs),
    ("rename_key", "Rename a key", a.RenameArgs),
    ("key_type", "Get the type of the value stored at a key", a.KeyArgs),
    ("get_many", "Get the values of several keys", a.KeysArgs),
    # enumeration
    ("list_keys", "List keys matching a pattern (SCAN based, bounded)", a.ListKeysArgs),
    ("scan_keys", "Fetch one SCAN page starting from a cursor", a.ScanArgs),
    # application views
    ("list_sessions", "List session keys, optionally for one tenant", a.ListSessionsArgs),
    ("inspect_session", "Show a session's data and TTL", a.InspectSessionArgs),
    ("list_rate_limits", "List rate-limit keys, optionally for one user", a.ListRateLimitsArgs),
    # server
    ("server_info", "Server information and statistics", a.InfoArgs),
    ("db_size", "Number of keys in the current database", NoArgs),
    ("memory_usage", "Memory used by a key, in bytes", a.KeyArgs),
    # counters / strings
    ("increment", "Increment the integer value of a key by one", a.KeyArgs),
    ("decrement", "Decrement the integer value of a key by one", a.KeyArgs),
    ("increment_by", "Increment the integer value of a key by an amount", a.IncrementByArgs),
    ("decrement_by", "Decrement the integer value of a key by an amount", a.DecrementByArgs),
    ("append_value", "Append a value to a string key", a.AppendArgs),
    ("string_length", "Length of the string stored at a key", a.KeyArgs),
    # hashes
    ("hash_set", "Set a field in a hash", a.HashSetArgs),
    ("hash_get", "Get a field from a hash", a.HashFieldArgs),
    ("hash_get_all", "Get all fields and values of a hash", a.KeyArgs),
    ("hash_delete", "Delete fields from a hash", a.HashDeleteArgs),
    ("hash_exists", "Check whether a hash field exists", a.HashFieldArgs),
    ("hash_keys", "List the fields of a hash", a.KeyArgs),
    ("hash_values", "List the values of a hash", a.KeyArgs),
    ("hash_length", "Number of fields in a hash", a.KeyArgs),
    # lists
    ("list_push_left", "Prepend values to a list", a.ListPushArgs),
    ("list_push_right", "Append values to a list", a.ListPushArgs),
    ("list_pop_left", "Remove and return the first list element", a.KeyArgs),
    ("list_pop_right", "Remove and return the last list element", a.KeyArgs),
    ("list_range", "Get a range of list elements", a.ListRangeArgs),
    ("list_length", "Length of a list", a.KeyArgs),
    # sets
    ("set_add", "Add members to a set", a.SetMembersArgs),
    ("set_members", "List all members of a set", a.KeyArgs),
    ("set_remove", "Remove members from a set", a.SetMembersArgs),
    ("set_is_member", "Check set membership", a.SetMemberArgs),
    ("set_cardinality", "Number of members in a set", a.KeyArgs),
    # sorted sets
    ("zset_add", "Add scored members to a sorted set", a.ZAddArgs),
    ("zset_range", "Get a range of sorted-set members by rank", a.ZRangeArgs),
    ("zset_remove", "Remove members from a sorted set", a.ZRemoveArgs),
    ("zset_score", "Score of a sorted-set member", a.ZMemberArgs),
    ("zset_cardinality", "Number of members in a sorted set", a.KeyArgs),
    ("zset_rank", "Rank of a sorted-set member", a.ZMemberArgs),
    # pub/sub
    ("publish_message", "Publish a message to a channel", a.PublishArgs),
]

# (name, description, input model, cancel message)
_GUARDED: List[Tuple[str, str, Type[BaseModel], str]] = [
    ("delete_by_pattern", "Delete every key matching a pattern (requires confirm=true)",
     a.DeleteByPatternArgs, DELETE_CANCELLED),
    ("clear_tenant_cache", "Delete all cache entries for a tenant (requires confirm=true)",
     a.ClearTenantCacheArgs, CLEAR_CANCELLED),
    ("flush_db", "Delete ALL keys in the current database (requires confirm=true)",
     a.FlushArgs, FLUSH_CANCELLED),
]


def register(registrations: IntegrationRegistrations) -> None:
    settings: Settings = registrations.settings
    handlers = StoreHandlers(
        page_size=settings.store.page_size,
        list_limit=settings.store.list_limit,
        url=settings.store.url,
    )
    catalog = registrations.catalog

    for name, description, model in _PASS_THROUGH:
        catalog.add(name=name, description=description, handler=getattr(handlers, name), args_model=model, backend=BACKEND)

    for name, description, model, cancel in _GUARDED:
        catalog.add_guarded(
            name=name,
            description=description,
            handler=getattr(handlers, name),
            args_model=model,
            backend=BACKEND,
            cancel_message=cancel,
        )

    # local: shows the configured connection, never contacts it
    catalog.add(
        name="current_db",
        description="Show the configured database index and connection (password redacted)",
        handler=handlers.current_db,
        args_model=NoArgs,
        backend=None,
    )
