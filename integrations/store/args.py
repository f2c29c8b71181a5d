# ==============================
# Store Operation Inputs
# ==============================
"""
Input models for store operations.

Field descriptions double as discovery text; keep them short.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from broker.operations.arguments import GuardedArgs, OperationArgs


# ==============================
# Keys
# ==============================
class KeyArgs(OperationArgs):
    key: str = Field(..., description="Key name")


class SetValueArgs(KeyArgs):
    value: str = Field(..., description="Value to store")
    ttl: Optional[int] = Field(default=None, gt=0, description="Time to live in seconds")


class KeysArgs(OperationArgs):
    keys: List[str] = Field(..., min_length=1, description="Key names")


class ExpireArgs(KeyArgs):
    seconds: int = Field(..., gt=0, description="Expiration in seconds")


class RenameArgs(OperationArgs):
    old_key: str = Field(..., description="Current key name")
    new_key: str = Field(..., description="New key name")


# ==============================
# Enumeration
# ==============================
class ListKeysArgs(OperationArgs):
    pattern: str = Field(default="*", description="Glob-style match pattern")
    limit: Optional[int] = Field(default=None, gt=0, description="Maximum keys to return (default 100)")


class ScanArgs(OperationArgs):
    cursor: Optional[str] = Field(default="0", description='Cursor from a previous call; "0" to start')
    match: Optional[str] = Field(default=None, description="Glob-style match pattern")
    count: Optional[int] = Field(default=None, gt=0, description="Page size hint")


class DeleteByPatternArgs(GuardedArgs):
    pattern: str = Field(..., description="Glob-style match pattern, e.g. session:*")
    confirm: bool = Field(default=False, description="Must be true to delete")


class ClearTenantCacheArgs(GuardedArgs):
    tenant_id: str = Field(..., description="Tenant identifier")
    confirm: bool = Field(default=False, description="Must be true to clear")


class FlushArgs(GuardedArgs):
    confirm: bool = Field(default=False, description="Must be true to flush ALL keys")


# ==============================
# Application Views
# ==============================
class ListSessionsArgs(OperationArgs):
    tenant_id: Optional[str] = Field(default=None, description="Restrict to one tenant")
    limit: int = Field(default=50, gt=0, description="Maximum sessions to return")


class InspectSessionArgs(OperationArgs):
    session_id: str = Field(..., description='Session id, with or without the "session:" prefix')


class ListRateLimitsArgs(OperationArgs):
    user_id: Optional[str] = Field(default=None, description="Restrict to one user")
    limit: int = Field(default=50, gt=0, description="Maximum entries to return")


# ==============================
# Server
# ==============================
class InfoArgs(OperationArgs):
    section: Optional[str] = Field(default=None, description="INFO section, e.g. memory")


# ==============================
# Counters / Strings
# ==============================
class IncrementByArgs(KeyArgs):
    increment: int = Field(..., description="Amount to add")


class DecrementByArgs(KeyArgs):
    decrement: int = Field(..., description="Amount to subtract")


class AppendArgs(KeyArgs):
    value: str = Field(..., description="Value to append")


# ==============================
# Hashes
# ==============================
class HashFieldArgs(KeyArgs):
    field: str = Field(..., description="Hash field")


class HashSetArgs(HashFieldArgs):
    value: str = Field(..., description="Field value")


class HashDeleteArgs(KeyArgs):
    fields: List[str] = Field(..., min_length=1, description="Fields to delete")


# ==============================
# Lists
# ==============================
class ListPushArgs(KeyArgs):
    values: List[str] = Field(..., min_length=1, description="Values to push")


class ListRangeArgs(KeyArgs):
    start: int = Field(default=0, description="Start index")
    stop: int = Field(default=-1, description="Stop index (inclusive)")


# ==============================
# Sets
# ==============================
class SetMembersArgs(KeyArgs):
    members: List[str] = Field(..., min_length=1, description="Members")


class SetMemberArgs(KeyArgs):
    member: str = Field(..., description="Member")


# ==============================
# Sorted Sets
# ==============================
class ScoredMember(BaseModel):
    model_config = ConfigDict(extra="forbid")

    score: float = Field(...)
    value: str = Field(...)


class ZAddArgs(KeyArgs):
    members: List[ScoredMember] = Field(..., min_length=1, description="Members with scores")


class ZRangeArgs(ListRangeArgs):
    with_scores: bool = Field(default=False, description="Include scores")


class ZRemoveArgs(SetMembersArgs):
    pass


class ZMemberArgs(SetMemberArgs):
    pass


# ==============================
# Pub/Sub
# ==============================
class PublishArgs(OperationArgs):
    channel: str = Field(..., description="Channel name")
    message: str = Field(..., description="Message to publish")
