# ==============================
# Backend Resource Manager
# ==============================
"""
Lazy, idempotent acquisition of backend handles.

State machine (ResourceState):
  unconfigured          -> ensure_ready() raises NotConfiguredError, no I/O
  unconnected | failed  -> one caller moves to connecting and runs the connector
  connecting            -> other callers wait for that same attempt
  ready                 -> handle returned immediately

Rules:
- At most one handshake in flight per manager.
- Every caller waiting on an attempt observes the same outcome.
- A failed attempt is not retried here; the next ensure_ready() starts a new one.
- An interrupted attempt still releases its waiters and returns to unconnected.
- Handlers share the ready handle without extra locking.
"""

from __future__ import annotations

import threading
from concurrent.futures import Future
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

from broker.errors import BackendConnectionError, BrokerError, NotConfiguredError


Connector = Callable[[], Any]
Closer = Callable[[Any], None]


class ResourceState(str, Enum):
    UNCONFIGURED = "unconfigured"
    UNCONNECTED = "unconnected"
    CONNECTING = "connecting"
    READY = "ready"
    FAILED = "failed"


class BackendResourceManager:
    """
    Owns the single shared connection for one stateful backend.

    connector: performs the handshake and returns the ready handle; raises on failure.
    connection_errors: exception types that mean the live connection was lost;
      the dispatcher calls invalidate() when a handler raises one of them.
    """

    def __init__(
        self,
        *,
        name: str,
        connector: Optional[Connector],
        setting: str,
        not_configured_message: Optional[str] = None,
        closer: Optional[Closer] = None,
        connection_errors: Tuple[Type[BaseException], ...] = (),
    ) -> None:
        self.name = name
        self.setting = setting
        self.connection_errors = connection_errors
        self._connector = connector
        self._closer = closer
        self._not_configured_message = not_configured_message or (
            f"{name} is not configured. Set {setting}."
        )

        self._lock = threading.Lock()
        self._state = ResourceState.UNCONNECTED if connector is not None else ResourceState.UNCONFIGURED
        self._handle: Any = None
        self._pending: Optional[Future] = None
        self._last_error: Optional[str] = None
        self._handshakes = 0

    # ------------------------------
    # Public API
    # ------------------------------
    @property
    def state(self) -> ResourceState:
        return self._state

    @property
    def configured(self) -> bool:
        return self._connector is not None

    def ensure_ready(self) -> Any:
        with self._lock:
            if self._state == ResourceState.READY:
                return self._handle
            if self._state == ResourceState.UNCONFIGURED:
                raise NotConfiguredError(self._not_configured_message, setting=self.setting)
            if self._state == ResourceState.CONNECTING and self._pending is not None:
                pending = self._pending
                leader = False
            else:
                pending = Future()
                self._pending = pending
                self._state = ResourceState.CONNECTING
                self._handshakes += 1
                leader = True

        if leader:
            self._connect(pending)
        return pending.result()

    def invalidate(self, reason: Optional[str] = None) -> None:
        """Drop a ready handle after the backend reported a lost connection."""
        with self._lock:
            if self._state != ResourceState.READY:
                return
            handle = self._handle
            self._handle = None
            self._state = ResourceState.UNCONNECTED
            self._last_error = reason
        self._release(handle)

    def close(self) -> None:
        with self._lock:
            handle = self._handle
            self._handle = None
            if self._state in (ResourceState.READY, ResourceState.FAILED):
                self._state = ResourceState.UNCONNECTED
        self._release(handle)

    def is_connection_error(self, exc: BaseException) -> bool:
        return bool(self.connection_errors) and isinstance(exc, self.connection_errors)

    def status(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "name": self.name,
                "state": self._state.value,
                "last_error": self._last_error,
                "handshakes": self._handshakes,
            }

    # ------------------------------
    # Internals
    # ------------------------------
    def _connect(self, pending: Future) -> None:
        if self._connector is None:
            self._settle(pending, ResourceState.UNCONFIGURED, error=NotConfiguredError(
                self._not_configured_message, setting=self.setting
            ))
            return
        try:
            handle = self._connector()
        except Exception as e:
            err = e if isinstance(e, BrokerError) else BackendConnectionError(
                f"Failed to connect to {self.name}: {e}", details={"backend": self.name}
            )
            self._settle(pending, ResourceState.FAILED, error=err)
            return
        except BaseException:
            # interrupted: waiters fail, the next ensure_ready() starts over
            self._settle(pending, ResourceState.UNCONNECTED, error=BackendConnectionError(
                f"Connection attempt to {self.name} was interrupted", details={"backend": self.name}
            ))
            raise

        self._settle(pending, ResourceState.READY, handle=handle)

    def _settle(
        self,
        pending: Future,
        state: ResourceState,
        *,
        handle: Any = None,
        error: Optional[BaseException] = None,
    ) -> None:
        with self._lock:
            self._handle = handle
            self._state = state
            self._last_error = str(error) if error is not None else None
            self._pending = None
        if error is not None:
            pending.set_exception(error)
        else:
            pending.set_result(handle)

    def _release(self, handle: Any) -> None:
        if handle is None or self._closer is None:
            return
        self._closer(handle)


class CredentialResourceManager:
    """
    Resource for stateless HTTP backends.

    Ready as soon as a credential exists (the pre-built client is the handle);
    permanently unconfigured otherwise. No handshake.
    """

    def __init__(
        self,
        *,
        name: str,
        client: Optional[Any],
        setting: str,
        not_configured_message: Optional[str] = None,
    ) -> None:
        self.name = name
        self.setting = setting
        self.connection_errors: Tuple[Type[BaseException], ...] = ()
        self._client = client
        self._not_configured_message = not_configured_message or (
            f"{name} is not configured. Set {setting}."
        )

    @property
    def state(self) -> ResourceState:
        return ResourceState.READY if self._client is not None else ResourceState.UNCONFIGURED

    @property
    def configured(self) -> bool:
        return self._client is not None

    @property
    def client(self) -> Optional[Any]:
        """The configured client or None; for local-capable operations only."""
        return self._client

    def ensure_ready(self) -> Any:
        if self._client is None:
            raise NotConfiguredError(self._not_configured_message, setting=self.setting)
        return self._client

    def invalidate(self, reason: Optional[str] = None) -> None:
        return None

    def close(self) -> None:
        close = getattr(self._client, "close", None)
        if callable(close):
            close()

    def is_connection_error(self, exc: BaseException) -> bool:
        return False

    def status(self) -> Dict[str, Any]:
        return {"name": self.name, "state": self.state.value, "last_error": None, "handshakes": 0}


class ResourceSet:
    """Named resource managers for the dispatcher."""

    def __init__(self) -> None:
        self._managers: Dict[str, Any] = {}

    def add(self, manager: Any) -> None:
        if manager.name in self._managers:
            raise ValueError(f"Resource already registered: {manager.name}")
        self._managers[manager.name] = manager

    def get(self, name: str) -> Any:
        mgr = self._managers.get(name)
        if mgr is None:
            raise KeyError(f"Unknown resource: {name}")
        return mgr

    def has(self, name: str) -> bool:
        return name in self._managers

    def names(self) -> List[str]:
        return list(self._managers.keys())

    def status(self) -> Dict[str, Dict[str, Any]]:
        return {name: mgr.status() for name, mgr in self._managers.items()}

    def close_all(self) -> None:
        for mgr in self._managers.values():
            mgr.close()
