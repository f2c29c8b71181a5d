# ==============================
# Resource Manager Tests
# ==============================
from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from broker.errors import BackendConnectionError, NotConfiguredError
from broker.resources.manager import (
    BackendResourceManager,
    CredentialResourceManager,
    ResourceSet,
    ResourceState,
)
from tests.fakes import CountingConnector, FakeStore, make_store_manager


class _SlowConnector:
    def __init__(self, *, fail: bool = False) -> None:
        self.calls = 0
        self.fail = fail
        self._lock = threading.Lock()

    def __call__(self) -> object:
        with self._lock:
            self.calls += 1
        time.sleep(0.05)
        if self.fail:
            raise OSError("handshake refused")
        return object()


def _concurrent_ensure_ready(mgr: BackendResourceManager, n: int):  # type: ignore[no-untyped-def]
    barrier = threading.Barrier(n)

    def _call():  # type: ignore[no-untyped-def]
        barrier.wait()
        try:
            return ("ok", mgr.ensure_ready())
        except Exception as e:
            return ("err", e)

    with ThreadPoolExecutor(max_workers=n) as pool:
        return [f.result() for f in [pool.submit(_call) for _ in range(n)]]


def test_concurrent_first_use_shares_one_handshake() -> None:
    connector = _SlowConnector()
    mgr = BackendResourceManager(name="store", connector=connector, setting="REDIS_URL")

    outcomes = _concurrent_ensure_ready(mgr, 8)

    assert connector.calls == 1
    assert mgr.status()["handshakes"] == 1
    handles = {id(handle) for kind, handle in outcomes}
    assert all(kind == "ok" for kind, _ in outcomes)
    assert len(handles) == 1
    assert mgr.state == ResourceState.READY


def test_concurrent_failure_is_observed_by_every_waiter_then_retried() -> None:
    connector = _SlowConnector(fail=True)
    mgr = BackendResourceManager(name="store", connector=connector, setting="REDIS_URL")

    outcomes = _concurrent_ensure_ready(mgr, 6)

    assert connector.calls == 1
    assert all(kind == "err" for kind, _ in outcomes)
    assert all(isinstance(e, BackendConnectionError) for _, e in outcomes)
    assert str(outcomes[0][1]) == "Failed to connect to store: handshake refused"
    assert mgr.state == ResourceState.FAILED

    connector.fail = False
    mgr.ensure_ready()
    assert connector.calls == 2
    assert mgr.state == ResourceState.READY


class _Interrupted(BaseException):
    pass


def test_interrupted_handshake_releases_waiters_and_resets() -> None:
    connector = _SlowConnector()
    attempts = {"n": 0}

    def _interrupt_first() -> object:
        attempts["n"] += 1
        if attempts["n"] == 1:
            time.sleep(0.05)
            raise _Interrupted()
        return connector()

    mgr = BackendResourceManager(name="store", connector=_interrupt_first, setting="REDIS_URL")
    barrier = threading.Barrier(4)

    def _call():  # type: ignore[no-untyped-def]
        barrier.wait()
        try:
            return ("ok", mgr.ensure_ready())
        except BackendConnectionError as e:
            return ("err", e)
        except _Interrupted as e:
            return ("interrupted", e)

    with ThreadPoolExecutor(max_workers=4) as pool:
        outcomes = [f.result(timeout=5) for f in [pool.submit(_call) for _ in range(4)]]

    kinds = sorted(kind for kind, _ in outcomes)
    assert kinds == ["err", "err", "err", "interrupted"]
    assert str(next(e for k, e in outcomes if k == "err")) == "Connection attempt to store was interrupted"
    assert mgr.state == ResourceState.UNCONNECTED

    mgr.ensure_ready()
    assert mgr.state == ResourceState.READY
    assert connector.calls == 1


def test_unconfigured_manager_fails_without_io() -> None:
    mgr = make_store_manager(None)

    with pytest.raises(NotConfiguredError) as exc:
        mgr.ensure_ready()

    assert str(exc.value) == "Store connection not configured. Set REDIS_URL environment variable."
    assert mgr.state == ResourceState.UNCONFIGURED
    assert mgr.status()["handshakes"] == 0


def test_ready_handle_is_reused_and_close_releases_it() -> None:
    store = FakeStore()
    connector = CountingConnector(store)
    mgr = make_store_manager(connector)

    assert mgr.ensure_ready() is mgr.ensure_ready()
    assert connector.calls == 1

    mgr.close()
    assert store.closed
    assert mgr.state == ResourceState.UNCONNECTED


def test_invalidate_only_affects_ready_handles() -> None:
    connector = CountingConnector(FakeStore(), fail_times=1)
    mgr = make_store_manager(connector)

    with pytest.raises(BackendConnectionError):
        mgr.ensure_ready()
    mgr.invalidate("ignored")
    assert mgr.state == ResourceState.FAILED

    mgr.ensure_ready()
    mgr.invalidate("connection reset")
    assert mgr.state == ResourceState.UNCONNECTED
    assert mgr.status()["last_error"] == "connection reset"


def test_credential_manager_states() -> None:
    client = object()
    ready = CredentialResourceManager(name="neon", client=client, setting="NEON_API_KEY")
    missing = CredentialResourceManager(name="neon", client=None, setting="NEON_API_KEY", not_configured_message="no key")

    assert ready.ensure_ready() is client
    assert ready.state == ResourceState.READY
    with pytest.raises(NotConfiguredError, match="no key"):
        missing.ensure_ready()
    assert missing.client is None


def test_resource_set_rejects_duplicates() -> None:
    resources = ResourceSet()
    resources.add(make_store_manager(None))
    with pytest.raises(ValueError):
        resources.add(make_store_manager(None))
    with pytest.raises(KeyError):
        resources.get("neon")
    assert resources.names() == ["store"]
