# ==============================
# Operation Dispatcher
# ==============================
"""
Central call entrypoint.

Rules:
- ONLY place handlers are invoked.
- Never raises; every outcome is a CallResponse envelope.
- One backend call sequence per dispatch: no retries here.
- Arguments and error text are redacted before they reach the log.
- The caller gets the error text unredacted.

Flow:
  lookup -> ensure_ready (if the operation names a backend) -> handler -> envelope

The input contract is advisory; handlers parse their own arguments.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from typing import Any, Dict, List, Optional

from broker.contracts.operation_schema import CallRequest, CallResponse, OperationDescriptor
from broker.errors import ArgumentError, ErrorCode, error_code_of
from broker.logging.logger import LogContext, get_logger, with_context
from broker.logging.metrics import Metrics
from broker.operations.registry import HandlerTable, OperationRegistry
from broker.resources.manager import ResourceSet
from broker.utils.redaction import SecurityRedactor


class Dispatcher:
    def __init__(
        self,
        *,
        registry: OperationRegistry,
        table: HandlerTable,
        resources: Optional[ResourceSet] = None,
        redactor: Optional[SecurityRedactor] = None,
        metrics: Optional[Metrics] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.registry = registry
        self.table = table
        self.resources = resources or ResourceSet()
        self.redactor = redactor or SecurityRedactor()
        self.metrics = metrics or Metrics()
        self.logger = logger or get_logger("dispatch")

    # ------------------------------
    # Discovery
    # ------------------------------
    def list_operations(self) -> List[OperationDescriptor]:
        return self.registry.list()

    def describe(self) -> List[Dict[str, Any]]:
        return [d.to_dict() for d in self.registry.list()]

    # ------------------------------
    # Calls
    # ------------------------------
    def call(self, name: str, arguments: Any = None) -> CallResponse:
        return self.dispatch(CallRequest(operation_name=name, arguments=arguments))

    def dispatch(self, request: CallRequest) -> CallResponse:
        name = request.operation_name
        timer = self.metrics.start_timer(f"dispatch.latency_ms.{name}")
        self.metrics.inc("dispatch.total")

        backend: Optional[str] = None
        request_id = uuid.uuid4().hex
        log = with_context(self.logger, LogContext(request_id=request_id, operation=name))
        try:
            descriptor = self.registry.get(name)
            handler = self.table.lookup(name)
            backend = descriptor.backend
            log = with_context(self.logger, LogContext(request_id=request_id, operation=name, backend=backend))

            arguments = _as_mapping(request.arguments)

            handle = None
            if backend is not None:
                handle = self.resources.get(backend).ensure_ready()

            try:
                response = handler(arguments, handle)
            except Exception as e:
                self._maybe_invalidate(backend, e)
                raise
        except Exception as e:
            code = error_code_of(e)
            message = _message_of(e, code)
            elapsed = self.metrics.stop_timer(timer)
            self.metrics.inc("dispatch.error")
            self.metrics.inc(f"dispatch.error.{code.value}")
            log.warning(
                "dispatch failed",
                extra={
                    "outcome": "error",
                    "error_code": code.value,
                    "error": self.redactor.redact_text(message),
                    "latency_ms": elapsed,
                    "arguments": self._safe_arguments(request.arguments),
                },
            )
            return CallResponse.error(message)

        elapsed = self.metrics.stop_timer(timer)
        log.info(
            "dispatch ok",
            extra={
                "outcome": "ok",
                "latency_ms": elapsed,
                "arguments": self._safe_arguments(request.arguments),
            },
        )
        return response

    # ------------------------------
    # Internals
    # ------------------------------
    def _maybe_invalidate(self, backend: Optional[str], exc: Exception) -> None:
        if backend is None or not self.resources.has(backend):
            return
        manager = self.resources.get(backend)
        if manager.is_connection_error(exc):
            manager.invalidate(str(exc))
            self.logger.warning("backend connection lost", extra={"backend": backend})

    def _safe_arguments(self, arguments: Any) -> Any:
        if isinstance(arguments, Mapping):
            return self.redactor.redact_dict(dict(arguments))
        return self.redactor.redact_value(arguments)


def _as_mapping(arguments: Any) -> Mapping[str, Any]:
    if arguments is None:
        return {}
    if isinstance(arguments, Mapping):
        return arguments
    raise ArgumentError("Arguments must be an object")


def _message_of(exc: Exception, code: ErrorCode) -> str:
    msg = str(exc).strip()
    if msg:
        return msg
    if code == ErrorCode.NOT_IMPLEMENTED:
        return "Operation not implemented"
    return type(exc).__name__
