# ==============================
# Base Operation Contract
# ==============================
"""
Handler shapes for toolbroker.

Rules:
- Handlers are invoked ONLY through broker/operations/dispatcher.py.
- Handlers do not read env vars or settings directly; the backend handle is injected.
- Handlers return CallResponse (core/contracts envelope) or raise a BrokerError.

Shapes:
- pass-through: parse args, one remote call, render the result
- guarded: refuses to run without confirm=true, returns a no-op envelope instead
- placeholder: fixed explanatory envelope, never touches a backend
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, Mapping, Optional

from broker.contracts.operation_schema import CallResponse, HandlerKind, OperationDescriptor


Handler = Callable[[Mapping[str, Any], Any], CallResponse]

DEFAULT_CANCEL_MESSAGE = "Operation cancelled. Set confirm=true to proceed."


@dataclass(frozen=True)
class Operation:
    """One catalog entry: descriptor plus the handler that serves it."""

    descriptor: OperationDescriptor
    handler: Handler

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def backend(self) -> Optional[str]:
        return self.descriptor.backend

    @property
    def kind(self) -> HandlerKind:
        return self.descriptor.kind


def guarded(handler: Handler, *, cancel_message: str = DEFAULT_CANCEL_MESSAGE) -> Handler:
    """
    Wrap a destructive handler behind an explicit confirm flag.

    Only a literal boolean true (or its usual string/int spellings) confirms;
    anything else returns the cancel message without calling the handler.
    """

    @wraps(handler)
    def _guarded(arguments: Mapping[str, Any], backend: Any) -> CallResponse:
        if not is_confirmed(arguments):
            return CallResponse.text(cancel_message)
        return handler(arguments, backend)

    return _guarded


def placeholder(message: str) -> Handler:
    """Handler for an operation that is declared but not yet available."""

    def _placeholder(arguments: Mapping[str, Any], backend: Any) -> CallResponse:
        return CallResponse.text(message)

    return _placeholder


def is_confirmed(arguments: Optional[Mapping[str, Any]]) -> bool:
    value = (arguments or {}).get("confirm")
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1", "yes"}
    if isinstance(value, int):
        return value == 1
    return False
