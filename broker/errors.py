# ==============================
# Error Taxonomy
# ==============================
"""
Failures raised by the registry, resource managers and handlers.

Rules:
- Raised where detected; caught exactly once, at the Dispatcher boundary.
- str(exc) is the human-readable line shown after "Error: ".
- CatalogError is a startup-time configuration error and never crosses a dispatch.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    UNKNOWN_OPERATION = "unknown_operation"
    NOT_CONFIGURED = "not_configured"
    CONNECTION_ERROR = "connection_error"
    INVALID_ARGUMENT = "invalid_argument"
    BACKEND_ERROR = "backend_error"
    NOT_IMPLEMENTED = "not_implemented"
    CATALOG_ERROR = "catalog_error"
    UNKNOWN = "unknown"


class BrokerError(Exception):
    """Base class; carries a stable code plus optional structured details."""

    code: ErrorCode = ErrorCode.UNKNOWN

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class UnknownOperationError(BrokerError):
    code = ErrorCode.UNKNOWN_OPERATION

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown operation: {name}", details={"operation": name})
        self.name = name


class NotConfiguredError(BrokerError):
    """No credential / connection string was supplied for a backend."""

    code = ErrorCode.NOT_CONFIGURED

    def __init__(self, message: str, *, setting: str) -> None:
        super().__init__(message, details={"setting": setting})
        self.setting = setting


class BackendConnectionError(BrokerError):
    code = ErrorCode.CONNECTION_ERROR


class ArgumentError(BrokerError):
    code = ErrorCode.INVALID_ARGUMENT

    def __init__(self, message: str, *, field: Optional[str] = None) -> None:
        super().__init__(message, details={"field": field} if field else None)
        self.field = field

    @classmethod
    def missing(cls, field: str) -> "ArgumentError":
        return cls(f"Missing required argument: {field}", field=field)


class BackendError(BrokerError):
    """The remote call itself reported failure; message is passed through verbatim."""

    code = ErrorCode.BACKEND_ERROR

    def __init__(self, message: str, *, status: Optional[int] = None) -> None:
        super().__init__(message, details={"status": status} if status is not None else None)
        self.status = status


class OperationNotImplementedError(BrokerError):
    code = ErrorCode.NOT_IMPLEMENTED


class CatalogError(BrokerError):
    """Duplicate names or registry/handler-table mismatch found while building the catalog."""

    code = ErrorCode.CATALOG_ERROR


def error_code_of(exc: BaseException) -> ErrorCode:
    if isinstance(exc, BrokerError):
        return exc.code
    if isinstance(exc, NotImplementedError):
        return ErrorCode.NOT_IMPLEMENTED
    return ErrorCode.UNKNOWN
