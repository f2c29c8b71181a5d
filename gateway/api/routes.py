# ==============================
# Discovery & Dispatch Routes
# ==============================
"""
HTTP surface over the Dispatcher.

Rules:
- Discovery returns the registry in catalog order.
- A call always answers 200 with the CallResponse envelope; failures are
  reported inside it and flagged by isError, never as HTTP errors.
- Only a malformed request body or an unknown route produce HTTP errors.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from broker.operations.dispatcher import Dispatcher
from gateway.api.deps import get_dispatcher


router = APIRouter()


class CallBody(BaseModel):
    arguments: Optional[Dict[str, Any]] = Field(default=None, description="Operation arguments object.")


def _ok(data: Dict[str, Any], *, meta: Dict[str, Any] | None = None) -> Dict[str, Any]:
    return {"ok": True, "data": data, "error": None, "meta": meta or {}}


@router.get("/operations")
def list_operations(dispatcher: Dispatcher = Depends(get_dispatcher)) -> Dict[str, Any]:
    operations = dispatcher.describe()
    return _ok({"operations": operations}, meta={"count": len(operations)})


@router.post("/operations/{name}")
def call_operation(
    name: str,
    body: CallBody | None = None,
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> Dict[str, Any]:
    arguments = body.arguments if body is not None else None
    response = dispatcher.call(name, arguments)
    return {**response.to_dict(), "isError": response.is_error}


@router.get("/health")
def health(dispatcher: Dispatcher = Depends(get_dispatcher)) -> Dict[str, Any]:
    return _ok(
        {
            "operations": len(dispatcher.registry),
            "resources": dispatcher.resources.status(),
            "metrics": dispatcher.metrics.snapshot(),
        }
    )
