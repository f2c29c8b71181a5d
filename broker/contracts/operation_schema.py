# ==============================
# Operation Contracts
# ==============================
"""
Operation contracts for toolbroker.

These models define the discovery metadata and the call envelope shared by
every integration. No module should invent its own response shape; use
CallResponse.

Intended usage:
- Integrations declare OperationDescriptor + InputContract at startup
- Handlers return CallResponse
- Dispatcher converts failures into CallResponse.error(...)
"""

# ==============================
# Imports
# ==============================
from __future__ import annotations

import json
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ==============================
# Constants
# ==============================
ERROR_PREFIX = "Error: "


# ==============================
# Enums
# ==============================
class FieldKind(str, Enum):
    """Primitive/array/object kinds an input field may declare."""
    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"


class HandlerKind(str, Enum):
    """Recurring handler shapes in the handler table."""
    PASS_THROUGH = "pass_through"
    GUARDED = "guarded"
    PLACEHOLDER = "placeholder"


# ==============================
# Discovery Models
# ==============================
class FieldSpec(BaseModel):
    """One named input field."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(..., description="Argument name as supplied by the caller.")
    kind: FieldKind = Field(..., description="Value kind.")
    description: str = Field(default="", description="Human description for discovery.")
    required: bool = Field(default=False)
    items: Optional[FieldKind] = Field(default=None, description="Element kind when kind=array.")
    default: Any = Field(default=None, description="Advertised default, if any.")

    def to_schema(self) -> Dict[str, Any]:
        prop: Dict[str, Any] = {"type": self.kind.value}
        if self.description:
            prop["description"] = self.description
        if self.kind == FieldKind.ARRAY and self.items is not None:
            prop["items"] = {"type": self.items.value}
        if self.default is not None:
            prop["default"] = self.default
        return prop


class InputContract(BaseModel):
    """
    Advisory input shape for one operation.

    The contract is metadata for discovery; handlers enforce their own
    required fields at call time.
    """
    model_config = ConfigDict(extra="forbid", frozen=True)

    field_specs: List[FieldSpec] = Field(default_factory=list)

    @property
    def required(self) -> List[str]:
        return [f.name for f in self.field_specs if f.required]

    def to_schema(self) -> Dict[str, Any]:
        schema: Dict[str, Any] = {
            "type": "object",
            "properties": {f.name: f.to_schema() for f in self.field_specs},
        }
        required = self.required
        if required:
            schema["required"] = required
        return schema


class OperationDescriptor(BaseModel):
    """Static metadata for one callable operation. Immutable after startup."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(..., description="Unique, stable operation name.")
    description: str = Field(default="", description="What the operation does.")
    input_contract: InputContract = Field(default_factory=InputContract)
    backend: Optional[str] = Field(default=None, description="Resource the operation needs, if any.")
    kind: HandlerKind = Field(default=HandlerKind.PASS_THROUGH)

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("operation name must be non-empty")
        return v

    def to_dict(self) -> Dict[str, Any]:
        """Discovery listing entry."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_contract.to_schema(),
        }


# ==============================
# Call Envelope
# ==============================
class ContentItem(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    type: str = Field(default="text")
    text: str = Field(...)


class CallRequest(BaseModel):
    """
    One incoming call. `arguments` is kept as supplied; it may be missing or
    malformed and is checked by the dispatcher/handlers, not here.
    """
    model_config = ConfigDict(extra="forbid")

    operation_name: str = Field(...)
    arguments: Any = Field(default=None)


class CallResponse(BaseModel):
    """
    Normalized envelope: same shape for success and failure.

    Pattern:
      content: [{"type": "text", "text": ...}, ...]
    """
    model_config = ConfigDict(extra="forbid", frozen=True)

    content: List[ContentItem] = Field(..., min_length=1)

    @classmethod
    def text(cls, message: str) -> "CallResponse":
        return cls(content=[ContentItem(text=message)])

    @classmethod
    def structured(cls, payload: Any) -> "CallResponse":
        """Structured results are rendered as indented JSON text."""
        return cls.text(json.dumps(payload, indent=2, ensure_ascii=False, default=str))

    @classmethod
    def error(cls, message: str) -> "CallResponse":
        return cls.text(f"{ERROR_PREFIX}{message}")

    @property
    def first_text(self) -> str:
        return self.content[0].text

    @property
    def is_error(self) -> bool:
        return self.first_text.startswith(ERROR_PREFIX)

    def to_dict(self) -> Dict[str, Any]:
        """Stable serialization wrapper."""
        return self.model_dump(mode="json")
