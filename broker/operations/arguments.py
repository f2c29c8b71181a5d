# ==============================
# Operation Arguments
# ==============================
"""
Per-operation input models.

Each operation declares a pydantic model for its arguments. The same model
drives two things:
- contract_from_model(): the advisory InputContract shown at discovery
- parse_args(): the handler-boundary check, raising ArgumentError

No backend calls here.
"""

from __future__ import annotations

import types
import typing
from typing import Any, Dict, Mapping, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError

from broker.contracts.operation_schema import FieldKind, FieldSpec, InputContract
from broker.errors import ArgumentError


A = TypeVar("A", bound="OperationArgs")


class OperationArgs(BaseModel):
    """
    Base for operation input models.

    Unknown keys are ignored; callers often send extra fields.
    Numbers are accepted where a string is expected (cursors, values).
    """
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)


class NoArgs(OperationArgs):
    pass


class GuardedArgs(OperationArgs):
    """Base for guarded-destructive operations."""
    confirm: bool = False


# ==============================
# Parsing
# ==============================
def parse_args(model: Type[A], arguments: Optional[Mapping[str, Any]]) -> A:
    """
    Validate raw caller arguments against an input model.

    The first problem found is reported; a missing field is always named.
    """
    try:
        return model.model_validate(dict(arguments or {}))
    except ValidationError as exc:
        raise _to_argument_error(exc) from exc


def _to_argument_error(exc: ValidationError) -> ArgumentError:
    errors = exc.errors()
    missing = [e for e in errors if e.get("type") == "missing"]
    first = missing[0] if missing else errors[0]
    field = ".".join(str(p) for p in first.get("loc", ())) or None
    if first.get("type") == "missing" and field:
        return ArgumentError.missing(field)
    msg = first.get("msg", "invalid value")
    if field:
        return ArgumentError(f"Invalid argument '{field}': {msg}", field=field)
    return ArgumentError(f"Invalid arguments: {msg}")


# ==============================
# Contract Derivation
# ==============================
def contract_from_model(model: Type[BaseModel]) -> InputContract:
    specs = []
    for name, info in model.model_fields.items():
        kind, items = _kind_of(info.annotation)
        default = None
        if not info.is_required():
            default = info.get_default(call_default_factory=True)
            if isinstance(default, (list, dict)) and not default:
                default = None
        specs.append(
            FieldSpec(
                name=info.alias or name,
                kind=kind,
                description=info.description or "",
                required=info.is_required(),
                items=items,
                default=default,
            )
        )
    return InputContract(field_specs=specs)


_UNION_ORIGINS = (typing.Union, types.UnionType)

_SCALARS: Dict[Any, FieldKind] = {
    str: FieldKind.STRING,
    bool: FieldKind.BOOLEAN,
    int: FieldKind.INTEGER,
    float: FieldKind.NUMBER,
}


def _kind_of(annotation: Any) -> Tuple[FieldKind, Optional[FieldKind]]:
    annotation = _strip_optional(annotation)
    if annotation in _SCALARS:
        return _SCALARS[annotation], None

    origin = typing.get_origin(annotation)
    if origin in (list, tuple, set, frozenset):
        args = typing.get_args(annotation)
        items = _kind_of(args[0])[0] if args else None
        return FieldKind.ARRAY, items
    if origin is dict or annotation is dict:
        return FieldKind.OBJECT, None
    if origin in _UNION_ORIGINS:
        # Union[int, str] and friends: advertise the first member
        return _kind_of(typing.get_args(annotation)[0])
    if isinstance(annotation, type) and issubclass(annotation, BaseModel):
        return FieldKind.OBJECT, None
    if annotation is list:
        return FieldKind.ARRAY, None
    return FieldKind.STRING, None


def _strip_optional(annotation: Any) -> Any:
    if typing.get_origin(annotation) in _UNION_ORIGINS:
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation
