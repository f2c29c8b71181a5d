# ==============================
# Operation Registry
# ==============================
"""
Operation registry and handler table.

Design:
- Integrations add operations to an OperationCatalog during boot (broker/app.py)
- OperationCatalog.build() freezes the catalog into:
    OperationRegistry: ordered descriptors for discovery
    HandlerTable: immutable name -> handler mapping for dispatch
- Both are co-indexed 1:1; build() checks it
- Duplicate names are a startup error (CatalogError), never a silent overwrite
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Dict, Iterator, List, Mapping, Optional, Tuple, Type

from pydantic import BaseModel

from broker.contracts.operation_schema import HandlerKind, OperationDescriptor
from broker.errors import CatalogError, UnknownOperationError
from broker.operations.arguments import NoArgs, contract_from_model
from broker.operations.base import DEFAULT_CANCEL_MESSAGE, Handler, Operation, guarded, placeholder


class OperationRegistry:
    """Ordered, read-only view of the declared operations."""

    def __init__(self, descriptors: List[OperationDescriptor]) -> None:
        self._ordered: Tuple[OperationDescriptor, ...] = tuple(descriptors)
        self._by_name: Dict[str, OperationDescriptor] = {d.name: d for d in self._ordered}

    def list(self) -> List[OperationDescriptor]:
        return list(self._ordered)

    def get(self, name: str) -> OperationDescriptor:
        desc = self._by_name.get(name)
        if desc is None:
            raise UnknownOperationError(name)
        return desc

    def has(self, name: str) -> bool:
        return name in self._by_name

    def names(self) -> List[str]:
        return [d.name for d in self._ordered]

    def backends(self) -> List[str]:
        seen: List[str] = []
        for d in self._ordered:
            if d.backend and d.backend not in seen:
                seen.append(d.backend)
        return seen

    def __len__(self) -> int:
        return len(self._ordered)

    def __iter__(self) -> Iterator[OperationDescriptor]:
        return iter(self._ordered)


class HandlerTable:
    """Immutable name -> handler mapping."""

    def __init__(self, handlers: Mapping[str, Handler]) -> None:
        self._handlers = MappingProxyType(dict(handlers))

    def lookup(self, name: str) -> Handler:
        handler = self._handlers.get(name)
        if handler is None:
            raise UnknownOperationError(name)
        return handler

    def has(self, name: str) -> bool:
        return name in self._handlers

    def names(self) -> List[str]:
        return list(self._handlers.keys())

    @property
    def mapping(self) -> Mapping[str, Handler]:
        return self._handlers

    def __len__(self) -> int:
        return len(self._handlers)


class OperationCatalog:
    """
    Mutable builder used during boot.

    Integrations call add()/add_guarded()/add_placeholder(); the app calls build() once.
    """

    def __init__(self) -> None:
        self._operations: Dict[str, Operation] = {}
        self._built = False

    def add(
        self,
        *,
        name: str,
        description: str,
        handler: Handler,
        args_model: Type[BaseModel] = NoArgs,
        backend: Optional[str] = None,
        kind: HandlerKind = HandlerKind.PASS_THROUGH,
    ) -> OperationDescriptor:
        if self._built:
            raise CatalogError(f"Catalog already built; cannot add operation: {name}")
        if name in self._operations:
            raise CatalogError(f"Operation already registered: {name}")
        descriptor = OperationDescriptor(
            name=name,
            description=description,
            input_contract=contract_from_model(args_model),
            backend=backend,
            kind=kind,
        )
        self._operations[name] = Operation(descriptor=descriptor, handler=handler)
        return descriptor

    def add_guarded(
        self,
        *,
        name: str,
        description: str,
        handler: Handler,
        args_model: Type[BaseModel],
        backend: Optional[str] = None,
        cancel_message: str = DEFAULT_CANCEL_MESSAGE,
    ) -> OperationDescriptor:
        if "confirm" not in args_model.model_fields:
            raise CatalogError(f"Guarded operation must declare a confirm field: {name}")
        return self.add(
            name=name,
            description=description,
            handler=guarded(handler, cancel_message=cancel_message),
            args_model=args_model,
            backend=backend,
            kind=HandlerKind.GUARDED,
        )

    def add_placeholder(
        self,
        *,
        name: str,
        description: str,
        message: str,
        args_model: Type[BaseModel] = NoArgs,
    ) -> OperationDescriptor:
        # Placeholders never touch a backend, so they never name one.
        return self.add(
            name=name,
            description=description,
            handler=placeholder(message),
            args_model=args_model,
            backend=None,
            kind=HandlerKind.PLACEHOLDER,
        )

    def has(self, name: str) -> bool:
        return name in self._operations

    def operations(self) -> List[Operation]:
        return list(self._operations.values())

    def extend(self, other: "OperationCatalog") -> None:
        """Merge another (unbuilt) catalog in, keeping its order."""
        if self._built:
            raise CatalogError("Catalog already built; cannot extend")
        for op in other.operations():
            if op.name in self._operations:
                raise CatalogError(f"Operation already registered: {op.name}")
        for op in other.operations():
            self._operations[op.name] = op

    def __len__(self) -> int:
        return len(self._operations)

    def build(self) -> Tuple[OperationRegistry, HandlerTable]:
        registry = OperationRegistry([op.descriptor for op in self._operations.values()])
        table = HandlerTable({op.name: op.handler for op in self._operations.values()})
        validate_catalog(registry, table)
        self._built = True
        return registry, table


def validate_catalog(registry: OperationRegistry, table: HandlerTable) -> None:
    """Registry and handler table must name exactly the same operations."""
    names = registry.names()
    if len(set(names)) != len(names):
        dupes = sorted({n for n in names if names.count(n) > 1})
        raise CatalogError(f"Duplicate operation names: {', '.join(dupes)}")

    declared = set(names)
    handled = set(table.names())
    missing = sorted(declared - handled)
    extra = sorted(handled - declared)
    if missing or extra:
        parts: List[str] = []
        if missing:
            parts.append(f"no handler for: {', '.join(missing)}")
        if extra:
            parts.append(f"handler without descriptor: {', '.join(extra)}")
        raise CatalogError("Catalog mismatch; " + "; ".join(parts))

