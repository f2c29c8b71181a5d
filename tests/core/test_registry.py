# ==============================
# Operation Catalog Tests
# ==============================
from __future__ import annotations

import pytest

from broker.contracts.operation_schema import CallResponse, HandlerKind, OperationDescriptor
from broker.errors import CatalogError, UnknownOperationError
from broker.operations.arguments import GuardedArgs, NoArgs
from broker.operations.base import guarded, is_confirmed, placeholder
from broker.operations.registry import HandlerTable, OperationCatalog, OperationRegistry, validate_catalog


def _echo(arguments, backend):  # type: ignore[no-untyped-def]
    return CallResponse.text("ran")


def test_build_keeps_insertion_order_and_co_indexes() -> None:
    catalog = OperationCatalog()
    catalog.add(name="b_op", description="B", handler=_echo, backend="store")
    catalog.add(name="a_op", description="A", handler=_echo)
    catalog.add_placeholder(name="later", description="Later", message="Not yet implemented")

    registry, table = catalog.build()

    assert registry.names() == ["b_op", "a_op", "later"]
    assert sorted(table.names()) == sorted(registry.names())
    assert registry.backends() == ["store"]
    assert registry.get("later").kind == HandlerKind.PLACEHOLDER
    assert registry.get("later").backend is None


def test_duplicate_name_is_a_catalog_error() -> None:
    catalog = OperationCatalog()
    catalog.add(name="get_value", description="x", handler=_echo)
    with pytest.raises(CatalogError, match="Operation already registered: get_value"):
        catalog.add(name="get_value", description="y", handler=_echo)


def test_extend_is_all_or_nothing() -> None:
    base = OperationCatalog()
    base.add(name="shared", description="x", handler=_echo)
    pack = OperationCatalog()
    pack.add(name="fresh", description="x", handler=_echo)
    pack.add(name="shared", description="x", handler=_echo)

    with pytest.raises(CatalogError):
        base.extend(pack)
    assert not base.has("fresh")


def test_catalog_is_frozen_after_build() -> None:
    catalog = OperationCatalog()
    catalog.build()
    with pytest.raises(CatalogError):
        catalog.add(name="late", description="x", handler=_echo)


def test_guarded_requires_confirm_field() -> None:
    catalog = OperationCatalog()
    with pytest.raises(CatalogError, match="confirm"):
        catalog.add_guarded(name="wipe", description="x", handler=_echo, args_model=NoArgs)
    desc = catalog.add_guarded(name="wipe", description="x", handler=_echo, args_model=GuardedArgs)
    assert desc.kind == HandlerKind.GUARDED
    assert "confirm" in desc.input_contract.to_schema()["properties"]


def test_validate_catalog_reports_mismatch() -> None:
    registry = OperationRegistry([OperationDescriptor(name="declared")])
    table = HandlerTable({"handled": _echo})
    with pytest.raises(CatalogError) as exc:
        validate_catalog(registry, table)
    assert "no handler for: declared" in str(exc.value)
    assert "handler without descriptor: handled" in str(exc.value)


def test_unknown_lookups_raise() -> None:
    registry, table = OperationCatalog().build()
    with pytest.raises(UnknownOperationError):
        registry.get("nope")
    with pytest.raises(UnknownOperationError):
        table.lookup("nope")


def test_handler_table_is_read_only() -> None:
    table = HandlerTable({"x": _echo})
    with pytest.raises(TypeError):
        table.mapping["y"] = _echo  # type: ignore[index]


@pytest.mark.parametrize(
    "value, expected",
    [(True, True), ("true", True), ("YES", True), (1, True), (False, False), ("no", False), (None, False), (2, False)],
)
def test_is_confirmed(value, expected) -> None:  # type: ignore[no-untyped-def]
    assert is_confirmed({"confirm": value}) is expected


def test_guarded_does_not_call_handler_without_confirm() -> None:
    calls = []

    def _destructive(arguments, backend):  # type: ignore[no-untyped-def]
        calls.append(arguments)
        return CallResponse.text("done")

    handler = guarded(_destructive, cancel_message="cancelled")
    assert handler({}, object()).first_text == "cancelled"
    assert calls == []
    assert handler({"confirm": True}, object()).first_text == "done"
    assert len(calls) == 1


def test_placeholder_returns_fixed_text() -> None:
    assert placeholder("Not yet implemented")({"any": 1}, None).first_text == "Not yet implemented"
