"""Tests for declare-once bookkeeping"""

from bridgegen import DeclarationRegistry, OpaqueType, SharedStruct


def test_claim_once():
    registry = DeclarationRegistry()
    point = SharedStruct("Point")
    assert registry.claim(point)
    assert not registry.claim(SharedStruct("Point"))
    assert "Point" in registry


def test_already_declared_is_never_claimed():
    registry = DeclarationRegistry()
    assert not registry.claim(OpaqueType("Foo", already_declared=True))
    assert "Foo" not in registry


def test_claim_all_keeps_first_module_declarations():
    registry = DeclarationRegistry()
    first = registry.claim_all([OpaqueType("Foo"), SharedStruct("Point")])
    second = registry.claim_all([SharedStruct("Point"), OpaqueType("Bar")])
    assert first == {"Foo", "Point"}
    assert second == {"Bar"}


def test_generic_instances_are_keyed_by_arguments():
    registry = DeclarationRegistry()
    assert registry.claim(OpaqueType("Wrapper", generics=["u32"]))
    assert registry.claim(OpaqueType("Wrapper", generics=["u64"]))
    assert not registry.claim(OpaqueType("Wrapper", generics=["u32"]))


def test_should_emit_and_mark():
    registry = DeclarationRegistry()
    assert registry.should_emit("Oops: Error")
    registry.mark_emitted("Oops: Error")
    assert not registry.should_emit("Oops: Error")


def test_owner_module_is_recorded():
    registry = DeclarationRegistry()
    registry.claim_all([SharedStruct("Point")], "first")
    registry.claim_all([SharedStruct("Point"), OpaqueType("Foo")], "second")
    registry.mark_emitted("FfiSlice_uint8_t")
    assert registry.owner_of("Point") == "first"
    assert registry.owner_of("Foo") == "second"
    assert registry.owner_of("FfiSlice_uint8_t") is None
    assert registry.owner_of("Missing") is None
