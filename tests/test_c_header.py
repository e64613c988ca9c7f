"""Tests for the C header generator"""

from bridgegen import (
    CHeaderGenerator, CodegenConfig, EnumVariant, Function, HostLang, Module, OpaqueType,
    Param, SharedEnum, SharedStruct, StructField, analyze,
)

from conftest import NOTICE


def header(module: Module) -> str:
    return CHeaderGenerator(analyze(module)).generate()


def test_primitive_argument():
    module = Module(functions=[Function("foo", params=[Param("arg1", "u8")])])
    assert header(module) == (
        f"{NOTICE}\n"
        "#include <stdint.h>\n"
        "void __swift_bridge__$foo(uint8_t arg1);\n"
    )


def test_empty_module_is_only_the_notice():
    assert header(Module()) == f"{NOTICE}\n"


def test_disabled_module_is_only_the_notice():
    module = Module(functions=[Function("foo")], cfg_feature="extra")
    analysis = analyze(module)
    assert CHeaderGenerator(analysis).generate() == f"{NOTICE}\n"
    enabled = CodegenConfig(enabled_features={"extra"})
    assert "__swift_bridge__$foo" in CHeaderGenerator(analysis, enabled).generate()


def test_slice_typedef_is_emitted_once_before_prototypes():
    module = Module(functions=[
        Function("first", return_type="&[u8]"),
        Function("second", return_type="&[u8]"),
    ])
    text = header(module)
    typedef = ("typedef struct FfiSlice_uint8_t { uint8_t* start; uintptr_t len; } "
               "FfiSlice_uint8_t;")
    assert text.count(typedef) == 1
    assert text.index(typedef) < text.index("__swift_bridge__$first")
    assert text.index(typedef) < text.index("__swift_bridge__$second")
    assert "struct __private__FfiSlice __swift_bridge__$first(void);" in text


def test_includes_are_sorted_and_deduplicated():
    module = Module(functions=[
        Function("a", params=[Param("flag", "bool")], return_type="u32"),
        Function("b", params=[Param("n", "u64")]),
    ])
    lines = header(module).splitlines()
    assert lines[1:3] == ["#include <stdbool.h>", "#include <stdint.h>"]
    assert sum(line.startswith("#include") for line in lines) == 2


def test_opaque_type_has_one_free_and_one_vec_bundle(some_type_module):
    text = header(some_type_module)
    assert "typedef struct SomeType SomeType;" in text
    assert text.count("$_free(") == 1
    assert "void __swift_bridge__$SomeType$_free(void* self);" in text
    assert text.count("void* __swift_bridge__$Vec_SomeType$new(void);") == 1
    assert "void __swift_bridge__$Vec_SomeType$push(void* vec_ptr, void* item_ptr);" in text


def test_methods(some_type_module):
    text = header(some_type_module)
    assert "void* __swift_bridge__$SomeType$new(void);" in text
    assert "void __swift_bridge__$SomeType$consume(void* self);" in text
    assert "uint32_t __swift_bridge__$SomeType$peek(void* self);" in text
    assert "void __swift_bridge__$SomeType$poke(void* self, uint32_t value);" in text


def test_empty_struct_gets_placeholder_field():
    text = header(Module(types=[SharedStruct("Empty")]))
    assert "typedef struct __swift_bridge__$Empty { uint8_t _private; } __swift_bridge__$Empty;" in text
    assert "#include <stdint.h>" in text


def test_struct_fields():
    module = Module(types=[
        SharedStruct("Point", [StructField("f64", "x"), StructField("f64", "y")]),
        SharedStruct("Pair", [StructField("u8"), StructField("bool")]),
    ])
    text = header(module)
    assert "typedef struct __swift_bridge__$Point { double x; double y; } __swift_bridge__$Point;" in text
    assert ("typedef struct __swift_bridge__$Option$Point { bool is_some; __swift_bridge__$Point val; } "
            "__swift_bridge__$Option$Point;") in text
    assert "typedef struct __swift_bridge__$Pair { uint8_t _0; bool _1; } __swift_bridge__$Pair;" in text


def test_transparent_enum():
    text = header(Module(types=[SharedEnum("Color", [EnumVariant("Red"), EnumVariant("Green")])]))
    assert ("typedef enum __swift_bridge__$Color$Tag { __swift_bridge__$Color$Red, "
            "__swift_bridge__$Color$Green, } __swift_bridge__$Color$Tag;") in text
    assert ("typedef struct __swift_bridge__$Color { __swift_bridge__$Color$Tag tag; } "
            "__swift_bridge__$Color;") in text
    assert "__swift_bridge__$Option$Color;" in text
    # by value, not by pointer
    assert "void __swift_bridge__$Vec_Color$push(void* vec_ptr, __swift_bridge__$Color item);" in text
    assert "__swift_bridge__$Option$Color __swift_bridge__$Vec_Color$pop(void* vec_ptr);" in text
    assert "uintptr_t __swift_bridge__$Vec_Color$len(void* vec_ptr);" in text


def test_data_enum_has_no_vec_bundle():
    module = Module(types=[SharedEnum("Shape", [
        EnumVariant("Circle", [StructField("f64", "radius")]),
        EnumVariant("Square", [StructField("f64")]),
        EnumVariant("Nothing"),
    ])])
    text = header(module)
    assert "$Vec_" not in text
    assert ("typedef struct __swift_bridge__$Shape$FieldOfCircle { double radius; } "
            "__swift_bridge__$Shape$FieldOfCircle;") in text
    assert ("union __swift_bridge__$ShapeFields { __swift_bridge__$Shape$FieldOfCircle Circle; "
            "__swift_bridge__$Shape$FieldOfSquare Square; };") in text
    assert ("typedef struct __swift_bridge__$Shape { __swift_bridge__$Shape$Tag tag; "
            "union __swift_bridge__$ShapeFields payload; } __swift_bridge__$Shape;") in text


def test_copy_type():
    module = Module(
        types=[OpaqueType("Pixel", copy_size=4, equatable=True)],
        functions=[Function("brighten", params=[Param("p", "Pixel")], return_type="Pixel")],
    )
    text = header(module)
    assert "typedef struct __swift_bridge__$Copy$Pixel { uint8_t bytes[4]; } __swift_bridge__$Copy$Pixel;" in text
    assert ("bool __swift_bridge__$Pixel$_partial_eq(__swift_bridge__$Copy$Pixel lhs, "
            "__swift_bridge__$Copy$Pixel rhs);") in text
    assert "__swift_bridge__$Copy$Pixel __swift_bridge__$brighten(__swift_bridge__$Copy$Pixel p);" in text
    assert "$_free" not in text
    assert "$Vec_Pixel" not in text


def test_hashable_and_equatable():
    text = header(Module(types=[OpaqueType("Key", hashable=True, equatable=True)]))
    assert "uint64_t __swift_bridge__$Key$_hash(void* self);" in text
    assert "bool __swift_bridge__$Key$_partial_eq(void* lhs, void* rhs);" in text


def test_generic_instance_has_no_vec_bundle():
    module = Module(types=[
        OpaqueType("Wrapper", declare_generic=True, generics=["T"]),
        OpaqueType("Wrapper", generics=["u32"]),
    ])
    text = header(module)
    assert "typedef struct Wrapper$u32 Wrapper$u32;" in text
    assert "void __swift_bridge__$Wrapper$u32$_free(void* self);" in text
    assert "$Vec_" not in text


def test_async_function_uses_callback():
    module = Module(functions=[Function("fetch", is_async=True, params=[Param("id", "u8")],
                                        return_type="u32")])
    assert ("void __swift_bridge__$fetch(void* callback_wrapper, "
            "void __swift_bridge__$fetch$async(void* callback_wrapper, uint32_t ret), uint8_t id);"
            ) in header(module)


def test_async_function_without_params_or_return_has_no_prototype():
    module = Module(functions=[
        Function("tick", is_async=True),
        Function("tock", is_async=True, params=[Param("n", "u8")]),
    ])
    text = header(module)
    assert "$tick" not in text
    assert ("void __swift_bridge__$tock(void* callback_wrapper, "
            "void __swift_bridge__$tock$async(void* callback_wrapper), uint8_t n);") in text


def test_result_return():
    module = Module(functions=[Function("parse", return_type="Result<String, String>")])
    assert "struct __private__ResultPtrAndPtr __swift_bridge__$parse(void);" in header(module)


def test_swift_function_with_boxed_closure():
    module = Module(functions=[
        Function("run", host_lang=HostLang.SWIFT,
                 params=[Param("cb", "Box<dyn FnOnce(u8) -> u8>")]),
        Function("later", host_lang=HostLang.SWIFT, params=[Param("cb", "Box<dyn FnOnce()>")]),
    ])
    text = header(module)
    assert "uint8_t __swift_bridge__$run$param0(void* boxed_fn, uint8_t arg0);" in text
    assert "void __swift_bridge__$run$_free$param0(void* boxed_fn);" in text
    assert "later" not in text


def test_swift_types_are_not_declared(swift_type_module):
    assert header(swift_type_module) == f"{NOTICE}\n"


def test_already_declared_types_are_skipped():
    module = Module(
        types=[OpaqueType("Shared", already_declared=True)],
        functions=[Function("make", return_type="Shared")],
    )
    text = header(module)
    assert "typedef struct Shared" not in text
    assert "void* __swift_bridge__$make(void);" in text


def test_header_is_idempotent(some_type_module):
    analysis = analyze(some_type_module)
    assert CHeaderGenerator(analysis).generate() == CHeaderGenerator(analysis).generate()
