"""Tests for the shared runtime support files"""

from bridgegen import CoreGenerator

from conftest import NOTICE, block


def test_header_runtime_shapes():
    text = CoreGenerator().generate_header()
    lines = text.splitlines()
    assert lines[:3] == [NOTICE, "#include <stdbool.h>", "#include <stdint.h>"]
    assert "typedef struct RustStr { uint8_t* start; uintptr_t len; } RustStr;" in lines
    assert "typedef struct __private__FfiSlice { void* start; uintptr_t len; } __private__FfiSlice;" in lines
    assert ("typedef struct __private__ResultPtrAndPtr { bool is_ok; void* ok_or_err; } "
            "__private__ResultPtrAndPtr;") in lines


def test_header_primitive_options_and_vecs():
    text = CoreGenerator().generate_header()
    assert "typedef struct __private__OptionU8 { uint8_t val; bool is_some; } __private__OptionU8;" in text
    assert "typedef struct __private__OptionF64 { double val; bool is_some; } __private__OptionF64;" in text
    assert "void __swift_bridge__$Vec_u32$push(void* vec_ptr, uint32_t item);" in text
    assert "__private__OptionBool __swift_bridge__$Vec_bool$pop(void* vec_ptr);" in text


def test_header_rust_string():
    text = CoreGenerator().generate_header()
    assert "void* __swift_bridge__$RustString$new_with_str(struct RustStr str);" in text
    assert "void __swift_bridge__$RustString$_free(void* self);" in text
    assert "void* __swift_bridge__$Vec_RustString$pop(void* vec_ptr);" in text
    assert "void __swift_bridge__$call_boxed_fn_once_no_args_no_return(void* boxed_fnonce);" in text


def test_swift_rust_string_triple():
    text = CoreGenerator().generate_swift()
    owning = block(text, "public class RustString: RustStringRefMut {")
    assert "            __swift_bridge__$RustString$_free(ptr)" in owning
    assert "public class RustStringRefMut: RustStringRef {" in text
    assert "extension RustString: Error {}" in text
    assert "extension RustString: Vectorizable {" in text


def test_swift_rust_vec():
    text = CoreGenerator().generate_swift()
    vec = block(text, "public class RustVec<T: Vectorizable> {")
    assert "            T.vecOfSelfFree(vecPtr: ptr)" in vec
    assert "public protocol Vectorizable {" in text
    assert "extension RustVec: Collection {" in text


def test_swift_primitives():
    text = CoreGenerator().generate_swift()
    assert "extension __private__OptionU8 {" in text
    assert "            return __private__OptionU8(val: UInt8(), is_some: false)" in text
    vec = block(text, "extension Double: Vectorizable {")
    assert "        __swift_bridge__$Vec_f64$push(vecPtr, value)" in vec


def test_swift_fn_once_callback():
    text = CoreGenerator().generate_swift()
    callback = block(text, "public class __private__RustFnOnceCallbackNoArgsNoRet {")
    assert "            __swift_bridge__$free_boxed_fn_once_no_args_no_return(ptr)" in callback
    assert "        __swift_bridge__$call_boxed_fn_once_no_args_no_return(ptr)" in callback


def test_core_is_deterministic():
    assert CoreGenerator().generate_header() == CoreGenerator().generate_header()
    assert CoreGenerator().generate_swift() == CoreGenerator().generate_swift()
