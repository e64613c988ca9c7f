"""Tests for the Rust glue generator"""

from bridgegen import (
    CodegenConfig, EnumVariant, Function, HostLang, Module, OpaqueType, Param, RustGlueGenerator,
    SharedEnum, SharedStruct, StructField, analyze, generate_bridges,
)

from conftest import NOTICE


def glue(module: Module) -> str:
    return RustGlueGenerator(analyze(module)).generate()


def test_module_wrapper():
    text = glue(Module(name="ffi", functions=[Function("foo", params=[Param("arg1", "u8")])]))
    lines = text.splitlines()
    assert lines[0] == NOTICE
    assert lines[2] == "pub mod ffi {"
    assert lines[-1] == "}"
    assert '    #[export_name = "__swift_bridge__$foo"]' in lines
    assert '    pub extern "C" fn __swift_bridge___foo(arg1: u8) {' in lines
    assert "        super::foo(arg1);" in lines


def test_disabled_module_is_empty():
    module = Module(functions=[Function("foo")], cfg_feature="extra")
    assert glue(module) == ""
    enabled = RustGlueGenerator(analyze(module), CodegenConfig(enabled_features={"extra"}))
    assert "super::foo()" in enabled.generate()


def test_owned_self_takes_the_box(some_type_module):
    text = glue(some_type_module)
    assert "this: *mut super::SomeType" in text
    assert "(unsafe { *Box::from_raw(this) }).consume();" in text


def test_borrowed_self_does_not_take_the_box(some_type_module):
    lines = glue(some_type_module).splitlines()
    peek = [line for line in lines if ".peek(" in line]
    poke = [line for line in lines if ".poke(" in line]
    assert peek == ["        (unsafe { &*this }).peek()"]
    assert poke == ["        (unsafe { &mut *this }).poke(value);"]
    assert '    pub extern "C" fn __swift_bridge___SomeType_peek(this: *const super::SomeType) -> u32 {' in lines


def test_initializer_boxes_the_value(some_type_module):
    text = glue(some_type_module)
    assert "Box::into_raw(Box::new(super::SomeType::new())) as *mut super::SomeType" in text


def test_free_and_vec_support(some_type_module):
    text = glue(some_type_module)
    assert '#[export_name = "__swift_bridge__$SomeType$_free"]' in text
    assert "let this = unsafe { Box::from_raw(this) };" in text
    assert text.count('#[export_name = "__swift_bridge__$Vec_SomeType$') == 8
    assert "const _: () = {" in text


def test_strings():
    module = Module(functions=[
        Function("greet", params=[Param("name", "&str")], return_type="String"),
    ])
    text = glue(module)
    assert "name: swift_bridge::string::RustStr" in text
    assert "-> *mut swift_bridge::string::RustString" in text
    assert ("swift_bridge::string::RustString(super::greet(unsafe { name.to_str() })).box_into_raw()"
            in text)


def test_option_primitive():
    module = Module(functions=[Function("maybe", params=[Param("v", "Option<u8>")],
                                        return_type="Option<u8>")])
    text = glue(module)
    assert "v: swift_bridge::option::OptionU8" in text
    assert "swift_bridge::option::OptionU8::from_option(super::maybe(v.into_option()))" in text


def test_result_return():
    module = Module(
        types=[OpaqueType("Oops")],
        functions=[Function("check", return_type="Result<(), Oops>")],
    )
    text = glue(module)
    assert "-> swift_bridge::result::ResultPtrAndPtr" in text
    assert "Ok(_) => swift_bridge::result::ResultPtrAndPtr { is_ok: true, ok_or_err: std::ptr::null_mut() }" in text
    assert "Box::into_raw(Box::new(err)) as *mut super::Oops as *mut std::ffi::c_void" in text


def test_async_function():
    module = Module(functions=[Function("fetch", is_async=True, return_type="u32")])
    text = glue(module)
    assert ('pub extern "C" fn __swift_bridge___fetch(callback_wrapper: *mut std::ffi::c_void, '
            'callback: extern "C" fn(*mut std::ffi::c_void, u32) -> ()) {') in text
    assert "let fut = super::fetch();" in text
    assert "(callback)(callback_wrapper, val)" in text
    assert text.count("ASYNC_RUNTIME.spawn_task(Box::pin(task))") == 1


def test_named_struct():
    module = Module(types=[SharedStruct("Point", [StructField("f64", "x"), StructField("f64", "y")])])
    text = glue(module)
    assert "    pub struct Point {" in text
    assert "        pub x: f64," in text
    assert "    pub struct __swift_bridge__Point {" in text
    assert "{ let val = self; __swift_bridge__Point { x: val.x, y: val.y } }" in text
    assert "    pub struct __swift_bridge__Option_Point {" in text


def test_tuple_and_unit_structs():
    module = Module(types=[
        SharedStruct("Pair", [StructField("u8"), StructField("u16")]),
        SharedStruct("Empty"),
    ])
    text = glue(module)
    assert "    pub struct Pair(pub u8, pub u16);" in text
    assert "{ let val = self; __swift_bridge__Pair { _0: val.0, _1: val.1 } }" in text
    assert "    pub struct Empty;" in text
    assert "        _private: u8," in text


def test_transparent_enum_is_repr_c():
    module = Module(types=[SharedEnum("Color", [EnumVariant("Red"), EnumVariant("Green")])])
    lines = glue(module).splitlines()
    idx = lines.index("    pub enum Color {")
    assert lines[idx - 2:idx] == ["    #[repr(C)]", "    #[derive(Copy, Clone, Debug, PartialEq)]"]
    assert '        #[export_name = "__swift_bridge__$Vec_Color$push"]' in lines


def test_data_enum():
    module = Module(types=[SharedEnum("Shape", [
        EnumVariant("Circle", [StructField("f64", "radius")]),
        EnumVariant("Square", [StructField("f64")]),
    ])])
    text = glue(module)
    assert "        Circle { radius: f64 }," in text
    assert "        Square(f64)," in text
    assert "Shape::Square(_0) => __swift_bridge__Shape::Square(_0)," in text
    assert "$Vec_Shape" not in text


def test_copy_type():
    module = Module(
        types=[OpaqueType("Pixel", copy_size=4)],
        functions=[Function("brighten", params=[Param("p", "Pixel")], return_type="Pixel")],
    )
    text = glue(module)
    assert "    pub struct __swift_bridge__Copy_Pixel([u8; 4]);" in text
    assert "std::mem::transmute::<[u8; 4], super::Pixel>(self.0)" in text
    assert "__swift_bridge__Copy_Pixel::from_rust_repr(super::brighten(p.into_rust_repr()))" in text
    assert "$_free" not in text


def test_hash_and_partial_eq():
    text = glue(Module(types=[OpaqueType("Key", hashable=True, equatable=True)]))
    assert '#[export_name = "__swift_bridge__$Key$_hash"]' in text
    assert "std::collections::hash_map::DefaultHasher::new()" in text
    assert "unsafe { &*lhs } == unsafe { &*rhs }" in text


def test_generic_instance_method():
    module = Module(
        types=[
            OpaqueType("Wrapper", declare_generic=True, generics=["T"]),
            OpaqueType("Wrapper", generics=["u32"]),
        ],
        functions=[Function("empty", owner="Wrapper<u32>", return_type="Wrapper<u32>")],
    )
    text = glue(module)
    assert '#[export_name = "__swift_bridge__$Wrapper$u32$empty"]' in text
    assert "<super::Wrapper<u32>>::empty()" in text
    assert "$Vec_Wrapper" not in text


def test_swift_type_wrapper(swift_type_module):
    text = glue(swift_type_module)
    assert "    pub struct Logger(*mut std::ffi::c_void);" in text
    assert "    impl Drop for Logger {" in text
    assert "        pub fn log(&self, msg: &str) {" in text
    assert ("            unsafe { __swift_bridge___Logger_log(self.0, "
            "swift_bridge::string::RustStr::from_str(msg)) }") in text
    assert '        #[link_name = "__swift_bridge__$Logger$log"]' in text
    assert '        #[link_name = "__swift_bridge__$Logger$_free"]' in text


def test_swift_function_with_boxed_closure():
    module = Module(functions=[
        Function("run", host_lang=HostLang.SWIFT,
                 params=[Param("cb", "Box<dyn FnOnce(u8) -> u8>")]),
    ])
    text = glue(module)
    assert "    pub fn run(cb: Box<dyn FnOnce(u8) -> u8>) {" in text
    assert '    #[export_name = "__swift_bridge__$run$param0"]' in text
    assert ('    pub extern "C" fn __swift_bridge___run_param0(boxed_fn: *mut Box<dyn FnOnce(u8) -> u8>, '
            'arg0: u8) -> u8 {') in text
    assert '    #[export_name = "__swift_bridge__$run$_free$param0"]' in text


def test_shared_types_declared_once_across_modules():
    point = [StructField("f64", "x"), StructField("f64", "y")]
    first = Module(name="first", types=[SharedStruct("Point", list(point))])
    second = Module(
        name="second",
        types=[SharedStruct("Point", list(point))],
        functions=[Function("origin", return_type="Point")],
    )
    artifacts = generate_bridges([first, second])
    assert "pub struct Point {" in artifacts[0].rust_glue
    assert "pub struct Point {" not in artifacts[1].rust_glue
    assert "-> super::first::__swift_bridge__Point {" in artifacts[1].rust_glue
    assert "super::__swift_bridge__Point" not in artifacts[1].rust_glue


def test_already_declared_types_use_the_parent_path():
    first = Module(name="first", types=[SharedStruct("Point", [StructField("f64", "x")])])
    second = Module(
        name="second",
        types=[SharedStruct("Point", already_declared=True)],
        functions=[Function("origin", return_type="Point")],
    )
    artifacts = generate_bridges([first, second])
    assert "-> super::__swift_bridge__Point {" in artifacts[1].rust_glue
    assert "super::first::" not in artifacts[1].rust_glue
