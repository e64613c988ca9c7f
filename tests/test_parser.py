"""Tests for the bridge module parser"""

import pytest

from bridgegen import (
    BridgeParser, HostLang, OpaqueType, ParseError, Receiver, SharedEnum, SharedStruct,
    parse_declarations,
)

SOURCE = '''
use some_crate::Thing;

#[swift_bridge::bridge]
mod ffi {
    struct Point { x: f64, y: f64 }

    #[swift_bridge(swift_repr = "struct")]
    struct Pair(u8, u16);

    struct Marker;

    enum Color { Red, Green }

    enum Shape {
        Circle { radius: f64 },
        Square(f64),
        Nothing,
    }

    extern "Rust" {
        #[swift_bridge(Hashable, Equatable)]
        type SomeType;

        #[swift_bridge(init)]
        fn new() -> SomeType;
        fn consume(self);
        fn value(&self) -> u32;
        fn set_value(&mut self, value: u32);
        async fn fetch(id: u8) -> Option<String>;
        fn apply(cb: Box<dyn FnOnce(u8) -> u16>) -> Result<(), String>;
    }

    extern "Swift" {
        type Logger;

        fn log(self: &Logger, msg: &str);
        #[swift_bridge(associated_to = Logger)]
        fn shared() -> Logger;
    }
}

fn not_bridged() {}
'''


@pytest.fixture
def module():
    modules = BridgeParser(SOURCE).parse()
    assert len(modules) == 1
    return modules[0]


def test_module_name(module):
    assert module.name == "ffi"
    assert module.cfg_feature is None


def test_shared_structs(module):
    point, pair, marker = [t for t in module.types if isinstance(t, SharedStruct)]
    assert [(f.name, f.type) for f in point.fields] == [("x", "f64"), ("y", "f64")]
    assert [(f.name, f.type) for f in pair.fields] == [(None, "u8"), (None, "u16")]
    assert pair.is_tuple
    assert marker.fields == []


def test_shared_enums(module):
    color, shape = [t for t in module.types if isinstance(t, SharedEnum)]
    assert color.is_transparent
    assert [v.name for v in shape.variants] == ["Circle", "Square", "Nothing"]
    assert shape.variants[0].fields[0].name == "radius"
    assert shape.variants[1].is_tuple
    assert not shape.is_transparent


def test_opaque_types(module):
    some_type, logger = [t for t in module.types if isinstance(t, OpaqueType)]
    assert some_type.host_lang is HostLang.RUST
    assert some_type.hashable and some_type.equatable
    assert logger.host_lang is HostLang.SWIFT


def test_receivers(module):
    by_name = {f.name: f for f in module.functions}
    assert by_name["new"].is_init
    assert by_name["new"].owner == "SomeType"
    assert by_name["consume"].receiver is Receiver.OWNED
    assert by_name["value"].receiver is Receiver.REF
    assert by_name["value"].owner == "SomeType"
    assert by_name["set_value"].receiver is Receiver.REF_MUT
    assert by_name["log"].receiver is Receiver.REF
    assert by_name["log"].owner == "Logger"
    assert by_name["shared"].owner == "Logger"
    assert by_name["shared"].receiver is Receiver.NONE


def test_signatures(module):
    by_name = {f.name: f for f in module.functions}
    fetch = by_name["fetch"]
    assert fetch.is_async
    assert [(p.name, p.type) for p in fetch.params] == [("id", "u8")]
    assert fetch.return_type == "Option<String>"
    apply = by_name["apply"]
    assert apply.params[0].type == "Box<dyn FnOnce(u8) -> u16>"
    assert apply.return_type == "Result<(), String>"
    assert by_name["set_value"].return_type is None
    assert by_name["log"].params[0].type == "&str"


def test_line_numbers(module):
    by_name = {f.name: f for f in module.functions}
    lines = SOURCE.splitlines()
    assert "fn value(&self)" in lines[by_name["value"].line - 1]
    assert "fn new()" in lines[by_name["new"].line - 1]
    some_type = next(t for t in module.types if t.name == "SomeType")
    assert "type SomeType" in lines[some_type.line - 1]


def test_comments_are_ignored():
    source = '''
    #[swift_bridge::bridge]
    mod ffi {
        // struct Hidden;
        /* enum AlsoHidden {
           A,
        } */
        extern "Rust" {
            fn foo(); // trailing
        }
    }
    '''
    module = BridgeParser(source).parse()[0]
    assert module.types == []
    assert [f.name for f in module.functions] == ["foo"]
    assert module.functions[0].line == 9


def test_cfg_feature():
    source = '''
    #[cfg(feature = "extra")]
    #[swift_bridge::bridge]
    mod extra_ffi {
        extern "Rust" { fn foo(); }
    }
    '''
    module = BridgeParser(source).parse()[0]
    assert module.name == "extra_ffi"
    assert module.cfg_feature == "extra"


def test_modules_without_bridge_attribute_are_skipped():
    source = '''
    mod helpers {
        struct NotBridged;
    }

    #[swift_bridge::bridge]
    mod ffi {
        struct Bridged;
    }
    '''
    modules = BridgeParser(source).parse()
    assert [m.name for m in modules] == ["ffi"]


def test_copy_and_generic_attributes():
    source = '''
    #[swift_bridge::bridge]
    mod ffi {
        extern "Rust" {
            #[swift_bridge(Copy(16))]
            type Pixel;
            #[swift_bridge(declare_generic)]
            type Wrapper<T>;
            type Wrapper<u32>;
        }
    }
    '''
    pixel, generic, instance = parse_declarations(source)
    assert pixel.copy_size == 16
    assert generic.declare_generic and generic.generics == ["T"]
    assert instance.key == "Wrapper<u32>"
    assert instance.ident == "Wrapper$u32"


def test_already_declared():
    source = '''
    #[swift_bridge::bridge]
    mod ffi {
        #[swift_bridge(already_declared)]
        struct Point;
        extern "Rust" {
            #[swift_bridge(already_declared)]
            type SomeType;
        }
    }
    '''
    point, some_type = parse_declarations(source)
    assert point.already_declared
    assert some_type.already_declared


def test_ambiguous_method_owner():
    source = '''
    #[swift_bridge::bridge]
    mod ffi {
        extern "Rust" {
            type A;
            type B;
            fn value(&self) -> u32;
        }
    }
    '''
    with pytest.raises(ParseError) as exc:
        BridgeParser(source).parse()
    assert exc.value.line == 7


def test_explicit_self_type_resolves_ambiguity():
    source = '''
    #[swift_bridge::bridge]
    mod ffi {
        extern "Rust" {
            type A;
            type B;
            fn value(self: &mut B) -> u32;
        }
    }
    '''
    func = BridgeParser(source).parse()[0].functions[0]
    assert func.owner == "B"
    assert func.receiver is Receiver.REF_MUT


@pytest.mark.parametrize("body,line", [
    ('impl Foo {}', 4),
    ('extern "Rust" {\n            static X: u8;\n        }', 5),
    ('extern "Rust" {\n            #[swift_bridge(Bogus)]\n            type Foo;\n        }', 6),
    ('extern "Rust" {\n            #[swift_bridge(Copy)]\n            type Foo;\n        }', 6),
])
def test_syntax_errors(body, line):
    source = f'''
    #[swift_bridge::bridge]
    mod ffi {{
        {body}
    }}
    '''
    with pytest.raises(ParseError) as exc:
        BridgeParser(source).parse()
    assert exc.value.line == line


def test_unbalanced_braces():
    source = '''
    #[swift_bridge::bridge]
    mod ffi {
        struct Point { x: f64
    '''
    with pytest.raises(ParseError):
        BridgeParser(source).parse()
