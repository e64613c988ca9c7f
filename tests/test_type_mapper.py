"""Tests for type reference parsing"""

from bridgegen import TypeMapper


def test_normalize_spacing():
    assert TypeMapper.normalize("Option< Vec<u8> >") == "Option<Vec<u8>>"
    assert TypeMapper.normalize("Result<Foo,String>") == "Result<Foo, String>"
    assert TypeMapper.normalize("Box<dyn FnOnce(u8)->u16>") == "Box<dyn FnOnce(u8) -> u16>"


def test_normalize_references_and_lifetimes():
    assert TypeMapper.normalize("&'a mut  Foo") == "&mut Foo"
    assert TypeMapper.normalize("& str") == "&str"
    assert TypeMapper.normalize("&mut [u8]") == "&mut [u8]"


def test_split_top_level_respects_nesting():
    parts = TypeMapper.split_top_level("u8, Vec<u8>, Box<dyn FnOnce(u8, u16) -> u32>")
    assert parts == ["u8", "Vec<u8>", "Box<dyn FnOnce(u8, u16) -> u32>"]


def test_split_top_level_braces():
    assert TypeMapper.split_top_level("A { x: u8, y: u8 }, B(u8, u16), C") == [
        "A { x: u8, y: u8 }", "B(u8, u16)", "C"]


def test_generic_parts():
    assert TypeMapper.generic_parts("Option<Vec<u8>>") == ("Option", ["Vec<u8>"])
    assert TypeMapper.generic_parts("Result<Foo, String>") == ("Result", ["Foo", "String"])
    assert TypeMapper.generic_parts("Foo") == ("Foo", [])


def test_slices():
    assert TypeMapper.is_slice("&[u8]")
    assert TypeMapper.is_slice("&mut [u8]")
    assert not TypeMapper.is_slice("&Foo")
    assert TypeMapper.slice_inner("&mut [u16]") == "u16"


def test_boxed_fn_signature():
    assert TypeMapper.boxed_fn_signature("Box<dyn FnOnce(u8) -> u16>") == (["u8"], "u16")
    assert TypeMapper.boxed_fn_signature("Box<dyn FnOnce()>") == ([], None)
    assert TypeMapper.boxed_fn_signature("Vec<u8>") is None


def test_unit():
    assert TypeMapper.is_unit(None)
    assert TypeMapper.is_unit("()")
    assert TypeMapper.is_unit(" ( ) ")
    assert not TypeMapper.is_unit("u8")


def test_c_ident():
    assert TypeMapper.c_ident("uint8_t") == "uint8_t"
    assert TypeMapper.c_ident("void*") == "voidPtr"
