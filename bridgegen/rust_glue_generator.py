"""Rust Glue Generator - generates the Rust side of a bridge module.

Rust implemented functions become `extern "C"` exports that unpack their C
ABI arguments, call the real implementation in the parent module (`super::`)
and repack the result. Swift implemented functions become safe Rust wrappers
around `extern "C"` imports.
"""

from typing import Optional

from .analysis import ModuleAnalysis, ResolvedEnum, ResolvedFunction, ResolvedStruct
from .bridged_type import (
    SWIFT_BRIDGE_PREFIX as P, Access, BoxedFnType, BridgedType, Null, OpaqueHandle,
    OptionType, Primitive, ResultType, SharedEnumType, SharedStructType, SliceType,
    StringType, VecType,
)
from .c_header_generator import NOTICE
from .config import CodegenConfig
from .registry import DeclarationRegistry
from .types import OpaqueType, SharedEnum, SharedStruct

RUST_STRING = "swift_bridge::string::RustString"
RUST_STR = "swift_bridge::string::RustStr"
C_VOID_PTR = "*mut std::ffi::c_void"


def rust_ident(name: str) -> str:
    return name.replace("$", "_")


def _indent(lines: list[str], level: int = 1) -> list[str]:
    pad = "    " * level
    return [f"{pad}{line}" if line else "" for line in lines]


class RustGlueGenerator:
    """Generates the Rust glue module"""

    def __init__(self, analysis: ModuleAnalysis, config: Optional[CodegenConfig] = None,
                 registry: Optional[DeclarationRegistry] = None):
        self.analysis = analysis
        self.config = config or CodegenConfig.no_features_enabled()
        self.registry = registry if registry is not None else DeclarationRegistry()
        self._declared_here: set[str] = set()
        self._imports: list[str] = []

    def generate(self) -> str:
        """Rust source for the module; empty when the module is not compiled"""
        module = self.analysis.module
        if not module.will_be_compiled(self.config):
            return ""

        self._declared_here = self.registry.claim_all(self.analysis.declarations(), module.name)
        self._imports = []

        body = []
        for decl in self.analysis.declarations():
            if isinstance(decl, SharedStruct):
                if decl.key in self._declared_here:
                    body.extend(self._struct_glue(self.analysis.structs[decl.name]))
            elif isinstance(decl, SharedEnum):
                if decl.key in self._declared_here:
                    body.extend(self._enum_glue(self.analysis.enums[decl.name]))
            else:
                body.extend(self._opaque_glue(decl))

        for func in self.analysis.functions:
            if func.skipped() or (func.owner is not None and func.owner.host_lang.is_swift()):
                continue
            if func.host_lang.is_rust():
                body.extend(self._export_fn(func))
            else:
                body.extend(self._swift_fn_wrapper(func))
                body.extend(self._boxed_fn_exports(func))

        if self._imports:
            body.append('extern "C" {')
            body.extend(_indent(self._imports))
            body.append("}")
            body.append("")

        while body and not body[-1]:
            body.pop()

        lines = [
            NOTICE,
            "#[allow(non_snake_case, non_camel_case_types, dead_code, unused_unsafe)]",
            f"pub mod {module.name} {{",
        ]
        lines.extend(_indent(body))
        lines.append("}")
        return "\n".join(lines) + "\n"

    # ── paths ───────────────────────────────────────────────────────

    def _local(self, decl, name: str) -> str:
        """Items generated here, or in the module that first declared the type"""
        if decl.key in self._declared_here:
            return name
        owner = None if decl.already_declared else self.registry.owner_of(decl.key)
        if owner is None:
            return f"super::{name}"
        return f"super::{owner}::{name}"

    def _shared_path(self, decl) -> str:
        return self._local(decl, decl.name)

    def _shared_ffi_path(self, decl) -> str:
        return self._local(decl, f"__swift_bridge__{decl.name}")

    def _shared_option_path(self, decl) -> str:
        return self._local(decl, f"__swift_bridge__Option_{decl.name}")

    def _copy_path(self, decl: OpaqueType) -> str:
        return self._local(decl, f"__swift_bridge__Copy_{rust_ident(decl.ident)}")

    def _option_copy_path(self, decl: OpaqueType) -> str:
        return self._local(decl, f"__swift_bridge__Option_Copy_{rust_ident(decl.ident)}")

    def _opaque_path(self, decl: OpaqueType) -> str:
        if decl.host_lang.is_swift():
            return self._local(decl, decl.name)
        return f"super::{decl.key}"

    # ── type spellings and conversions ──────────────────────────────

    def rust_type(self, ty: BridgedType) -> str:
        """Native Rust spelling"""
        if isinstance(ty, Null):
            return "()"
        if isinstance(ty, Primitive):
            return ty.kind
        if isinstance(ty, StringType):
            return "&str" if ty.borrowed else "String"
        if isinstance(ty, OpaqueHandle):
            prefix = {Access.OWNED: "", Access.REF: "&", Access.REF_MUT: "&mut "}[ty.access]
            return f"{prefix}{self._opaque_path(ty.decl)}"
        if isinstance(ty, (SharedStructType, SharedEnumType)):
            return self._shared_path(ty.decl)
        if isinstance(ty, OptionType):
            return f"Option<{self.rust_type(ty.inner)}>"
        if isinstance(ty, ResultType):
            return f"Result<{self.rust_type(ty.ok)}, {self.rust_type(ty.err)}>"
        if isinstance(ty, SliceType):
            return f"&[{self.rust_type(ty.inner)}]"
        if isinstance(ty, VecType):
            return f"Vec<{self.rust_type(ty.inner)}>"
        if isinstance(ty, BoxedFnType):
            params = ", ".join(self.rust_type(p) for p in ty.params)
            if ty.ret.is_null():
                return f"Box<dyn FnOnce({params})>"
            return f"Box<dyn FnOnce({params}) -> {self.rust_type(ty.ret)}>"
        raise TypeError(f"unhandled bridged type {ty!r}")

    def ffi_type(self, ty: BridgedType) -> str:
        """Spelling of the C ABI value on the Rust side"""
        if isinstance(ty, Null):
            return "()"
        if isinstance(ty, Primitive):
            return ty.kind
        if isinstance(ty, StringType):
            return RUST_STR if ty.borrowed else f"*mut {RUST_STRING}"
        if isinstance(ty, OpaqueHandle):
            if ty.decl.host_lang.is_swift():
                return C_VOID_PTR
            if ty.is_copy:
                return self._copy_path(ty.decl)
            if ty.access is Access.REF:
                return f"*const super::{ty.decl.key}"
            return f"*mut super::{ty.decl.key}"
        if isinstance(ty, (SharedStructType, SharedEnumType)):
            return self._shared_ffi_path(ty.decl)
        if isinstance(ty, OptionType):
            inner = ty.inner
            if isinstance(inner, Primitive):
                return f"swift_bridge::option::Option{inner.info.option_suffix}"
            if isinstance(inner, OpaqueHandle) and inner.is_copy:
                return self._option_copy_path(inner.decl)
            if isinstance(inner, (SharedStructType, SharedEnumType)):
                return self._shared_option_path(inner.decl)
            return self.ffi_type(inner)
        if isinstance(ty, ResultType):
            return "swift_bridge::result::ResultPtrAndPtr"
        if isinstance(ty, SliceType):
            return f"swift_bridge::FfiSlice<{self.rust_type(ty.inner)}>"
        if isinstance(ty, (VecType, BoxedFnType)):
            return f"*mut {self.rust_type(ty)}"
        raise TypeError(f"unhandled bridged type {ty!r}")

    def into_ffi(self, ty: BridgedType, expr: str) -> str:
        """Rust value -> C ABI value"""
        if isinstance(ty, (Null, Primitive)):
            return expr
        if isinstance(ty, StringType):
            if ty.borrowed:
                return f"{RUST_STR}::from_str({expr})"
            return f"{RUST_STRING}({expr}).box_into_raw()"
        if isinstance(ty, OpaqueHandle):
            if ty.decl.host_lang.is_swift():
                if ty.access is Access.OWNED:
                    return f"std::mem::ManuallyDrop::new({expr}).0"
                return f"{expr}.0"
            if ty.is_copy:
                value = expr if ty.access is Access.OWNED else f"*{expr}"
                return f"{self._copy_path(ty.decl)}::from_rust_repr({value})"
            if ty.access is Access.OWNED:
                return f"Box::into_raw(Box::new({expr})) as *mut super::{ty.decl.key}"
            if ty.access is Access.REF:
                return f"{expr} as *const super::{ty.decl.key}"
            return f"{expr} as *mut super::{ty.decl.key}"
        if isinstance(ty, (SharedStructType, SharedEnumType)):
            return f"{expr}.into_ffi_repr()"
        if isinstance(ty, OptionType):
            inner = ty.inner
            if isinstance(inner, Primitive):
                return f"{self.ffi_type(ty)}::from_option({expr})"
            if isinstance(inner, StringType) and inner.borrowed:
                return (f"if let Some(val) = {expr} {{ {RUST_STR}::from_str(val) }} "
                        f"else {{ {RUST_STR} {{ start: std::ptr::null(), len: 0 }} }}")
            if inner.is_pointer_like():
                return (f"if let Some(val) = {expr} {{ {self.into_ffi(inner, 'val')} }} "
                        f"else {{ {self._null_ptr(inner)} }}")
            return f"{self.ffi_type(ty)}::from_rust_repr({expr})"
        if isinstance(ty, ResultType):
            result = "swift_bridge::result::ResultPtrAndPtr"
            if ty.ok.is_null():
                ok_arm = f"Ok(_) => {result} {{ is_ok: true, ok_or_err: std::ptr::null_mut() }}"
            else:
                ok_arm = (f"Ok(ok) => {result} {{ is_ok: true, "
                          f"ok_or_err: {self.into_ffi(ty.ok, 'ok')} as {C_VOID_PTR} }}")
            err_arm = (f"Err(err) => {result} {{ is_ok: false, "
                       f"ok_or_err: {self.into_ffi(ty.err, 'err')} as {C_VOID_PTR} }}")
            return f"match {expr} {{ {ok_arm}, {err_arm} }}"
        if isinstance(ty, SliceType):
            return f"swift_bridge::FfiSlice::from_slice({expr})"
        if isinstance(ty, (VecType, BoxedFnType)):
            return f"Box::into_raw(Box::new({expr}))"
        raise TypeError(f"unhandled bridged type {ty!r}")

    def from_ffi(self, ty: BridgedType, expr: str) -> str:
        """C ABI value -> Rust value"""
        if isinstance(ty, (Null, Primitive)):
            return expr
        if isinstance(ty, StringType):
            if ty.borrowed:
                return f"unsafe {{ {expr}.to_str() }}"
            return f"unsafe {{ Box::from_raw({expr}).0 }}"
        if isinstance(ty, OpaqueHandle):
            if ty.decl.host_lang.is_swift():
                if ty.access is not Access.OWNED:
                    raise TypeError(f"cannot borrow Swift type {ty.decl.key} from a raw pointer")
                return f"{self._opaque_path(ty.decl)}({expr})"
            if ty.is_copy:
                if ty.access is Access.OWNED:
                    return f"{expr}.into_rust_repr()"
                return f"&{expr}.into_rust_repr()"
            if ty.access is Access.OWNED:
                return f"unsafe {{ *Box::from_raw({expr}) }}"
            if ty.access is Access.REF:
                return f"unsafe {{ &*{expr} }}"
            return f"unsafe {{ &mut *{expr} }}"
        if isinstance(ty, (SharedStructType, SharedEnumType)):
            return f"{expr}.into_rust_repr()"
        if isinstance(ty, OptionType):
            inner = ty.inner
            if isinstance(inner, Primitive):
                return f"{expr}.into_option()"
            if isinstance(inner, StringType) and inner.borrowed:
                return (f"{{ let val = {expr}; if val.start.is_null() {{ None }} "
                        f"else {{ Some(unsafe {{ val.to_str() }}) }} }}")
            if inner.is_pointer_like():
                return (f"{{ let val = {expr}; if val.is_null() {{ None }} "
                        f"else {{ Some({self.from_ffi(inner, 'val')}) }} }}")
            return f"{expr}.into_rust_repr()"
        if isinstance(ty, SliceType):
            return f"unsafe {{ {expr}.as_slice() }}"
        if isinstance(ty, VecType):
            return f"unsafe {{ *Box::from_raw({expr}) }}"
        if isinstance(ty, (ResultType, BoxedFnType)):
            raise TypeError(f"{ty.rust_name()} is never received by Rust")
        raise TypeError(f"unhandled bridged type {ty!r}")

    def _null_ptr(self, ty: BridgedType) -> str:
        if isinstance(ty, OpaqueHandle) and ty.access is Access.REF and ty.decl.host_lang.is_rust():
            return "std::ptr::null()"
        return "std::ptr::null_mut()"

    # ── shared structs ──────────────────────────────────────────────

    def _struct_glue(self, struct: ResolvedStruct) -> list[str]:
        decl = struct.decl
        name = decl.name
        ffi_name = f"__swift_bridge__{name}"

        if not struct.fields:
            rust_def = [f"pub struct {name};"]
            ffi_fields = ["_private: u8,"]
            to_ffi = f"{ffi_name} {{ _private: 123 }}"
            to_rust = name
        elif decl.is_tuple:
            types = ", ".join(f"pub {self.rust_type(f.ty)}" for f in struct.fields)
            rust_def = [f"pub struct {name}({types});"]
            ffi_fields = [f"{f.ffi_name}: {self.ffi_type(f.ty)}," for f in struct.fields]
            converted = ", ".join(
                f"{f.ffi_name}: {self.into_ffi(f.ty, f'val.{f.index}')}" for f in struct.fields)
            to_ffi = f"{{ let val = self; {ffi_name} {{ {converted} }} }}"
            converted = ", ".join(self.from_ffi(f.ty, f"val.{f.ffi_name}") for f in struct.fields)
            to_rust = f"{{ let val = self; {name}({converted}) }}"
        else:
            rust_def = [f"pub struct {name} {{"]
            rust_def.extend(f"    pub {f.ffi_name}: {self.rust_type(f.ty)}," for f in struct.fields)
            rust_def.append("}")
            ffi_fields = [f"{f.ffi_name}: {self.ffi_type(f.ty)}," for f in struct.fields]
            converted = ", ".join(
                f"{f.ffi_name}: {self.into_ffi(f.ty, f'val.{f.ffi_name}')}" for f in struct.fields)
            to_ffi = f"{{ let val = self; {ffi_name} {{ {converted} }} }}"
            converted = ", ".join(
                f"{f.ffi_name}: {self.from_ffi(f.ty, f'val.{f.ffi_name}')}" for f in struct.fields)
            to_rust = f"{{ let val = self; {name} {{ {converted} }} }}"

        lines = list(rust_def)
        lines.append("")
        lines.extend(["#[repr(C)]", "#[doc(hidden)]", f"pub struct {ffi_name} {{"])
        lines.extend(_indent(ffi_fields))
        lines.append("}")
        lines.append("")
        lines.extend(self._conversion_impls(name, ffi_name, to_ffi, to_rust))
        lines.extend(self._option_glue(name, ffi_name, f"__swift_bridge__Option_{name}"))
        return lines

    def _conversion_impls(self, name: str, ffi_name: str, to_ffi: str, to_rust: str) -> list[str]:
        return [
            f"impl {name} {{",
            "    #[doc(hidden)]",
            "    #[inline(always)]",
            f"    pub fn into_ffi_repr(self) -> {ffi_name} {{",
            f"        {to_ffi}",
            "    }",
            "}",
            "",
            f"impl {ffi_name} {{",
            "    #[doc(hidden)]",
            "    #[inline(always)]",
            f"    pub fn into_rust_repr(self) -> {name} {{",
            f"        {to_rust}",
            "    }",
            "}",
            "",
        ]

    def _option_glue(self, name: str, ffi_name: str, option_name: str, copy: bool = False) -> list[str]:
        """`{ is_some, val }` mirror of `Option<name>`"""
        wrap = f"{ffi_name}::from_rust_repr(val)" if copy else "val.into_ffi_repr()"
        unwrap = "unsafe { self.val.assume_init() }.into_rust_repr()"
        return [
            "#[repr(C)]",
            "#[doc(hidden)]",
            f"pub struct {option_name} {{",
            "    is_some: bool,",
            f"    val: std::mem::MaybeUninit<{ffi_name}>,",
            "}",
            "",
            f"impl {option_name} {{",
            "    #[doc(hidden)]",
            "    #[inline(always)]",
            f"    pub fn into_rust_repr(self) -> Option<{name}> {{",
            "        if self.is_some {",
            f"            Some({unwrap})",
            "        } else {",
            "            None",
            "        }",
            "    }",
            "",
            "    #[doc(hidden)]",
            "    #[inline(always)]",
            f"    pub fn from_rust_repr(val: Option<{name}>) -> {option_name} {{",
            "        if let Some(val) = val {",
            f"            {option_name} {{ is_some: true, val: std::mem::MaybeUninit::new({wrap}) }}",
            "        } else {",
            f"            {option_name} {{ is_some: false, val: std::mem::MaybeUninit::uninit() }}",
            "        }",
            "    }",
            "}",
            "",
        ]

    # ── shared enums ────────────────────────────────────────────────

    def _enum_glue(self, enum: ResolvedEnum) -> list[str]:
        name = enum.decl.name
        ffi_name = f"__swift_bridge__{name}"
        transparent = enum.decl.is_transparent

        rust_variants = []
        ffi_variants = []
        to_ffi_arms = []
        to_rust_arms = []
        for v in enum.variants:
            vname = v.decl.name
            if not v.fields:
                rust_variants.append(f"{vname},")
                ffi_variants.append(f"{vname},")
                to_ffi_arms.append(f"{name}::{vname} => {ffi_name}::{vname},")
                to_rust_arms.append(f"{ffi_name}::{vname} => {name}::{vname},")
            elif v.decl.is_tuple:
                binds = ", ".join(f.ffi_name for f in v.fields)
                rust_variants.append(f"{vname}({', '.join(self.rust_type(f.ty) for f in v.fields)}),")
                ffi_variants.append(f"{vname}({', '.join(self.ffi_type(f.ty) for f in v.fields)}),")
                into = ", ".join(self.into_ffi(f.ty, f.ffi_name) for f in v.fields)
                back = ", ".join(self.from_ffi(f.ty, f.ffi_name) for f in v.fields)
                to_ffi_arms.append(f"{name}::{vname}({binds}) => {ffi_name}::{vname}({into}),")
                to_rust_arms.append(f"{ffi_name}::{vname}({binds}) => {name}::{vname}({back}),")
            else:
                binds = ", ".join(f.ffi_name for f in v.fields)
                rust_fields = ", ".join(f"{f.ffi_name}: {self.rust_type(f.ty)}" for f in v.fields)
                ffi_fields = ", ".join(f"{f.ffi_name}: {self.ffi_type(f.ty)}" for f in v.fields)
                rust_variants.append(f"{vname} {{ {rust_fields} }},")
                ffi_variants.append(f"{vname} {{ {ffi_fields} }},")
                into = ", ".join(f"{f.ffi_name}: {self.into_ffi(f.ty, f.ffi_name)}" for f in v.fields)
                back = ", ".join(f"{f.ffi_name}: {self.from_ffi(f.ty, f.ffi_name)}" for f in v.fields)
                to_ffi_arms.append(f"{name}::{vname} {{ {binds} }} => {ffi_name}::{vname} {{ {into} }},")
                to_rust_arms.append(f"{ffi_name}::{vname} {{ {binds} }} => {name}::{vname} {{ {back} }},")

        lines = []
        if transparent:
            # Same layout as the FFI enum so Vec<T>::as_ptr can be read from Swift
            lines.extend(["#[repr(C)]", "#[derive(Copy, Clone, Debug, PartialEq)]"])
        lines.append(f"pub enum {name} {{")
        lines.extend(_indent(rust_variants))
        lines.append("}")
        lines.append("")
        lines.extend(["#[repr(C)]", "#[doc(hidden)]"])
        if transparent:
            lines.append("#[derive(Copy, Clone)]")
        lines.append(f"pub enum {ffi_name} {{")
        lines.extend(_indent(ffi_variants))
        lines.append("}")
        lines.append("")
        to_ffi = "\n".join(["match self {"] + _indent(to_ffi_arms, 3) + ["        }"])
        to_rust = "\n".join(["match self {"] + _indent(to_rust_arms, 3) + ["        }"])
        lines.extend(self._conversion_impls(name, ffi_name, to_ffi, to_rust))
        lines.extend(self._option_glue(name, ffi_name, f"__swift_bridge__Option_{name}"))
        if transparent:
            lines.extend(self._vec_transparent_enum_glue(name))
        return lines

    def _vec_transparent_enum_glue(self, name: str) -> list[str]:
        vec = f"{P}$Vec_{name}"
        ffi_name = f"__swift_bridge__{name}"
        option = f"__swift_bridge__Option_{name}"
        return _vec_glue_block([
            (f"{vec}$new", f"_new() -> *mut Vec<{name}>",
             ["Box::into_raw(Box::new(Vec::new()))"]),
            (f"{vec}$drop", f"_drop(vec: *mut Vec<{name}>)",
             ["let vec = unsafe { Box::from_raw(vec) };", "drop(vec)"]),
            (f"{vec}$push", f"_push(vec: *mut Vec<{name}>, val: {ffi_name})",
             ["unsafe { &mut *vec }.push(val.into_rust_repr())"]),
            (f"{vec}$pop", f"_pop(vec: *mut Vec<{name}>) -> {option}",
             ["let val = unsafe { &mut *vec }.pop();", f"{option}::from_rust_repr(val)"]),
            (f"{vec}$get", f"_get(vec: *const Vec<{name}>, index: usize) -> {option}",
             ["let val = unsafe { &*vec }.get(index).map(|v| *v);", f"{option}::from_rust_repr(val)"]),
            (f"{vec}$get_mut", f"_get_mut(vec: *mut Vec<{name}>, index: usize) -> {option}",
             ["let val = unsafe { &mut *vec }.get_mut(index).map(|v| *v);",
              f"{option}::from_rust_repr(val)"]),
            (f"{vec}$len", f"_len(vec: *const Vec<{name}>) -> usize",
             ["unsafe { &*vec }.len()"]),
            (f"{vec}$as_ptr", f"_as_ptr(vec: *const Vec<{name}>) -> *const {name}",
             ["unsafe { &*vec }.as_ptr()"]),
        ])

    # ── opaque types ────────────────────────────────────────────────

    def _opaque_glue(self, ty: OpaqueType) -> list[str]:
        if ty.host_lang.is_swift():
            return self._swift_opaque_glue(ty)
        if ty.declare_generic or ty.key not in self._declared_here:
            return []

        ident = rust_ident(ty.ident)
        path = f"super::{ty.key}"
        lines = []
        if ty.is_copy:
            lines.extend(self._copy_glue(ty))
            this_ty = self._copy_path(ty)
            this_val = "this.into_rust_repr()"
            lhs, rhs = "lhs.into_rust_repr()", "rhs.into_rust_repr()"
        else:
            lines.extend([
                f'#[export_name = "{P}${ty.ident}$_free"]',
                f"pub extern \"C\" fn __swift_bridge__{ident}__free(this: *mut {path}) {{",
                "    let this = unsafe { Box::from_raw(this) };",
                "    drop(this);",
                "}",
                "",
            ])
            this_ty = f"*const {path}"
            this_val = "(unsafe { &*this })"
            lhs, rhs = "unsafe { &*lhs }", "unsafe { &*rhs }"

        if ty.hashable:
            lines.extend([
                f'#[export_name = "{P}${ty.ident}$_hash"]',
                f"pub extern \"C\" fn __swift_bridge__{ident}__hash(this: {this_ty}) -> u64 {{",
                "    use std::hash::{Hash, Hasher};",
                "    let mut hasher = std::collections::hash_map::DefaultHasher::new();",
                f"    {this_val}.hash(&mut hasher);",
                "    hasher.finish()",
                "}",
                "",
            ])
        if ty.equatable:
            lines.extend([
                f'#[export_name = "{P}${ty.ident}$_partial_eq"]',
                f"pub extern \"C\" fn __swift_bridge__{ident}__partial_eq(lhs: {this_ty}, rhs: {this_ty}) -> bool {{",
                f"    {lhs} == {rhs}",
                "}",
                "",
            ])

        if not ty.is_copy and not ty.is_generic:
            lines.extend(self._vec_opaque_glue(ty))
        return lines

    def _copy_glue(self, ty: OpaqueType) -> list[str]:
        ident = rust_ident(ty.ident)
        path = f"super::{ty.key}"
        copy_name = f"__swift_bridge__Copy_{ident}"
        size = ty.copy_size
        lines = [
            "#[repr(C)]",
            "#[doc(hidden)]",
            "#[derive(Copy, Clone)]",
            f"pub struct {copy_name}([u8; {size}]);",
            "",
            f"impl {copy_name} {{",
            "    #[inline(always)]",
            f"    pub fn into_rust_repr(self) -> {path} {{",
            f"        unsafe {{ std::mem::transmute::<[u8; {size}], {path}>(self.0) }}",
            "    }",
            "",
            "    #[inline(always)]",
            f"    pub fn from_rust_repr(repr: {path}) -> {copy_name} {{",
            f"        {copy_name}(unsafe {{ std::mem::transmute::<{path}, [u8; {size}]>(repr) }})",
            "    }",
            "}",
            "",
        ]
        lines.extend(self._option_glue(path, copy_name, f"__swift_bridge__Option_Copy_{ident}",
                                       copy=True))
        return lines

    def _vec_opaque_glue(self, ty: OpaqueType) -> list[str]:
        vec = f"{P}$Vec_{ty.ident}"
        path = f"super::{ty.key}"
        return _vec_glue_block([
            (f"{vec}$new", f"_new() -> *mut Vec<{path}>",
             ["Box::into_raw(Box::new(Vec::new()))"]),
            (f"{vec}$drop", f"_drop(vec: *mut Vec<{path}>)",
             ["let vec = unsafe { Box::from_raw(vec) };", "drop(vec)"]),
            (f"{vec}$push", f"_push(vec: *mut Vec<{path}>, val: *mut {path})",
             ["unsafe { &mut *vec }.push(unsafe { *Box::from_raw(val) })"]),
            (f"{vec}$pop", f"_pop(vec: *mut Vec<{path}>) -> *mut {path}",
             ["let vec = unsafe { &mut *vec };",
              "if let Some(val) = vec.pop() {",
              "    Box::into_raw(Box::new(val))",
              "} else {",
              "    std::ptr::null_mut()",
              "}"]),
            (f"{vec}$get", f"_get(vec: *const Vec<{path}>, index: usize) -> *const {path}",
             ["let vec = unsafe { &*vec };",
              "if let Some(val) = vec.get(index) {",
              f"    val as *const {path}",
              "} else {",
              "    std::ptr::null()",
              "}"]),
            (f"{vec}$get_mut", f"_get_mut(vec: *mut Vec<{path}>, index: usize) -> *mut {path}",
             ["let vec = unsafe { &mut *vec };",
              "if let Some(val) = vec.get_mut(index) {",
              f"    val as *mut {path}",
              "} else {",
              "    std::ptr::null_mut()",
              "}"]),
            (f"{vec}$len", f"_len(vec: *const Vec<{path}>) -> usize",
             ["unsafe { &*vec }.len()"]),
            (f"{vec}$as_ptr", f"_as_ptr(vec: *const Vec<{path}>) -> *const {path}",
             ["unsafe { &*vec }.as_ptr()"]),
        ])

    def _swift_opaque_glue(self, ty: OpaqueType) -> list[str]:
        """Owning wrapper around a retained Swift object, plus its methods"""
        lines = []
        if ty.key in self._declared_here:
            free = f"__swift_bridge__{rust_ident(ty.ident)}__free"
            self._imports.extend([
                f'#[link_name = "{P}${ty.ident}$_free"]',
                f"fn {free}(this: {C_VOID_PTR});",
            ])
            lines.extend([
                "#[repr(C)]",
                f"pub struct {ty.name}({C_VOID_PTR});",
                "",
                f"impl Drop for {ty.name} {{",
                "    fn drop(&mut self) {",
                f"        unsafe {{ {free}(self.0) }}",
                "    }",
                "}",
                "",
            ])
        methods = []
        for func in self.analysis.methods_of(ty):
            methods.extend(self._swift_fn_wrapper(func))
        if methods:
            while not methods[-1]:
                methods.pop()
            lines.append(f"impl {self._opaque_path(ty)} {{")
            lines.extend(_indent(methods))
            lines.append("}")
            lines.append("")
        for func in self.analysis.methods_of(ty):
            lines.extend(self._boxed_fn_exports(func))
        return lines

    # ── functions ───────────────────────────────────────────────────

    def _call_expr(self, func: ResolvedFunction) -> str:
        args = ", ".join(self.from_ffi(p.ty, p.name) for p in func.params)
        if func.self_type is not None:
            return f"({self.from_ffi(func.self_type, 'this')}).{func.name}({args})"
        if func.owner is not None:
            owner = func.owner
            if owner.is_generic:
                return f"<super::{owner.key}>::{func.name}({args})"
            return f"super::{owner.key}::{func.name}({args})"
        return f"super::{func.name}({args})"

    def _ffi_params(self, func: ResolvedFunction) -> list[str]:
        params = []
        if func.self_type is not None:
            params.append(f"this: {self.ffi_type(func.self_type)}")
        params.extend(f"{p.name}: {self.ffi_type(p.ty)}" for p in func.params)
        return params

    def _export_fn(self, func: ResolvedFunction) -> list[str]:
        """`extern "C"` entry point for a Rust implemented function"""
        if func.is_async:
            return self._export_async_fn(func)

        params = ", ".join(self._ffi_params(func))
        ret = "" if func.ret.is_null() else f" -> {self.ffi_type(func.ret)}"
        call = self._call_expr(func)
        body = f"{call};" if func.ret.is_null() else self.into_ffi(func.ret, call)
        return [
            f'#[export_name = "{func.link_name}"]',
            f"pub extern \"C\" fn {func.export_ident}({params}){ret} {{",
            f"    {body}",
            "}",
            "",
        ]

    def _export_async_fn(self, func: ResolvedFunction) -> list[str]:
        """Spawns the future; the trampoline receives the result exactly once"""
        callback_args = [C_VOID_PTR]
        if not func.ret.is_null():
            callback_args.append(self.ffi_type(func.ret))
        params = [
            f"callback_wrapper: {C_VOID_PTR}",
            f"callback: extern \"C\" fn({', '.join(callback_args)}) -> ()",
        ] + self._ffi_params(func)

        if func.ret.is_null():
            await_line = "fut.await;"
            invoke = "(callback)(callback_wrapper)"
        else:
            await_line = f"let val = {self.into_ffi(func.ret, 'fut.await')};"
            invoke = "(callback)(callback_wrapper, val)"

        return [
            f'#[export_name = "{func.link_name}"]',
            f"pub extern \"C\" fn {func.export_ident}({', '.join(params)}) {{",
            "    let callback_wrapper = swift_bridge::async_support::SwiftCallbackWrapper(callback_wrapper);",
            f"    let fut = {self._call_expr(func)};",
            "    let task = async move {",
            f"        {await_line}",
            "        let callback_wrapper = callback_wrapper;",
            "        let callback_wrapper = callback_wrapper.0;",
            f"        {invoke}",
            "    };",
            "    swift_bridge::async_support::ASYNC_RUNTIME.spawn_task(Box::pin(task))",
            "}",
            "",
        ]

    def _swift_fn_wrapper(self, func: ResolvedFunction) -> list[str]:
        """Safe Rust function calling a Swift implemented function"""
        import_name = func.export_ident
        params = []
        args = []
        import_params = []
        if func.self_type is not None:
            params.append({Access.OWNED: "self", Access.REF: "&self",
                           Access.REF_MUT: "&mut self"}[func.self_type.access])
            args.append(self.into_ffi(func.self_type, "self"))
            import_params.append(f"this: {C_VOID_PTR}")
        for p in func.params:
            params.append(f"{p.name}: {self.rust_type(p.ty)}")
            args.append(self.into_ffi(p.ty, p.name))
            import_params.append(f"{p.name}: {self.ffi_type(p.ty)}")

        ret = "" if func.ret.is_null() else f" -> {self.rust_type(func.ret)}"
        import_ret = "" if func.ret.is_null() else f" -> {self.ffi_type(func.ret)}"
        self._imports.extend([
            f'#[link_name = "{func.link_name}"]',
            f"fn {import_name}({', '.join(import_params)}){import_ret};",
        ])

        call = f"unsafe {{ {import_name}({', '.join(args)}) }}"
        body = call if func.ret.is_null() else self.from_ffi(func.ret, call)
        return [
            f"pub fn {func.name}({', '.join(params)}){ret} {{",
            f"    {body}",
            "}",
            "",
        ]

    def _boxed_fn_exports(self, func: ResolvedFunction) -> list[str]:
        """Exports Swift uses to call, or drop without calling, a boxed closure"""
        lines = []
        for idx, param in func.boxed_fn_params():
            boxed = param.ty
            if boxed.no_args_no_return:
                continue
            boxed_ty = self.ffi_type(boxed)
            params = [f"boxed_fn: {boxed_ty}"]
            args = []
            for arg_idx, arg in enumerate(boxed.params):
                params.append(f"arg{arg_idx}: {self.ffi_type(arg)}")
                args.append(self.from_ffi(arg, f"arg{arg_idx}"))
            ret = "" if boxed.ret.is_null() else f" -> {self.ffi_type(boxed.ret)}"
            call = f"boxed_fn({', '.join(args)})"
            lines.extend([
                f'#[export_name = "{func.link_name}$param{idx}"]',
                f"pub extern \"C\" fn {func.export_ident}_param{idx}({', '.join(params)}){ret} {{",
                "    let boxed_fn = unsafe { Box::from_raw(boxed_fn) };",
                f"    {self.into_ffi(boxed.ret, call)}",
                "}",
                "",
                f'#[export_name = "{func.link_name}$_free$param{idx}"]',
                f"pub extern \"C\" fn {func.export_ident}__free_param{idx}(boxed_fn: {boxed_ty}) {{",
                "    let _ = unsafe { Box::from_raw(boxed_fn) };",
                "}",
                "",
            ])
        return lines


def _vec_glue_block(functions: list[tuple[str, str, list[str]]]) -> list[str]:
    """Wrap Vec support exports in an anonymous const so their names stay private"""
    lines = ["const _: () = {"]
    for link_name, signature, body in functions:
        lines.extend([
            "    #[doc(hidden)]",
            f'    #[export_name = "{link_name}"]',
            f"    pub extern \"C\" fn {signature} {{",
        ])
        lines.extend(_indent(body, 2))
        lines.append("    }")
        lines.append("")
    lines[-1] = "};"
    lines.append("")
    return lines
