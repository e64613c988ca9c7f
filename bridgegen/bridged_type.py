"""Bridged type model.

Every type reference that crosses the boundary resolves to exactly one of the
classes below. A variant knows its C ABI spelling, the spelling of its
`Option` wrapper and the C headers it needs; the language specific
conversions live in the Rust glue and Swift backends, which dispatch over
the same closed set and raise `TypeError` on anything else.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .errors import UnresolvedType, UnsupportedTypeCombination
from .type_mapper import TypeMapper
from .types import OpaqueType, SharedEnum, SharedStruct, TypeDeclarations

SWIFT_BRIDGE_PREFIX = "__swift_bridge__"


class Access(Enum):
    """How an opaque handle is held at a given position"""
    OWNED = "owned"
    REF = "ref"
    REF_MUT = "ref_mut"


class BridgedType:
    """Base of the closed set of representation kinds"""

    def c_type(self) -> str:
        raise NotImplementedError

    def c_option_type(self) -> str:
        raise UnsupportedTypeCombination(f"`Option<{self.rust_name()}>` is not supported")

    def c_includes(self) -> set[str]:
        return set()

    def slice_element(self) -> Optional[str]:
        return None

    def is_null(self) -> bool:
        return False

    def is_pointer_like(self) -> bool:
        """True when the ABI value is one nullable pointer"""
        return False

    def rust_name(self) -> str:
        raise NotImplementedError


@dataclass
class Null(BridgedType):
    """The unit type `()`"""

    def c_type(self) -> str:
        return "void"

    def is_null(self) -> bool:
        return True

    def rust_name(self) -> str:
        return "()"


@dataclass
class Primitive(BridgedType):
    kind: str

    @property
    def info(self):
        return TypeMapper.PRIMITIVES[self.kind]

    def c_type(self) -> str:
        return self.info.c_type

    def c_option_type(self) -> str:
        return f"struct __private__Option{self.info.option_suffix}"

    def c_includes(self) -> set[str]:
        return {self.info.include} if self.info.include else set()

    def rust_name(self) -> str:
        return self.kind


@dataclass
class StringType(BridgedType):
    """`String` (owned, boxed on the Rust heap) or `&str` (borrowed)"""
    borrowed: bool = False

    def c_type(self) -> str:
        return "struct RustStr" if self.borrowed else "void*"

    def c_option_type(self) -> str:
        return self.c_type()

    def is_pointer_like(self) -> bool:
        return not self.borrowed

    def rust_name(self) -> str:
        return "&str" if self.borrowed else "String"


@dataclass
class OpaqueHandle(BridgedType):
    decl: OpaqueType
    access: Access = Access.OWNED

    @property
    def is_copy(self) -> bool:
        return self.decl.is_copy and self.decl.host_lang.is_rust()

    @property
    def copy_repr(self) -> str:
        return f"{SWIFT_BRIDGE_PREFIX}$Copy${self.decl.ident}"

    @property
    def option_copy_repr(self) -> str:
        return f"{SWIFT_BRIDGE_PREFIX}$Option$Copy${self.decl.ident}"

    def c_type(self) -> str:
        return self.copy_repr if self.is_copy else "void*"

    def c_option_type(self) -> str:
        return self.option_copy_repr if self.is_copy else "void*"

    def is_pointer_like(self) -> bool:
        return not self.is_copy

    def rust_name(self) -> str:
        prefix = {Access.OWNED: "", Access.REF: "&", Access.REF_MUT: "&mut "}[self.access]
        return f"{prefix}{self.decl.key}"


@dataclass
class SharedStructType(BridgedType):
    decl: SharedStruct

    def c_type(self) -> str:
        return f"struct {SWIFT_BRIDGE_PREFIX}${self.decl.name}"

    def c_option_type(self) -> str:
        return f"struct {SWIFT_BRIDGE_PREFIX}$Option${self.decl.name}"

    def rust_name(self) -> str:
        return self.decl.name


@dataclass
class SharedEnumType(BridgedType):
    decl: SharedEnum

    def c_type(self) -> str:
        return f"struct {SWIFT_BRIDGE_PREFIX}${self.decl.name}"

    def c_option_type(self) -> str:
        return f"struct {SWIFT_BRIDGE_PREFIX}$Option${self.decl.name}"

    def rust_name(self) -> str:
        return self.decl.name


@dataclass
class OptionType(BridgedType):
    inner: BridgedType

    def c_type(self) -> str:
        return self.inner.c_option_type()

    def c_includes(self) -> set[str]:
        return self.inner.c_includes()

    def rust_name(self) -> str:
        return f"Option<{self.inner.rust_name()}>"


@dataclass
class ResultType(BridgedType):
    """`Result<T, E>` carried as `{ is_ok, ok_or_err }`"""
    ok: BridgedType
    err: BridgedType

    def c_type(self) -> str:
        return "struct __private__ResultPtrAndPtr"

    def rust_name(self) -> str:
        return f"Result<{self.ok.rust_name()}, {self.err.rust_name()}>"


@dataclass
class SliceType(BridgedType):
    inner: BridgedType

    def c_type(self) -> str:
        return "struct __private__FfiSlice"

    def c_includes(self) -> set[str]:
        return self.inner.c_includes() | {"stdint.h"}

    def slice_element(self) -> Optional[str]:
        return self.inner.c_type()

    def rust_name(self) -> str:
        return f"&[{self.inner.rust_name()}]"


@dataclass
class VecType(BridgedType):
    inner: BridgedType

    def c_type(self) -> str:
        return "void*"

    def c_option_type(self) -> str:
        return "void*"

    def is_pointer_like(self) -> bool:
        return True

    def rust_name(self) -> str:
        return f"Vec<{self.inner.rust_name()}>"


@dataclass
class BoxedFnType(BridgedType):
    """`Box<dyn FnOnce(A, B) -> R>` handed from Rust to Swift"""
    params: list[BridgedType] = field(default_factory=list)
    ret: BridgedType = field(default_factory=Null)

    def c_type(self) -> str:
        return "void*"

    @property
    def no_args_no_return(self) -> bool:
        return not self.params and self.ret.is_null()

    def rust_name(self) -> str:
        params = ", ".join(p.rust_name() for p in self.params)
        if self.ret.is_null():
            return f"Box<dyn FnOnce({params})>"
        return f"Box<dyn FnOnce({params}) -> {self.ret.rust_name()}>"


def resolve(type_ref: Optional[str], types: TypeDeclarations) -> BridgedType:
    """Resolve a textual type reference against the module's declarations"""
    text = TypeMapper.normalize(type_ref or "")
    if TypeMapper.is_unit(text):
        return Null()
    if TypeMapper.is_primitive(text):
        return Primitive(text)
    if text == "String":
        return StringType(borrowed=False)
    if text == "&str":
        return StringType(borrowed=True)

    if TypeMapper.is_slice(text):
        inner = resolve(TypeMapper.slice_inner(text), types)
        if not isinstance(inner, Primitive):
            raise UnsupportedTypeCombination(f"`{text}`: only slices of primitives are supported")
        return SliceType(inner)

    if TypeMapper.is_boxed_fn(text):
        params, ret = TypeMapper.boxed_fn_signature(text)
        resolved = [resolve(p, types) for p in params]
        resolved_ret = resolve(ret, types)
        for ty in resolved + [resolved_ret]:
            if not isinstance(ty, (Primitive, Null)):
                raise UnsupportedTypeCombination(
                    f"`{text}`: boxed closures may only take and return primitives")
        return BoxedFnType(resolved, resolved_ret)

    if TypeMapper.is_reference(text):
        inner_text, mutable = TypeMapper.strip_reference(text)
        inner = resolve(inner_text, types)
        if not isinstance(inner, OpaqueHandle) or inner.access is not Access.OWNED:
            raise UnsupportedTypeCombination(f"`{text}`: references are only supported to opaque types")
        return OpaqueHandle(inner.decl, Access.REF_MUT if mutable else Access.REF)

    base, args = TypeMapper.generic_parts(text)
    if base == "Option" and len(args) == 1:
        inner = resolve(args[0], types)
        inner.c_option_type()
        return OptionType(inner)
    if base == "Result" and len(args) == 2:
        ok = resolve(args[0], types)
        err = resolve(args[1], types)
        if not (ok.is_null() or ok.is_pointer_like()) or not err.is_pointer_like():
            raise UnsupportedTypeCombination(
                f"`{text}`: Result payloads must be owned opaque types, String or Vec")
        return ResultType(ok, err)
    if base == "Vec" and len(args) == 1:
        inner = resolve(args[0], types)
        _check_vec_element(text, inner)
        return VecType(inner)

    decl = types.get(text)
    if decl is None:
        generic = types.get(base)
        if args and isinstance(generic, OpaqueType) and generic.declare_generic:
            raise UnresolvedType(f"generic instance `{text}` is used but never declared")
        raise UnresolvedType(f"type `{text}` is not declared in this bridge module")
    if isinstance(decl, OpaqueType):
        if decl.declare_generic:
            raise UnsupportedTypeCombination(f"generic type `{text}` needs concrete type arguments")
        return OpaqueHandle(decl, Access.OWNED)
    if isinstance(decl, SharedStruct):
        return SharedStructType(decl)
    return SharedEnumType(decl)


def _check_vec_element(text: str, inner: BridgedType) -> None:
    if isinstance(inner, Primitive):
        return
    if isinstance(inner, StringType) and not inner.borrowed:
        return
    if isinstance(inner, OpaqueHandle) and inner.access is Access.OWNED:
        if inner.decl.host_lang.is_swift():
            raise UnsupportedTypeCombination(f"`{text}`: Vec of a Swift type is not supported")
        if inner.decl.is_copy:
            raise UnsupportedTypeCombination(f"`{text}`: Vec of a Copy opaque type is not supported")
        if inner.decl.is_generic:
            raise UnsupportedTypeCombination(f"`{text}`: Vec of a generic opaque type is not supported")
        return
    if isinstance(inner, SharedEnumType):
        if not inner.decl.is_transparent:
            raise UnsupportedTypeCombination(f"`{text}`: Vec of an enum with data is not supported")
        return
    raise UnsupportedTypeCombination(f"`{text}` is not supported")
