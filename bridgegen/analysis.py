"""Semantic analysis shared by all backends.

`analyze` resolves every field, parameter and return type of a module once,
classifies receivers and rejects combinations no backend can represent. The
backends only ever look at the resulting `ModuleAnalysis`, so a type cannot
end up with two different representations in one build.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from .bridged_type import (
    SWIFT_BRIDGE_PREFIX, Access, BoxedFnType, BridgedType, OpaqueHandle, OptionType,
    ResultType, SharedEnumType, SharedStructType, SliceType, StringType, resolve,
)
from .errors import BridgeError, UnresolvedType, UnsupportedTypeCombination
from .types import (
    EnumVariant, Function, HostLang, Module, OpaqueType, Receiver, SharedEnum,
    SharedStruct, StructField, TypeDeclaration, TypeDeclarations,
)

logger = logging.getLogger(__name__)


@dataclass
class ResolvedField:
    field: StructField
    index: int
    ty: BridgedType

    @property
    def ffi_name(self) -> str:
        """Field name in the C layout: positional fields become `_0`, `_1`, ..."""
        return self.field.name if self.field.name is not None else f"_{self.index}"


@dataclass
class ResolvedStruct:
    decl: SharedStruct
    fields: list[ResolvedField] = field(default_factory=list)


@dataclass
class ResolvedVariant:
    decl: EnumVariant
    fields: list[ResolvedField] = field(default_factory=list)


@dataclass
class ResolvedEnum:
    decl: SharedEnum
    variants: list[ResolvedVariant] = field(default_factory=list)


@dataclass
class ResolvedParam:
    name: str
    ty: BridgedType


@dataclass
class ResolvedFunction:
    func: Function
    params: list[ResolvedParam]
    ret: BridgedType
    owner: Optional[OpaqueType] = None
    self_type: Optional[OpaqueHandle] = None

    @property
    def name(self) -> str:
        return self.func.name

    @property
    def host_lang(self) -> HostLang:
        return self.func.host_lang

    @property
    def is_async(self) -> bool:
        return self.func.is_async

    @property
    def receiver(self) -> Receiver:
        return self.func.receiver

    @property
    def link_name(self) -> str:
        if self.owner is not None:
            return f"{SWIFT_BRIDGE_PREFIX}${self.owner.ident}${self.func.name}"
        return f"{SWIFT_BRIDGE_PREFIX}${self.func.name}"

    @property
    def export_ident(self) -> str:
        """Rust/Swift identifier for the exported symbol"""
        return self.link_name.replace("$", "_")

    def boxed_fn_params(self) -> list[tuple[int, ResolvedParam]]:
        return [(idx, p) for idx, p in enumerate(self.params) if isinstance(p.ty, BoxedFnType)]

    def skipped(self) -> bool:
        """Async functions with no arguments and no return value are not bridged"""
        return (self.is_async and self.self_type is None and not self.params
                and self.ret.is_null())


@dataclass
class ModuleAnalysis:
    module: Module
    types: TypeDeclarations
    structs: dict[str, ResolvedStruct] = field(default_factory=dict)
    enums: dict[str, ResolvedEnum] = field(default_factory=dict)
    functions: list[ResolvedFunction] = field(default_factory=list)

    def declarations(self) -> list[TypeDeclaration]:
        return list(self.module.types)

    def methods_of(self, owner: OpaqueType) -> list[ResolvedFunction]:
        return [f for f in self.functions if f.owner is owner and not f.skipped()]

    def free_functions(self) -> list[ResolvedFunction]:
        return [f for f in self.functions if f.owner is None and not f.skipped()]


def analyze(module: Module) -> ModuleAnalysis:
    """Resolve and check a module; raises BridgeError subclasses"""
    types = module.declarations()
    analysis = ModuleAnalysis(module=module, types=types)

    for decl in module.types:
        try:
            if isinstance(decl, SharedStruct):
                analysis.structs[decl.name] = ResolvedStruct(
                    decl, _resolve_fields(decl.fields, types))
            elif isinstance(decl, SharedEnum):
                analysis.enums[decl.name] = ResolvedEnum(decl, [
                    ResolvedVariant(v, _resolve_fields(v.fields, types)) for v in decl.variants
                ])
            elif decl.hashable and not decl.equatable:
                # Swift's Hashable refines Equatable
                raise UnsupportedTypeCombination(f"`{decl.key}`: Hashable requires Equatable")
        except BridgeError as e:
            raise e.with_line(decl.line)

    _check_by_value_cycles(analysis)

    for func in module.functions:
        try:
            resolved = _resolve_function(func, types)
        except BridgeError as e:
            raise e.with_line(func.line)
        if resolved.skipped():
            logger.warning("async function `%s` has no arguments and no return value; "
                           "it is not bridged", func.name)
        analysis.functions.append(resolved)

    logger.debug("analyzed module %s: %d types, %d functions",
                 module.name, len(module.types), len(module.functions))
    return analysis


def _resolve_fields(fields: list[StructField], types: TypeDeclarations) -> list[ResolvedField]:
    resolved = []
    for idx, f in enumerate(fields):
        ty = resolve(f.type, types)
        if isinstance(ty, (BoxedFnType, ResultType, SliceType)) or ty.is_null():
            raise UnsupportedTypeCombination(f"`{ty.rust_name()}` cannot be stored in a shared type")
        if isinstance(ty, StringType) and ty.borrowed:
            raise UnsupportedTypeCombination("`&str` cannot be stored in a shared type")
        if isinstance(ty, OpaqueHandle) and (ty.access is not Access.OWNED or ty.decl.host_lang.is_swift()):
            raise UnsupportedTypeCombination(f"`{ty.rust_name()}` cannot be stored in a shared type")
        resolved.append(ResolvedField(f, idx, ty))
    return resolved


def _by_value_deps(ty: BridgedType) -> list[str]:
    if isinstance(ty, (SharedStructType, SharedEnumType)):
        return [ty.decl.name]
    if isinstance(ty, OptionType):
        return _by_value_deps(ty.inner)
    return []


def _check_by_value_cycles(analysis: ModuleAnalysis) -> None:
    """Reject shared types that contain themselves by value"""
    edges: dict[str, list[str]] = {}
    lines: dict[str, int] = {}
    for name, s in analysis.structs.items():
        edges[name] = [d for f in s.fields for d in _by_value_deps(f.ty)]
        lines[name] = s.decl.line
    for name, e in analysis.enums.items():
        edges[name] = [d for v in e.variants for f in v.fields for d in _by_value_deps(f.ty)]
        lines[name] = e.decl.line

    done: set[str] = set()

    def visit(name: str, path: list[str]) -> None:
        if name in path:
            cycle = " -> ".join(path[path.index(name):] + [name])
            raise UnsupportedTypeCombination(
                f"`{name}` contains itself by value ({cycle})", lines.get(name, 0))
        if name in done:
            return
        for dep in edges.get(name, []):
            visit(dep, path + [name])
        done.add(name)

    for name in edges:
        visit(name, [])


def _resolve_function(func: Function, types: TypeDeclarations) -> ResolvedFunction:
    owner = None
    self_type = None
    if func.owner is not None:
        owner = types.get(func.owner)
        if owner is None:
            raise UnresolvedType(f"`{func.name}` is attached to undeclared type `{func.owner}`")
        if not isinstance(owner, OpaqueType) or owner.declare_generic:
            raise UnsupportedTypeCombination(
                f"`{func.name}`: methods can only be attached to opaque types")
        if owner.host_lang is not func.host_lang:
            raise UnsupportedTypeCombination(
                f"`{func.name}` and its type `{owner.key}` are declared in different extern blocks")
    if func.receiver is not Receiver.NONE:
        if owner is None:
            raise UnsupportedTypeCombination(f"method `{func.name}` has no owning type")
        access = {
            Receiver.OWNED: Access.OWNED,
            Receiver.REF: Access.REF,
            Receiver.REF_MUT: Access.REF_MUT,
        }[func.receiver]
        self_type = OpaqueHandle(owner, access)

    params = [ResolvedParam(p.name, resolve(p.type, types)) for p in func.params]
    ret = resolve(func.return_type, types)
    resolved = ResolvedFunction(func, params, ret, owner, self_type)
    if func.host_lang.is_rust():
        _check_rust_function(resolved)
    else:
        _check_swift_function(resolved)
    return resolved


def _is_swift_opaque(ty: BridgedType, borrowed_only: bool = False) -> bool:
    if not isinstance(ty, OpaqueHandle) or not ty.decl.host_lang.is_swift():
        return False
    return ty.access is not Access.OWNED or not borrowed_only


def _check_rust_function(f: ResolvedFunction) -> None:
    for p in f.params:
        if isinstance(p.ty, BoxedFnType):
            raise UnsupportedTypeCombination(
                f"`{f.name}`: boxed closures can only be passed to Swift functions")
        if isinstance(p.ty, ResultType):
            raise UnsupportedTypeCombination(f"`{f.name}`: Result parameters are not supported")
        if _is_swift_opaque(p.ty, borrowed_only=True):
            raise UnsupportedTypeCombination(
                f"`{f.name}`: Swift types can only be passed to Rust by value")
    if _is_swift_opaque(f.ret, borrowed_only=True):
        raise UnsupportedTypeCombination(f"`{f.name}`: cannot return a reference to a Swift type")
    if f.is_async and isinstance(f.ret, ResultType):
        raise UnsupportedTypeCombination(f"`{f.name}`: async functions cannot return Result")


def _check_swift_function(f: ResolvedFunction) -> None:
    if f.is_async:
        raise UnsupportedTypeCombination(f"`{f.name}`: async Swift functions are not supported")
    for p in f.params:
        if isinstance(p.ty, ResultType):
            raise UnsupportedTypeCombination(f"`{f.name}`: Result parameters are not supported")
    if isinstance(f.ret, (BoxedFnType, ResultType, SliceType)):
        raise UnsupportedTypeCombination(
            f"`{f.name}`: Swift functions cannot return `{f.ret.rust_name()}`")
    if isinstance(f.ret, OpaqueHandle) and f.ret.access is not Access.OWNED:
        raise UnsupportedTypeCombination(f"`{f.name}`: Swift functions cannot return references")
    if isinstance(f.ret, StringType) and f.ret.borrowed:
        raise UnsupportedTypeCombination(f"`{f.name}`: Swift functions cannot return `&str`")
