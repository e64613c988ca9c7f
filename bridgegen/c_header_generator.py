"""C Header Generator - generates the flat C ABI header for a bridge module"""

from dataclasses import dataclass, field
from typing import Optional

from .analysis import ModuleAnalysis, ResolvedEnum, ResolvedFunction, ResolvedStruct
from .bridged_type import SWIFT_BRIDGE_PREFIX as P, BridgedType
from .config import CodegenConfig
from .registry import DeclarationRegistry
from .type_mapper import TypeMapper
from .types import OpaqueType, SharedEnum, SharedStruct

NOTICE = "// File automatically generated by bridgegen."


@dataclass
class HeaderBookkeeping:
    """Includes and slice element types collected during one header pass"""
    includes: set[str] = field(default_factory=set)
    slice_types: set[str] = field(default_factory=set)

    def track(self, ty: BridgedType) -> None:
        self.includes |= ty.c_includes()
        if element := ty.slice_element():
            self.slice_types.add(element)

    def prelude(self, registry: DeclarationRegistry) -> list[str]:
        """Include directives then FfiSlice typedefs not yet declared by the build, both sorted"""
        lines = [f"#include <{inc}>" for inc in sorted(self.includes)]
        for element in sorted(self.slice_types):
            name = f"FfiSlice_{TypeMapper.c_ident(element)}"
            if not registry.should_emit(name):
                continue
            registry.mark_emitted(name)
            lines.append(f"typedef struct {name} {{ {element}* start; uintptr_t len; }} {name};")
        return lines


class CHeaderGenerator:
    """Generates the C header consumed by the Swift toolchain"""

    def __init__(self, analysis: ModuleAnalysis, config: Optional[CodegenConfig] = None,
                 registry: Optional[DeclarationRegistry] = None):
        self.analysis = analysis
        self.config = config or CodegenConfig.no_features_enabled()
        self.registry = registry if registry is not None else DeclarationRegistry()

    def generate(self) -> str:
        return f"{NOTICE}\n{self.generate_body()}"

    def generate_body(self) -> str:
        """Header without the notice line; empty when there is nothing to declare"""
        if not self.analysis.module.will_be_compiled(self.config):
            return ""

        book = HeaderBookkeeping()
        lines = []
        to_emit = self.registry.claim_all(self.analysis.declarations())

        for decl in self.analysis.declarations():
            if decl.key not in to_emit:
                continue
            if isinstance(decl, SharedStruct):
                lines.extend(self._struct_decl(self.analysis.structs[decl.name], book))
            elif isinstance(decl, SharedEnum):
                lines.extend(self._enum_decl(self.analysis.enums[decl.name], book))
            else:
                lines.extend(self._opaque_decl(decl, book))

        for func in self.analysis.functions:
            if func.skipped():
                continue
            if func.host_lang.is_swift():
                lines.extend(self._boxed_fn_decls(func, book))
            else:
                lines.append(self._func_decl(func, book))

        lines = book.prelude(self.registry) + lines
        return "\n".join(lines) + "\n" if lines else ""

    def _struct_decl(self, struct: ResolvedStruct, book: HeaderBookkeeping) -> list[str]:
        name = struct.decl.name
        ffi_name = f"{P}${name}"
        option_name = f"{P}$Option${name}"

        # Option wrappers carry a bool flag
        book.includes.add("stdbool.h")

        if not struct.fields:
            book.includes.add("stdint.h")
            fields = ["uint8_t _private"]
        else:
            fields = []
            for f in struct.fields:
                book.track(f.ty)
                fields.append(f"{f.ty.c_type()} {f.ffi_name}")

        return [
            f"typedef struct {ffi_name} {{ {'; '.join(fields)}; }} {ffi_name};",
            f"typedef struct {option_name} {{ bool is_some; {ffi_name} val; }} {option_name};",
        ]

    def _enum_decl(self, enum: ResolvedEnum, book: HeaderBookkeeping) -> list[str]:
        name = enum.decl.name
        ffi_name = f"{P}${name}"
        tag_name = f"{P}${name}$Tag"
        option_name = f"{P}$Option${name}"

        book.includes.add("stdbool.h")

        variants = "".join(f"{ffi_name}${v.decl.name}, " for v in enum.variants)
        lines = [f"typedef enum {tag_name} {{ {variants}}} {tag_name};"]

        if enum.decl.is_transparent:
            lines.append(f"typedef struct {ffi_name} {{ {tag_name} tag; }} {ffi_name};")
        else:
            union_name = f"{P}${name}Fields"
            members = []
            for v in enum.variants:
                if not v.fields:
                    continue
                fields_name = f"{ffi_name}$FieldOf{v.decl.name}"
                fields = []
                for f in v.fields:
                    book.track(f.ty)
                    fields.append(f"{f.ty.c_type()} {f.ffi_name}")
                lines.append(f"typedef struct {fields_name} {{ {'; '.join(fields)}; }} {fields_name};")
                members.append(f"{fields_name} {v.decl.name};")
            lines.append(f"union {union_name} {{ {' '.join(members)} }};")
            lines.append(
                f"typedef struct {ffi_name} {{ {tag_name} tag; union {union_name} payload; }} {ffi_name};")

        lines.append(f"typedef struct {option_name} {{ bool is_some; {ffi_name} val; }} {option_name};")

        # Data-carrying enums get no Vec support
        if enum.decl.is_transparent:
            book.includes.add("stdint.h")
            lines.extend(vec_transparent_enum_c_support(name))
        return lines

    def _opaque_decl(self, ty: OpaqueType, book: HeaderBookkeeping) -> list[str]:
        if ty.host_lang.is_swift() or ty.declare_generic:
            return []

        ident = ty.ident
        lines = []
        if ty.is_copy:
            book.includes.update(("stdint.h", "stdbool.h"))
            copy_repr = f"{P}$Copy${ident}"
            option_repr = f"{P}$Option$Copy${ident}"
            lines.append(f"typedef struct {copy_repr} {{ uint8_t bytes[{ty.copy_size}]; }} {copy_repr};")
            lines.append(
                f"typedef struct {option_repr} {{ bool is_some; {copy_repr} val; }} {option_repr};")
            self_c = copy_repr
        else:
            lines.append(f"typedef struct {ident} {ident};")
            lines.append(f"void {P}${ident}$_free(void* self);")
            self_c = "void*"

        if ty.hashable:
            book.includes.add("stdint.h")
            lines.append(f"uint64_t {P}${ident}$_hash({self_c} self);")
        if ty.equatable:
            book.includes.add("stdbool.h")
            lines.append(f"bool {P}${ident}$_partial_eq({self_c} lhs, {self_c} rhs);")

        # TODO: Vec<T> for Copy and generic opaque types needs its own element ABI.
        if not ty.is_copy and not ty.is_generic:
            book.includes.add("stdint.h")
            lines.extend(vec_opaque_rust_type_c_support(ident))
        return lines

    def _func_decl(self, func: ResolvedFunction, book: HeaderBookkeeping) -> str:
        params = []
        if func.self_type is not None:
            book.track(func.self_type)
            params.append(f"{func.self_type.c_type()} self")
        for p in func.params:
            book.track(p.ty)
            params.append(f"{p.ty.c_type()} {p.name}")
        book.track(func.ret)

        name = func.link_name
        if func.is_async:
            maybe_ret = "" if func.ret.is_null() else f", {func.ret.c_type()} ret"
            maybe_params = f", {', '.join(params)}" if params else ""
            return (f"void {name}(void* callback_wrapper, "
                    f"void {name}$async(void* callback_wrapper{maybe_ret}){maybe_params});")
        return f"{func.ret.c_type()} {name}({', '.join(params) or 'void'});"

    def _boxed_fn_decls(self, func: ResolvedFunction, book: HeaderBookkeeping) -> list[str]:
        """Rust exports that Swift calls to run or free a boxed closure"""
        lines = []
        for idx, param in func.boxed_fn_params():
            boxed = param.ty
            if boxed.no_args_no_return:
                # Declared once in SwiftBridgeCore.h
                continue
            args = ["void* boxed_fn"]
            for arg_idx, arg in enumerate(boxed.params):
                book.track(arg)
                args.append(f"{arg.c_type()} arg{arg_idx}")
            book.track(boxed.ret)
            lines.append(f"{boxed.ret.c_type()} {func.link_name}$param{idx}({', '.join(args)});")
            lines.append(f"void {func.link_name}$_free$param{idx}(void* boxed_fn);")
        return lines


def vec_opaque_rust_type_c_support(ty_name: str) -> list[str]:
    """Vec functions for an opaque type; elements move in and out by pointer"""
    vec = f"{P}$Vec_{ty_name}"
    return [
        f"void* {vec}$new(void);",
        f"void {vec}$drop(void* vec_ptr);",
        f"void {vec}$push(void* vec_ptr, void* item_ptr);",
        f"void* {vec}$pop(void* vec_ptr);",
        f"void* {vec}$get(void* vec_ptr, uintptr_t index);",
        f"void* {vec}$get_mut(void* vec_ptr, uintptr_t index);",
        f"uintptr_t {vec}$len(void* vec_ptr);",
        f"void* {vec}$as_ptr(void* vec_ptr);",
    ]


def vec_transparent_enum_c_support(enum_name: str) -> list[str]:
    """Vec functions for a transparent enum; elements are copied by value"""
    return vec_by_value_c_support(f"{P}$Vec_{enum_name}", f"{P}${enum_name}", f"{P}$Option${enum_name}")


def vec_by_value_c_support(vec: str, value: str, option: str) -> list[str]:
    return [
        f"void* {vec}$new(void);",
        f"void {vec}$drop(void* vec_ptr);",
        f"void {vec}$push(void* vec_ptr, {value} item);",
        f"{option} {vec}$pop(void* vec_ptr);",
        f"{option} {vec}$get(void* vec_ptr, uintptr_t index);",
        f"{option} {vec}$get_mut(void* vec_ptr, uintptr_t index);",
        f"uintptr_t {vec}$len(void* vec_ptr);",
        f"void* {vec}$as_ptr(void* vec_ptr);",
    ]
