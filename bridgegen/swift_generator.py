"""Swift Generator - generates the Swift wrappers for a bridge module.

Rust opaque types become a class triple `TRef` / `TRefMut` / `T`; only the
owning class frees the Rust value, and only while `isOwned` is still set.
Shared structs and enums become native Swift values converted field by
field. Swift implemented functions are exported with `@_cdecl`.
"""

from typing import Optional

from .analysis import ModuleAnalysis, ResolvedEnum, ResolvedFunction, ResolvedStruct
from .bridged_type import (
    SWIFT_BRIDGE_PREFIX as P, Access, BoxedFnType, BridgedType, Null, OpaqueHandle,
    OptionType, Primitive, ResultType, SharedEnumType, SharedStructType, SliceType,
    StringType, VecType,
)
from .config import CodegenConfig
from .registry import DeclarationRegistry
from .types import OpaqueType, Receiver, SharedEnum, SharedStruct

ACCESS = "public"
RAW_PTR = "UnsafeMutableRawPointer"


def swift_ffi_type(ty: BridgedType) -> str:
    """How Swift sees the C ABI spelling of `ty`"""
    c_type = ty.c_type()
    if c_type == "void*":
        return f"{RAW_PTR}?" if isinstance(ty, OptionType) else RAW_PTR
    if isinstance(ty, Primitive):
        return ty.info.swift_type
    return c_type.removeprefix("struct ")


def _indent(lines: list[str], level: int = 1) -> list[str]:
    pad = "    " * level
    return [f"{pad}{line}" if line else "" for line in lines]


def _class_name(decl: OpaqueType) -> str:
    """`Foo`, or `Foo_u32` for a generic instance; `$` stays in link names only"""
    return decl.ident.replace("$", "_") if decl.host_lang.is_rust() else decl.name


class SwiftGenerator:
    """Generates the Swift side of a bridge module"""

    def __init__(self, analysis: ModuleAnalysis, config: Optional[CodegenConfig] = None,
                 registry: Optional[DeclarationRegistry] = None):
        self.analysis = analysis
        self.config = config or CodegenConfig.no_features_enabled()
        self.registry = registry if registry is not None else DeclarationRegistry()
        self._declared_here: set[str] = set()
        self._error_types: list[str] = []

    def generate(self) -> str:
        """Swift source for the module; empty when the module is not compiled"""
        if not self.analysis.module.will_be_compiled(self.config):
            return ""

        self._declared_here = self.registry.claim_all(self.analysis.declarations())
        self._error_types = []

        lines = []
        for decl in self.analysis.declarations():
            if isinstance(decl, SharedStruct):
                if decl.key in self._declared_here:
                    lines.extend(self._struct_code(self.analysis.structs[decl.name]))
            elif isinstance(decl, SharedEnum):
                if decl.key in self._declared_here:
                    lines.extend(self._enum_code(self.analysis.enums[decl.name]))
            elif decl.host_lang.is_swift():
                lines.extend(self._swift_opaque_code(decl))
            elif not decl.declare_generic:
                lines.extend(self._opaque_code(decl))

        for func in self.analysis.free_functions():
            if func.host_lang.is_rust():
                lines.extend(self._rust_fn(func))
            else:
                lines.extend(self._cdecl_fn(func))

        for name in self._error_types:
            lines.append(f"extension {name}: Error {{}}")

        return "\n".join(lines) + "\n" if lines else ""

    # ── type spellings and conversions ──────────────────────────────

    def swift_type(self, ty: BridgedType) -> str:
        """Swift spelling seen by callers"""
        if isinstance(ty, Null):
            return "()"
        if isinstance(ty, Primitive):
            return ty.info.swift_type
        if isinstance(ty, StringType):
            return "RustStr" if ty.borrowed else "RustString"
        if isinstance(ty, OpaqueHandle):
            name = _class_name(ty.decl)
            if ty.decl.host_lang.is_swift() or ty.is_copy or ty.access is Access.OWNED:
                return name
            return f"{name}Ref" if ty.access is Access.REF else f"{name}RefMut"
        if isinstance(ty, (SharedStructType, SharedEnumType)):
            return ty.decl.name
        if isinstance(ty, OptionType):
            return f"Optional<{self.swift_type(ty.inner)}>"
        if isinstance(ty, ResultType):
            return self.swift_type(ty.ok)
        if isinstance(ty, SliceType):
            return f"UnsafeBufferPointer<{self.swift_type(ty.inner)}>"
        if isinstance(ty, VecType):
            return f"RustVec<{self.swift_type(ty.inner)}>"
        if isinstance(ty, BoxedFnType):
            params = ", ".join(self.swift_type(p) for p in ty.params)
            return f"({params}) -> {self.swift_type(ty.ret)}"
        raise TypeError(f"unhandled bridged type {ty!r}")

    def into_ffi(self, ty: BridgedType, expr: str) -> str:
        """Swift value -> C ABI value"""
        if isinstance(ty, (Null, Primitive)):
            return expr
        if isinstance(ty, StringType):
            if ty.borrowed:
                return expr
            return _give_up_ownership(expr)
        if isinstance(ty, OpaqueHandle):
            if ty.decl.host_lang.is_swift():
                if ty.access is Access.OWNED:
                    return f"Unmanaged.passRetained({expr}).toOpaque()"
                return f"Unmanaged.passUnretained({expr}).toOpaque()"
            if ty.is_copy:
                return f"{expr}.bytes"
            if ty.access is Access.OWNED:
                return _give_up_ownership(expr)
            return f"{expr}.ptr"
        if isinstance(ty, (SharedStructType, SharedEnumType)):
            return f"{expr}.intoFfiRepr()"
        if isinstance(ty, OptionType):
            inner = ty.inner
            if isinstance(inner, StringType) and inner.borrowed:
                return f"{expr} ?? RustStr(start: nil, len: 0)"
            if inner.is_pointer_like():
                return (f"{{ () -> {RAW_PTR}? in if let some = {expr} {{ "
                        f"return {self.into_ffi(inner, 'some')} }} else {{ return nil }} }}()")
            return f"{swift_ffi_type(ty)}.fromSwiftRepr({expr})"
        if isinstance(ty, SliceType):
            return f"{expr}.toFfiSlice()"
        if isinstance(ty, VecType):
            return _give_up_ownership(expr)
        raise TypeError(f"{ty.rust_name()} cannot be passed from Swift to Rust")

    def from_ffi(self, ty: BridgedType, expr: str) -> str:
        """C ABI value -> Swift value"""
        if isinstance(ty, (Null, Primitive)):
            return expr
        if isinstance(ty, StringType):
            return expr if ty.borrowed else f"RustString(ptr: {expr})"
        if isinstance(ty, OpaqueHandle):
            if ty.decl.host_lang.is_swift():
                unmanaged = f"Unmanaged<{ty.decl.name}>.fromOpaque({expr})"
                if ty.access is Access.OWNED:
                    return f"{unmanaged}.takeRetainedValue()"
                return f"{unmanaged}.takeUnretainedValue()"
            if ty.is_copy:
                return f"{_class_name(ty.decl)}(bytes: {expr})"
            return f"{self.swift_type(ty)}(ptr: {expr})"
        if isinstance(ty, (SharedStructType, SharedEnumType)):
            return f"{expr}.intoSwiftRepr()"
        if isinstance(ty, OptionType):
            inner = ty.inner
            swift_ty = self.swift_type(ty)
            if isinstance(inner, StringType) and inner.borrowed:
                return (f"{{ () -> {swift_ty} in let maybe = {expr}; "
                        f"if maybe.start != nil {{ return maybe }} else {{ return nil }} }}()")
            if inner.is_pointer_like():
                return (f"{{ () -> {swift_ty} in let maybe = {expr}; if maybe != nil {{ "
                        f"return {self.from_ffi(inner, 'maybe!')} }} else {{ return nil }} }}()")
            return f"{expr}.intoSwiftRepr()"
        if isinstance(ty, SliceType):
            element = self.swift_type(ty.inner)
            return (f"{{ () -> UnsafeBufferPointer<{element}> in let slice = {expr}; "
                    f"return UnsafeBufferPointer(start: slice.start?.assumingMemoryBound(to: {element}.self), "
                    f"count: Int(slice.len)) }}()")
        if isinstance(ty, VecType):
            return f"{self.swift_type(ty)}(ptr: {expr})"
        raise TypeError(f"{ty.rust_name()} cannot be received by Swift as a plain value")

    # ── opaque Rust types ───────────────────────────────────────────

    def _opaque_code(self, ty: OpaqueType) -> list[str]:
        if ty.is_copy:
            return self._copy_code(ty)

        name = _class_name(ty)
        declared = ty.key in self._declared_here
        methods = self.analysis.methods_of(ty)
        owned = [f for f in methods if f.receiver in (Receiver.NONE, Receiver.OWNED)]
        ref_mut = [f for f in methods if f.receiver is Receiver.REF_MUT]
        ref = [f for f in methods if f.receiver is Receiver.REF]

        lines = []
        if declared:
            lines.extend([
                f"{ACCESS} class {name}: {name}RefMut {{",
                "    var isOwned: Bool = true",
                "",
                f"    {ACCESS} override init(ptr: {RAW_PTR}) {{",
                "        super.init(ptr: ptr)",
                "    }",
                "",
                "    deinit {",
                "        if isOwned {",
                f"            {P}${ty.ident}$_free(ptr)",
                "        }",
                "    }",
                "}",
            ])
        lines.extend(self._extension(name, owned))
        if declared:
            lines.extend([
                f"{ACCESS} class {name}RefMut: {name}Ref {{",
                f"    {ACCESS} override init(ptr: {RAW_PTR}) {{",
                "        super.init(ptr: ptr)",
                "    }",
                "}",
            ])
        lines.extend(self._extension(f"{name}RefMut", ref_mut))
        if declared:
            lines.extend([
                f"{ACCESS} class {name}Ref {{",
                f"    var ptr: {RAW_PTR}",
                "",
                f"    {ACCESS} init(ptr: {RAW_PTR}) {{",
                "        self.ptr = ptr",
                "    }",
                "}",
            ])
        lines.extend(self._extension(f"{name}Ref", ref))

        if declared:
            if not ty.is_generic:
                lines.extend(self._vectorizable_opaque(ty))
            if ty.equatable:
                lines.extend([
                    f"extension {name}Ref: Equatable {{",
                    f"    {ACCESS} static func == (lhs: {name}Ref, rhs: {name}Ref) -> Bool {{",
                    f"        {P}${ty.ident}$_partial_eq(lhs.ptr, rhs.ptr)",
                    "    }",
                    "}",
                ])
            if ty.hashable:
                lines.extend([
                    f"extension {name}Ref: Hashable {{",
                    f"    {ACCESS} func hash(into hasher: inout Hasher) {{",
                    f"        hasher.combine({P}${ty.ident}$_hash(self.ptr))",
                    "    }",
                    "}",
                ])
        return lines

    def _copy_code(self, ty: OpaqueType) -> list[str]:
        """Copy types are Swift structs holding the raw bytes"""
        name = _class_name(ty)
        copy_repr = f"{P}$Copy${ty.ident}"
        option_repr = f"{P}$Option$Copy${ty.ident}"
        lines = []
        if ty.key in self._declared_here:
            lines.extend([
                f"{ACCESS} struct {name} {{",
                f"    fileprivate var bytes: {copy_repr}",
                "",
                f"    init(bytes: {copy_repr}) {{",
                "        self.bytes = bytes",
                "    }",
                "}",
                f"extension {option_repr} {{",
                "    @inline(__always)",
                f"    func intoSwiftRepr() -> Optional<{name}> {{",
                "        if self.is_some {",
                f"            return {name}(bytes: self.val)",
                "        } else {",
                "            return nil",
                "        }",
                "    }",
                "",
                "    @inline(__always)",
                f"    static func fromSwiftRepr(_ val: Optional<{name}>) -> {option_repr} {{",
                "        if let v = val {",
                f"            return {option_repr}(is_some: true, val: v.bytes)",
                "        } else {",
                f"            return {option_repr}(is_some: false, val: {copy_repr}())",
                "        }",
                "    }",
                "}",
            ])
            if ty.equatable:
                lines.extend([
                    f"extension {name}: Equatable {{",
                    f"    {ACCESS} static func == (lhs: {name}, rhs: {name}) -> Bool {{",
                    f"        {P}${ty.ident}$_partial_eq(lhs.bytes, rhs.bytes)",
                    "    }",
                    "}",
                ])
            if ty.hashable:
                lines.extend([
                    f"extension {name}: Hashable {{",
                    f"    {ACCESS} func hash(into hasher: inout Hasher) {{",
                    f"        hasher.combine({P}${ty.ident}$_hash(self.bytes))",
                    "    }",
                    "}",
                ])
        lines.extend(self._extension(name, self.analysis.methods_of(ty)))
        return lines

    def _extension(self, class_name: str, methods: list[ResolvedFunction]) -> list[str]:
        if not methods:
            return []
        body = []
        for func in methods:
            body.extend(self._rust_fn(func))
            body.append("")
        body.pop()
        return [f"extension {class_name} {{"] + _indent(body) + ["}"]

    def _vectorizable_opaque(self, ty: OpaqueType) -> list[str]:
        name = _class_name(ty)
        vec = f"{P}$Vec_{ty.ident}"
        return [
            f"extension {name}: Vectorizable {{",
            f"    {ACCESS} static func vecOfSelfNew() -> {RAW_PTR} {{",
            f"        {vec}$new()",
            "    }",
            "",
            f"    {ACCESS} static func vecOfSelfFree(vecPtr: {RAW_PTR}) {{",
            f"        {vec}$drop(vecPtr)",
            "    }",
            "",
            f"    {ACCESS} static func vecOfSelfPush(vecPtr: {RAW_PTR}, value: {name}) {{",
            f"        {vec}$push(vecPtr, {{value.isOwned = false; return value.ptr;}}())",
            "    }",
            "",
            f"    {ACCESS} static func vecOfSelfPop(vecPtr: {RAW_PTR}) -> Optional<Self> {{",
            f"        let pointer = {vec}$pop(vecPtr)",
            "        if pointer == nil {",
            "            return nil",
            "        } else {",
            f"            return ({name}(ptr: pointer!) as! Self)",
            "        }",
            "    }",
            "",
            f"    {ACCESS} static func vecOfSelfGet(vecPtr: {RAW_PTR}, index: UInt) -> Optional<{name}Ref> {{",
            f"        let pointer = {vec}$get(vecPtr, index)",
            "        if pointer == nil {",
            "            return nil",
            "        } else {",
            f"            return {name}Ref(ptr: pointer!)",
            "        }",
            "    }",
            "",
            f"    {ACCESS} static func vecOfSelfGetMut(vecPtr: {RAW_PTR}, index: UInt) -> Optional<{name}RefMut> {{",
            f"        let pointer = {vec}$get_mut(vecPtr, index)",
            "        if pointer == nil {",
            "            return nil",
            "        } else {",
            f"            return {name}RefMut(ptr: pointer!)",
            "        }",
            "    }",
            "",
            f"    {ACCESS} static func vecOfSelfAsPtr(vecPtr: {RAW_PTR}) -> UnsafePointer<{name}Ref> {{",
            f"        UnsafePointer<{name}Ref>(OpaquePointer({vec}$as_ptr(vecPtr)))",
            "    }",
            "",
            f"    {ACCESS} static func vecOfSelfLen(vecPtr: {RAW_PTR}) -> UInt {{",
            f"        {vec}$len(vecPtr)",
            "    }",
            "}",
        ]

    # ── shared structs and enums ────────────────────────────────────

    def _struct_code(self, struct: ResolvedStruct) -> list[str]:
        name = struct.decl.name
        ffi_name = f"{P}${name}"
        members = [f"{ACCESS} var {f.ffi_name}: {self.swift_type(f.ty)}" for f in struct.fields]
        init_params = ", ".join(f"{f.ffi_name}: {self.swift_type(f.ty)}" for f in struct.fields)
        if struct.fields:
            to_ffi_args = ", ".join(
                f"{f.ffi_name}: {self.into_ffi(f.ty, f'val.{f.ffi_name}')}" for f in struct.fields)
            to_swift_args = ", ".join(
                f"{f.ffi_name}: {self.from_ffi(f.ty, f'val.{f.ffi_name}')}" for f in struct.fields)
        else:
            to_ffi_args = "_private: 123"
            to_swift_args = ""

        lines = [f"{ACCESS} struct {name} {{"]
        lines.extend(_indent(members))
        if members:
            lines.append("")
        lines.append(f"    {ACCESS} init({init_params}) {{")
        lines.extend(f"        self.{f.ffi_name} = {f.ffi_name}" for f in struct.fields)
        lines.extend([
            "    }",
            "",
            "    @inline(__always)",
            f"    func intoFfiRepr() -> {ffi_name} {{",
            f"        {{ let val = self; return {ffi_name}({to_ffi_args}); }}()",
            "    }",
            "}",
            f"extension {ffi_name} {{",
            "    @inline(__always)",
            f"    func intoSwiftRepr() -> {name} {{",
            f"        {{ let val = self; return {name}({to_swift_args}); }}()",
            "    }",
            "}",
        ])
        lines.extend(self._option_extension(name))
        return lines

    def _option_extension(self, name: str) -> list[str]:
        ffi_name = f"{P}${name}"
        option_name = f"{P}$Option${name}"
        return [
            f"extension {option_name} {{",
            "    @inline(__always)",
            f"    func intoSwiftRepr() -> Optional<{name}> {{",
            "        if self.is_some {",
            "            return self.val.intoSwiftRepr()",
            "        } else {",
            "            return nil",
            "        }",
            "    }",
            "",
            "    @inline(__always)",
            f"    static func fromSwiftRepr(_ val: Optional<{name}>) -> {option_name} {{",
            "        if let v = val {",
            f"            return {option_name}(is_some: true, val: v.intoFfiRepr())",
            "        } else {",
            f"            return {option_name}(is_some: false, val: {ffi_name}())",
            "        }",
            "    }",
            "}",
        ]

    def _enum_code(self, enum: ResolvedEnum) -> list[str]:
        name = enum.decl.name
        ffi_name = f"{P}${name}"
        union_name = f"{P}${name}Fields"

        cases = []
        to_ffi = []
        to_swift = []
        for v in enum.variants:
            vname = v.decl.name
            tag = f"{ffi_name}${vname}"
            if not v.fields:
                cases.append(f"case {vname}")
                payload = "" if enum.decl.is_transparent else f", payload: {union_name}()"
                to_ffi.extend([f"case {name}.{vname}:",
                               f"    return {ffi_name}(tag: {tag}{payload})"])
                to_swift.extend([f"case {tag}:", f"    return {name}.{vname}"])
                continue

            fields_name = f"{ffi_name}$FieldOf{vname}"
            labelled = not v.decl.is_tuple
            if labelled:
                cases.append(f"case {vname}({', '.join(f'{f.ffi_name}: {self.swift_type(f.ty)}' for f in v.fields)})")
            else:
                cases.append(f"case {vname}({', '.join(self.swift_type(f.ty) for f in v.fields)})")
            binds = ", ".join(f"let {f.ffi_name}" for f in v.fields)
            packed = ", ".join(f"{f.ffi_name}: {self.into_ffi(f.ty, f.ffi_name)}" for f in v.fields)
            to_ffi.extend([
                f"case {name}.{vname}({binds}):",
                f"    return {ffi_name}(tag: {tag}, payload: {union_name}({vname}: {fields_name}({packed})))",
            ])
            unpacked = ", ".join(
                (f"{f.ffi_name}: " if labelled else "")
                + self.from_ffi(f.ty, f"self.payload.{vname}.{f.ffi_name}")
                for f in v.fields)
            to_swift.extend([f"case {tag}:", f"    return {name}.{vname}({unpacked})"])

        lines = [f"{ACCESS} enum {name} {{"]
        lines.extend(_indent(cases))
        lines.extend([
            "}",
            f"extension {name} {{",
            "    @inline(__always)",
            f"    func intoFfiRepr() -> {ffi_name} {{",
            "        switch self {",
        ])
        lines.extend(_indent(to_ffi, 3))
        lines.extend([
            "        }",
            "    }",
            "}",
            f"extension {ffi_name} {{",
            "    @inline(__always)",
            f"    func intoSwiftRepr() -> {name} {{",
            "        switch self.tag {",
        ])
        lines.extend(_indent(to_swift, 3))
        lines.extend([
            "            default:",
            "                fatalError(\"Unreachable\")",
            "        }",
            "    }",
            "}",
        ])
        lines.extend(self._option_extension(name))
        if enum.decl.is_transparent:
            lines.extend(vectorizable_by_value(name, f"{P}$Vec_{name}", "value.intoFfiRepr()"))
        return lines

    # ── Rust implemented functions ──────────────────────────────────

    def _self_arg(self, func: ResolvedFunction) -> Optional[str]:
        ty = func.self_type
        if ty is None:
            return None
        if ty.is_copy:
            return "self.bytes"
        if ty.access is Access.OWNED:
            return "{isOwned = false; return ptr;}()"
        return "ptr"

    def _call_args(self, func: ResolvedFunction) -> list[str]:
        args = []
        self_arg = self._self_arg(func)
        if self_arg is not None:
            args.append(self_arg)
        args.extend(self.into_ffi(p.ty, p.name) for p in func.params)
        return args

    def _rust_fn(self, func: ResolvedFunction) -> list[str]:
        """Swift function forwarding to a Rust export"""
        if func.is_async:
            return self._rust_async_fn(func)

        params = ", ".join(f"_ {p.name}: {self.swift_type(p.ty)}" for p in func.params)
        call = f"{func.link_name}({', '.join(self._call_args(func))})"
        owner = func.owner

        if func.func.is_init and owner is not None:
            if owner.is_copy:
                return [f"{ACCESS} init({params}) {{",
                        f"    self.bytes = {call}",
                        "}"]
            return [f"{ACCESS} convenience init({params}) {{",
                    f"    self.init(ptr: {call})",
                    "}"]

        static = "static " if owner is not None and func.self_type is None else ""
        if isinstance(func.ret, ResultType):
            if isinstance(func.ret.err, OpaqueHandle) and func.ret.err.decl.host_lang.is_rust():
                self._note_error_type(self.swift_type(func.ret.err))
            signature = f"{ACCESS} {static}func {func.name}({params}) throws"
            if not func.ret.ok.is_null():
                signature += f" -> {self.swift_type(func.ret)}"
            body = self._unwrap_result(func.ret, call)
        else:
            signature = f"{ACCESS} {static}func {func.name}({params})"
            if not func.ret.is_null():
                signature += f" -> {self.swift_type(func.ret)}"
            body = self.from_ffi(func.ret, call)
        return [f"{signature} {{", f"    {body}", "}"]

    def _unwrap_result(self, ty: ResultType, call: str) -> str:
        ok = "return" if ty.ok.is_null() else f"return {self.from_ffi(ty.ok, 'val.ok_or_err!')}"
        err = self.from_ffi(ty.err, "val.ok_or_err!")
        return (f"try {{ () throws -> {self.swift_type(ty)} in let val = {call}; "
                f"if val.is_ok {{ {ok} }} else {{ throw {err} }} }}()")

    def _note_error_type(self, name: str) -> None:
        """`throw` needs an `Error` conformance, declared once per build"""
        key = f"{name}: Error"
        if self.registry.should_emit(key):
            self.registry.mark_emitted(key)
            self._error_types.append(name)

    def _rust_async_fn(self, func: ResolvedFunction) -> list[str]:
        """`async` wrapper; the callback wrapper is retained until Rust calls back"""
        wrapper = "CbWrapper$" + (f"{func.owner.ident}$" if func.owner is not None else "") + func.name
        ret_swift = self.swift_type(func.ret)
        params = ", ".join(f"_ {p.name}: {self.swift_type(p.ty)}" for p in func.params)
        static = "static " if func.owner is not None and func.self_type is None else ""
        signature = f"{ACCESS} {static}func {func.name}({params}) async"
        if not func.ret.is_null():
            signature += f" -> {ret_swift}"

        if func.ret.is_null():
            on_complete = "func onComplete(cbWrapperPtr: UnsafeMutableRawPointer?) {"
            deliver = "wrapper.cb(.success(()))"
        else:
            ret_ffi = swift_ffi_type(func.ret)
            if ret_ffi == RAW_PTR:
                ret_ffi, value = f"{RAW_PTR}?", "rustFnRetVal!"
            else:
                value = "rustFnRetVal"
            on_complete = f"func onComplete(cbWrapperPtr: UnsafeMutableRawPointer?, rustFnRetVal: {ret_ffi}) {{"
            deliver = f"wrapper.cb(.success({self.from_ffi(func.ret, value)}))"

        args = ", ".join(["wrapperPtr", "onComplete"] + self._call_args(func))
        lines = [
            f"{signature} {{",
            f"    {on_complete}",
            f"        let wrapper = Unmanaged<{wrapper}>.fromOpaque(cbWrapperPtr!).takeRetainedValue()",
            f"        {deliver}",
            "    }",
            "",
            f"    return await withCheckedContinuation({{ (continuation: CheckedContinuation<{ret_swift}, Never>) in",
            "        let callback = { rustFnRetVal in",
            "            continuation.resume(with: rustFnRetVal)",
            "        }",
            "",
            f"        let wrapper = {wrapper}(cb: callback)",
            "        let wrapperPtr = Unmanaged.passRetained(wrapper).toOpaque()",
            "",
            f"        {func.link_name}({args})",
            "    })",
            "}",
            f"class {wrapper} {{",
            f"    var cb: (Result<{ret_swift}, Never>) -> ()",
            "",
            f"    {ACCESS} init(cb: @escaping (Result<{ret_swift}, Never>) -> ()) {{",
            "        self.cb = cb",
            "    }",
            "}",
        ]
        return lines

    # ── Swift implemented functions and types ───────────────────────

    def _swift_opaque_code(self, ty: OpaqueType) -> list[str]:
        lines = []
        if ty.key in self._declared_here:
            lines.extend([
                f'@_cdecl("{P}${ty.ident}$_free")',
                f"func {P}{ty.ident}__free (ptr: {RAW_PTR}) {{",
                f"    let _ = Unmanaged<{ty.name}>.fromOpaque(ptr).takeRetainedValue()",
                "}",
            ])
        for func in self.analysis.methods_of(ty):
            lines.extend(self._cdecl_fn(func))
        return lines

    def _cdecl_fn(self, func: ResolvedFunction) -> list[str]:
        """`@_cdecl` export that Rust calls into"""
        params = []
        callbacks = []
        args = []
        if func.self_type is not None:
            params.append(f"_ this: {RAW_PTR}")
        boxed = dict(func.boxed_fn_params())
        for idx, p in enumerate(func.params):
            params.append(f"_ {p.name}: {swift_ffi_type(p.ty)}")
            if idx in boxed:
                callback, helper = self._fn_once_callback(func, idx, p.ty)
                callbacks.extend(helper)
                args.append(f"{p.name}: {callback}(ptr: {p.name}).call")
            else:
                args.append(f"{p.name}: {self.from_ffi(p.ty, p.name)}")

        owner = func.owner
        if func.self_type is not None:
            this = self.from_ffi(func.self_type, "this")
            call = f"{this}.{func.name}({', '.join(args)})"
        elif owner is not None and func.func.is_init:
            call = f"{owner.name}({', '.join(args)})"
        elif owner is not None:
            call = f"{owner.name}.{func.name}({', '.join(args)})"
        else:
            call = f"{func.name}({', '.join(args)})"

        ret = "" if func.ret.is_null() else f" -> {swift_ffi_type(func.ret)}"
        lines = [
            f'@_cdecl("{func.link_name}")',
            f"func {func.export_ident} ({', '.join(params)}){ret} {{",
            f"    {self.into_ffi(func.ret, call)}",
            "}",
        ]
        return lines + callbacks

    def _fn_once_callback(self, func: ResolvedFunction, idx: int,
                          ty: BoxedFnType) -> tuple[str, list[str]]:
        """Class wrapping a boxed Rust closure; returns its name and definition"""
        if ty.no_args_no_return:
            return "__private__RustFnOnceCallbackNoArgsNoRet", []

        name = f"__private__RustFnOnceCallback${func.link_name.removeprefix(P + '$')}$param{idx}"
        params = ", ".join(f"_ arg{i}: {self.swift_type(a)}" for i, a in enumerate(ty.params))
        args = ", ".join(["ptr"] + [f"arg{i}" for i in range(len(ty.params))])
        ret = "" if ty.ret.is_null() else f" -> {self.swift_type(ty.ret)}"
        return name, [
            f"{ACCESS} class {name} {{",
            f"    var ptr: {RAW_PTR}",
            "    var called = false",
            "",
            f"    init(ptr: {RAW_PTR}) {{",
            "        self.ptr = ptr",
            "    }",
            "",
            "    deinit {",
            "        if !called {",
            f"            {func.link_name}$_free$param{idx}(ptr)",
            "        }",
            "    }",
            "",
            f"    {ACCESS} func call({params}){ret} {{",
            "        if called {",
            "            fatalError(\"Cannot call a Rust FnOnce function twice\")",
            "        }",
            "        called = true",
            f"        return {func.link_name}$param{idx}({args})",
            "    }",
            "}",
        ]


def _give_up_ownership(expr: str) -> str:
    return f"{{ let owned = {expr}; owned.isOwned = false; return owned.ptr }}()"


def vectorizable_by_value(swift_name: str, vec: str, push_value: str) -> list[str]:
    """`Vectorizable` conformance for element types stored by value in the Rust Vec"""
    return [
        f"extension {swift_name}: Vectorizable {{",
        f"    {ACCESS} static func vecOfSelfNew() -> {RAW_PTR} {{",
        f"        {vec}$new()",
        "    }",
        "",
        f"    {ACCESS} static func vecOfSelfFree(vecPtr: {RAW_PTR}) {{",
        f"        {vec}$drop(vecPtr)",
        "    }",
        "",
        f"    {ACCESS} static func vecOfSelfPush(vecPtr: {RAW_PTR}, value: Self) {{",
        f"        {vec}$push(vecPtr, {push_value})",
        "    }",
        "",
        f"    {ACCESS} static func vecOfSelfPop(vecPtr: {RAW_PTR}) -> Optional<Self> {{",
        f"        {vec}$pop(vecPtr).intoSwiftRepr()",
        "    }",
        "",
        f"    {ACCESS} static func vecOfSelfGet(vecPtr: {RAW_PTR}, index: UInt) -> Optional<Self> {{",
        f"        {vec}$get(vecPtr, index).intoSwiftRepr()",
        "    }",
        "",
        f"    {ACCESS} static func vecOfSelfGetMut(vecPtr: {RAW_PTR}, index: UInt) -> Optional<Self> {{",
        f"        {vec}$get_mut(vecPtr, index).intoSwiftRepr()",
        "    }",
        "",
        f"    {ACCESS} static func vecOfSelfAsPtr(vecPtr: {RAW_PTR}) -> UnsafePointer<Self> {{",
        f"        UnsafePointer<Self>(OpaquePointer({vec}$as_ptr(vecPtr)))",
        "    }",
        "",
        f"    {ACCESS} static func vecOfSelfLen(vecPtr: {RAW_PTR}) -> UInt {{",
        f"        {vec}$len(vecPtr)",
        "    }",
        "}",
    ]
