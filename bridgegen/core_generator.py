"""Core Generator - generates the runtime support files shared by every bridge module"""

from .bridged_type import SWIFT_BRIDGE_PREFIX as P
from .c_header_generator import NOTICE, vec_by_value_c_support, vec_opaque_rust_type_c_support
from .swift_generator import ACCESS, RAW_PTR, vectorizable_by_value
from .type_mapper import TypeMapper


class CoreGenerator:
    """Generates SwiftBridgeCore.h and SwiftBridgeCore.swift"""

    def generate_header(self) -> str:
        """Generate SwiftBridgeCore.h with the runtime ABI shapes"""
        lines = [
            NOTICE,
            "#include <stdbool.h>",
            "#include <stdint.h>",
            "typedef struct RustStr { uint8_t* start; uintptr_t len; } RustStr;",
            "typedef struct __private__FfiSlice { void* start; uintptr_t len; } __private__FfiSlice;",
            "typedef struct __private__ResultPtrAndPtr { bool is_ok; void* ok_or_err; } __private__ResultPtrAndPtr;",
        ]
        for info in TypeMapper.PRIMITIVES.values():
            name = f"__private__Option{info.option_suffix}"
            lines.append(f"typedef struct {name} {{ {info.c_type} val; bool is_some; }} {name};")

        lines.extend([
            "",
            f"void* {P}$RustString$new(void);",
            f"void* {P}$RustString$new_with_str(struct RustStr str);",
            f"uintptr_t {P}$RustString$len(void* self);",
            f"struct RustStr {P}$RustString$as_str(void* self);",
            f"struct RustStr {P}$RustString$trim(void* self);",
            f"void {P}$RustString$_free(void* self);",
            f"bool {P}$RustStr$partial_eq(struct RustStr lhs, struct RustStr rhs);",
        ])
        lines.extend(vec_opaque_rust_type_c_support("RustString"))

        lines.append("")
        for kind, info in TypeMapper.PRIMITIVES.items():
            lines.extend(vec_by_value_c_support(
                f"{P}$Vec_{kind}", info.c_type, f"__private__Option{info.option_suffix}"))

        lines.extend([
            "",
            f"void {P}$call_boxed_fn_once_no_args_no_return(void* boxed_fnonce);",
            f"void {P}$free_boxed_fn_once_no_args_no_return(void* boxed_fnonce);",
        ])
        return "\n".join(lines) + "\n"

    def generate_swift(self) -> str:
        """Generate SwiftBridgeCore.swift with RustVec, RustString and friends"""
        lines = []
        lines.extend(self._rust_vec())
        lines.extend(self._rust_str())
        lines.extend(self._rust_string())
        lines.extend(self._primitives())
        lines.extend(self._fn_once_no_args_no_return())
        return "\n".join(lines) + "\n"

    def _rust_vec(self) -> list[str]:
        return [
            f"{ACCESS} class RustVec<T: Vectorizable> {{",
            f"    var ptr: {RAW_PTR}",
            "    var isOwned: Bool = true",
            "",
            f"    {ACCESS} init(ptr: {RAW_PTR}) {{",
            "        self.ptr = ptr",
            "    }",
            "",
            f"    {ACCESS} init() {{",
            "        ptr = T.vecOfSelfNew()",
            "        isOwned = true",
            "    }",
            "",
            f"    {ACCESS} func push(value: T) {{",
            "        T.vecOfSelfPush(vecPtr: ptr, value: value)",
            "    }",
            "",
            f"    {ACCESS} func pop() -> Optional<T> {{",
            "        T.vecOfSelfPop(vecPtr: ptr)",
            "    }",
            "",
            f"    {ACCESS} func get(index: UInt) -> Optional<T.SelfRef> {{",
            "        T.vecOfSelfGet(vecPtr: ptr, index: index)",
            "    }",
            "",
            f"    {ACCESS} func as_ptr() -> UnsafePointer<T.SelfRef> {{",
            "        UnsafePointer<T.SelfRef>(OpaquePointer(T.vecOfSelfAsPtr(vecPtr: ptr)))",
            "    }",
            "",
            "    /// Rust returns a UInt; Swift collection APIs expect Int.",
            f"    {ACCESS} func len() -> Int {{",
            "        Int(T.vecOfSelfLen(vecPtr: ptr))",
            "    }",
            "",
            "    deinit {",
            "        if isOwned {",
            "            T.vecOfSelfFree(vecPtr: ptr)",
            "        }",
            "    }",
            "}",
            "extension RustVec: Sequence {",
            f"    {ACCESS} func makeIterator() -> RustVecIterator<T> {{",
            "        return RustVecIterator(self)",
            "    }",
            "}",
            f"{ACCESS} struct RustVecIterator<T: Vectorizable>: IteratorProtocol {{",
            "    var rustVec: RustVec<T>",
            "    var index: UInt = 0",
            "",
            "    init(_ rustVec: RustVec<T>) {",
            "        self.rustVec = rustVec",
            "    }",
            "",
            f"    {ACCESS} mutating func next() -> T.SelfRef? {{",
            "        let val = rustVec.get(index: index)",
            "        index += 1",
            "        return val",
            "    }",
            "}",
            "extension RustVec: Collection {",
            f"    {ACCESS} typealias Index = Int",
            "",
            f"    {ACCESS} func index(after i: Int) -> Int {{",
            "        i + 1",
            "    }",
            "",
            f"    {ACCESS} subscript(position: Int) -> T.SelfRef {{",
            "        self.get(index: UInt(position))!",
            "    }",
            "",
            f"    {ACCESS} var startIndex: Int {{",
            "        0",
            "    }",
            "",
            f"    {ACCESS} var endIndex: Int {{",
            "        self.len()",
            "    }",
            "}",
            "extension RustVec: RandomAccessCollection {}",
            "extension RustVec: Error {}",
            "extension UnsafeBufferPointer {",
            "    func toFfiSlice() -> __private__FfiSlice {",
            "        __private__FfiSlice(start: UnsafeMutablePointer(mutating: self.baseAddress), len: UInt(self.count))",
            "    }",
            "}",
            f"{ACCESS} protocol Vectorizable {{",
            "    associatedtype SelfRef",
            "    associatedtype SelfRefMut",
            "",
            f"    static func vecOfSelfNew() -> {RAW_PTR}",
            f"    static func vecOfSelfFree(vecPtr: {RAW_PTR})",
            f"    static func vecOfSelfPush(vecPtr: {RAW_PTR}, value: Self)",
            f"    static func vecOfSelfPop(vecPtr: {RAW_PTR}) -> Optional<Self>",
            f"    static func vecOfSelfGet(vecPtr: {RAW_PTR}, index: UInt) -> Optional<SelfRef>",
            f"    static func vecOfSelfGetMut(vecPtr: {RAW_PTR}, index: UInt) -> Optional<SelfRefMut>",
            f"    static func vecOfSelfAsPtr(vecPtr: {RAW_PTR}) -> UnsafePointer<SelfRef>",
            f"    static func vecOfSelfLen(vecPtr: {RAW_PTR}) -> UInt",
            "}",
        ]

    def _rust_str(self) -> list[str]:
        return [
            "extension RustStr {",
            f"    {ACCESS} func toBufferPointer() -> UnsafeBufferPointer<UInt8> {{",
            "        UnsafeBufferPointer(start: self.start, count: Int(self.len))",
            "    }",
            "",
            f"    {ACCESS} func toString() -> String {{",
            "        String(bytes: self.toBufferPointer(), encoding: .utf8)!",
            "    }",
            "}",
            "extension RustStr: Equatable {",
            f"    {ACCESS} static func == (lhs: RustStr, rhs: RustStr) -> Bool {{",
            f"        {P}$RustStr$partial_eq(lhs, rhs)",
            "    }",
            "}",
            f"{ACCESS} protocol ToRustStr {{",
            "    func toRustStr<T>(_ withUnsafeRustStr: (RustStr) -> T) -> T",
            "}",
            "extension String: ToRustStr {",
            "    /// The RustStr only borrows the String's UTF-8 buffer for the duration of the closure.",
            f"    {ACCESS} func toRustStr<T>(_ withUnsafeRustStr: (RustStr) -> T) -> T {{",
            "        var mutableSelf = self",
            "        return mutableSelf.withUTF8({ bufferPtr in",
            "            let rustStr = RustStr(start: UnsafeMutablePointer(mutating: bufferPtr.baseAddress), "
            "len: UInt(bufferPtr.count))",
            "            return withUnsafeRustStr(rustStr)",
            "        })",
            "    }",
            "}",
        ]

    def _rust_string(self) -> list[str]:
        lines = [
            f"{ACCESS} class RustString: RustStringRefMut {{",
            "    var isOwned: Bool = true",
            "",
            f"    {ACCESS} override init(ptr: {RAW_PTR}) {{",
            "        super.init(ptr: ptr)",
            "    }",
            "",
            "    deinit {",
            "        if isOwned {",
            f"            {P}$RustString$_free(ptr)",
            "        }",
            "    }",
            "}",
            "extension RustString {",
            f"    {ACCESS} convenience init() {{",
            f"        self.init(ptr: {P}$RustString$new())",
            "    }",
            "",
            f"    {ACCESS} convenience init<GenericToRustStr: ToRustStr>(_ str: GenericToRustStr) {{",
            "        self.init(ptr: str.toRustStr({ strAsRustStr in",
            f"            {P}$RustString$new_with_str(strAsRustStr)",
            "        }))",
            "    }",
            "}",
            f"{ACCESS} class RustStringRefMut: RustStringRef {{",
            f"    {ACCESS} override init(ptr: {RAW_PTR}) {{",
            "        super.init(ptr: ptr)",
            "    }",
            "}",
            f"{ACCESS} class RustStringRef {{",
            f"    var ptr: {RAW_PTR}",
            "",
            f"    {ACCESS} init(ptr: {RAW_PTR}) {{",
            "        self.ptr = ptr",
            "    }",
            "}",
            "extension RustStringRef {",
            f"    {ACCESS} func len() -> UInt {{",
            f"        {P}$RustString$len(ptr)",
            "    }",
            "",
            f"    {ACCESS} func as_str() -> RustStr {{",
            f"        {P}$RustString$as_str(ptr)",
            "    }",
            "",
            f"    {ACCESS} func trim() -> RustStr {{",
            f"        {P}$RustString$trim(ptr)",
            "    }",
            "",
            f"    {ACCESS} func toString() -> String {{",
            "        self.as_str().toString()",
            "    }",
            "}",
            "extension RustString: Error {}",
        ]

        vec = f"{P}$Vec_RustString"
        lines.extend([
            "extension RustString: Vectorizable {",
            f"    {ACCESS} static func vecOfSelfNew() -> {RAW_PTR} {{",
            f"        {vec}$new()",
            "    }",
            "",
            f"    {ACCESS} static func vecOfSelfFree(vecPtr: {RAW_PTR}) {{",
            f"        {vec}$drop(vecPtr)",
            "    }",
            "",
            f"    {ACCESS} static func vecOfSelfPush(vecPtr: {RAW_PTR}, value: RustString) {{",
            f"        {vec}$push(vecPtr, {{value.isOwned = false; return value.ptr;}}())",
            "    }",
            "",
            f"    {ACCESS} static func vecOfSelfPop(vecPtr: {RAW_PTR}) -> Optional<Self> {{",
            f"        let pointer = {vec}$pop(vecPtr)",
            "        if pointer == nil {",
            "            return nil",
            "        } else {",
            "            return (RustString(ptr: pointer!) as! Self)",
            "        }",
            "    }",
            "",
            f"    {ACCESS} static func vecOfSelfGet(vecPtr: {RAW_PTR}, index: UInt) -> Optional<RustStringRef> {{",
            f"        let pointer = {vec}$get(vecPtr, index)",
            "        if pointer == nil {",
            "            return nil",
            "        } else {",
            "            return RustStringRef(ptr: pointer!)",
            "        }",
            "    }",
            "",
            f"    {ACCESS} static func vecOfSelfGetMut(vecPtr: {RAW_PTR}, index: UInt) -> Optional<RustStringRefMut> {{",
            f"        let pointer = {vec}$get_mut(vecPtr, index)",
            "        if pointer == nil {",
            "            return nil",
            "        } else {",
            "            return RustStringRefMut(ptr: pointer!)",
            "        }",
            "    }",
            "",
            f"    {ACCESS} static func vecOfSelfAsPtr(vecPtr: {RAW_PTR}) -> UnsafePointer<RustStringRef> {{",
            f"        UnsafePointer<RustStringRef>(OpaquePointer({vec}$as_ptr(vecPtr)))",
            "    }",
            "",
            f"    {ACCESS} static func vecOfSelfLen(vecPtr: {RAW_PTR}) -> UInt {{",
            f"        {vec}$len(vecPtr)",
            "    }",
            "}",
        ])
        return lines

    def _primitives(self) -> list[str]:
        """Option conversions and Vectorizable conformance for every primitive"""
        lines = []
        for kind, info in TypeMapper.PRIMITIVES.items():
            option = f"__private__Option{info.option_suffix}"
            swift = info.swift_type
            lines.extend([
                f"extension {option} {{",
                "    @inline(__always)",
                f"    func intoSwiftRepr() -> Optional<{swift}> {{",
                "        if self.is_some {",
                "            return self.val",
                "        } else {",
                "            return nil",
                "        }",
                "    }",
                "",
                "    @inline(__always)",
                f"    static func fromSwiftRepr(_ val: Optional<{swift}>) -> {option} {{",
                "        if let v = val {",
                f"            return {option}(val: v, is_some: true)",
                "        } else {",
                f"            return {option}(val: {swift}(), is_some: false)",
                "        }",
                "    }",
                "}",
            ])
            lines.extend(vectorizable_by_value(swift, f"{P}$Vec_{kind}", "value"))
        return lines

    def _fn_once_no_args_no_return(self) -> list[str]:
        return [
            f"{ACCESS} class __private__RustFnOnceCallbackNoArgsNoRet {{",
            f"    var ptr: {RAW_PTR}",
            "    var called = false",
            "",
            f"    init(ptr: {RAW_PTR}) {{",
            "        self.ptr = ptr",
            "    }",
            "",
            "    deinit {",
            "        if !called {",
            f"            {P}$free_boxed_fn_once_no_args_no_return(ptr)",
            "        }",
            "    }",
            "",
            f"    {ACCESS} func call() {{",
            "        if called {",
            "            fatalError(\"Cannot call a Rust FnOnce function twice\")",
            "        }",
            "        called = true",
            f"        {P}$call_boxed_fn_once_no_args_no_return(ptr)",
            "    }",
            "}",
        ]
