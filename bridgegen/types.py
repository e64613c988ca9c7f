"""Data types for bridge modules"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union


class HostLang(Enum):
    """Side of the boundary that owns the real implementation"""
    RUST = "Rust"
    SWIFT = "Swift"

    def is_rust(self) -> bool:
        return self is HostLang.RUST

    def is_swift(self) -> bool:
        return self is HostLang.SWIFT


class Receiver(Enum):
    """How a method takes `self`"""
    NONE = "none"
    OWNED = "self"
    REF = "&self"
    REF_MUT = "&mut self"


@dataclass
class Param:
    """Function parameter"""
    name: str
    type: str


@dataclass
class StructField:
    """Struct or enum variant field. Positional fields have no name."""
    type: str
    name: Optional[str] = None


@dataclass
class OpaqueType:
    """Handle type whose layout stays hidden on the other side"""
    name: str
    host_lang: HostLang = HostLang.RUST
    already_declared: bool = False
    declare_generic: bool = False
    copy_size: Optional[int] = None
    hashable: bool = False
    equatable: bool = False
    generics: list[str] = field(default_factory=list)
    line: int = 0

    @property
    def is_copy(self) -> bool:
        return self.copy_size is not None

    @property
    def is_generic(self) -> bool:
        return bool(self.generics)

    @property
    def key(self) -> str:
        """Lookup key: `Foo` or `Foo<u32>` for generic instances"""
        if self.generics and not self.declare_generic:
            return f"{self.name}<{', '.join(self.generics)}>"
        return self.name

    @property
    def ident(self) -> str:
        """Name used inside link names: `Foo` or `Foo$u32`"""
        if self.generics and not self.declare_generic:
            return "$".join([self.name] + self.generics)
        return self.name


@dataclass
class SharedStruct:
    """Struct mirrored on both sides and passed by value"""
    name: str
    fields: list[StructField] = field(default_factory=list)
    already_declared: bool = False
    line: int = 0

    @property
    def key(self) -> str:
        return self.name

    @property
    def is_tuple(self) -> bool:
        return any(f.name is None for f in self.fields)


@dataclass
class EnumVariant:
    """Enum variant with optional associated fields"""
    name: str
    fields: list[StructField] = field(default_factory=list)

    @property
    def is_tuple(self) -> bool:
        return any(f.name is None for f in self.fields)


@dataclass
class SharedEnum:
    """Enum mirrored on both sides and passed by value"""
    name: str
    variants: list[EnumVariant] = field(default_factory=list)
    already_declared: bool = False
    line: int = 0

    @property
    def key(self) -> str:
        return self.name

    @property
    def is_transparent(self) -> bool:
        """True when no variant carries data"""
        return not any(v.fields for v in self.variants)


TypeDeclaration = Union[OpaqueType, SharedStruct, SharedEnum]


@dataclass
class Function:
    """Function or method crossing the boundary"""
    name: str
    params: list[Param] = field(default_factory=list)
    return_type: Optional[str] = None
    host_lang: HostLang = HostLang.RUST
    is_async: bool = False
    receiver: Receiver = Receiver.NONE
    owner: Optional[str] = None
    is_init: bool = False
    line: int = 0

    @property
    def is_method(self) -> bool:
        return self.receiver is not Receiver.NONE


class TypeDeclarations:
    """Ordered table of the type declarations visible to a module"""

    def __init__(self, types: Optional[list[TypeDeclaration]] = None):
        self._types: dict[str, TypeDeclaration] = {}
        for ty in types or []:
            self.add(ty)

    def add(self, ty: TypeDeclaration) -> None:
        self._types[ty.key] = ty

    def get(self, key: str) -> Optional[TypeDeclaration]:
        return self._types.get(key)

    def types(self) -> list[TypeDeclaration]:
        return list(self._types.values())

    def __contains__(self, key: str) -> bool:
        return key in self._types

    def __len__(self) -> int:
        return len(self._types)


@dataclass
class Module:
    """One bridge module: the unit of compilation"""
    name: str = "ffi"
    types: list[TypeDeclaration] = field(default_factory=list)
    functions: list[Function] = field(default_factory=list)
    cfg_feature: Optional[str] = None

    def declarations(self) -> TypeDeclarations:
        return TypeDeclarations(self.types)

    def will_be_compiled(self, config) -> bool:
        """Whether the module is compiled for the given CodegenConfig"""
        if self.cfg_feature is None:
            return True
        return config.is_feature_enabled(self.cfg_feature)
