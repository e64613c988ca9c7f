"""
Rust/Swift bridge generator

Reads `#[swift_bridge::bridge]` modules and generates:
  1. A C header describing every symbol that crosses the boundary
  2. Rust glue exporting and importing those symbols
  3. Swift wrappers (class triples, ownership flags, Option/Result/Vec bridging)
"""

from .types import (
    HostLang, Receiver, Param, StructField, OpaqueType, SharedStruct, EnumVariant,
    SharedEnum, Function, TypeDeclarations, Module,
)
from .errors import BridgeError, UnresolvedType, UnsupportedTypeCombination, ParseError
from .config import CodegenConfig
from .type_mapper import TypeMapper
from .bridged_type import resolve
from .registry import DeclarationRegistry
from .analysis import analyze, ModuleAnalysis
from .parser import BridgeParser, parse_declarations
from .c_header_generator import CHeaderGenerator
from .rust_glue_generator import RustGlueGenerator
from .swift_generator import SwiftGenerator
from .core_generator import CoreGenerator
from .bridge import BridgeArtifacts, generate_module, generate_bridges, write_bridge_dir

__all__ = [
    'HostLang', 'Receiver', 'Param', 'StructField', 'OpaqueType', 'SharedStruct',
    'EnumVariant', 'SharedEnum', 'Function', 'TypeDeclarations', 'Module',
    'BridgeError', 'UnresolvedType', 'UnsupportedTypeCombination', 'ParseError',
    'CodegenConfig', 'TypeMapper', 'resolve', 'DeclarationRegistry',
    'analyze', 'ModuleAnalysis', 'BridgeParser', 'parse_declarations',
    'CHeaderGenerator', 'RustGlueGenerator', 'SwiftGenerator', 'CoreGenerator',
    'BridgeArtifacts', 'generate_module', 'generate_bridges', 'write_bridge_dir',
]
