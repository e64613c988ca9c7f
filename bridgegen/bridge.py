"""Bridge pipeline: runs the three backends over modules compiled together"""

import difflib
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .analysis import analyze
from .c_header_generator import NOTICE, CHeaderGenerator
from .config import CodegenConfig
from .core_generator import CoreGenerator
from .registry import DeclarationRegistry
from .rust_glue_generator import RustGlueGenerator
from .swift_generator import SwiftGenerator
from .types import Module

logger = logging.getLogger(__name__)


@dataclass
class BridgeArtifacts:
    """Generated outputs of one module; empty strings when not compiled"""
    module: str
    c_header: str
    rust_glue: str
    swift: str


@dataclass
class Registries:
    """One declare-once registry per artifact kind"""
    c_header: DeclarationRegistry
    rust_glue: DeclarationRegistry
    swift: DeclarationRegistry

    @classmethod
    def fresh(cls) -> "Registries":
        return cls(DeclarationRegistry(), DeclarationRegistry(), DeclarationRegistry())


def generate_module(module: Module, config: Optional[CodegenConfig] = None,
                    registries: Optional[Registries] = None) -> BridgeArtifacts:
    config = config or CodegenConfig.no_features_enabled()
    registries = registries or Registries.fresh()
    if not module.will_be_compiled(config):
        logger.info("module %s is disabled by feature `%s`", module.name, module.cfg_feature)
        return BridgeArtifacts(module.name, "", "", "")

    analysis = analyze(module)
    return BridgeArtifacts(
        module=module.name,
        c_header=CHeaderGenerator(analysis, config, registries.c_header).generate_body(),
        rust_glue=RustGlueGenerator(analysis, config, registries.rust_glue).generate(),
        swift=SwiftGenerator(analysis, config, registries.swift).generate(),
    )


def generate_bridges(modules: list[Module],
                     config: Optional[CodegenConfig] = None) -> list[BridgeArtifacts]:
    """Generate every module in order, declaring shared types once per artifact"""
    registries = Registries.fresh()
    return [generate_module(m, config, registries) for m in modules]


def write_if_changed(path: Path, content: str, check: bool, dry_run: bool) -> int:
    """Write `content` unless identical; in check mode print a diff and return 1"""
    existing = path.read_text(encoding="utf-8") if path.exists() else ""
    if existing == content:
        logger.debug("unchanged: %s", path)
        return 0
    if check:
        diff = difflib.unified_diff(
            existing.splitlines(),
            content.splitlines(),
            fromfile=f"a/{path}",
            tofile=f"b/{path}",
            lineterm="",
        )
        print("\n".join(diff))
        return 1
    if not dry_run:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    logger.debug("wrote: %s", path)
    return 0


def bridge_files(crate_name: str, modules: list[Module],
                 config: Optional[CodegenConfig] = None) -> dict[str, str]:
    """Relative path -> content for everything in a bridge directory"""
    artifacts = generate_bridges(modules, config)
    core = CoreGenerator()
    files = {
        "SwiftBridgeCore.h": core.generate_header(),
        "SwiftBridgeCore.swift": core.generate_swift(),
    }

    header = [NOTICE] + [a.c_header for a in artifacts if a.c_header]
    files[f"{crate_name}/{crate_name}.h"] = "\n".join(header) + ("\n" if len(header) == 1 else "")
    files[f"{crate_name}/{crate_name}.swift"] = "\n".join(a.swift for a in artifacts if a.swift)

    for a in artifacts:
        if a.rust_glue:
            files[f"{crate_name}/{a.module}.rs"] = a.rust_glue
    return files


def write_bridge_dir(bridge_dir: Path, crate_name: str, modules: list[Module],
                     config: Optional[CodegenConfig] = None, check: bool = False,
                     dry_run: bool = False) -> tuple[list[Path], int]:
    """Write the bridge directory; returns the paths and the number of stale files"""
    bridge_dir = Path(bridge_dir)
    paths = []
    stale = 0
    for rel, content in bridge_files(crate_name, modules, config).items():
        path = bridge_dir / rel
        stale += write_if_changed(path, content, check, dry_run)
        paths.append(path)
    return paths, stale
