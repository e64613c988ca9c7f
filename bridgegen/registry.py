"""Declare-once bookkeeping for types shared by several modules"""

import logging
from typing import Optional

from .types import TypeDeclaration

logger = logging.getLogger(__name__)


class DeclarationRegistry:
    """Names whose declarations one artifact kind has already emitted.

    A build keeps one registry per artifact (C header, Rust glue, Swift) and
    hands it to every module's backend in module order, so a shared type is
    declared by the first module that mentions it and suppressed afterwards.
    The registry remembers that module so later ones can refer to its items.
    """

    def __init__(self):
        self._emitted: dict[str, Optional[str]] = {}

    def should_emit(self, type_name: str) -> bool:
        return type_name not in self._emitted

    def mark_emitted(self, type_name: str, owner_module: Optional[str] = None) -> None:
        self._emitted.setdefault(type_name, owner_module)

    def owner_of(self, type_name: str) -> Optional[str]:
        """Module that emitted `type_name`, if one was recorded"""
        return self._emitted.get(type_name)

    def claim(self, decl: TypeDeclaration, owner_module: Optional[str] = None) -> bool:
        """True if the caller must emit `decl`; records the emission"""
        if decl.already_declared:
            return False
        if not self.should_emit(decl.key):
            logger.debug("suppressing duplicate declaration of %s", decl.key)
            return False
        self.mark_emitted(decl.key, owner_module)
        return True

    def claim_all(self, decls: list[TypeDeclaration],
                  owner_module: Optional[str] = None) -> set[str]:
        """Claim a module's declarations in order; returns the keys to emit"""
        return {d.key for d in decls if self.claim(d, owner_module)}

    def __contains__(self, type_name: str) -> bool:
        return type_name in self._emitted
