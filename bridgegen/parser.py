"""Bridge module parser.

Reads the `mod ffi { ... }` blocks of a Rust source file:

    #[swift_bridge::bridge]
    mod ffi {
        struct Point { x: f64, y: f64 }
        enum Color { Red, Green }

        extern "Rust" {
            #[swift_bridge(Hashable, Equatable)]
            type SomeType;
            #[swift_bridge(init)]
            fn new() -> SomeType;
            fn value(&self) -> u32;
        }
    }
"""

import re
from typing import Optional

from .errors import ParseError
from .type_mapper import TypeMapper
from .types import (
    EnumVariant, Function, HostLang, Module, OpaqueType, Param, Receiver,
    SharedEnum, SharedStruct, StructField, TypeDeclaration,
)

_ATTRIBUTE = re.compile(r'#\[\s*(.*?)\s*\]\s*', re.DOTALL)
_MODULE = re.compile(r'(?:\bpub(?:\([^)]*\))?\s+)?\bmod\s+(\w+)\s*\{')
_STRUCT = re.compile(r'(?:pub\s+)?struct\s+(\w+)\s*')
_ENUM = re.compile(r'(?:pub\s+)?enum\s+(\w+)\s*\{')
_EXTERN = re.compile(r'extern\s+"(Rust|Swift)"\s*\{')
_TYPE = re.compile(r'type\s+(\w+)\s*(?:<(.+)>)?$', re.DOTALL)
_FN = re.compile(r'(?:pub\s+)?(async\s+)?fn\s+(\w+)\s*\(')
_CFG_FEATURE = re.compile(r'cfg\s*\(\s*feature\s*=\s*"([^"]+)"\s*\)')


class BridgeParser:
    """Parses bridge modules out of Rust source text"""

    def __init__(self, content: str):
        self.content = self._strip_comments(content)

    def _strip_comments(self, content: str) -> str:
        # Block comments keep their newlines so line numbers stay valid
        content = re.sub(r'/\*.*?\*/', lambda m: '\n' * m.group().count('\n'), content, flags=re.DOTALL)
        return re.sub(r'//.*$', '', content, flags=re.MULTILINE)

    def _line_of(self, pos: int) -> int:
        return self.content.count('\n', 0, pos) + 1

    def _closing(self, open_pos: int) -> int:
        """Index of the bracket matching the one at `open_pos`"""
        pairs = {'{': '}', '(': ')', '[': ']'}
        opener = self.content[open_pos]
        closer = pairs[opener]
        depth = 0
        for i in range(open_pos, len(self.content)):
            ch = self.content[i]
            if ch == opener:
                depth += 1
            elif ch == closer:
                depth -= 1
                if depth == 0:
                    return i
        raise ParseError(f"unbalanced `{opener}`", self._line_of(open_pos))

    def parse(self) -> list[Module]:
        modules = []
        pos = 0
        while m := _MODULE.search(self.content, pos):
            attrs = self._attributes_before(m.start())
            open_pos = m.end() - 1
            close_pos = self._closing(open_pos)
            if not any(re.match(r'(?:swift_bridge::)?bridge\b', a) for a in attrs):
                pos = close_pos + 1
                continue
            cfg_feature = None
            for attr in attrs:
                if f := _CFG_FEATURE.search(attr):
                    cfg_feature = f.group(1)
            module = Module(name=m.group(1), cfg_feature=cfg_feature)
            self._parse_module_body(open_pos + 1, close_pos, module)
            modules.append(module)
            pos = close_pos + 1
        return modules

    def _attributes_before(self, pos: int) -> list[str]:
        """Outer attributes written directly before the item at `pos`"""
        attrs = []
        text = self.content[:pos].rstrip()
        while text.endswith(']'):
            start = text.rfind('#[')
            if start < 0:
                break
            attrs.insert(0, text[start + 2:-1].strip())
            text = text[:start].rstrip()
        return attrs

    def _parse_module_body(self, start: int, end: int, module: Module):
        pos = start
        while True:
            pos = self._skip_space(pos, end)
            if pos >= end:
                return
            attrs = []
            while m := _ATTRIBUTE.match(self.content, pos, end):
                attrs.append(m.group(1))
                pos = m.end()
            line = self._line_of(pos)

            if m := _EXTERN.match(self.content, pos, end):
                host_lang = HostLang(m.group(1))
                close = self._closing(m.end() - 1)
                self._parse_extern_block(m.end(), close, host_lang, module)
                pos = close + 1
            elif m := _ENUM.match(self.content, pos, end):
                close = self._closing(m.end() - 1)
                enum = SharedEnum(name=m.group(1), line=line,
                                  variants=self._parse_variants(self.content[m.end():close], line))
                self._apply_shared_attributes(enum, attrs)
                module.types.append(enum)
                pos = close + 1
            elif m := _STRUCT.match(self.content, pos, end):
                struct = SharedStruct(name=m.group(1), line=line)
                pos = m.end()
                ch = self.content[pos] if pos < end else ''
                if ch in '{(':
                    close = self._closing(pos)
                    body = self.content[pos + 1:close]
                    struct.fields = (self._parse_named_fields(body, line) if ch == '{'
                                     else self._parse_tuple_fields(body))
                    pos = close + 1
                pos = self._skip_space(pos, end)
                if pos < end and self.content[pos] == ';':
                    pos += 1
                self._apply_shared_attributes(struct, attrs)
                module.types.append(struct)
            else:
                snippet = self.content[pos:end].split('\n', 1)[0].strip()
                raise ParseError(f"unexpected item in bridge module: `{snippet}`", line)

    def _skip_space(self, pos: int, end: int) -> int:
        while pos < end and self.content[pos].isspace():
            pos += 1
        return pos

    # ── shared types ────────────────────────────────────────────────

    def _parse_named_fields(self, body: str, line: int) -> list[StructField]:
        fields = []
        for part in TypeMapper.split_top_level(body):
            m = re.match(r'(?:pub\s+)?(\w+)\s*:\s*(.+)$', part, re.DOTALL)
            if not m:
                raise ParseError(f"malformed field `{part}`", line)
            fields.append(StructField(type=TypeMapper.normalize(m.group(2)), name=m.group(1)))
        return fields

    def _parse_tuple_fields(self, body: str) -> list[StructField]:
        return [StructField(type=TypeMapper.normalize(re.sub(r'^pub\s+', '', part)))
                for part in TypeMapper.split_top_level(body)]

    def _parse_variants(self, body: str, line: int) -> list[EnumVariant]:
        variants = []
        for part in TypeMapper.split_top_level(body):
            part = _ATTRIBUTE.sub('', part).strip()
            m = re.match(r'(\w+)\s*(?:\((.*)\)|\{(.*)\})?$', part, re.DOTALL)
            if not m:
                raise ParseError(f"malformed enum variant `{part}`", line)
            name, tuple_body, named_body = m.groups()
            if tuple_body is not None:
                fields = self._parse_tuple_fields(tuple_body)
            elif named_body is not None:
                fields = self._parse_named_fields(named_body, line)
            else:
                fields = []
            variants.append(EnumVariant(name=name, fields=fields))
        return variants

    def _apply_shared_attributes(self, decl, attrs: list[str]):
        for key, _ in self._bridge_attributes(attrs, decl.line):
            if key == 'already_declared':
                decl.already_declared = True
            elif key != 'swift_repr':
                raise ParseError(f"unknown attribute `{key}` on `{decl.name}`", decl.line)

    # ── extern blocks ───────────────────────────────────────────────

    def _parse_extern_block(self, start: int, end: int, host_lang: HostLang, module: Module):
        block_types: list[OpaqueType] = []
        pending: list[tuple[str, list[str], int]] = []

        pos = start
        for chunk in self.content[start:end].split(';'):
            chunk_start = pos
            pos += len(chunk) + 1
            stripped = chunk.strip()
            if not stripped:
                continue
            line = self._line_of(chunk_start + len(chunk) - len(chunk.lstrip()))

            attrs = []
            body = stripped
            while m := _ATTRIBUTE.match(stripped):
                attrs.append(m.group(1))
                stripped = stripped[m.end():]
            line += body[:len(body) - len(stripped)].count("\n")

            if m := _TYPE.match(stripped):
                ty = self._parse_opaque(m.group(1), m.group(2), attrs, host_lang, line)
                block_types.append(ty)
                module.types.append(ty)
            elif _FN.match(stripped):
                pending.append((stripped, attrs, line))
            else:
                raise ParseError(f"unexpected item in extern block: `{stripped.splitlines()[0]}`", line)

        # Methods may appear before their type in the block
        for text, attrs, line in pending:
            module.functions.append(self._parse_function(text, attrs, host_lang, block_types, line))

    def _parse_opaque(self, name: str, generics: Optional[str], attrs: list[str],
                      host_lang: HostLang, line: int) -> OpaqueType:
        ty = OpaqueType(name=name, host_lang=host_lang, line=line)
        if generics:
            ty.generics = [TypeMapper.normalize(g) for g in TypeMapper.split_top_level(generics)]
        for key, value in self._bridge_attributes(attrs, line):
            if key == 'Copy':
                if value is None or not value.isdigit():
                    raise ParseError(f"`Copy` on `{name}` needs a byte size, e.g. Copy(16)", line)
                ty.copy_size = int(value)
            elif key == 'Hashable':
                ty.hashable = True
            elif key == 'Equatable':
                ty.equatable = True
            elif key == 'already_declared':
                ty.already_declared = True
            elif key == 'declare_generic':
                ty.declare_generic = True
            else:
                raise ParseError(f"unknown attribute `{key}` on type `{name}`", line)
        return ty

    def _parse_function(self, text: str, attrs: list[str], host_lang: HostLang,
                        block_types: list[OpaqueType], line: int) -> Function:
        m = _FN.match(text)
        is_async, name = m.groups()
        close = _closing_paren(text, m.end() - 1)
        if close < 0:
            raise ParseError(f"unbalanced `(` in `{name}`", line)
        params_text = text[m.end():close]
        rest = text[close + 1:].strip()
        if rest and not rest.startswith('->'):
            raise ParseError(f"unexpected `{rest}` after parameters of `{name}`", line)
        ret = rest[2:].strip() if rest else None
        func = Function(name=name, host_lang=host_lang, is_async=bool(is_async), line=line,
                        return_type=TypeMapper.normalize(ret) if ret else None)

        for key, value in self._bridge_attributes(attrs, line):
            if key == 'init':
                func.is_init = True
            elif key == 'associated_to':
                if not value:
                    raise ParseError(f"`associated_to` on `{name}` needs a type", line)
                func.owner = value
            else:
                raise ParseError(f"unknown attribute `{key}` on function `{name}`", line)

        for part in TypeMapper.split_top_level(params_text):
            receiver, self_type = self._parse_receiver(part)
            if receiver is not None:
                if func.params or func.receiver is not Receiver.NONE:
                    raise ParseError(f"`self` must be the first parameter of `{name}`", line)
                func.receiver = receiver
                if self_type:
                    func.owner = self_type
                continue
            pm = re.match(r'(?:mut\s+)?(\w+)\s*:\s*(.+)$', part, re.DOTALL)
            if not pm:
                raise ParseError(f"malformed parameter `{part}` in `{name}`", line)
            func.params.append(Param(name=pm.group(1), type=TypeMapper.normalize(pm.group(2))))

        if func.owner is None and func.is_init and func.return_type:
            func.owner = func.return_type
        if func.owner is None and func.receiver is not Receiver.NONE:
            if len(block_types) != 1:
                raise ParseError(
                    f"cannot tell which type method `{name}` belongs to; "
                    f"use `self: &Type` or `#[swift_bridge(associated_to = Type)]`", line)
            func.owner = block_types[0].key
        return func

    def _parse_receiver(self, part: str) -> tuple[Optional[Receiver], Optional[str]]:
        """`&self` -> (REF, None), `self: &mut Foo` -> (REF_MUT, `Foo`)"""
        text = TypeMapper.normalize(part)
        plain = {'self': Receiver.OWNED, 'mut self': Receiver.OWNED,
                 '&self': Receiver.REF, '&mut self': Receiver.REF_MUT}
        if text in plain:
            return plain[text], None
        if m := re.match(r'^(?:mut )?self\s*:\s*(.+)$', text):
            ty = m.group(1)
            if TypeMapper.is_reference(ty):
                inner, mutable = TypeMapper.strip_reference(ty)
                return (Receiver.REF_MUT if mutable else Receiver.REF), inner
            return Receiver.OWNED, ty
        return None, None

    def _bridge_attributes(self, attrs: list[str], line: int) -> list[tuple[str, Optional[str]]]:
        """`swift_bridge(Copy(4), associated_to = Foo)` -> [(`Copy`, `4`), (`associated_to`, `Foo`)]"""
        result = []
        for attr in attrs:
            m = re.match(r'swift_bridge\s*\((.*)\)$', attr, re.DOTALL)
            if not m:
                continue
            for item in TypeMapper.split_top_level(m.group(1)):
                if im := re.match(r'(\w+)\s*\((.*)\)$', item, re.DOTALL):
                    result.append((im.group(1), im.group(2).strip()))
                elif im := re.match(r'(\w+)\s*=\s*(.+)$', item, re.DOTALL):
                    result.append((im.group(1), TypeMapper.normalize(im.group(2).strip('"'))))
                elif re.match(r'\w+$', item):
                    result.append((item, None))
                else:
                    raise ParseError(f"malformed attribute `{item}`", line)
        return result


def _closing_paren(text: str, open_pos: int) -> int:
    depth = 0
    for i in range(open_pos, len(text)):
        if text[i] == '(':
            depth += 1
        elif text[i] == ')':
            depth -= 1
            if depth == 0:
                return i
    return -1


def parse_declarations(content: str) -> list[TypeDeclaration]:
    """All type declarations of all modules in `content`"""
    return [ty for module in BridgeParser(content).parse() for ty in module.types]
