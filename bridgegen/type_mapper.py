"""Type reference syntax and primitive type tables"""

import re
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class PrimitiveInfo:
    """Spellings of one primitive on each side of the boundary"""
    c_type: str
    swift_type: str
    option_suffix: str
    include: Optional[str]


class TypeMapper:
    """Parses Rust type references as written in bridge modules"""

    PRIMITIVES = {
        'u8': PrimitiveInfo('uint8_t', 'UInt8', 'U8', 'stdint.h'),
        'i8': PrimitiveInfo('int8_t', 'Int8', 'I8', 'stdint.h'),
        'u16': PrimitiveInfo('uint16_t', 'UInt16', 'U16', 'stdint.h'),
        'i16': PrimitiveInfo('int16_t', 'Int16', 'I16', 'stdint.h'),
        'u32': PrimitiveInfo('uint32_t', 'UInt32', 'U32', 'stdint.h'),
        'i32': PrimitiveInfo('int32_t', 'Int32', 'I32', 'stdint.h'),
        'u64': PrimitiveInfo('uint64_t', 'UInt64', 'U64', 'stdint.h'),
        'i64': PrimitiveInfo('int64_t', 'Int64', 'I64', 'stdint.h'),
        'usize': PrimitiveInfo('uintptr_t', 'UInt', 'Usize', 'stdint.h'),
        'isize': PrimitiveInfo('intptr_t', 'Int', 'Isize', 'stdint.h'),
        'f32': PrimitiveInfo('float', 'Float', 'F32', None),
        'f64': PrimitiveInfo('double', 'Double', 'F64', None),
        'bool': PrimitiveInfo('bool', 'Bool', 'Bool', 'stdbool.h'),
    }

    _BOXED_FN = re.compile(r'^Box<dyn FnOnce\((.*)\)(?: -> (.+))?>$')

    @classmethod
    def normalize(cls, text: str) -> str:
        """Canonical spelling: no lifetimes, single spaces only where Rust needs them"""
        text = re.sub(r"'\w+\s*", '', text)
        text = re.sub(r'\s+', ' ', text).strip()
        text = re.sub(r'\s*-\s*>\s*', '->', text)
        text = re.sub(r'\s*([<>(),\[\]])\s*', r'\1', text)
        text = re.sub(r'&\s*', '&', text)
        text = re.sub(r'&mut\b\s*', '&mut ', text)
        text = text.replace(',', ', ')
        return text.replace('->', ' -> ')

    @classmethod
    def split_top_level(cls, text: str, sep: str = ',') -> list[str]:
        """Split on `sep` outside of brackets of any kind"""
        parts = []
        depth = 0
        current = []
        prev = ''
        for ch in text:
            if ch in '<([{':
                depth += 1
            elif ch in ')]}' or (ch == '>' and prev != '-'):
                depth -= 1
            if ch == sep and depth == 0:
                parts.append(''.join(current).strip())
                current = []
            else:
                current.append(ch)
            prev = ch
        tail = ''.join(current).strip()
        if tail:
            parts.append(tail)
        return parts

    @classmethod
    def is_unit(cls, text: Optional[str]) -> bool:
        return text is None or cls.normalize(text) in ('', '()')

    @classmethod
    def is_primitive(cls, text: str) -> bool:
        return text in cls.PRIMITIVES

    @classmethod
    def generic_parts(cls, text: str) -> tuple[str, list[str]]:
        """`Option<Vec<u8>>` -> (`Option`, [`Vec<u8>`])"""
        if m := re.match(r'^([A-Za-z_][\w:]*)<(.+)>$', text):
            return m.group(1), cls.split_top_level(m.group(2))
        return text, []

    @classmethod
    def is_reference(cls, text: str) -> bool:
        return text.startswith('&')

    @classmethod
    def strip_reference(cls, text: str) -> tuple[str, bool]:
        """`&mut Foo` -> (`Foo`, True)"""
        if text.startswith('&mut '):
            return text[5:].strip(), True
        return text[1:].strip(), False

    @classmethod
    def is_slice(cls, text: str) -> bool:
        return bool(re.match(r'^&(mut )?\[.+\]$', text))

    @classmethod
    def slice_inner(cls, text: str) -> Optional[str]:
        if m := re.match(r'^&(?:mut )?\[(.+)\]$', text):
            return m.group(1)
        return None

    @classmethod
    def is_boxed_fn(cls, text: str) -> bool:
        return bool(cls._BOXED_FN.match(text))

    @classmethod
    def boxed_fn_signature(cls, text: str) -> Optional[tuple[list[str], Optional[str]]]:
        """`Box<dyn FnOnce(u8) -> u16>` -> ([`u8`], `u16`)"""
        if m := cls._BOXED_FN.match(text):
            ret = m.group(2)
            return cls.split_top_level(m.group(1)), None if cls.is_unit(ret) else ret
        return None

    @classmethod
    def c_ident(cls, c_type: str) -> str:
        """Identifier-safe form of a C type, used for `FfiSlice_<T>` names"""
        return re.sub(r'\W+', '_', c_type.replace('*', 'Ptr')).strip('_')
