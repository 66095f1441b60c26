"""Parsed view of a C header: the declarations bindings can be made from."""

from __future__ import annotations

import ctypes
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Optional, Union

from ggml_build.models import SymbolKind

# Normalized C base type -> ctypes spelling used in the generated module.
PRIMITIVES: dict[str, str] = {
    "char": "ctypes.c_char",
    "signed char": "ctypes.c_byte",
    "unsigned char": "ctypes.c_ubyte",
    "short": "ctypes.c_short",
    "unsigned short": "ctypes.c_ushort",
    "int": "ctypes.c_int",
    "unsigned int": "ctypes.c_uint",
    "long": "ctypes.c_long",
    "unsigned long": "ctypes.c_ulong",
    "long long": "ctypes.c_longlong",
    "unsigned long long": "ctypes.c_ulonglong",
    "float": "ctypes.c_float",
    "double": "ctypes.c_double",
    "long double": "ctypes.c_longdouble",
    "bool": "ctypes.c_bool",
    "int8_t": "ctypes.c_int8",
    "int16_t": "ctypes.c_int16",
    "int32_t": "ctypes.c_int32",
    "int64_t": "ctypes.c_int64",
    "uint8_t": "ctypes.c_uint8",
    "uint16_t": "ctypes.c_uint16",
    "uint32_t": "ctypes.c_uint32",
    "uint64_t": "ctypes.c_uint64",
    "size_t": "ctypes.c_size_t",
    "ssize_t": "ctypes.c_ssize_t",
    "ptrdiff_t": "ctypes.c_ssize_t",
    "intptr_t": "ctypes.c_ssize_t",
    "uintptr_t": "ctypes.c_size_t",
    "wchar_t": "ctypes.c_wchar",
    "__builtin_va_list": "ctypes.c_void_p",
}


@dataclass(frozen=True)
class CSignature:
    """Function or function-pointer signature."""

    restype: "CType"
    argtypes: tuple["CType", ...] = ()
    variadic: bool = False


@dataclass(frozen=True)
class CType:
    """A C type reduced to what ctypes needs.

    ``base`` is a normalized spelling such as ``"unsigned long"``,
    ``"struct ggml_tensor"``, ``"enum ggml_type"`` or a typedef name.
    Function pointers carry their ``signature`` and have ``base == ""``.
    """

    base: str
    pointers: int = 0
    array: tuple[int, ...] = ()
    signature: Optional[CSignature] = None

    @property
    def is_function_pointer(self) -> bool:
        return self.signature is not None

    def pointer_to(self) -> "CType":
        return CType(self.base, self.pointers + 1, self.array, self.signature)


def c_sizeof(ctype: CType, typedefs: Optional[Mapping[str, CType]] = None) -> Optional[int]:
    """Size in bytes of ``ctype`` on the host, or None if it is not known.

    Handles primitives, pointers, enums and chains of typedefs over those.
    Records are never sized.
    """
    typedefs = typedefs or {}
    seen: set[str] = set()
    size: Optional[int] = None
    multiplier = 1
    while size is None:
        for dim in ctype.array:
            multiplier *= dim
        if ctype.signature is not None or ctype.pointers:
            size = ctypes.sizeof(ctypes.c_void_p)
        elif ctype.base in PRIMITIVES:
            size = ctypes.sizeof(getattr(ctypes, PRIMITIVES[ctype.base].rpartition(".")[2]))
        elif ctype.base.startswith("enum "):
            size = ctypes.sizeof(ctypes.c_int)
        elif ctype.base in typedefs and ctype.base not in seen:
            seen.add(ctype.base)
            ctype = typedefs[ctype.base]
        else:
            return None
    return size * multiplier


@dataclass(frozen=True)
class CField:
    name: str
    ctype: CType
    bits: Optional[int] = None


@dataclass
class CRecord:
    """A struct or union. ``fields`` is None for an opaque declaration."""

    name: str
    union: bool = False
    fields: Optional[list[CField]] = None
    anonymous: list[str] = field(default_factory=list)

    @property
    def opaque(self) -> bool:
        return self.fields is None


@dataclass
class CEnum:
    name: str
    members: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class CFunction:
    name: str
    signature: CSignature


@dataclass(frozen=True)
class CConstant:
    name: str
    value: Union[int, float, str]


@dataclass
class HeaderSurface:
    """Every declaration found in a preprocessed header, keyed by name.

    Records and enums are keyed by their tag, or by their typedef name when
    declared anonymously.
    """

    functions: dict[str, CFunction] = field(default_factory=dict)
    records: dict[str, CRecord] = field(default_factory=dict)
    enums: dict[str, CEnum] = field(default_factory=dict)
    typedefs: dict[str, CType] = field(default_factory=dict)
    callbacks: dict[str, CSignature] = field(default_factory=dict)
    constants: dict[str, CConstant] = field(default_factory=dict)
    # declarations that failed to parse: name -> kind
    unparsed: dict[str, SymbolKind] = field(default_factory=dict)

    def symbols(self) -> dict[SymbolKind, set[str]]:
        """Names of every symbol in the surface, grouped by kind."""
        return {
            SymbolKind.FUNCTION: set(self.functions),
            SymbolKind.TYPE: (
                set(self.records) | set(self.enums) | set(self.typedefs) | set(self.callbacks)
            ),
            SymbolKind.CONSTANT: set(self.constants),
        }

    def counts(self) -> dict[str, int]:
        return {
            "functions": len(self.functions),
            "records": len(self.records),
            "enums": len(self.enums),
            "typedefs": len(self.typedefs),
            "callbacks": len(self.callbacks),
            "constants": len(self.constants),
        }

    def is_empty(self) -> bool:
        return not any(self.counts().values())
