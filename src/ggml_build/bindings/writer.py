"""Render a filtered HeaderSurface as a ctypes Python module.

Layout of the generated module:

    build-time constants (revision, commit time)
    macro and anonymous-enum constants
    enums
    record class stubs
    callback types and typedef aliases
    record ``_fields_`` (by-value dependencies first)
    optional layout asserts
    ``_PROTOTYPES`` and ``bind(lib)``

Only allowlisted names are defined. Anything else an allowlisted declaration
refers to is inlined (primitive typedefs, callback signatures) or lowered to
``ctypes.c_void_p`` when reached through a pointer. Declarations that would
need a hidden type by value cannot be represented and are skipped.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Mapping
from typing import Optional

from ggml_build.bindings.surface import PRIMITIVES, CRecord, CSignature, CType, HeaderSurface
from ggml_build.models import BindingOptions

logger = logging.getLogger(__name__)

ENUM_CTYPE = "ctypes.c_int"

_TAG_RE = re.compile(r"(struct|union|enum) ([A-Za-z_][A-Za-z0-9_]*)")

_PREAMBLE = '''\
"""ctypes bindings for ggml.

Generated by ggml-build. Do not edit.
"""

import ctypes
import enum
'''

_EXTENSIBLE_ENUM = '''\
class _ExtensibleEnum(enum.IntEnum):
    """IntEnum that accepts discriminants added by newer native versions."""

    @classmethod
    def _missing_(cls, value):
        if not isinstance(value, int):
            return None
        member = int.__new__(cls, value)
        member._name_ = f"{cls.__name__}_{value}"
        member._value_ = value
        return cls._value2member_map_.setdefault(value, member)
'''

_BIND = '''\
def bind(lib):
    """Apply restype/argtypes to every function ``lib`` exports.

    Returns the names that ``lib`` does not export.
    """
    missing = []
    for name, (restype, argtypes) in _PROTOTYPES.items():
        try:
            func = getattr(lib, name)
        except AttributeError:
            missing.append(name)
            continue
        func.restype = restype
        func.argtypes = argtypes
    return missing
'''


class Unrepresentable(ValueError):
    """A declaration needs a type ctypes cannot express from the allowlist."""


def _record_mixin(options: BindingOptions) -> str:
    lines = [
        "class _Record:",
        '    """Capabilities shared by every generated struct and union."""',
        "",
        "    __slots__ = ()",
    ]
    if options.derive_default:
        lines += [
            "",
            "    @classmethod",
            "    def default(cls, **fields):",
            '        """Zero-initialised instance with ``fields`` set."""',
            "        return cls(**fields)",
        ]
    if options.derive_debug:
        lines += [
            "",
            "    def __repr__(self):",
            "        names = [f[0] for f in getattr(type(self), \"_fields_\", ())]",
            "        body = \", \".join(f\"{n}={getattr(self, n)!r}\" for n in names)",
            "        return f\"{type(self).__name__}({body})\"",
        ]
    if options.derive_copy:
        lines += [
            "",
            "    def copy(self):",
            "        return type(self).from_buffer_copy(self)",
            "",
            "    __copy__ = copy",
        ]
    return "\n".join(lines) + "\n"


def _literal(value) -> str:
    if isinstance(value, float) and not math.isfinite(value):
        return f'float("{value}")'
    return repr(value)


class BindingWriter:
    """Renders one ctypes module.

    Args:
        api: The allowlisted surface; every name it holds is defined.
        full: The complete surface, used to see through hidden typedefs.
        options: Representation choices.
        build_constants: Extra string constants placed first in the module.
    """

    def __init__(
        self,
        api: HeaderSurface,
        full: Optional[HeaderSurface] = None,
        options: Optional[BindingOptions] = None,
        build_constants: Optional[Mapping[str, str]] = None,
    ):
        self.api = api
        self.full = full or api
        self.options = options or BindingOptions()
        self.build_constants = dict(build_constants or {})
        self.skipped: list[str] = []
        self._emitted: set[str] = set()
        self._opaque: set[str] = set()
        self._aliased: set[str] = set()
        self._exports: list[str] = []

    # -- type expressions -------------------------------------------------

    @staticmethod
    def _wrap(expr: str, pointers: int) -> str:
        for _ in range(pointers):
            expr = f"ctypes.POINTER({expr})"
        return expr

    def type_expr(self, ctype: CType) -> str:
        if ctype.signature is not None:
            expr = self._wrap(self.callback_expr(ctype.signature), ctype.pointers)
        else:
            expr = self.base_expr(ctype.base, ctype.pointers)
        for dim in reversed(ctype.array):
            expr = f"({expr} * {dim})"
        return expr

    def callback_expr(self, signature: CSignature) -> str:
        args = [self.type_expr(signature.restype)]
        args += [self.type_expr(a) for a in signature.argtypes]
        return f"ctypes.CFUNCTYPE({', '.join(args)})"

    def base_expr(self, base: str, pointers: int) -> str:
        if base == "void":
            return "None" if pointers == 0 else self._wrap("ctypes.c_void_p", pointers - 1)
        if base == "char" and pointers:
            return self._wrap("ctypes.c_char_p", pointers - 1)
        if base in PRIMITIVES:
            return self._wrap(PRIMITIVES[base], pointers)

        tagged = _TAG_RE.fullmatch(base)
        if tagged:
            kind, tag = tagged.groups()
            if kind == "enum":
                return self._wrap(ENUM_CTYPE, pointers)
            return self.record_expr(tag, pointers)

        if base in self._aliased:
            return self._wrap(base, pointers)
        if base in self.full.callbacks:
            return self._wrap(self.callback_expr(self.full.callbacks[base]), pointers)
        if base in self.full.typedefs:
            target = self.full.typedefs[base]
            if target.signature is None and not target.array:
                return self.base_expr(target.base, target.pointers + pointers)
            return self._wrap(self.type_expr(target), pointers)
        if base in self.full.records:
            return self.record_expr(base, pointers)
        if base in self.full.enums:
            return self._wrap(ENUM_CTYPE, pointers)
        if pointers:
            return self._wrap("ctypes.c_void_p", pointers - 1)
        raise Unrepresentable(f"unknown type {base!r} used by value")

    def record_expr(self, name: str, pointers: int) -> str:
        if name in self.api.records:
            if not pointers and (self.api.records[name].opaque or name in self._opaque):
                raise Unrepresentable(f"incomplete type {name!r} used by value")
            return self._wrap(name, pointers)
        if pointers:
            return self._wrap("ctypes.c_void_p", pointers - 1)
        raise Unrepresentable(f"{name!r} is outside the allowlist and used by value")

    def _value_deps(self, ctype: CType) -> set[str]:
        """Allowlisted records ``ctype`` embeds by value."""
        if ctype.signature is not None or ctype.pointers:
            return set()
        tagged = _TAG_RE.fullmatch(ctype.base)
        name = tagged.group(2) if tagged and tagged.group(1) != "enum" else ctype.base
        if name in self.api.records:
            return {name}
        if not tagged and name in self.full.typedefs:
            return self._value_deps(self.full.typedefs[name])
        return set()

    # -- sections ---------------------------------------------------------

    def _skip(self, what: str, name: str, reason: Exception) -> None:
        logger.warning("Skipping %s %s: %s", what, name, reason)
        self.skipped.append(name)

    def _export(self, name: str) -> None:
        self._emitted.add(name)
        self._exports.append(name)

    def _constants(self) -> list[str]:
        lines = []
        for name, value in self.build_constants.items():
            lines.append(f"{name} = {value!r}")
            self._export(name)
        if lines:
            lines.append("")
        for constant in self.api.constants.values():
            lines.append(f"{constant.name} = {_literal(constant.value)}")
            self._export(constant.name)
        return lines

    def _enums(self) -> list[str]:
        lines: list[str] = []
        extensible = self.options.enum_style == "extensible"
        if extensible and self.api.enums:
            lines += ["", "", _EXTENSIBLE_ENUM.rstrip("\n")]
        for enum in self.api.enums.values():
            if extensible:
                lines += ["", "", f"class {enum.name}(_ExtensibleEnum):"]
                lines += [f"    {m} = {v}" for m, v in enum.members.items()] or ["    pass"]
            else:
                lines += ["", f"{enum.name} = {ENUM_CTYPE}"]
                lines += [f"{m} = {v}" for m, v in enum.members.items()]
                self._exports.extend(enum.members)
            self._export(enum.name)
        return lines

    def _record_fields(self, record: CRecord) -> list[str]:
        entries = []
        for field in record.fields or ():
            expr = self.type_expr(field.ctype)
            if field.bits is not None:
                entries.append(f"({field.name!r}, {expr}, {field.bits})")
            else:
                entries.append(f"({field.name!r}, {expr})")
        return entries

    def _settle_records(self) -> dict[str, list[str]]:
        """Field entries per record, demoting unrepresentable ones to opaque."""
        rendered: dict[str, list[str]] = {}
        changed = True
        while changed:
            changed = False
            rendered.clear()
            for record in self.api.records.values():
                if record.opaque or record.name in self._opaque:
                    continue
                try:
                    rendered[record.name] = self._record_fields(record)
                except Unrepresentable as e:
                    logger.warning("Emitting %s as opaque: %s", record.name, e)
                    self._opaque.add(record.name)
                    changed = True
        return rendered

    def _record_order(self, names: list[str]) -> list[str]:
        order: list[str] = []
        visiting: set[str] = set()

        def visit(name: str) -> None:
            if name in order or name in visiting:
                return
            visiting.add(name)
            for field in self.api.records[name].fields or ():
                for dep in sorted(self._value_deps(field.ctype)):
                    if dep in names:
                        visit(dep)
            visiting.discard(name)
            order.append(name)

        for name in names:
            visit(name)
        return order

    def _stubs(self) -> list[str]:
        lines = []
        for record in self.api.records.values():
            base = "ctypes.Union" if record.union else "ctypes.Structure"
            lines += ["", "", f"class {record.name}(_Record, {base}):", "    pass"]
            self._export(record.name)
        return lines

    def _signature_deps(self, signature: CSignature) -> set[str]:
        deps = self._value_deps(signature.restype)
        for argtype in signature.argtypes:
            deps |= self._value_deps(argtype)
        return deps

    def _aliases(self, embedding: bool) -> list[str]:
        """Callback and typedef aliases.

        Aliases that embed a record by value are rendered separately
        (``embedding=True``) since they finalize the record type and must
        follow its ``_fields_``.
        """
        lines: list[str] = []
        for name, signature in self.api.callbacks.items():
            if name in self._emitted or bool(self._signature_deps(signature)) != embedding:
                continue
            try:
                lines.append(f"{name} = {self.callback_expr(signature)}")
            except Unrepresentable as e:
                self._skip("callback", name, e)
                continue
            self._aliased.add(name)
            self._export(name)
        for name, ctype in self.api.typedefs.items():
            if name in self._emitted or bool(self._value_deps(ctype)) != embedding:
                continue
            try:
                lines.append(f"{name} = {self.type_expr(ctype)}")
            except Unrepresentable as e:
                self._skip("typedef", name, e)
                continue
            self._aliased.add(name)
            self._export(name)
        return lines

    def _layout(self, fields: dict[str, list[str]], order: list[str]) -> list[str]:
        lines = []
        for name in order:
            record = self.api.records[name]
            if record.anonymous:
                lines.append(f"{name}._anonymous_ = {tuple(record.anonymous)!r}")
            entries = fields[name]
            if not entries:
                lines.append(f"{name}._fields_ = []")
                continue
            lines.append(f"{name}._fields_ = [")
            lines += [f"    {entry}," for entry in entries]
            lines.append("]")
        return lines

    def _layout_asserts(self, order: list[str]) -> list[str]:
        if not self.options.layout_tests:
            return []
        lines = []
        for name in order:
            size = self.options.layout_sizes.get(name)
            if size is not None:
                lines.append(
                    f'assert ctypes.sizeof({name}) == {size}, "size of {name}"'
                )
        return lines

    def _prototypes(self) -> list[str]:
        lines = ["_PROTOTYPES = {"]
        for function in self.api.functions.values():
            signature = function.signature
            try:
                restype = self.type_expr(signature.restype)
                argtypes = [self.type_expr(a) for a in signature.argtypes]
            except Unrepresentable as e:
                self._skip("function", function.name, e)
                continue
            suffix = "  # variadic" if signature.variadic else ""
            lines.append(f"    {function.name!r}: ({restype}, [{', '.join(argtypes)}]),{suffix}")
        lines.append("}")
        return lines

    # -- entry point ------------------------------------------------------

    def render(self) -> str:
        """Module source text. Resets and fills ``skipped``."""
        self.skipped = []
        self._emitted = set()
        self._opaque = set()
        self._aliased = set()
        self._exports = []

        sections: list[list[str]] = [
            self._constants(),
            self._enums(),
            ["", "", _record_mixin(self.options).rstrip("\n")],
            self._stubs(),
        ]

        settled = self._settle_records()
        aliases = self._aliases(embedding=False)
        if aliases:
            sections.append(["", ""] + aliases)
        # re-rendered so fields can name the aliases defined above
        fields = {name: self._record_fields(self.api.records[name]) for name in settled}
        order = self._record_order(list(fields))
        layout = self._layout(fields, order)
        if layout:
            sections.append(["", ""] + layout)
        late = self._aliases(embedding=True)
        if late:
            sections.append([""] + late)
        asserts = self._layout_asserts(order)
        if asserts:
            sections.append([""] + asserts)
        sections.append(["", ""] + self._prototypes())
        sections.append(["", "", _BIND.rstrip("\n")])

        text = "\n".join(line for section in sections for line in section).strip("\n")
        exports = "\n".join(["__all__ = ["] + [f"    {n!r}," for n in self._exports] + ["]"])
        return f"{_PREAMBLE}\n{text}\n\n\n{exports}\n"
