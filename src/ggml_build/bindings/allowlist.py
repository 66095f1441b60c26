"""Symbol allowlist and the pure filter that applies it to a header surface."""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator, Sequence
from typing import Union

from ggml_build.bindings.surface import HeaderSurface
from ggml_build.models import SymbolAllowlistRule, SymbolKind


class Allowlist:
    """Ordered, closed set of SymbolAllowlistRules.

    A symbol is admitted iff at least one rule of its kind full-matches its
    name. Anything unmatched is invisible.
    """

    def __init__(self, rules: Iterable[SymbolAllowlistRule] = ()):
        self.rules: tuple[SymbolAllowlistRule, ...] = tuple(rules)

    @classmethod
    def from_prefixes(
        cls,
        functions: Sequence[str] = (),
        types: Sequence[str] = (),
        constants: Sequence[str] = (),
    ) -> "Allowlist":
        """Build rules admitting every name that starts with one of the prefixes."""
        rules = []
        for kind, prefixes in (
            (SymbolKind.FUNCTION, functions),
            (SymbolKind.TYPE, types),
            (SymbolKind.CONSTANT, constants),
        ):
            rules += [
                SymbolAllowlistRule(kind=kind, pattern=f"{re.escape(p)}.*") for p in prefixes
            ]
        return cls(rules)

    def admits(self, kind: SymbolKind, name: str) -> bool:
        return any(rule.matches(kind, name) for rule in self.rules)

    def extend(self, rules: Iterable[SymbolAllowlistRule]) -> "Allowlist":
        return Allowlist((*self.rules, *rules))

    def __iter__(self) -> Iterator[SymbolAllowlistRule]:
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)

    def __repr__(self) -> str:
        patterns = ", ".join(f"{r.kind.value}:{r.pattern}" for r in self.rules)
        return f"Allowlist({patterns})"


DEFAULT_ALLOWLIST = Allowlist.from_prefixes(
    functions=("ggml_", "gguf_"),
    types=("ggml_", "gguf_"),
    constants=("GGML_", "GGUF_"),
)


def filter_surface(
    surface: HeaderSurface,
    rules: Union[Allowlist, Iterable[SymbolAllowlistRule]] = DEFAULT_ALLOWLIST,
) -> HeaderSurface:
    """Restrict ``surface`` to the symbols admitted by ``rules``.

    Pure: the input surface is not modified. Enumerators travel with their
    enum type; they are not matched on their own.
    """
    allowlist = rules if isinstance(rules, Allowlist) else Allowlist(rules)

    def keep(kind: SymbolKind, table: dict) -> dict:
        return {name: item for name, item in table.items() if allowlist.admits(kind, name)}

    return HeaderSurface(
        functions=keep(SymbolKind.FUNCTION, surface.functions),
        records=keep(SymbolKind.TYPE, surface.records),
        enums=keep(SymbolKind.TYPE, surface.enums),
        typedefs=keep(SymbolKind.TYPE, surface.typedefs),
        callbacks=keep(SymbolKind.TYPE, surface.callbacks),
        constants=keep(SymbolKind.CONSTANT, surface.constants),
        unparsed={
            name: kind
            for name, kind in surface.unparsed.items()
            if allowlist.admits(kind, name)
        },
    )
