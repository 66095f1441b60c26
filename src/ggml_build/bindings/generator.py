"""Binding generation facade: header -> filtered surface -> ctypes module."""

from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ggml_build.bindings.allowlist import DEFAULT_ALLOWLIST, Allowlist, filter_surface
from ggml_build.bindings.header import load_header_surface
from ggml_build.bindings.surface import HeaderSurface
from ggml_build.bindings.writer import BindingWriter
from ggml_build.exceptions import BindingGenerationFailure
from ggml_build.models import BindingOptions

logger = logging.getLogger(__name__)


@dataclass
class RenderedBindings:
    """Module source plus the surface it was rendered from."""

    source: str
    surface: HeaderSurface
    skipped: list[str] = field(default_factory=list)


@dataclass
class BindingResult:
    """Outcome of writing the bindings module.

    Attributes:
        path: Absolute path of the written module.
        counts: Symbol counts of the allowlisted surface.
        skipped: Allowlisted names that could not be parsed or represented.
        line_count: Newlines in the written source.
        byte_count: UTF-8 bytes written.
    """

    path: Path
    counts: dict[str, int]
    skipped: list[str]
    line_count: int
    byte_count: int


def write_atomic(path: Path, content: str) -> int:
    """Replace ``path`` with ``content`` in one step. Returns bytes written."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = content.encode("utf-8")
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise
    return len(data)


class BindingGenerator:
    """Generates a single ctypes module from a native entry header.

    Example:
        >>> gen = BindingGenerator("wrapper.h", include_dirs=["ggml/include"])
        >>> result = gen.generate("out/bindings.py", metadata.as_constants())
    """

    def __init__(
        self,
        entry_header: Path,
        include_dirs: Sequence[Path] = (),
        allowlist: Allowlist = DEFAULT_ALLOWLIST,
        options: Optional[BindingOptions] = None,
        compiler: Optional[Sequence[str]] = None,
        extra_args: Sequence[str] = (),
    ):
        self.entry_header = Path(entry_header)
        self.include_dirs = [Path(d) for d in include_dirs]
        self.allowlist = allowlist
        self.options = options or BindingOptions()
        self.compiler = compiler
        self.extra_args = list(extra_args)

    def load(self) -> HeaderSurface:
        """Preprocess and parse the entry header (complete, unfiltered)."""
        return load_header_surface(
            self.entry_header, self.include_dirs, self.compiler, self.extra_args
        )

    def render(
        self, surface: HeaderSurface, build_constants: Optional[Mapping[str, str]] = None
    ) -> RenderedBindings:
        """Filter ``surface`` and render it.

        Raises:
            BindingGenerationFailure: No symbol passed the allowlist.
        """
        api = filter_surface(surface, self.allowlist)
        if api.is_empty():
            raise BindingGenerationFailure(
                f"No symbols in {self.entry_header} matched the allowlist {self.allowlist!r}"
            )
        writer = BindingWriter(api, surface, self.options, build_constants)
        source = writer.render()
        if api.unparsed:
            logger.warning(
                "%d allowlisted declarations could not be parsed: %s",
                len(api.unparsed),
                ", ".join(api.unparsed),
            )
        if writer.skipped:
            logger.warning(
                "%d allowlisted declarations could not be represented: %s",
                len(writer.skipped),
                ", ".join(writer.skipped),
            )
        skipped = list(dict.fromkeys([*api.unparsed, *writer.skipped]))
        return RenderedBindings(source=source, surface=api, skipped=skipped)

    def generate(
        self, output: Path, build_constants: Optional[Mapping[str, str]] = None
    ) -> BindingResult:
        """Load, filter, render and atomically write the bindings module."""
        rendered = self.render(self.load(), build_constants)
        output = Path(output)
        byte_count = write_atomic(output, rendered.source)
        counts = rendered.surface.counts()
        logger.info("Wrote bindings to %s: %s", output, counts)
        return BindingResult(
            path=output.resolve(),
            counts=counts,
            skipped=rendered.skipped,
            line_count=rendered.source.count("\n"),
            byte_count=byte_count,
        )
