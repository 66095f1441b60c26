"""Filtered ctypes bindings for the ggml public headers."""

from ggml_build.bindings.allowlist import DEFAULT_ALLOWLIST, Allowlist, filter_surface
from ggml_build.bindings.generator import (
    BindingGenerator,
    BindingResult,
    RenderedBindings,
    write_atomic,
)
from ggml_build.bindings.header import (
    find_preprocessor,
    load_header_surface,
    parse_header,
    preprocess_header,
)
from ggml_build.bindings.surface import HeaderSurface
from ggml_build.bindings.writer import BindingWriter
from ggml_build.models import BindingOptions

__all__ = [
    "DEFAULT_ALLOWLIST",
    "Allowlist",
    "filter_surface",
    "BindingGenerator",
    "BindingResult",
    "RenderedBindings",
    "write_atomic",
    "find_preprocessor",
    "load_header_surface",
    "parse_header",
    "preprocess_header",
    "HeaderSurface",
    "BindingWriter",
    "BindingOptions",
]
