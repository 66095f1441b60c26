"""Pydantic models shared across the build pipeline."""

from __future__ import annotations

import re
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class BackendOption(str, Enum):
    """Tensor execution backends the native library can be built with.

    Member order is the declared relative order used for build defines and
    link directives.
    """

    CPU = "cpu"
    CUDA = "cuda"
    HIP = "hip"
    MUSA = "musa"
    VULKAN = "vulkan"
    WEBGPU = "webgpu"
    METAL = "metal"
    OPENCL = "opencl"
    SYCL = "sycl"

    @property
    def define(self) -> str:
        """Native build toggle for this backend, e.g. ``GGML_CUDA``."""
        return f"GGML_{self.name}"


GPU_BACKENDS: tuple[BackendOption, ...] = tuple(
    b for b in BackendOption if b is not BackendOption.CPU
)


class BackendSelection(BaseModel):
    """Immutable set of enabled backends for one build. CPU is always in it."""

    model_config = ConfigDict(frozen=True)

    enabled: frozenset[BackendOption] = Field(
        default_factory=lambda: frozenset({BackendOption.CPU})
    )

    @field_validator("enabled")
    @classmethod
    def _force_cpu(cls, value: frozenset[BackendOption]) -> frozenset[BackendOption]:
        return frozenset(value) | {BackendOption.CPU}

    def is_enabled(self, backend: BackendOption) -> bool:
        return backend in self.enabled

    @property
    def gpu_backends(self) -> tuple[BackendOption, ...]:
        """Enabled accelerator backends in declared order."""
        return tuple(b for b in GPU_BACKENDS if b in self.enabled)

    def as_flags(self) -> dict[str, bool]:
        return {b.value: b in self.enabled for b in BackendOption}


class PlatformFamily(str, Enum):
    """Host OS families that drive library naming and frameworks."""

    LINUX_LIKE = "linux_like"
    APPLE = "apple"
    WINDOWS = "windows"
    ANDROID = "android"
    UNKNOWN = "unknown"


class PlatformTarget(BaseModel):
    """The single target platform of a build."""

    model_config = ConfigDict(frozen=True)

    os: str
    family: PlatformFamily


class LinkKind(str, Enum):
    STATIC_NATIVE = "static"
    DYNAMIC_SYSTEM = "dylib"
    FRAMEWORK = "framework"


class LinkDirective(BaseModel):
    """One library or framework to link, optionally from a search path."""

    model_config = ConfigDict(frozen=True)

    kind: LinkKind
    name: str
    search_path: Optional[Path] = None


class SymbolKind(str, Enum):
    FUNCTION = "function"
    TYPE = "type"
    CONSTANT = "constant"


@lru_cache(maxsize=None)
def _compile(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern)


class SymbolAllowlistRule(BaseModel):
    """Regex rule that admits symbols of one kind into the bindings.

    Patterns must match the whole symbol name.
    """

    model_config = ConfigDict(frozen=True)

    kind: SymbolKind
    pattern: str

    @field_validator("pattern")
    @classmethod
    def _valid_regex(cls, value: str) -> str:
        try:
            _compile(value)
        except re.error as e:
            raise ValueError(f"invalid allowlist pattern {value!r}: {e}") from e
        return value

    def matches(self, kind: SymbolKind, name: str) -> bool:
        return kind is self.kind and _compile(self.pattern).fullmatch(name) is not None


class BuildMetadata(BaseModel):
    """Revision id and commit time of the vendored native sources."""

    model_config = ConfigDict(frozen=True)

    revision: str
    timestamp: str

    def as_constants(self) -> dict[str, str]:
        return {
            "GGML_BUILD_REVISION": self.revision,
            "GGML_BUILD_COMMIT_TIME": self.timestamp,
        }


class BindingOptions(BaseModel):
    """Representation choices for the generated ctypes module."""

    enum_style: Literal["extensible", "constants"] = Field(
        default="extensible",
        description="IntEnum classes that accept unknown values, or plain integers",
    )
    derive_default: bool = True
    derive_debug: bool = True
    derive_copy: bool = True
    layout_tests: bool = False
    layout_sizes: dict[str, int] = Field(
        default_factory=dict,
        description="Expected sizeof per record, asserted when layout_tests is on",
    )
