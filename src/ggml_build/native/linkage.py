"""Linkage planning: which libraries and frameworks to link, in what order.

The plan is always

    core native libs -> per-backend (static lib, then its system deps)
                     -> generic platform runtime libs

Everything platform dependent is looked up in the tables below. A family
without a row simply contributes nothing; that includes the runtime tail
for WINDOWS and UNKNOWN.

Usage:
    from ggml_build.native.linkage import plan_linkage

    plan = plan_linkage(selection, resolve_platform("linux"), lib_dir)
    plan.names()        # ['ggml-base', 'ggml', 'ggml-cpu', ...]
    plan.linker_args()  # ['-L/out/lib', '-lggml-base', ...]
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from ggml_build.models import (
    BackendOption,
    BackendSelection,
    LinkDirective,
    LinkKind,
    PlatformFamily,
    PlatformTarget,
)

logger = logging.getLogger(__name__)

Dep = tuple[LinkKind, str]

_DYLIB = LinkKind.DYNAMIC_SYSTEM
_FRAMEWORK = LinkKind.FRAMEWORK


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------

CORE_LIBRARIES: tuple[str, ...] = ("ggml-base", "ggml", "ggml-cpu")

BACKEND_LIBRARIES: dict[BackendOption, str] = {
    BackendOption.CUDA: "ggml-cuda",
    BackendOption.HIP: "ggml-hip",
    BackendOption.MUSA: "ggml-musa",
    BackendOption.VULKAN: "ggml-vulkan",
    BackendOption.WEBGPU: "ggml-webgpu",
    BackendOption.METAL: "ggml-metal",
    BackendOption.OPENCL: "ggml-opencl",
    BackendOption.SYCL: "ggml-sycl",
}

# (backend, family) -> system deps. A None family is the row used for every
# family that has no row of its own.
BACKEND_SYSTEM_DEPS: dict[tuple[BackendOption, Optional[PlatformFamily]], tuple[Dep, ...]] = {
    (BackendOption.CUDA, PlatformFamily.WINDOWS): (
        (_DYLIB, "cudart"),
        (_DYLIB, "cublas"),
        (_DYLIB, "nvcuda"),
    ),
    (BackendOption.CUDA, None): (
        (_DYLIB, "cudart"),
        (_DYLIB, "cublas"),
        (_DYLIB, "cuda"),
    ),
    (BackendOption.VULKAN, PlatformFamily.WINDOWS): ((_DYLIB, "vulkan-1"),),
    (BackendOption.VULKAN, None): ((_DYLIB, "vulkan"),),
    (BackendOption.METAL, PlatformFamily.APPLE): (
        (_FRAMEWORK, "Metal"),
        (_FRAMEWORK, "MetalKit"),
        (_FRAMEWORK, "Foundation"),
    ),
    (BackendOption.OPENCL, PlatformFamily.APPLE): ((_FRAMEWORK, "OpenCL"),),
    (BackendOption.OPENCL, None): ((_DYLIB, "OpenCL"),),
}

PLATFORM_RUNTIME_DEPS: dict[PlatformFamily, tuple[Dep, ...]] = {
    PlatformFamily.LINUX_LIKE: (
        (_DYLIB, "stdc++"),
        (_DYLIB, "m"),
        (_DYLIB, "pthread"),
        (_DYLIB, "dl"),
    ),
    PlatformFamily.APPLE: ((_DYLIB, "c++"),),
    PlatformFamily.ANDROID: ((_DYLIB, "c++_shared"), (_DYLIB, "dl")),
}


def backend_system_deps(backend: BackendOption, family: PlatformFamily) -> tuple[Dep, ...]:
    """System deps of one backend on one platform family."""
    specific = BACKEND_SYSTEM_DEPS.get((backend, family))
    if specific is not None:
        return specific
    return BACKEND_SYSTEM_DEPS.get((backend, None), ())


# ---------------------------------------------------------------------------
# Plan
# ---------------------------------------------------------------------------


class LinkPlan(BaseModel):
    """Ordered link directives for one (options, platform) pair."""

    model_config = ConfigDict(frozen=True)

    platform: PlatformTarget
    directives: tuple[LinkDirective, ...]

    def names(self) -> list[str]:
        return [d.name for d in self.directives]

    def search_paths(self) -> list[Path]:
        """Distinct search paths in first-use order."""
        seen: list[Path] = []
        for d in self.directives:
            if d.search_path is not None and d.search_path not in seen:
                seen.append(d.search_path)
        return seen

    def linker_args(self) -> list[str]:
        """Command-line arguments for the platform's native linker."""
        if self.platform.family == PlatformFamily.WINDOWS:
            args = [f"/LIBPATH:{p}" for p in self.search_paths()]
            args += [f"{d.name}.lib" for d in self.directives]
            return args

        args = [f"-L{p}" for p in self.search_paths()]
        for d in self.directives:
            if d.kind == LinkKind.FRAMEWORK:
                args += ["-framework", d.name]
            else:
                args.append(f"-l{d.name}")
        return args

    def as_extension_kwargs(self) -> dict[str, list[str]]:
        """Keyword arguments for a setuptools ``Extension``."""
        return {
            "library_dirs": [str(p) for p in self.search_paths()],
            "libraries": [
                d.name for d in self.directives if d.kind != LinkKind.FRAMEWORK
            ],
            "extra_link_args": [
                arg
                for d in self.directives
                if d.kind == LinkKind.FRAMEWORK
                for arg in ("-framework", d.name)
            ],
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "platform": self.platform.model_dump(mode="json"),
            "directives": [d.model_dump(mode="json") for d in self.directives],
        }


def plan_linkage(
    selection: BackendSelection,
    platform: PlatformTarget,
    lib_dir: Optional[Path] = None,
) -> LinkPlan:
    """Build the ordered link plan.

    Args:
        selection: Resolved backends.
        platform: Build target platform.
        lib_dir: Where the native build installed its static libraries.
            Attached as search path to every static directive.

    Returns:
        LinkPlan. Deterministic for a given (selection, platform, lib_dir).
    """
    family = platform.family

    def static(name: str) -> LinkDirective:
        return LinkDirective(kind=LinkKind.STATIC_NATIVE, name=name, search_path=lib_dir)

    def system(dep: Dep) -> LinkDirective:
        kind, name = dep
        return LinkDirective(kind=kind, name=name)

    directives = [static(name) for name in CORE_LIBRARIES]

    for backend in selection.gpu_backends:
        directives.append(static(BACKEND_LIBRARIES[backend]))
        directives.extend(system(dep) for dep in backend_system_deps(backend, family))

    tail = PLATFORM_RUNTIME_DEPS.get(family, ())
    if not tail and family == PlatformFamily.UNKNOWN:
        logger.warning(
            "No runtime libraries known for platform %r; linking without a runtime tail",
            platform.os,
        )
    directives.extend(system(dep) for dep in tail)

    logger.debug("Link plan for %s: %s", platform.os, [d.name for d in directives])
    return LinkPlan(platform=platform, directives=tuple(directives))
