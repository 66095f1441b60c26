"""Native side of the build: CMake invocation, linkage, revision metadata."""

from ggml_build.native.cmake import (
    GLOBAL_DEFINES,
    CMakeBuilder,
    NativeBuildOutput,
    cmake_defines,
    rerun_if_changed,
)
from ggml_build.native.linkage import (
    BACKEND_LIBRARIES,
    BACKEND_SYSTEM_DEPS,
    CORE_LIBRARIES,
    PLATFORM_RUNTIME_DEPS,
    LinkPlan,
    plan_linkage,
)
from ggml_build.native.metadata import UNKNOWN_REVISION, extract_metadata

__all__ = [
    "GLOBAL_DEFINES",
    "CMakeBuilder",
    "NativeBuildOutput",
    "cmake_defines",
    "rerun_if_changed",
    "BACKEND_LIBRARIES",
    "BACKEND_SYSTEM_DEPS",
    "CORE_LIBRARIES",
    "PLATFORM_RUNTIME_DEPS",
    "LinkPlan",
    "plan_linkage",
    "UNKNOWN_REVISION",
    "extract_metadata",
]
