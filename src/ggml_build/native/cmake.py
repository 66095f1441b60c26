"""Native build invoker: configure, build and install ggml with CMake.

The build is a single blocking call. Whatever parallelism CMake uses
internally is its own business; a failure in any step aborts the build and
keeps the tool's output verbatim on the raised NativeBuildFailure.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ggml_build.exceptions import NativeBuildFailure
from ggml_build.models import GPU_BACKENDS, BackendSelection

logger = logging.getLogger(__name__)

# Fixed settings: static libs only, no tests/examples, no dynamic backend
# loading, no Accelerate/BLAS.
GLOBAL_DEFINES: dict[str, str] = {
    "BUILD_SHARED_LIBS": "OFF",
    "GGML_BUILD_TESTS": "OFF",
    "GGML_BUILD_EXAMPLES": "OFF",
    "GGML_BACKEND_DL": "OFF",
    "GGML_ACCELERATE": "OFF",
    "GGML_BLAS": "OFF",
}

DEFAULT_PROFILE = "Release"


def cmake_defines(selection: BackendSelection) -> dict[str, str]:
    """All -D values for a selection.

    Every recognized accelerator backend gets an explicit ON/OFF so the
    native build never falls back on its own defaults.
    """
    defines = dict(GLOBAL_DEFINES)
    for backend in GPU_BACKENDS:
        defines[backend.define] = "ON" if selection.is_enabled(backend) else "OFF"
    return defines


def rerun_if_changed(source_dir: Path, entry_header: Path) -> list[Path]:
    """Paths whose change must invalidate a previous build."""
    return [Path(source_dir) / "include", Path(entry_header)]


@dataclass
class NativeBuildOutput:
    """Location of an installed native build."""

    out_dir: Path
    lib_dir: Path
    include_dir: Path
    defines: dict[str, str] = field(default_factory=dict)


class CMakeBuilder:
    """Build the vendored native tree with CMake.

    Usage:
        builder = CMakeBuilder(Path("vendor/ggml"), Path("build/out"))
        output = builder.compile(selection)
        output.lib_dir  # build/out/lib

    Args:
        source_dir: Root of the vendored native source tree.
        out_dir: Install prefix; the build tree lives in ``out_dir/build``.
        profile: CMake build type / config.
        jobs: Parallel job count passed to ``cmake --build``.
        generator: Optional CMake generator name.
        cmake: CMake executable.
        extra_defines: Additional -D values. They cannot override the
            fixed global settings or backend toggles.
    """

    def __init__(
        self,
        source_dir: Path,
        out_dir: Path,
        profile: str = DEFAULT_PROFILE,
        jobs: Optional[int] = None,
        generator: Optional[str] = None,
        cmake: str = "cmake",
        extra_defines: Optional[dict[str, str]] = None,
    ):
        self.source_dir = Path(source_dir).resolve()
        self.out_dir = Path(out_dir).resolve()
        self.build_dir = self.out_dir / "build"
        self.profile = profile
        self.jobs = jobs
        self.generator = generator
        self.cmake = cmake
        self.extra_defines = dict(extra_defines or {})

    def defines(self, selection: BackendSelection) -> dict[str, str]:
        defines = dict(self.extra_defines)
        defines.update(cmake_defines(selection))
        return defines

    def configure_command(self, selection: BackendSelection) -> list[str]:
        cmd = [self.cmake, "-S", str(self.source_dir), "-B", str(self.build_dir)]
        if self.generator:
            cmd += ["-G", self.generator]
        cmd += [
            f"-DCMAKE_BUILD_TYPE={self.profile}",
            f"-DCMAKE_INSTALL_PREFIX={self.out_dir}",
        ]
        cmd += [f"-D{key}={value}" for key, value in self.defines(selection).items()]
        return cmd

    def build_command(self) -> list[str]:
        cmd = [self.cmake, "--build", str(self.build_dir), "--config", self.profile]
        if self.jobs:
            cmd += ["--parallel", str(self.jobs)]
        return cmd

    def install_command(self) -> list[str]:
        return [self.cmake, "--install", str(self.build_dir), "--config", self.profile]

    def compile(self, selection: BackendSelection) -> NativeBuildOutput:
        """Configure, build and install. Each step runs exactly once.

        Raises:
            NativeBuildFailure: If cmake is missing or any step exits non-zero.
        """
        if not self.source_dir.is_dir():
            raise NativeBuildFailure(
                "configure",
                [self.cmake],
                None,
                stderr=f"native source tree not found: {self.source_dir}",
            )
        self.build_dir.mkdir(parents=True, exist_ok=True)

        logger.info("Building native library from %s (%s)", self.source_dir, self.profile)
        self._run("configure", self.configure_command(selection))
        self._run("build", self.build_command())
        self._run("install", self.install_command())

        lib_dir = self.out_dir / "lib"
        if not lib_dir.is_dir() and (self.out_dir / "lib64").is_dir():
            lib_dir = self.out_dir / "lib64"

        logger.info("Native build installed to %s", self.out_dir)
        return NativeBuildOutput(
            out_dir=self.out_dir,
            lib_dir=lib_dir,
            include_dir=self.out_dir / "include",
            defines=self.defines(selection),
        )

    def _run(self, step: str, cmd: list[str]) -> None:
        logger.info("[cmake] %s", step)
        logger.debug("  Command: %s", " ".join(cmd))
        try:
            proc = subprocess.run(cmd, capture_output=True, text=True, check=False)
        except FileNotFoundError:
            raise NativeBuildFailure(
                step, cmd, None, stderr=f"{self.cmake} not found. Please install CMake."
            )

        if proc.stdout and logger.isEnabledFor(logging.DEBUG):
            logger.debug("[cmake] %s stdout:\n%s", step, proc.stdout)
        if proc.stderr and logger.isEnabledFor(logging.DEBUG):
            logger.debug("[cmake] %s stderr:\n%s", step, proc.stderr)

        if proc.returncode != 0:
            logger.error("[cmake] %s failed with exit code %d", step, proc.returncode)
            raise NativeBuildFailure(step, cmd, proc.returncode, proc.stdout, proc.stderr)
