"""Orchestrator - runs one complete ggml build.

Option resolution, native build, linkage planning, metadata extraction and
binding generation run once each, in that order, on one thread. Any fatal
error propagates unchanged and no report is written.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ggml_build.bindings.generator import BindingGenerator, write_atomic
from ggml_build.config import BuildSettings
from ggml_build.models import BackendSelection, BuildMetadata, LinkDirective, PlatformTarget
from ggml_build.native.cmake import CMakeBuilder, cmake_defines, rerun_if_changed
from ggml_build.native.linkage import LinkPlan, plan_linkage
from ggml_build.native.metadata import extract_metadata
from ggml_build.options import resolve_options
from ggml_build.platform import resolve_platform

logger = logging.getLogger(__name__)

REPORT_FILE = "ggml-build.json"


class BuildStep(str, Enum):
    """Pipeline steps, in execution order."""

    OPTIONS = "options"
    NATIVE = "native"
    LINKAGE = "linkage"
    METADATA = "metadata"
    BINDINGS = "bindings"


class BuildPlan(BaseModel):
    """What a build would do, resolved without running anything."""

    model_config = ConfigDict(frozen=True)

    selection: BackendSelection
    platform: PlatformTarget
    defines: dict[str, str]
    link_plan: LinkPlan
    rerun_if_changed: list[Path]


class BuildReport(BaseModel):
    """Result of a completed build, written to ``<out_dir>/ggml-build.json``."""

    backends: list[str]
    platform: PlatformTarget
    defines: dict[str, str]
    directives: list[LinkDirective]
    linker_args: list[str]
    rerun_if_changed: list[Path]
    out_dir: Path
    lib_dir: Path
    bindings_path: Path
    symbol_counts: dict[str, int] = Field(default_factory=dict)
    skipped_symbols: list[str] = Field(default_factory=list)
    metadata: BuildMetadata
    duration_seconds: float = 0.0


StepCallback = Callable[[BuildStep], None]


class BuildOrchestrator:
    """Runs the build pipeline for one BuildSettings.

    Usage:
        settings = load_settings("ggml-build.yaml")
        report = BuildOrchestrator(settings).run()
        report.linker_args  # ['-L/.../lib', '-lggml-base', ...]
    """

    def __init__(
        self,
        settings: BuildSettings,
        builder: Optional[CMakeBuilder] = None,
        generator: Optional[BindingGenerator] = None,
    ):
        self.settings = settings
        self.builder = builder or CMakeBuilder(
            settings.source_dir,
            settings.out_dir,
            profile=settings.profile,
            jobs=settings.jobs,
            generator=settings.generator,
            cmake=settings.cmake,
            extra_defines=settings.extra_defines,
        )
        self.generator = generator or BindingGenerator(
            settings.resolved_entry_header,
            include_dirs=[settings.header_dir, *settings.include_dirs],
            options=settings.bindings,
        )

    def plan(self, lib_dir: Optional[Path] = None) -> BuildPlan:
        """Resolve options, defines and linkage without building."""
        selection = resolve_options(self.settings.features)
        platform = resolve_platform(self.settings.target_os)
        lib_dir = lib_dir or self.settings.out_dir / "lib"
        return BuildPlan(
            selection=selection,
            platform=platform,
            defines=self.builder.defines(selection),
            link_plan=plan_linkage(selection, platform, lib_dir),
            rerun_if_changed=rerun_if_changed(
                self.settings.source_dir, self.settings.resolved_entry_header
            ),
        )

    def run(self, on_step: Optional[StepCallback] = None) -> BuildReport:
        """Run every step once and write the report.

        Args:
            on_step: Called with each step before it starts.

        Raises:
            NativeBuildFailure: The native build failed.
            BindingGenerationFailure: No bindings could be generated.
        """
        notify = on_step or (lambda step: None)
        start_time = time.time()

        notify(BuildStep.OPTIONS)
        selection = resolve_options(self.settings.features)
        platform = resolve_platform(self.settings.target_os)
        backends = [name for name, enabled in selection.as_flags().items() if enabled]
        logger.info(
            "Backends: %s; platform: %s (%s)",
            ", ".join(backends),
            platform.os,
            platform.family.value,
        )

        notify(BuildStep.NATIVE)
        output = self.builder.compile(selection)

        notify(BuildStep.LINKAGE)
        link_plan = plan_linkage(selection, platform, output.lib_dir)

        notify(BuildStep.METADATA)
        metadata = extract_metadata(self.settings.source_dir)

        notify(BuildStep.BINDINGS)
        bindings = self.generator.generate(self.settings.bindings_path, metadata.as_constants())

        report = BuildReport(
            backends=backends,
            platform=platform,
            defines=output.defines or cmake_defines(selection),
            directives=list(link_plan.directives),
            linker_args=link_plan.linker_args(),
            rerun_if_changed=rerun_if_changed(
                self.settings.source_dir, self.settings.resolved_entry_header
            ),
            out_dir=output.out_dir,
            lib_dir=output.lib_dir,
            bindings_path=bindings.path,
            symbol_counts=bindings.counts,
            skipped_symbols=bindings.skipped,
            metadata=metadata,
            duration_seconds=time.time() - start_time,
        )
        write_report(report, self.settings.out_dir / REPORT_FILE)
        return report


def write_report(report: BuildReport, path: Path) -> Path:
    data = report.model_dump(mode="json")
    write_atomic(path, json.dumps(data, indent=2) + "\n")
    logger.info("Build report written to %s", path)
    return path
