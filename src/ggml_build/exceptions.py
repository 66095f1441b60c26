"""Exceptions for the ggml build pipeline.

Every class here is fatal: it aborts the whole build. Missing revision
metadata is not an error and never surfaces as one.
"""


class GGMLBuildError(Exception):
    """Base exception for build errors."""

    pass


class ConfigurationUnavailable(GGMLBuildError):
    """Required configuration values are missing or invalid."""

    def __init__(self, message: str, missing: list[str] | None = None):
        super().__init__(message)
        self.missing = missing or []


class NativeBuildFailure(GGMLBuildError):
    """The native build tool exited non-zero or could not be started.

    The tool's stdout/stderr are kept verbatim so callers can show them.
    """

    def __init__(
        self,
        step: str,
        command: list[str],
        returncode: int | None,
        stdout: str = "",
        stderr: str = "",
    ):
        self.step = step
        self.command = command
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        if returncode is None:
            message = f"CMake {step} could not be started: {stderr}"
        else:
            message = f"CMake {step} failed with exit code {returncode}"
        super().__init__(message)

    @property
    def diagnostics(self) -> str:
        """Combined tool output, stdout first."""
        return "\n".join(part for part in (self.stdout, self.stderr) if part)


class BindingGenerationFailure(GGMLBuildError):
    """Header preprocessing, parsing or filtering produced no bindings."""

    def __init__(self, message: str, diagnostics: str = ""):
        super().__init__(message)
        self.diagnostics = diagnostics
