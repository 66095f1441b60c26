"""ggml-build - Build orchestration, linkage planning and bindings for ggml."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("ggml-build")
except PackageNotFoundError:
    # Package not installed (running from source without pip install -e)
    __version__ = "0.0.0.dev"

from .config import BuildSettings, load_settings
from .orchestrator import BuildOrchestrator, BuildReport

__all__ = ["BuildOrchestrator", "BuildReport", "BuildSettings", "load_settings", "__version__"]
