"""Build settings: YAML file, then environment, then explicit overrides.

Handles loading and saving ``ggml-build.yaml``.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError

from ggml_build.exceptions import ConfigurationUnavailable
from ggml_build.models import BindingOptions
from ggml_build.options import FEATURE_ENV_PREFIX, features_from_environment

DEFAULT_CONFIG_FILE = "ggml-build.yaml"
DEFAULT_ENTRY_HEADER = "wrapper.h"

REQUIRED_KEYS = ("source_dir", "out_dir")

# environment variable -> settings key
ENV_KEYS: dict[str, str] = {
    "GGML_BUILD_SOURCE_DIR": "source_dir",
    "GGML_BUILD_OUT_DIR": "out_dir",
    "GGML_BUILD_TARGET_OS": "target_os",
    "GGML_BUILD_ENTRY_HEADER": "entry_header",
    "GGML_BUILD_JOBS": "jobs",
}

_PATH_KEYS = ("source_dir", "out_dir", "entry_header")


class BuildSettings(BaseModel):
    """Everything one build invocation needs."""

    source_dir: Path = Field(description="Vendored ggml source tree (holds CMakeLists.txt)")
    out_dir: Path = Field(description="Build output directory, owned by one invocation")
    entry_header: Optional[Path] = Field(
        default=None, description="Binding entry header, defaults to wrapper.h beside the sources"
    )
    target_os: Optional[str] = Field(default=None, description="Target OS, defaults to the host")
    features: list[str] = Field(default_factory=list, description="Enabled backend flags")
    profile: str = "Release"
    jobs: Optional[int] = Field(default=None, ge=1)
    cmake: str = "cmake"
    generator: Optional[str] = None
    extra_defines: dict[str, str] = Field(default_factory=dict)
    include_dirs: list[Path] = Field(
        default_factory=list, description="Extra include paths for the binding preprocessor"
    )
    bindings: BindingOptions = Field(default_factory=BindingOptions)
    bindings_file: Path = Path("bindings.py")

    @property
    def header_dir(self) -> Path:
        """Public header directory of the native sources."""
        return self.source_dir / "include"

    @property
    def resolved_entry_header(self) -> Path:
        if self.entry_header is not None:
            return self.entry_header
        return self.source_dir.parent / DEFAULT_ENTRY_HEADER

    @property
    def bindings_path(self) -> Path:
        return self.out_dir / self.bindings_file


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.is_file():
        raise ConfigurationUnavailable(f"Configuration file not found: {path}")
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationUnavailable(f"Invalid YAML in {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationUnavailable(f"{path} must contain a mapping, got {type(data).__name__}")

    # relative paths in the file are relative to the file
    for key in _PATH_KEYS:
        if data.get(key) and not Path(data[key]).is_absolute():
            data[key] = str(path.parent / data[key])
    return data


def _feature_names(value: Any, source: str) -> list[str]:
    """Feature names from a list, a mapping (keys only) or a comma-separated string."""
    if value is None:
        return []
    if isinstance(value, str):
        return [name for name in re.split(r"[,\s]+", value) if name]
    if isinstance(value, Mapping):
        return [str(name) for name in value]
    if isinstance(value, (list, tuple)):
        return [str(name) for name in value]
    raise ConfigurationUnavailable(
        f"features in {source} must be a list of backend names, got {type(value).__name__}"
    )


def load_settings(
    path: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> BuildSettings:
    """Resolve build settings from every layer.

    Args:
        path: Optional YAML file.
        environ: Environment to read, defaults to ``os.environ``.
        overrides: Values from the caller (e.g. CLI options). None values
            are ignored; ``features`` are added to the other layers' features.

    Returns:
        Validated BuildSettings

    Raises:
        ConfigurationUnavailable: A required value is missing, or a layer is
            unreadable or fails validation.
    """
    environ = os.environ if environ is None else environ
    data: dict[str, Any] = _read_yaml(Path(path)) if path else {}
    features = _feature_names(data.get("features"), str(path))

    for var, key in ENV_KEYS.items():
        value = environ.get(var)
        if value:
            data[key] = value
    features += features_from_environment(environ, FEATURE_ENV_PREFIX)

    for key, value in (overrides or {}).items():
        if value is None:
            continue
        if key == "features":
            features += _feature_names(value, "overrides")
        else:
            data[key] = value

    data["features"] = list(dict.fromkeys(str(f).lower() for f in features))

    missing = [key for key in REQUIRED_KEYS if not data.get(key)]
    if missing:
        raise ConfigurationUnavailable(
            f"Missing required build settings: {', '.join(missing)}. Set them in "
            f"{DEFAULT_CONFIG_FILE}, via "
            + ", ".join(var for var, key in ENV_KEYS.items() if key in missing)
            + ", or on the command line",
            missing=missing,
        )

    try:
        return BuildSettings.model_validate(data)
    except ValidationError as e:
        raise ConfigurationUnavailable(f"Invalid build settings: {e}") from e


def _dump(settings: BuildSettings, include_defaults: bool) -> dict[str, Any]:
    data = settings.model_dump(
        exclude_none=True,
        exclude_defaults=not include_defaults,
        mode="json",
    )
    # Always include the required keys
    for key in REQUIRED_KEYS:
        data[key] = str(getattr(settings, key))
    return data


def save_settings(
    settings: BuildSettings,
    path: Union[str, Path],
    include_defaults: bool = False,
) -> Path:
    """Save build settings to a YAML file.

    Returns:
        Path to saved file
    """
    path = Path(path)
    with open(path, "w") as f:
        yaml.dump(
            _dump(settings, include_defaults),
            f,
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
        )
    return path


def settings_to_yaml(settings: BuildSettings, include_defaults: bool = False) -> str:
    return yaml.dump(
        _dump(settings, include_defaults),
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
    )
