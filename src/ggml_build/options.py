"""Backend option resolution.

A backend is enabled by the mere presence of its flag. The flag's value is
never parsed, so ``{"cuda": False}`` and ``GGML_BUILD_FEATURE_CUDA=0`` both
enable CUDA. Options never imply one another.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Mapping
from typing import Optional

from ggml_build.models import BackendOption, BackendSelection

logger = logging.getLogger(__name__)

FEATURE_ENV_PREFIX = "GGML_BUILD_FEATURE_"

_BY_NAME: dict[str, BackendOption] = {b.value: b for b in BackendOption}


def lookup_backend(name: str) -> Optional[BackendOption]:
    """Map a flag name (any case, ``-`` or ``_``) to a backend, or None."""
    return _BY_NAME.get(name.strip().lower().replace("-", "_"))


def resolve_options(flags: Mapping[str, object] | Iterable[str] = ()) -> BackendSelection:
    """Resolve caller flags into a BackendSelection.

    Args:
        flags: Flag names, or a mapping whose keys are flag names. Only the
            keys are inspected.

    Returns:
        Selection with CPU forced on and every present, known flag enabled.
    """
    names = flags.keys() if isinstance(flags, Mapping) else flags
    enabled = {BackendOption.CPU}
    for name in names:
        backend = lookup_backend(str(name))
        if backend is None:
            logger.debug("Ignoring unknown backend flag %r", name)
            continue
        enabled.add(backend)
    return BackendSelection(enabled=frozenset(enabled))


def features_from_environment(
    environ: Optional[Mapping[str, str]] = None,
    prefix: str = FEATURE_ENV_PREFIX,
) -> list[str]:
    """Feature names whose ``<prefix><NAME>`` variable is set, in any value."""
    environ = os.environ if environ is None else environ
    return [key[len(prefix):].lower() for key in environ if key.startswith(prefix)]


def options_from_environment(
    environ: Optional[Mapping[str, str]] = None,
    prefix: str = FEATURE_ENV_PREFIX,
) -> BackendSelection:
    return resolve_options(features_from_environment(environ, prefix))
