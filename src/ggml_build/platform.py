"""Target platform resolution."""

from __future__ import annotations

import sys
from typing import Optional

from ggml_build.models import PlatformFamily, PlatformTarget

# OS identifier -> family. Anything absent resolves to UNKNOWN.
OS_FAMILIES: dict[str, PlatformFamily] = {
    "linux": PlatformFamily.LINUX_LIKE,
    "freebsd": PlatformFamily.LINUX_LIKE,
    "netbsd": PlatformFamily.LINUX_LIKE,
    "openbsd": PlatformFamily.LINUX_LIKE,
    "macos": PlatformFamily.APPLE,
    "darwin": PlatformFamily.APPLE,
    "ios": PlatformFamily.APPLE,
    "tvos": PlatformFamily.APPLE,
    "watchos": PlatformFamily.APPLE,
    "windows": PlatformFamily.WINDOWS,
    "win32": PlatformFamily.WINDOWS,
    "android": PlatformFamily.ANDROID,
}


def _normalize_os(identifier: str) -> str:
    os_name = identifier.strip().lower()
    # sys.platform spells some of these with a version suffix (freebsd14)
    for known in ("freebsd", "netbsd", "openbsd"):
        if os_name.startswith(known):
            return known
    return os_name


def host_os() -> str:
    if hasattr(sys, "getandroidapilevel"):
        return "android"
    return _normalize_os(sys.platform)


def resolve_platform(identifier: Optional[str] = None) -> PlatformTarget:
    """Resolve an OS identifier (default: the host) to a PlatformTarget."""
    os_name = _normalize_os(identifier) if identifier else host_os()
    family = OS_FAMILIES.get(os_name, PlatformFamily.UNKNOWN)
    return PlatformTarget(os=os_name, family=family)
