"""Tests for target platform resolution."""

from unittest.mock import patch

import pytest

from ggml_build.models import PlatformFamily
from ggml_build.platform import host_os, resolve_platform


class TestResolvePlatform:
    @pytest.mark.parametrize(
        "identifier,family",
        [
            ("linux", PlatformFamily.LINUX_LIKE),
            ("freebsd", PlatformFamily.LINUX_LIKE),
            ("netbsd", PlatformFamily.LINUX_LIKE),
            ("openbsd", PlatformFamily.LINUX_LIKE),
            ("macos", PlatformFamily.APPLE),
            ("darwin", PlatformFamily.APPLE),
            ("ios", PlatformFamily.APPLE),
            ("tvos", PlatformFamily.APPLE),
            ("watchos", PlatformFamily.APPLE),
            ("windows", PlatformFamily.WINDOWS),
            ("win32", PlatformFamily.WINDOWS),
            ("android", PlatformFamily.ANDROID),
        ],
    )
    def test_known_families(self, identifier, family):
        assert resolve_platform(identifier).family is family

    def test_case_and_whitespace(self):
        target = resolve_platform("  MacOS ")
        assert target.os == "macos"
        assert target.family is PlatformFamily.APPLE

    def test_versioned_bsd(self):
        target = resolve_platform("freebsd14")
        assert target.os == "freebsd"
        assert target.family is PlatformFamily.LINUX_LIKE

    @pytest.mark.parametrize("identifier", ["haiku", "fuchsia", "emscripten", "solaris"])
    def test_unknown(self, identifier):
        target = resolve_platform(identifier)
        assert target.family is PlatformFamily.UNKNOWN
        assert target.os == identifier


class TestHostDetection:
    def test_default_uses_sys_platform(self):
        with patch("ggml_build.platform.sys") as fake_sys:
            fake_sys.platform = "linux"
            del fake_sys.getandroidapilevel
            assert host_os() == "linux"
            assert resolve_platform().family is PlatformFamily.LINUX_LIKE

    def test_android_detected(self):
        with patch("ggml_build.platform.sys") as fake_sys:
            fake_sys.platform = "linux"
            fake_sys.getandroidapilevel.return_value = 24
            assert host_os() == "android"
            assert resolve_platform().family is PlatformFamily.ANDROID
