"""Tests for build settings loading and saving."""

from pathlib import Path

import pytest
import yaml

from ggml_build.config import (
    BuildSettings,
    load_settings,
    save_settings,
    settings_to_yaml,
)
from ggml_build.exceptions import ConfigurationUnavailable
from ggml_build.models import BindingOptions


def _write(path, data):
    path.write_text(yaml.dump(data))
    return path


class TestLoadSettings:
    def test_from_file(self, tmp_path):
        config = _write(
            tmp_path / "ggml-build.yaml",
            {
                "source_dir": "vendor/ggml",
                "out_dir": "/abs/out",
                "features": ["CUDA", "vulkan"],
                "jobs": 4,
                "bindings": {"enum_style": "constants"},
            },
        )
        settings = load_settings(config, environ={})
        assert settings.source_dir == tmp_path / "vendor" / "ggml"
        assert settings.out_dir == Path("/abs/out")
        assert settings.features == ["cuda", "vulkan"]
        assert settings.jobs == 4
        assert settings.bindings.enum_style == "constants"

    def test_environment_overrides_file(self, tmp_path):
        config = _write(tmp_path / "c.yaml", {"source_dir": "/src", "out_dir": "/out"})
        settings = load_settings(
            config,
            environ={
                "GGML_BUILD_OUT_DIR": "/env/out",
                "GGML_BUILD_TARGET_OS": "android",
                "GGML_BUILD_JOBS": "3",
            },
        )
        assert settings.out_dir == Path("/env/out")
        assert settings.target_os == "android"
        assert settings.jobs == 3

    def test_overrides_win_and_none_is_ignored(self, tmp_path):
        settings = load_settings(
            environ={"GGML_BUILD_SOURCE_DIR": "/env/src", "GGML_BUILD_OUT_DIR": "/env/out"},
            overrides={"out_dir": "/cli/out", "source_dir": None, "target_os": "macos"},
        )
        assert settings.source_dir == Path("/env/src")
        assert settings.out_dir == Path("/cli/out")
        assert settings.target_os == "macos"

    def test_features_merge_across_layers(self, tmp_path):
        config = _write(
            tmp_path / "c.yaml", {"source_dir": "/s", "out_dir": "/o", "features": ["metal"]}
        )
        settings = load_settings(
            config,
            environ={"GGML_BUILD_FEATURE_CUDA": "0"},
            overrides={"features": ["metal", "vulkan"]},
        )
        assert settings.features == ["metal", "cuda", "vulkan"]

    def test_features_as_string(self, tmp_path):
        config = _write(
            tmp_path / "c.yaml", {"source_dir": "/s", "out_dir": "/o", "features": "cuda"}
        )
        assert load_settings(config, environ={}).features == ["cuda"]

        config.write_text("source_dir: /s\nout_dir: /o\nfeatures: metal, Vulkan\n")
        assert load_settings(config, environ={}).features == ["metal", "vulkan"]

    def test_features_as_mapping(self, tmp_path):
        config = _write(
            tmp_path / "c.yaml",
            {"source_dir": "/s", "out_dir": "/o", "features": {"cuda": False, "hip": None}},
        )
        assert load_settings(config, environ={}).features == ["cuda", "hip"]

    def test_features_of_wrong_type(self, tmp_path):
        config = _write(tmp_path / "c.yaml", {"source_dir": "/s", "out_dir": "/o", "features": 3})
        with pytest.raises(ConfigurationUnavailable, match="features"):
            load_settings(config, environ={})

    def test_missing_required(self):
        with pytest.raises(ConfigurationUnavailable) as exc_info:
            load_settings(environ={"GGML_BUILD_SOURCE_DIR": "/s"})
        assert exc_info.value.missing == ["out_dir"]
        assert "GGML_BUILD_OUT_DIR" in str(exc_info.value)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationUnavailable, match="not found"):
            load_settings(tmp_path / "nope.yaml", environ={})

    def test_invalid_yaml(self, tmp_path):
        config = tmp_path / "c.yaml"
        config.write_text("source_dir: [unclosed\n")
        with pytest.raises(ConfigurationUnavailable, match="Invalid YAML"):
            load_settings(config, environ={})

    def test_not_a_mapping(self, tmp_path):
        config = tmp_path / "c.yaml"
        config.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationUnavailable, match="mapping"):
            load_settings(config, environ={})

    def test_validation_error_wrapped(self, tmp_path):
        with pytest.raises(ConfigurationUnavailable, match="Invalid build settings"):
            load_settings(environ={}, overrides={"source_dir": "/s", "out_dir": "/o", "jobs": 0})


class TestDerivedPaths:
    def test_defaults(self):
        settings = BuildSettings(source_dir=Path("/v/ggml"), out_dir=Path("/o"))
        assert settings.header_dir == Path("/v/ggml/include")
        assert settings.resolved_entry_header == Path("/v/wrapper.h")
        assert settings.bindings_path == Path("/o/bindings.py")

    def test_explicit_entry_header(self):
        settings = BuildSettings(
            source_dir=Path("/v/ggml"), out_dir=Path("/o"), entry_header=Path("/x/api.h")
        )
        assert settings.resolved_entry_header == Path("/x/api.h")


class TestSaveSettings:
    def test_minimal_dump(self, tmp_path):
        settings = BuildSettings(source_dir=Path("/s"), out_dir=Path("/o"), features=["cuda"])
        path = save_settings(settings, tmp_path / "ggml-build.yaml")
        data = yaml.safe_load(path.read_text())
        assert data["source_dir"] == "/s"
        assert data["out_dir"] == "/o"
        assert data["features"] == ["cuda"]
        assert "profile" not in data
        assert "cmake" not in data

    def test_round_trip_with_defaults(self, tmp_path):
        settings = BuildSettings(
            source_dir=Path("/s"),
            out_dir=Path("/o"),
            bindings=BindingOptions(layout_tests=True),
        )
        path = save_settings(settings, tmp_path / "c.yaml", include_defaults=True)
        data = yaml.safe_load(path.read_text())
        assert data["profile"] == "Release"
        assert data["bindings"]["layout_tests"] is True
        assert "jobs" not in data
        assert load_settings(path, environ={}) == settings

    def test_to_yaml_keeps_field_order(self):
        settings = BuildSettings(source_dir=Path("/s"), out_dir=Path("/o"), target_os="linux")
        text = settings_to_yaml(settings)
        assert text.index("source_dir") < text.index("out_dir") < text.index("target_os")
