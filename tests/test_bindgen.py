"""Tests for the binding generator facade."""

import logging
import types
from unittest.mock import patch

import pytest

from ggml_build.bindings import (
    Allowlist,
    BindingGenerator,
    find_preprocessor,
    parse_header,
    write_atomic,
)
from ggml_build.exceptions import BindingGenerationFailure
from ggml_build.models import BindingOptions

BUILD_CONSTANTS = {"GGML_BUILD_REVISION": "abc1234", "GGML_BUILD_COMMIT_TIME": "1700000000"}


def _load(path):
    module = types.ModuleType("ggml_bindings")
    exec(compile(path.read_text(), str(path), "exec"), module.__dict__)
    return module


@pytest.fixture
def generator(ggml_tree):
    return BindingGenerator(ggml_tree.parent / "wrapper.h", include_dirs=[ggml_tree / "include"])


class TestGenerate:
    def test_writes_module(self, generator, tmp_path, ggml_header):
        output = tmp_path / "out" / "bindings.py"
        with patch(
            "ggml_build.bindings.generator.load_header_surface",
            return_value=parse_header(ggml_header),
        ):
            result = generator.generate(output, BUILD_CONSTANTS)

        text = output.read_text()
        assert result.path == output.resolve()
        assert result.line_count == text.count("\n")
        assert result.byte_count == len(text.encode("utf-8"))
        assert result.counts["functions"] == 3
        assert result.skipped == []
        assert "helper_not_exported" not in text

        module = _load(output)
        assert module.GGML_BUILD_REVISION == "abc1234"
        assert set(module._PROTOTYPES) == {"ggml_init", "ggml_free", "ggml_nelements"}

    def test_nothing_allowlisted_is_fatal(self, ggml_tree, tmp_path, ggml_header):
        generator = BindingGenerator(
            ggml_tree.parent / "wrapper.h", allowlist=Allowlist.from_prefixes(functions=("llama_",))
        )
        output = tmp_path / "bindings.py"
        with patch(
            "ggml_build.bindings.generator.load_header_surface",
            return_value=parse_header(ggml_header),
        ):
            with pytest.raises(BindingGenerationFailure, match="matched the allowlist"):
                generator.generate(output)
        assert not output.exists()

    def test_preprocessor_failure_leaves_no_output(self, generator, tmp_path):
        output = tmp_path / "bindings.py"
        with patch("ggml_build.bindings.header.find_preprocessor", return_value=None):
            with pytest.raises(BindingGenerationFailure):
                generator.generate(output)
        assert not output.exists()

    def test_skipped_declarations_are_logged(self, generator, tmp_path, caplog, ggml_header):
        surface = parse_header(ggml_header + "struct hidden; void ggml_take(struct hidden h);\n")
        with patch(
            "ggml_build.bindings.generator.load_header_surface", return_value=surface
        ):
            with caplog.at_level(logging.WARNING, logger="ggml_build"):
                result = generator.generate(tmp_path / "bindings.py")
        assert result.skipped == ["ggml_take"]
        assert "ggml_take" in caplog.text

    def test_unparsed_declarations_are_reported(self, generator, tmp_path, caplog, ggml_header):
        surface = parse_header(
            ggml_header
            + "struct ggml_cgraph { int n_nodes; struct ggml_tensor * nodes[GGML_UNKNOWN]; };\n"
            + "struct helper_state { int x[HELPER_SIZE]; };\n"
        )
        with patch(
            "ggml_build.bindings.generator.load_header_surface", return_value=surface
        ):
            with caplog.at_level(logging.WARNING, logger="ggml_build"):
                result = generator.generate(tmp_path / "bindings.py")
        assert result.skipped == ["ggml_cgraph"]
        assert "could not be parsed: ggml_cgraph" in caplog.text
        assert "helper_state" not in caplog.text

    def test_options_forwarded(self, ggml_tree, ggml_header):
        generator = BindingGenerator(
            ggml_tree.parent / "wrapper.h", options=BindingOptions(enum_style="constants")
        )
        with patch(
            "ggml_build.bindings.generator.load_header_surface",
            return_value=parse_header(ggml_header),
        ):
            rendered = generator.render(generator.load())
        assert "GGML_TYPE_F16 = 1" in rendered.source
        assert "_ExtensibleEnum" not in rendered.source


@pytest.mark.skipif(find_preprocessor() is None, reason="no C compiler available")
class TestGenerateWithCompiler:
    def test_end_to_end(self, generator, tmp_path):
        output = tmp_path / "bindings.py"
        result = generator.generate(output, BUILD_CONSTANTS)
        module = _load(output)
        assert module.GGML_MAX_DIMS == 4
        assert module.ggml_type.GGML_TYPE_F16 == 1
        assert set(module._PROTOTYPES) == {"ggml_init", "ggml_free", "ggml_nelements"}
        assert result.counts["records"] >= 3
        assert dict(module.ggml_tensor._fields_)["op_params"]._length_ == 16

    def test_broken_include_reports_compiler_output(self, tmp_path):
        header = tmp_path / "wrapper.h"
        header.write_text('#include "missing_ggml.h"\n')
        generator = BindingGenerator(header)
        with pytest.raises(BindingGenerationFailure) as exc_info:
            generator.generate(tmp_path / "bindings.py")
        assert "missing_ggml.h" in exc_info.value.diagnostics


class TestWriteAtomic:
    def test_replaces_existing(self, tmp_path):
        path = tmp_path / "bindings.py"
        path.write_text("old")
        assert write_atomic(path, "new ✓\n") == len("new ✓\n".encode("utf-8"))
        assert path.read_text(encoding="utf-8") == "new ✓\n"
        assert list(tmp_path.iterdir()) == [path]

    def test_failure_keeps_old_content(self, tmp_path):
        path = tmp_path / "bindings.py"
        path.write_text("old")
        with patch("ggml_build.bindings.generator.os.replace", side_effect=OSError("disk")):
            with pytest.raises(OSError):
                write_atomic(path, "new")
        assert path.read_text() == "old"
        assert list(tmp_path.iterdir()) == [path]

    def test_creates_parent(self, tmp_path):
        path = tmp_path / "a" / "b" / "bindings.py"
        write_atomic(path, "x = 1\n")
        assert path.read_text() == "x = 1\n"
