"""Tests for revision metadata extraction."""

import shutil
import subprocess
from unittest.mock import patch

import pytest

from ggml_build.models import BuildMetadata
from ggml_build.native.metadata import UNKNOWN_REVISION, extract_metadata


def _completed(cmd, returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(cmd, returncode, stdout=stdout, stderr=stderr)


class TestExtractMetadata:
    def test_reads_revision_and_time(self, tmp_path):
        outputs = {"--format=%h": "a1b2c3d\n", "--format=%cI": "2024-05-01T12:00:00+02:00\n"}

        def fake_run(cmd, **kwargs):
            assert kwargs["cwd"] == tmp_path
            assert cmd[-2:] == ["--", "."]
            return _completed(cmd, stdout=outputs[cmd[3]])

        with patch("ggml_build.native.metadata.subprocess.run", side_effect=fake_run) as run:
            metadata = extract_metadata(tmp_path)

        assert run.call_count == 2
        assert metadata == BuildMetadata(
            revision="a1b2c3d", timestamp="2024-05-01T12:00:00+02:00"
        )

    def test_git_missing_falls_back(self, tmp_path):
        with patch(
            "ggml_build.native.metadata.subprocess.run", side_effect=FileNotFoundError("git")
        ):
            metadata = extract_metadata(tmp_path, clock=lambda: 1700000000.75)
        assert metadata.revision == UNKNOWN_REVISION
        assert metadata.timestamp == "1700000000"

    def test_not_a_repository_falls_back(self, tmp_path):
        with patch("ggml_build.native.metadata.subprocess.run") as run:
            run.side_effect = lambda cmd, **kw: _completed(
                cmd, returncode=128, stderr="fatal: not a git repository"
            )
            metadata = extract_metadata(tmp_path, clock=lambda: 42.0)
        assert metadata.revision == "unknown"
        assert metadata.timestamp == "42"

    def test_each_query_falls_back_independently(self, tmp_path):
        def fake_run(cmd, **kwargs):
            if cmd[3] == "--format=%h":
                return _completed(cmd, stdout="deadbee\n")
            return _completed(cmd, returncode=1)

        with patch("ggml_build.native.metadata.subprocess.run", side_effect=fake_run):
            metadata = extract_metadata(tmp_path, clock=lambda: 5.0)
        assert metadata.revision == "deadbee"
        assert metadata.timestamp == "5"

    def test_empty_output_is_a_failure(self, tmp_path):
        with patch("ggml_build.native.metadata.subprocess.run") as run:
            run.side_effect = lambda cmd, **kw: _completed(cmd, stdout="\n")
            metadata = extract_metadata(tmp_path, clock=lambda: 7.0)
        assert metadata.revision == UNKNOWN_REVISION
        assert metadata.timestamp == "7"

    def test_missing_directory_never_raises(self, tmp_path):
        metadata = extract_metadata(tmp_path / "does-not-exist", clock=lambda: 9.0)
        assert metadata.revision == UNKNOWN_REVISION
        assert metadata.timestamp == "9"

    @pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
    def test_real_directory_without_history(self, tmp_path):
        metadata = extract_metadata(tmp_path)
        assert metadata.revision
        assert metadata.timestamp

    def test_as_constants(self):
        metadata = BuildMetadata(revision="abc1234", timestamp="1700000000")
        assert metadata.as_constants() == {
            "GGML_BUILD_REVISION": "abc1234",
            "GGML_BUILD_COMMIT_TIME": "1700000000",
        }
