"""Tests for the safecopy command line."""

from __future__ import annotations

import json
import os
import subprocess
import sys
from pathlib import Path

import pytest
from click.testing import CliRunner

from safecopy import cli as cli_module
from safecopy.cli import _get_version, cli
from safecopy.errors import TransferError


def _subprocess_env() -> dict[str, str]:
    env = os.environ.copy()
    src_path = str(Path(__file__).resolve().parent.parent / "src")
    existing_pythonpath = env.get("PYTHONPATH", "")
    env["PYTHONPATH"] = f"{src_path}{os.pathsep}{existing_pythonpath}" if existing_pythonpath else src_path
    return env


@pytest.fixture
def runner():
    return CliRunner()


class TestCopyCommand:
    """Tests for the copy command."""

    def test_copies_and_prints_count(self, runner, tmp_path, make_file):
        source = make_file("source.bin", 12345)
        destination = tmp_path / "destination.bin"

        result = runner.invoke(cli, [source, str(destination)])

        assert result.exit_code == 0, result.output
        assert "Count: 12345" in result.output
        assert destination.read_bytes() == Path(source).read_bytes()

    def test_json_report(self, runner, tmp_path, make_file):
        source = make_file("source.bin", 10)
        destination = tmp_path / "destination.bin"

        result = runner.invoke(cli, [source, str(destination), "--json"])

        assert result.exit_code == 0, result.output
        report = json.loads(result.output)
        assert report["bytes_copied"] == 10
        assert report["source"] == source
        assert report["destination"] == str(destination)
        assert report["duration_s"] >= 0

    def test_buffer_size_option(self, runner, tmp_path, make_file):
        source = make_file("source.bin", 1000)

        result = runner.invoke(cli, [source, str(tmp_path / "out.bin"), "--buffer-size", "3"])

        assert result.exit_code == 0, result.output
        assert "Count: 1000" in result.output

    def test_rejects_zero_buffer_size(self, runner, tmp_path, make_file):
        source = make_file("source.bin", 1)
        result = runner.invoke(cli, [source, str(tmp_path / "out.bin"), "--buffer-size", "0"])
        assert result.exit_code == 2

    @pytest.mark.parametrize("args", [[], ["only-one"]])
    def test_missing_arguments_is_usage_error(self, runner, tmp_path, monkeypatch, args):
        calls = []
        monkeypatch.setattr(cli_module, "copy", lambda *a, **kw: calls.append(a))

        result = runner.invoke(cli, args)

        assert result.exit_code == 2
        assert "Usage" in result.output
        assert calls == []

    def test_missing_source_reports_error(self, runner, tmp_path):
        missing = tmp_path / "missing.bin"

        result = runner.invoke(cli, [str(missing), str(tmp_path / "out.bin")])

        assert result.exit_code == 1
        assert "Error:" in result.output
        assert "missing.bin" in result.output
        assert "Count" not in result.output

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "safecopy" in result.output.lower()
        assert "version" in result.output.lower()

    def test_get_version_function(self):
        version = _get_version()
        assert isinstance(version, str)
        assert version

    def test_ctrl_c_exits_130_without_count(self, runner, tmp_path, monkeypatch, make_file):
        def interrupted(*args, **kwargs):
            raise KeyboardInterrupt

        monkeypatch.setattr(cli_module, "copy", interrupted)

        result = runner.invoke(cli, [make_file("source.bin", 10), str(tmp_path / "out.bin")])

        assert result.exit_code == 130
        assert "Cancelled" in result.output
        assert "Count" not in result.output

    def test_transfer_failure_exits_1_without_count(self, runner, tmp_path, monkeypatch, make_file):
        async def failing_copy(*args, **kwargs):
            raise TransferError(OSError(28, "No space left on device"), bytes_copied=5)

        monkeypatch.setattr(cli_module, "copy", failing_copy)

        result = runner.invoke(cli, [make_file("source.bin", 10), str(tmp_path / "out.bin")])

        assert result.exit_code == 1
        assert "Error:" in result.output
        assert "No space left on device" in result.output
        assert "Count" not in result.output


class TestModuleEntrypoint:
    """Tests for running the package with python -m."""

    def test_version_option_subprocess(self):
        result = subprocess.run(
            [sys.executable, "-m", "safecopy", "--version"],
            capture_output=True,
            text=True,
            env=_subprocess_env(),
            check=False,
        )
        assert result.returncode == 0, result.stderr
        assert "safecopy version" in result.stdout

    def test_copies_via_subprocess(self, tmp_path, make_file):
        source = make_file("source.bin", 4096)
        destination = tmp_path / "destination.bin"

        result = subprocess.run(
            [sys.executable, "-m", "safecopy", source, str(destination)],
            capture_output=True,
            text=True,
            env=_subprocess_env(),
            check=False,
        )

        assert result.returncode == 0, result.stderr
        assert "Count: 4096" in result.stdout
        assert destination.read_bytes() == Path(source).read_bytes()
