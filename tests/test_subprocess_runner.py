#!/usr/bin/env python3
"""Tests for SubprocessRunner."""

import subprocess
import sys
from unittest.mock import MagicMock

from snapbox.backends.subprocess_runner import EXIT_NOT_FOUND, SubprocessRunner


class TestSubprocessRunner:
    """subprocess.run is mocked; nothing is executed."""

    def test_success(self, mock_subprocess):
        mock_subprocess.return_value = MagicMock(returncode=0, stdout="out", stderr="")

        result = SubprocessRunner().run(["qemu-img", "snapshot", "-l", "img"], timeout=5)

        assert result.success
        assert result.stdout == "out"
        args, kwargs = mock_subprocess.call_args
        assert args[0] == ["qemu-img", "snapshot", "-l", "img"]
        assert kwargs["timeout"] == 5
        assert kwargs["check"] is False
        assert kwargs["capture_output"] is True
        assert kwargs["encoding"] == "utf-8"
        assert kwargs["errors"] == "replace"

    def test_non_zero_exit_does_not_raise(self, mock_subprocess):
        mock_subprocess.return_value = MagicMock(returncode=1, stdout="", stderr="qemu-img: boom\n")

        result = SubprocessRunner().run(["qemu-img", "snapshot", "-c", "@s1", "img"])

        assert not result.success
        assert result.returncode == 1
        assert result.diagnostics == "qemu-img: boom"

    def test_timeout(self, mock_subprocess):
        mock_subprocess.side_effect = subprocess.TimeoutExpired(
            cmd=["qemu-img"], timeout=3, output=b"partial"
        )

        result = SubprocessRunner().run(["qemu-img", "snapshot", "-d", "@s1", "img"], timeout=3)

        assert result.timed_out
        assert not result.success
        assert result.stdout == "partial"
        assert "timed out after 3s" in result.diagnostics

    def test_missing_executable(self, mock_subprocess):
        mock_subprocess.side_effect = FileNotFoundError(2, "No such file or directory", "qemu-img")

        result = SubprocessRunner().run(["qemu-img", "snapshot", "-l", "img"])

        assert result.returncode == EXIT_NOT_FOUND
        assert "No such file or directory" in result.diagnostics

    def test_cwd_and_env(self, mock_subprocess, tmp_path):
        mock_subprocess.return_value = MagicMock(returncode=0, stdout=None, stderr=None)

        result = SubprocessRunner().run(["true"], cwd=tmp_path, env={"A": "1"})

        kwargs = mock_subprocess.call_args.kwargs
        assert kwargs["cwd"] == str(tmp_path)
        assert kwargs["env"] == {"A": "1"}
        assert result.stdout == ""
        assert result.stderr == ""


class TestSubprocessRunnerDecoding:
    """Runs a real child process to exercise output decoding."""

    def test_undecodable_output_is_replaced(self):
        script = (
            "import sys; "
            "sys.stderr.buffer.write(b'qemu-img: Could not open disk-\\xff\\xfe.qcow2\\n'); "
            "sys.exit(1)"
        )

        result = SubprocessRunner().run([sys.executable, "-c", script], timeout=30)

        assert result.returncode == 1
        assert not result.success
        assert "Could not open disk-" in result.diagnostics
        assert "\ufffd" in result.diagnostics
