"""Shared fixtures for bootc_imagegen tests."""

import io
from unittest.mock import MagicMock, patch

import pytest


class FakeProcess:
    """Stand-in for a subprocess.Popen object with canned results."""

    def __init__(self, cmd, kwargs, returncode=0, stderr="", wait_error=None):
        self.args = cmd
        self.kwargs = kwargs
        self.returncode = returncode
        self.stderr = io.StringIO(stderr)
        self.stdin = MagicMock() if kwargs.get("stdin") is not None else None
        self.wait_error = wait_error
        self.killed = False

    def wait(self, timeout=None):
        if self.wait_error is not None and not self.killed:
            raise self.wait_error
        return self.returncode

    def kill(self):
        self.killed = True

    @property
    def input_text(self) -> str:
        """Text written to stdin."""
        if self.stdin is None:
            return ""
        return "".join(c.args[0] for c in self.stdin.write.call_args_list)


@pytest.fixture
def fake_popen():
    """Factory patching subprocess.Popen with canned results.

    Usage:
        with fake_popen(returncode=1, stderr="boom") as mock_popen:
            ...
        mock_popen.processes[0].args
    """

    def factory(returncode=0, stderr="", wait_error=None, side_effect=None):
        processes: list[FakeProcess] = []

        def spawn(cmd, **kwargs):
            if side_effect is not None:
                raise side_effect
            process = FakeProcess(cmd, kwargs, returncode, stderr, wait_error)
            processes.append(process)
            return process

        mock = MagicMock(side_effect=spawn)
        mock.processes = processes
        return patch("subprocess.Popen", mock)

    return factory
