"""Error definitions for build orchestration.

Every failure the orchestrator can report is a BootcImageGenError with a
stable code for programmatic handling. The orchestrator converts them into
a single human-readable message with describe_error().
"""

from __future__ import annotations

# Error code constants
INVALID_REQUEST = "invalid_request"
ENVIRONMENT_SETUP_FAILED = "environment_setup_failed"
PROCESS_FAILED = "process_failed"
PROCESS_TIMEOUT = "process_timeout"
PULL_FAILED = "pull_failed"
BUILD_FAILED = "build_failed"
ARTIFACT_DISCOVERY_FAILED = "artifact_discovery_failed"
CHECKSUM_FAILED = "checksum_failed"
INTERNAL_ERROR = "internal_error"


class BootcImageGenError(Exception):
    """Base error for all orchestration failures."""

    default_code = INTERNAL_ERROR

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code


class InvalidRequest(BootcImageGenError):
    """The build request is malformed or incomplete."""

    default_code = INVALID_REQUEST


class EnvironmentSetupFailure(BootcImageGenError):
    """Container storage could not be reset or reconfigured."""

    default_code = ENVIRONMENT_SETUP_FAILED


class ProcessFailure(BootcImageGenError):
    """An external program exited non-zero or could not be started."""

    default_code = PROCESS_FAILED

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        stderr: str | None = None,
        code: str | None = None,
    ) -> None:
        super().__init__(message, code)
        self.exit_code = exit_code
        self.stderr = stderr


class PullFailure(ProcessFailure):
    """Pulling an image reference failed."""

    default_code = PULL_FAILED

    def __init__(
        self,
        image: str,
        exit_code: int | None = None,
        stderr: str | None = None,
        reason: str | None = None,
    ) -> None:
        message = f"Failed to pull {image}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, exit_code=exit_code, stderr=stderr)
        self.image = image


class BuildProcessFailure(ProcessFailure):
    """The builder run exited non-zero or terminated unexpectedly."""

    default_code = BUILD_FAILED


class ArtifactDiscoveryFailure(BootcImageGenError):
    """The manifest or an artifact type could not be determined."""

    default_code = ARTIFACT_DISCOVERY_FAILED


class ChecksumFailure(BootcImageGenError):
    """An artifact could not be read for checksumming."""

    default_code = CHECKSUM_FAILED

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Cannot checksum {path}: {reason}")
        self.path = path


def describe_error(exc: BaseException) -> str:
    """Render an error as a single human-readable line naming its kind.

    Args:
        exc: The error to describe.

    Returns:
        Message of the form "<ErrorKind>: <message>".
    """
    return f"{type(exc).__name__}: {exc}"


__all__ = [
    "ARTIFACT_DISCOVERY_FAILED",
    "BUILD_FAILED",
    "CHECKSUM_FAILED",
    "ENVIRONMENT_SETUP_FAILED",
    "INTERNAL_ERROR",
    "INVALID_REQUEST",
    "PROCESS_FAILED",
    "PROCESS_TIMEOUT",
    "PULL_FAILED",
    "ArtifactDiscoveryFailure",
    "BootcImageGenError",
    "BuildProcessFailure",
    "ChecksumFailure",
    "EnvironmentSetupFailure",
    "InvalidRequest",
    "ProcessFailure",
    "PullFailure",
    "describe_error",
]
