"""Process runner for container runtime commands.

This module handles:
- Running external programs with elevated privilege
- Streaming stderr to the job log while keeping a tail for error reports
- Pulling the builder and target images
- Executing the builder run from an InvocationPlan
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import sys
import threading
from collections import deque
from collections.abc import Mapping, Sequence
from typing import IO, TYPE_CHECKING

from bootc_imagegen.actions import redact
from bootc_imagegen.builds.arguments import InvocationPlan, pull_arguments
from bootc_imagegen.errors import (
    PROCESS_TIMEOUT,
    BuildProcessFailure,
    ProcessFailure,
    PullFailure,
)

if TYPE_CHECKING:
    from bootc_imagegen.config import Settings

logger = logging.getLogger(__name__)

# Lines of stderr kept for ProcessFailure.stderr
STDERR_TAIL_LINES = 200

# Seconds to wait for the stderr reader after a killed process
READER_JOIN_TIMEOUT = 5


def compose_privileged_command(
    program: str,
    args: Sequence[str],
    elevate_with: str | None = "sudo",
    preserve_env: Sequence[str] = (),
) -> list[str]:
    """Prefix a command with the privilege elevation program.

    Args:
        program: Program to run.
        args: Program arguments.
        elevate_with: Elevation command, or empty/None to run unprivileged.
        preserve_env: Variable names the elevation command must keep
            (passed as sudo's --preserve-env).

    Returns:
        Command as list of strings suitable for subprocess.
    """
    cmd = [program, *args]
    if elevate_with:
        prefix = shlex.split(elevate_with)
        if preserve_env:
            prefix.append(f"--preserve-env={','.join(preserve_env)}")
        cmd = [*prefix, *cmd]
    return cmd


def _pump_stderr(stream: IO[str], tail: deque[str]) -> None:
    """Echo stderr lines to our stderr as they arrive, keeping the tail."""
    for line in stream:
        line = redact(line)
        tail.append(line)
        sys.stderr.write(line)
        sys.stderr.flush()


def run_privileged(
    program: str,
    args: Sequence[str],
    elevate_with: str | None = "sudo",
    input_text: str | None = None,
    timeout: int | None = None,
    preserve_env: Sequence[str] = (),
    env: Mapping[str, str] | None = None,
    discard_stdout: bool = False,
) -> None:
    """Run a program with elevated privilege.

    Stdout is inherited so output streams to the job log. Stderr is echoed
    line by line while the program runs; the last STDERR_TAIL_LINES lines
    are kept for the error report.

    Args:
        program: Program to run.
        args: Program arguments.
        elevate_with: Elevation command, or empty/None to run unprivileged.
        input_text: Optional text fed to the program's stdin.
        timeout: Timeout in seconds (None = no timeout).
        preserve_env: Variable names kept across the elevation command.
        env: Environment for the program (None = inherit ours).
        discard_stdout: Send the program's stdout to /dev/null.

    Raises:
        ProcessFailure: If the program cannot be started, times out, or
            exits non-zero.
    """
    cmd = compose_privileged_command(program, args, elevate_with, preserve_env)
    cmd_str = redact(shlex.join(cmd))
    logger.info("Executing: %s", cmd_str)

    try:
        proc = subprocess.Popen(
            cmd,
            stdin=subprocess.PIPE if input_text is not None else None,
            stdout=subprocess.DEVNULL if discard_stdout else None,
            stderr=subprocess.PIPE,
            text=True,
            env=dict(env) if env is not None else None,
        )
    except OSError as e:
        raise ProcessFailure(f"Failed to execute {program}: {e}") from e

    tail: deque[str] = deque(maxlen=STDERR_TAIL_LINES)
    reader = threading.Thread(
        target=_pump_stderr, args=(proc.stderr, tail), daemon=True
    )
    reader.start()

    if input_text is not None and proc.stdin is not None:
        try:
            proc.stdin.write(input_text)
            proc.stdin.close()
        except BrokenPipeError:
            # The exit status below reports why the program stopped reading
            logger.debug("%s closed stdin before reading all input", program)

    try:
        returncode = proc.wait(timeout=timeout)
    except subprocess.TimeoutExpired as e:
        proc.kill()
        proc.wait()
        reader.join(READER_JOIN_TIMEOUT)
        raise ProcessFailure(
            f"{program} timed out after {timeout} seconds",
            exit_code=-1,
            stderr="".join(tail) or None,
            code=PROCESS_TIMEOUT,
        ) from e

    reader.join()
    stderr = "".join(tail)

    if returncode != 0:
        logger.error("%s exited with code %d", program, returncode)
        raise ProcessFailure(
            f"{program} exited with code {returncode}",
            exit_code=returncode,
            stderr=stderr or None,
        )


def pull_image(
    image: str,
    settings: Settings,
    tls_verify: bool = True,
    platform: str | None = None,
) -> None:
    """Pull an image reference with the container runtime.

    Args:
        image: Image reference to pull.
        settings: Application settings.
        tls_verify: Whether to verify TLS.
        platform: Optional target platform.

    Raises:
        PullFailure: If the pull fails.
    """
    logger.info("Pulling image %s", image)
    try:
        run_privileged(
            settings.runtime,
            pull_arguments(image, tls_verify=tls_verify, platform=platform),
            elevate_with=settings.elevate_with,
            timeout=settings.pull_timeout,
        )
    except ProcessFailure as e:
        raise PullFailure(
            image, exit_code=e.exit_code, stderr=e.stderr, reason=e.message
        ) from e


def run_build(plan: InvocationPlan, settings: Settings) -> None:
    """Run the builder container from an invocation plan.

    Passthrough variables are set in the child environment and kept across
    the elevation command, so their values never appear in argv.

    Args:
        plan: Synthesized invocation plan.
        settings: Application settings.

    Raises:
        BuildProcessFailure: If the builder run fails.
    """
    env = None
    if plan.environment:
        env = {**os.environ, **plan.environment}
    try:
        run_privileged(
            settings.runtime,
            plan.command,
            elevate_with=settings.elevate_with,
            timeout=settings.build_timeout,
            preserve_env=plan.passthrough_names,
            env=env,
        )
    except ProcessFailure as e:
        message = f"Build failed: {e.message}"
        if e.stderr:
            message = f"{message}\n{e.stderr.strip()}"
        raise BuildProcessFailure(
            message, exit_code=e.exit_code, stderr=e.stderr
        ) from e


__all__ = [
    "compose_privileged_command",
    "pull_image",
    "run_build",
    "run_privileged",
]
