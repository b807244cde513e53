"""CI workflow-command channel.

This module handles the GitHub Actions side channel:
- Registering secret values for masking in job logs
- Grouping log output per build phase
- Writing step outputs to $GITHUB_OUTPUT
- Reporting the failure annotation

Workflow commands are plain lines on stdout, so every helper here also works
outside of CI (the lines are just printed).
"""

from __future__ import annotations

import logging
import os
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TextIO

logger = logging.getLogger(__name__)

MASK_PLACEHOLDER = "***"

# Values registered with add_mask during this process
_masked_values: set[str] = set()


def _escape_data(value: str) -> str:
    """Escape a workflow command payload."""
    return value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def _issue(command: str, value: str = "", stream: TextIO | None = None) -> None:
    """Print a workflow command line (stdout unless another stream is given)."""
    stream = stream or sys.stdout
    stream.write(f"::{command}::{_escape_data(value)}\n")
    stream.flush()


def add_mask(value: str) -> None:
    """Register a secret so the runner masks it in every log line.

    Args:
        value: Secret value. Empty and whitespace-only values are ignored.
    """
    if not value.strip():
        return
    _masked_values.add(value)
    _issue("add-mask", value)


def redact(text: str) -> str:
    """Replace every registered secret in text with a placeholder.

    Args:
        text: Text that may contain secrets.

    Returns:
        The text with registered secrets masked.
    """
    # Longest first so a secret containing another is masked whole
    for value in sorted(_masked_values, key=len, reverse=True):
        text = text.replace(value, MASK_PLACEHOLDER)
    return text


def clear_masks() -> None:
    """Forget registered secrets (the runner's own mask list is unaffected)."""
    _masked_values.clear()


@contextmanager
def group(title: str) -> Iterator[None]:
    """Fold all output produced inside the block under a collapsible title."""
    _issue("group", title)
    try:
        yield
    finally:
        _issue("endgroup")


def set_output(name: str, value: str) -> None:
    """Set a step output.

    Uses the multi-line delimiter syntax on $GITHUB_OUTPUT. Outside of CI
    the output is logged instead.

    Args:
        name: Output name.
        value: Output value.
    """
    output_file = os.environ.get("GITHUB_OUTPUT")
    if not output_file:
        logger.info("Output %s=%s", name, value)
        return

    delimiter = f"ghadelimiter_{uuid.uuid4()}"
    with Path(output_file).open("a", encoding="utf-8") as fh:
        fh.write(f"{name}<<{delimiter}\n{value}\n{delimiter}\n")


def set_failed(message: str) -> None:
    """Report the failure annotation for the step.

    Written to stderr; stdout carries only command output such as --json.
    """
    _issue("error", message, stream=sys.stderr)


__all__ = [
    "MASK_PLACEHOLDER",
    "add_mask",
    "clear_masks",
    "group",
    "redact",
    "set_failed",
    "set_output",
]
