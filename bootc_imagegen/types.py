"""Shared type definitions for bootc_imagegen.

This module contains dataclasses, enums, and type aliases shared across
subpackages to avoid circular imports.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class BuildPhase(str, Enum):
    """Phase of a build operation."""

    IDLE = "idle"
    PREPARING = "preparing"
    PULLING = "pulling"
    BUILDING = "building"
    COLLECTING = "collecting"
    CHECKSUMMING = "checksumming"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Whether no further transition is possible from this phase."""
        return self in (BuildPhase.DONE, BuildPhase.FAILED)


@dataclass(frozen=True)
class DiscoveredFile:
    """An entry found while walking the output directory.

    Attributes:
        relative_path: POSIX path relative to the output directory.
        is_file: Whether the entry is a regular file.
        parent_name: Name of the immediate parent directory ("" at the root).
    """

    relative_path: str
    is_file: bool
    parent_name: str


@dataclass(frozen=True)
class OutputArtifact:
    """A file produced by the builder.

    Attributes:
        type: Normalized artifact type (qcow2, anaconda-iso, raw, ...).
        path: Absolute filesystem path.
        checksum: SHA-256 hex digest, None until computed.
    """

    type: str
    path: str
    checksum: str | None = None


@dataclass
class BuildResult:
    """Result of a build-and-collect operation.

    Attributes:
        manifest_path: Absolute path of the builder manifest.
        output_directory: Absolute path of the output directory.
        artifacts: Mapping of artifact type to artifact.
    """

    manifest_path: str = ""
    output_directory: str = ""
    artifacts: dict[str, OutputArtifact] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> BuildResult:
        """Return the terminal all-empty result reported on failure."""
        return cls()

    def is_empty(self) -> bool:
        """Check whether this is the all-empty result."""
        return not (self.manifest_path or self.output_directory or self.artifacts)

    def output_paths(self) -> dict[str, dict[str, str | None]]:
        """Render artifacts as {type: {path, checksum}} for step outputs."""
        return {
            artifact_type: {"path": artifact.path, "checksum": artifact.checksum}
            for artifact_type, artifact in self.artifacts.items()
        }


__all__ = [
    "BuildPhase",
    "BuildResult",
    "DiscoveredFile",
    "OutputArtifact",
]
