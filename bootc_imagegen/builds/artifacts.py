"""Artifact discovery, type normalization, and checksums.

This module handles:
- Walking the builder output directory
- Locating the builder manifest
- Deriving artifact types from the builder's per-type subdirectories
- Computing SHA-256 checksums, concurrently across artifacts

The builder writes each artifact kind into its own subdirectory named after
its internal type (e.g. output/qcow2/disk.qcow2, output/bootiso/install.iso)
next to a single JSON manifest.
"""

from __future__ import annotations

import hashlib
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from pathlib import Path

from bootc_imagegen.errors import ArtifactDiscoveryFailure, ChecksumFailure
from bootc_imagegen.types import DiscoveredFile, OutputArtifact

logger = logging.getLogger(__name__)

MANIFEST_EXTENSION = ".json"

# Builder output subdirectory -> public artifact type
TYPE_RENAMES = {
    "bootiso": "anaconda-iso",
    "vpc": "vhd",
    "image": "raw",
}

# Default chunk size for hashing
HASH_CHUNK_SIZE = 64 * 1024  # 64KB

DEFAULT_CHECKSUM_WORKERS = 4


@dataclass(frozen=True)
class CollectedArtifacts:
    """Manifest and artifacts found in an output directory.

    Attributes:
        manifest_path: Absolute path of the manifest.
        artifacts: Artifacts in discovery order, without checksums.
    """

    manifest_path: str
    artifacts: tuple[OutputArtifact, ...]


def normalize_type(name: str) -> str:
    """Map a builder output subdirectory name to the public type name.

    Args:
        name: Subdirectory name emitted by the builder.

    Returns:
        Public artifact type; unknown names pass through unchanged.
    """
    return TYPE_RENAMES.get(name, name)


def compute_file_hash(
    file_path: Path,
    chunk_size: int = HASH_CHUNK_SIZE,
) -> str:
    """Compute SHA-256 hash of a file.

    Args:
        file_path: Path to the file.
        chunk_size: Size of chunks for streaming hash.

    Returns:
        SHA-256 hex digest.

    Raises:
        ChecksumFailure: If the file cannot be read.
    """
    sha256 = hashlib.sha256()
    try:
        with file_path.open("rb") as f:
            while chunk := f.read(chunk_size):
                sha256.update(chunk)
    except OSError as e:
        raise ChecksumFailure(str(file_path), e.strerror or str(e)) from e
    return sha256.hexdigest()


def walk_output_directory(output_dir: Path) -> list[DiscoveredFile]:
    """Enumerate every entry under the output directory.

    Args:
        output_dir: Directory written by the builder.

    Returns:
        Discovered entries sorted by relative path.

    Raises:
        ArtifactDiscoveryFailure: If the directory is missing or unreadable.
    """
    if not output_dir.is_dir():
        raise ArtifactDiscoveryFailure(
            f"Output directory does not exist: {output_dir}"
        )

    try:
        entries = sorted(output_dir.rglob("*"))
    except OSError as e:
        raise ArtifactDiscoveryFailure(
            f"Cannot read output directory {output_dir}: {e}"
        ) from e

    discovered: list[DiscoveredFile] = []
    for path in entries:
        relative = path.relative_to(output_dir)
        discovered.append(
            DiscoveredFile(
                relative_path=relative.as_posix(),
                is_file=path.is_file(),
                parent_name=relative.parent.name,
            )
        )
    return discovered


def collect_artifacts(output_dir: Path) -> CollectedArtifacts:
    """Locate the manifest and type every other file in the output directory.

    Args:
        output_dir: Directory written by the builder.

    Returns:
        CollectedArtifacts with absolute paths.

    Raises:
        ArtifactDiscoveryFailure: If no manifest exists or a file's type
            cannot be derived from its location.
    """
    root = output_dir.absolute()
    entries = walk_output_directory(root)

    # The builder writes its manifest at the top of the output directory
    manifest: DiscoveredFile | None = None
    for entry in entries:
        if (
            entry.is_file
            and not entry.parent_name
            and entry.relative_path.endswith(MANIFEST_EXTENSION)
        ):
            manifest = entry
            break

    if manifest is None:
        raise ArtifactDiscoveryFailure(f"No manifest file found in {root}")

    artifacts: list[OutputArtifact] = []
    for entry in entries:
        if not entry.is_file or entry is manifest:
            continue
        if not entry.parent_name:
            raise ArtifactDiscoveryFailure(
                f"Cannot determine artifact type of {entry.relative_path}: "
                "file is not inside a type subdirectory"
            )

        artifact = OutputArtifact(
            type=normalize_type(entry.parent_name),
            path=str(root / entry.relative_path),
        )
        artifacts.append(artifact)
        logger.debug("Discovered artifact: %s (type=%s)", artifact.path, artifact.type)

    manifest_path = str(root / manifest.relative_path)
    logger.info(
        "Discovered %d artifacts and manifest %s", len(artifacts), manifest_path
    )
    return CollectedArtifacts(manifest_path=manifest_path, artifacts=tuple(artifacts))


def _with_checksum(artifact: OutputArtifact) -> OutputArtifact:
    checksum = compute_file_hash(Path(artifact.path))
    logger.debug("Checksum %s: %s", artifact.path, checksum)
    return replace(artifact, checksum=checksum)


def checksum_artifacts(
    artifacts: tuple[OutputArtifact, ...] | list[OutputArtifact],
    max_workers: int = DEFAULT_CHECKSUM_WORKERS,
) -> list[OutputArtifact]:
    """Attach checksums to artifacts, digesting files concurrently.

    Waits for every digest before returning. The first failure is raised
    after all workers finish.

    Args:
        artifacts: Artifacts without checksums.
        max_workers: Maximum concurrent digests.

    Returns:
        Artifacts with checksums, in input order.

    Raises:
        ChecksumFailure: If any artifact cannot be read.
    """
    if not artifacts:
        return []

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [executor.submit(_with_checksum, a) for a in artifacts]
    # Leaving the executor joins every worker
    return [future.result() for future in futures]


__all__ = [
    "DEFAULT_CHECKSUM_WORKERS",
    "HASH_CHUNK_SIZE",
    "MANIFEST_EXTENSION",
    "TYPE_RENAMES",
    "CollectedArtifacts",
    "checksum_artifacts",
    "collect_artifacts",
    "compute_file_hash",
    "normalize_type",
    "walk_output_directory",
]
