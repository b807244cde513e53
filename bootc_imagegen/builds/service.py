"""Build service module.

This module provides the high-level build API:
- build_image(): Main entry point - one build-and-collect operation
- Phase tracking (idle -> preparing -> pulling -> building -> collecting
  -> checksumming -> done, or failed)
- Conversion of every failure into a BuildOutcome

Phases run strictly one after another; only checksumming fans out.
Nothing is retried.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from bootc_imagegen import actions
from bootc_imagegen.builds.arguments import EnvironmentSnapshot, synthesize
from bootc_imagegen.builds.artifacts import checksum_artifacts, collect_artifacts
from bootc_imagegen.builds.environment import prepare_environment
from bootc_imagegen.builds.runner import pull_image, run_build
from bootc_imagegen.config import get_settings
from bootc_imagegen.errors import (
    INTERNAL_ERROR,
    BootcImageGenError,
    EnvironmentSetupFailure,
    describe_error,
)
from bootc_imagegen.types import BuildPhase, BuildResult, OutputArtifact

if TYPE_CHECKING:
    from bootc_imagegen.builds.request import BuildRequest
    from bootc_imagegen.config import Settings

logger = logging.getLogger(__name__)


@dataclass
class BuildOutcome:
    """Outcome of a build-and-collect operation.

    Attributes:
        success: Whether every phase completed.
        result: Build result (all-empty on failure).
        phase: Last phase reached.
        error_code: Error code if the build failed.
        error_message: Human-readable error if the build failed.
    """

    success: bool
    result: BuildResult = field(default_factory=BuildResult.empty)
    phase: BuildPhase = BuildPhase.IDLE
    error_code: str | None = None
    error_message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "success": self.success,
            "phase": self.phase.value,
            "manifest_path": self.result.manifest_path,
            "output_directory": self.result.output_directory,
            "artifacts": self.result.output_paths(),
            "error_code": self.error_code,
            "error_message": self.error_message,
        }


class BuildPipeline:
    """Sequences the build phases for one request.

    The pipeline is request-scoped: create one per build_image() call.
    """

    def __init__(
        self,
        request: BuildRequest,
        settings: Settings,
        environ: Mapping[str, str],
        mask: Callable[[str], None] = actions.add_mask,
    ) -> None:
        self.request = request
        self.settings = settings
        self.environ = environ
        self.mask = mask
        self.phase = BuildPhase.IDLE

    def _enter(self, phase: BuildPhase) -> None:
        logger.info("Build phase: %s -> %s", self.phase.value, phase.value)
        self.phase = phase

    def run(self) -> BuildResult:
        """Run every phase and assemble the result.

        Raises:
            BootcImageGenError: On the first fatal error.
        """
        request = self.request
        settings = self.settings
        environment = EnvironmentSnapshot.capture(self.environ)
        output_dir = settings.output_dir.absolute()

        self._enter(BuildPhase.PREPARING)
        if settings.prepare_environment:
            with actions.group("Preparing container storage"):
                prepare_environment(settings)
        else:
            logger.info("Skipping container storage preparation")
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise EnvironmentSetupFailure(
                f"Cannot create output directory {output_dir}: {e}"
            ) from e

        self._enter(BuildPhase.PULLING)
        for image in (request.builder_image, request.image):
            with actions.group(f"Pulling {image}"):
                pull_image(
                    image,
                    settings,
                    tls_verify=request.tls_verify,
                    platform=request.platform,
                )

        self._enter(BuildPhase.BUILDING)
        plan = synthesize(
            request,
            output_directory=output_dir,
            storage_root=settings.storage_root,
            environment=environment,
            mask=self.mask,
        )
        with actions.group(f"Building {request.image}"):
            run_build(plan, settings)

        self._enter(BuildPhase.COLLECTING)
        collected = collect_artifacts(output_dir)

        self._enter(BuildPhase.CHECKSUMMING)
        artifacts = checksum_artifacts(
            collected.artifacts, max_workers=settings.checksum_workers
        )

        result = BuildResult(
            manifest_path=collected.manifest_path,
            output_directory=str(output_dir),
            artifacts=index_artifacts(artifacts),
        )
        self._enter(BuildPhase.DONE)
        return result


def index_artifacts(artifacts: list[OutputArtifact]) -> dict[str, OutputArtifact]:
    """Key artifacts by type; the first artifact of a type wins.

    Args:
        artifacts: Artifacts in discovery order.

    Returns:
        Mapping of type to artifact.
    """
    indexed: dict[str, OutputArtifact] = {}
    for artifact in artifacts:
        existing = indexed.get(artifact.type)
        if existing is not None:
            logger.warning(
                "Ignoring duplicate %s artifact %s (keeping %s)",
                artifact.type,
                artifact.path,
                existing.path,
            )
            continue
        indexed[artifact.type] = artifact
    return indexed


def build_image(
    request: BuildRequest,
    settings: Settings | None = None,
    environ: Mapping[str, str] | None = None,
    mask: Callable[[str], None] = actions.add_mask,
) -> BuildOutcome:
    """Run one build-and-collect operation.

    Args:
        request: Validated build request.
        settings: Optional settings; loaded from environment if omitted.
        environ: Process environment to snapshot; os.environ if omitted.
        mask: Secret-masking callback.

    Returns:
        BuildOutcome. Errors never propagate; on failure the result is the
        all-empty BuildResult and the error is described.
    """
    if settings is None:
        settings = get_settings()
    if environ is None:
        environ = os.environ

    logger.info(
        "Building image %s using config file %s via %s",
        request.image,
        request.config_file,
        request.builder_image,
    )

    pipeline = BuildPipeline(request, settings, environ, mask=mask)
    try:
        result = pipeline.run()
    except BootcImageGenError as e:
        return _failed(pipeline.phase, e.code, describe_error(e))
    except Exception as e:
        logger.exception("Unexpected error during %s", pipeline.phase.value)
        return _failed(pipeline.phase, INTERNAL_ERROR, describe_error(e))

    logger.info("Build succeeded with %d artifact(s)", len(result.artifacts))
    return BuildOutcome(success=True, result=result, phase=pipeline.phase)


def _failed(phase: BuildPhase, code: str, message: str) -> BuildOutcome:
    logger.error("Build failed during %s: %s", phase.value, message)
    return BuildOutcome(
        success=False,
        result=BuildResult.empty(),
        phase=BuildPhase.FAILED,
        error_code=code,
        error_message=message,
    )


__all__ = ["BuildOutcome", "BuildPipeline", "build_image", "index_artifacts"]
