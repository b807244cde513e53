"""Argument synthesis for the containerized builder invocation.

This module handles:
- Composing the container runtime `run` arguments (mounts, platform, env)
- Composing the bootc-image-builder command line
- Composing `pull` arguments for the builder and target images
- Snapshotting the AWS_* environment for AMI publishing

Every function here is pure: the process environment is read once by the
orchestrator and passed in as an EnvironmentSnapshot. Argument lists are
built as discrete tokens and never by splitting joined flag phrases.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path, PurePath
from types import MappingProxyType

from bootc_imagegen.builds.request import BuildRequest

logger = logging.getLogger(__name__)

# Fixed paths inside the builder container
CONTAINER_OUTPUT_DIR = "/output"
CONTAINER_CONFIG_BASENAME = "/config"

UNCONFINED_LABEL = "label=type:unconfined_t"
TLS_VERIFY_DISABLED = "--tls-verify=false"

AWS_ENV_PREFIX = "AWS_"

# AWS variables that never carry credentials
AWS_NON_SECRET_NAMES = frozenset(
    {
        "AWS_REGION",
        "AWS_DEFAULT_REGION",
        "AWS_PROFILE",
        "AWS_EXECUTION_ENV",
        "AWS_ROLE_SESSION_NAME",
        "AWS_DEFAULT_OUTPUT",
    }
)


@dataclass(frozen=True)
class EnvironmentSnapshot:
    """Immutable view of the AWS_* process environment.

    Attributes:
        variables: Mapping of variable name to value.
    """

    variables: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "variables", MappingProxyType(dict(self.variables)))

    @classmethod
    def capture(cls, environ: Mapping[str, str]) -> EnvironmentSnapshot:
        """Take the AWS_* subset of an environment mapping."""
        return cls(
            {k: v for k, v in environ.items() if k.startswith(AWS_ENV_PREFIX)}
        )


@dataclass(frozen=True)
class InvocationPlan:
    """Synthesized arguments for one builder run.

    Values of passthrough variables never appear in the argument vector.
    They travel in `environment` and reach the runtime through the
    process environment.

    Attributes:
        runtime_args: Container runtime arguments, ending with the builder image.
        builder_args: Builder arguments, ending with the target image.
        environment: Variables the runtime forwards into the builder by name.
    """

    runtime_args: tuple[str, ...]
    builder_args: tuple[str, ...]
    environment: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "environment", MappingProxyType(dict(self.environment))
        )

    @property
    def command(self) -> list[str]:
        """Full argument vector handed to the container runtime."""
        return [*self.runtime_args, *self.builder_args]

    @property
    def passthrough_names(self) -> tuple[str, ...]:
        """Names of the forwarded variables, sorted."""
        return tuple(sorted(self.environment))


def filter_empty(tokens: Iterable[str]) -> tuple[str, ...]:
    """Drop empty-string tokens from an argument list."""
    return tuple(t for t in tokens if t != "")


def config_mount_target(config_file: str) -> str:
    """Return the in-container config path keeping the source extension.

    Args:
        config_file: Path of the config file on the host.

    Returns:
        /config.<ext>, or /config when the file has no extension.
    """
    suffix = PurePath(config_file).suffix
    return f"{CONTAINER_CONFIG_BASENAME}{suffix}"


def platform_flag(platform: str | None) -> list[str]:
    """Compose the platform selection for pull and run."""
    return [f"--platform={platform}"] if platform else []


def pull_arguments(
    image: str,
    tls_verify: bool = True,
    platform: str | None = None,
) -> tuple[str, ...]:
    """Compose `pull` arguments for an image reference.

    Args:
        image: Image reference to pull.
        tls_verify: Whether to verify TLS.
        platform: Optional target platform.

    Returns:
        Pull arguments for the container runtime.
    """
    args = ["pull"]
    if not tls_verify:
        args.append(TLS_VERIFY_DISABLED)
    args.extend(platform_flag(platform))
    args.append(image)
    return filter_empty(args)


def compose_aws_env_args(
    environment: EnvironmentSnapshot,
    mask: Callable[[str], None],
) -> list[str]:
    """Compose environment passthrough flags for AWS credentials.

    Only names are emitted; the runtime reads each value from its own
    environment. Secret values are still registered with mask so the
    builder cannot echo them into the job log.

    Args:
        environment: Snapshot of the AWS_* environment.
        mask: Secret-masking callback.

    Returns:
        One --env NAME pair per variable, sorted by name.
    """
    args: list[str] = []
    for name in sorted(environment.variables):
        if name not in AWS_NON_SECRET_NAMES:
            mask(environment.variables[name])
        args.extend(["--env", name])
    return args


def compose_runtime_args(
    request: BuildRequest,
    output_directory: Path,
    storage_root: Path,
    environment: EnvironmentSnapshot,
    mask: Callable[[str], None],
) -> tuple[str, ...]:
    """Compose the container runtime `run` arguments.

    The builder image is always the last token.
    """
    storage = str(storage_root)
    args = [
        "run",
        "--rm",
        "--privileged",
        "--security-opt",
        UNCONFINED_LABEL,
        "--volume",
        f"{storage}:{storage}",
        "--volume",
        f"{output_directory}:{CONTAINER_OUTPUT_DIR}",
        "--volume",
        f"{request.config_file}:{config_mount_target(request.config_file)}:ro",
    ]

    args.extend(platform_flag(request.platform))

    if request.publishes_to_aws:
        args.extend(compose_aws_env_args(environment, mask))

    args.append(request.builder_image)
    return filter_empty(args)


def compose_builder_args(request: BuildRequest) -> tuple[str, ...]:
    """Compose the bootc-image-builder command line.

    The target image is always the last token.
    """
    args = ["build", "--output", CONTAINER_OUTPUT_DIR]

    if not request.tls_verify:
        args.append(TLS_VERIFY_DISABLED)

    if request.chown:
        args.extend(["--chown", request.chown])

    if request.rootfs:
        args.extend(["--rootfs", request.rootfs])

    if request.additional_args:
        args.extend(request.additional_args.split())

    for artifact_type in request.types:
        args.extend(["--type", artifact_type])

    if request.publishes_to_aws and request.aws is not None:
        args.extend(["--aws-bucket", request.aws.bucket_name])
        args.extend(["--aws-ami-name", request.aws.ami_name])
        if request.aws.region:
            args.extend(["--aws-region", request.aws.region])

    args.append(request.image)
    return filter_empty(args)


def synthesize(
    request: BuildRequest,
    output_directory: Path,
    storage_root: Path,
    environment: EnvironmentSnapshot | None = None,
    mask: Callable[[str], None] | None = None,
) -> InvocationPlan:
    """Translate a build request into an invocation plan.

    Args:
        request: Validated build request.
        output_directory: Absolute host output directory.
        storage_root: Host container storage shared with the builder.
        environment: AWS_* environment snapshot (used for AMI types only).
        mask: Secret-masking callback.

    Returns:
        InvocationPlan with runtime and builder arguments.
    """
    environment = environment or EnvironmentSnapshot()
    plan = InvocationPlan(
        runtime_args=compose_runtime_args(
            request,
            output_directory,
            storage_root,
            environment,
            mask or (lambda _value: None),
        ),
        builder_args=compose_builder_args(request),
        environment=environment.variables if request.publishes_to_aws else {},
    )
    logger.debug(
        "Synthesized %d runtime and %d builder arguments",
        len(plan.runtime_args),
        len(plan.builder_args),
    )
    return plan


__all__ = [
    "AWS_NON_SECRET_NAMES",
    "CONTAINER_OUTPUT_DIR",
    "EnvironmentSnapshot",
    "InvocationPlan",
    "compose_aws_env_args",
    "compose_builder_args",
    "compose_runtime_args",
    "config_mount_target",
    "filter_empty",
    "pull_arguments",
    "synthesize",
]
