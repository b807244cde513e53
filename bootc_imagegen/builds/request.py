"""Pydantic models for build request validation.

A BuildRequest is the immutable input record of one orchestration run. The
caller's declarative inputs (action inputs or CLI flags) are parsed into
primitive strings and booleans before reaching this schema.
"""

import re
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from bootc_imagegen.errors import InvalidRequest

DEFAULT_BUILDER_IMAGE = "quay.io/centos-bootc/bootc-image-builder:latest"

# Artifact types that publish to AWS and need AWSOptions
AMI_PUBLISHING_TYPES = frozenset({"ami"})

CHOWN_PATTERN = re.compile(r"^[^:\s]+(:[^:\s]+)?$")


class AWSOptions(BaseModel):
    """Schema for AMI publishing options.

    Attributes:
        ami_name: Name of the AMI to register.
        bucket_name: S3 bucket used to stage the image upload.
        region: Optional region to make the AMI available in.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    ami_name: str = Field(default="", description="Name of the AWS AMI image")
    bucket_name: str = Field(default="", description="S3 bucket for the upload")
    region: str | None = Field(default=None, description="AWS region")

    @field_validator("ami_name", "bucket_name", mode="before")
    @classmethod
    def strip_value(cls, v: str | None) -> str:
        """Normalize missing values to an empty string."""
        return (v or "").strip()

    @field_validator("region", mode="before")
    @classmethod
    def empty_region_to_none(cls, v: str | None) -> str | None:
        """Treat an empty region as not supplied."""
        if v is None:
            return v
        v = v.strip()
        return v or None

    def is_complete(self) -> bool:
        """Check that the fields required for AMI publishing are present."""
        return bool(self.ami_name and self.bucket_name)


class BuildRequest(BaseModel):
    """Schema for a single build-and-collect request.

    Attributes:
        config_file: Path to the builder configuration file (toml or json).
        image: Target image reference to convert.
        builder_image: bootc-image-builder image reference.
        platform: Optional target platform (e.g., linux/arm64).
        additional_args: Extra raw arguments passed verbatim to the builder.
        chown: Optional uid:gid to own the output files.
        rootfs: Optional root filesystem type.
        tls_verify: Whether to verify TLS when pulling.
        types: Requested artifact types in caller order (empty = builder default).
        aws: AMI publishing options.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    config_file: str = Field(description="Path to the builder config file")
    image: str = Field(description="Target image reference")
    builder_image: str = Field(
        default=DEFAULT_BUILDER_IMAGE, description="Builder image reference"
    )
    platform: str | None = Field(default=None, description="Target platform")
    additional_args: str | None = Field(
        default=None, description="Extra arguments for the builder"
    )
    chown: str | None = Field(default=None, description="uid:gid for output files")
    rootfs: str | None = Field(default=None, description="Root filesystem type")
    tls_verify: bool = Field(default=True, description="Verify TLS when pulling")
    types: tuple[str, ...] = Field(
        default=(), description="Requested artifact types"
    )
    aws: AWSOptions | None = Field(default=None, description="AMI options")

    @field_validator("config_file", "image")
    @classmethod
    def validate_required(cls, v: str) -> str:
        """Validate required references are non-empty."""
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    @field_validator("builder_image", mode="before")
    @classmethod
    def default_builder_image(cls, v: str | None) -> str:
        """Fall back to the default builder image for empty input."""
        v = (v or "").strip()
        return v or DEFAULT_BUILDER_IMAGE

    @field_validator("platform", "additional_args", "chown", "rootfs", mode="before")
    @classmethod
    def empty_to_none(cls, v: str | None) -> str | None:
        """Treat empty optional inputs as not supplied."""
        if v is None:
            return v
        v = v.strip()
        return v or None

    @field_validator("chown")
    @classmethod
    def validate_chown(cls, v: str | None) -> str | None:
        """Validate chown looks like uid[:gid]."""
        if v is not None and not CHOWN_PATTERN.match(v):
            raise ValueError(f"chown must look like 'uid:gid', got '{v}'")
        return v

    @field_validator("types", mode="before")
    @classmethod
    def normalize_types(cls, v: object) -> tuple[str, ...]:
        """Trim entries and discard blanks, keeping order and duplicates."""
        if v is None:
            return ()
        if isinstance(v, str):
            v = [v]
        return tuple(t.strip() for t in v if t and t.strip())

    @model_validator(mode="after")
    def validate_aws_options(self) -> "BuildRequest":
        """Require AMI name and bucket when an AMI type is requested."""
        if self.publishes_to_aws and (self.aws is None or not self.aws.is_complete()):
            raise ValueError(
                "aws-ami-name and aws-bucket are required when building "
                f"{', '.join(sorted(AMI_PUBLISHING_TYPES))} images"
            )
        return self

    @property
    def publishes_to_aws(self) -> bool:
        """Whether any requested type publishes to AWS."""
        return any(t in AMI_PUBLISHING_TYPES for t in self.types)


def parse_request(data: dict[str, Any]) -> BuildRequest:
    """Validate raw inputs into a BuildRequest.

    Args:
        data: Field values keyed by BuildRequest field name.

    Returns:
        Validated BuildRequest.

    Raises:
        InvalidRequest: If validation fails.
    """
    try:
        return BuildRequest.model_validate(data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'request'}: {err['msg']}"
            for err in e.errors()
        )
        raise InvalidRequest(f"Invalid build request: {problems}") from e


__all__ = [
    "AMI_PUBLISHING_TYPES",
    "AWSOptions",
    "BuildRequest",
    "DEFAULT_BUILDER_IMAGE",
    "parse_request",
]
