"""Tests for builds/arguments.py module.

Tests runtime and builder argument synthesis.
"""

from pathlib import Path

import pytest

from bootc_imagegen.builds.arguments import (
    CONTAINER_OUTPUT_DIR,
    EnvironmentSnapshot,
    InvocationPlan,
    compose_aws_env_args,
    compose_builder_args,
    config_mount_target,
    filter_empty,
    pull_arguments,
    synthesize,
)
from bootc_imagegen.builds.request import AWSOptions, BuildRequest

STORAGE = Path("/var/lib/containers/storage")
OUTPUT = Path("/work/output")


@pytest.fixture
def minimal_request() -> BuildRequest:
    """Create a minimal build request."""
    return BuildRequest(
        config_file="/work/config.toml",
        image="quay.io/example/os:latest",
        builder_image="quay.io/centos-bootc/bootc-image-builder:latest",
    )


@pytest.fixture
def ami_request() -> BuildRequest:
    """Create a request publishing an AMI."""
    return BuildRequest(
        config_file="/work/config.toml",
        image="quay.io/example/os:latest",
        types=["ami"],
        aws=AWSOptions(ami_name="x", bucket_name="y"),
    )


def volume_values(args: tuple[str, ...]) -> list[str]:
    """Return the values following each --volume flag."""
    return [args[i + 1] for i, a in enumerate(args) if a == "--volume"]


class TestConfigMountTarget:
    """Tests for config_mount_target function."""

    def test_keeps_extension(self):
        """Should keep the source extension."""
        assert config_mount_target("/work/config.toml") == "/config.toml"
        assert config_mount_target("config.json") == "/config.json"

    def test_no_extension(self):
        """Should use an unqualified name without extension."""
        assert config_mount_target("/work/config") == "/config"

    def test_dotted_directory(self):
        """Dots in directory names should not count as an extension."""
        assert config_mount_target("/work/conf.d/config") == "/config"

    def test_last_extension_only(self):
        """Only the last dot-delimited segment should be used."""
        assert config_mount_target("/work/bib.config.toml") == "/config.toml"


class TestFilterEmpty:
    """Tests for filter_empty function."""

    def test_drops_empty_tokens(self):
        """Should drop only empty strings."""
        assert filter_empty(["a", "", "b", " "]) == ("a", "b", " ")


class TestPullArguments:
    """Tests for pull_arguments function."""

    def test_default(self):
        """Should compose a plain pull."""
        assert pull_arguments("quay.io/x/y") == ("pull", "quay.io/x/y")

    def test_tls_and_platform(self):
        """Should add TLS and platform flags before the image."""
        args = pull_arguments("quay.io/x/y", tls_verify=False, platform="linux/arm64")
        assert args == (
            "pull",
            "--tls-verify=false",
            "--platform=linux/arm64",
            "quay.io/x/y",
        )


class TestRuntimeArgs:
    """Tests for runtime argument synthesis."""

    def test_fixed_flags(self, minimal_request):
        """Should always run privileged, removed, and unconfined."""
        plan = synthesize(minimal_request, OUTPUT, STORAGE)
        args = plan.runtime_args

        assert args[:5] == (
            "run",
            "--rm",
            "--privileged",
            "--security-opt",
            "label=type:unconfined_t",
        )

    def test_volumes(self, minimal_request):
        """Should mount storage, output, and config."""
        plan = synthesize(minimal_request, OUTPUT, STORAGE)

        assert volume_values(plan.runtime_args) == [
            f"{STORAGE}:{STORAGE}",
            f"{OUTPUT}:{CONTAINER_OUTPUT_DIR}",
            "/work/config.toml:/config.toml:ro",
        ]

    def test_single_config_mount(self, minimal_request):
        """Should mount the config file exactly once."""
        plan = synthesize(minimal_request, OUTPUT, STORAGE)
        config_mounts = [
            v for v in volume_values(plan.runtime_args) if v.startswith("/work/config")
        ]
        assert config_mounts == ["/work/config.toml:/config.toml:ro"]

    def test_config_without_extension(self):
        """Should mount an extensionless config as /config."""
        request = BuildRequest(config_file="/work/config", image="img")
        plan = synthesize(request, OUTPUT, STORAGE)
        assert "/work/config:/config:ro" in plan.runtime_args

    def test_builder_image_last(self, minimal_request):
        """Builder image should be the last runtime argument."""
        plan = synthesize(minimal_request, OUTPUT, STORAGE)
        assert plan.runtime_args[-1] == minimal_request.builder_image

    def test_platform(self):
        """Should add the platform flag when requested."""
        request = BuildRequest(
            config_file="c.toml", image="img", platform="linux/arm64"
        )
        plan = synthesize(request, OUTPUT, STORAGE)
        assert "--platform=linux/arm64" in plan.runtime_args

    def test_no_platform(self, minimal_request):
        """Should not add a platform flag by default."""
        plan = synthesize(minimal_request, OUTPUT, STORAGE)
        assert not any(a.startswith("--platform") for a in plan.runtime_args)

    def test_no_env_without_ami(self, minimal_request):
        """AWS variables should not be forwarded for non-AMI builds."""
        env = EnvironmentSnapshot({"AWS_SECRET_ACCESS_KEY": "s3cr3t"})
        plan = synthesize(minimal_request, OUTPUT, STORAGE, environment=env)
        assert "--env" not in plan.runtime_args

    def test_env_forwarded_for_ami(self, ami_request):
        """AWS variable names should be forwarded before the builder image."""
        env = EnvironmentSnapshot(
            {"AWS_SECRET_ACCESS_KEY": "s3cr3t", "AWS_ACCESS_KEY_ID": "AKIA"}
        )
        plan = synthesize(ami_request, OUTPUT, STORAGE, environment=env)
        args = plan.runtime_args

        env_names = [args[i + 1] for i, a in enumerate(args) if a == "--env"]
        assert env_names == ["AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY"]
        assert args[-1] == ami_request.builder_image
        assert plan.passthrough_names == ("AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY")
        assert plan.environment["AWS_SECRET_ACCESS_KEY"] == "s3cr3t"

    def test_secret_values_not_in_command(self, ami_request):
        """Credential values should never appear in the argument vector."""
        env = EnvironmentSnapshot.capture(
            {"AWS_SECRET_ACCESS_KEY": "s3cr3t", "AWS_SESSION_TOKEN": "t0k3n-v4lue"}
        )
        plan = synthesize(ami_request, OUTPUT, STORAGE, environment=env)
        assert not any("s3cr3t" in a or "t0k3n-v4lue" in a for a in plan.command)

    def test_no_passthrough_without_ami(self, minimal_request):
        """Non-AMI plans should carry no forwarded variables."""
        env = EnvironmentSnapshot({"AWS_SECRET_ACCESS_KEY": "s3cr3t"})
        plan = synthesize(minimal_request, OUTPUT, STORAGE, environment=env)
        assert plan.passthrough_names == ()
        assert dict(plan.environment) == {}

    def test_no_empty_tokens(self):
        """Runtime and builder args should never contain empty tokens."""
        request = BuildRequest(
            config_file="c.toml",
            image="img",
            platform="",
            additional_args="  ",
            chown="",
            rootfs="",
            types=["", " "],
        )
        plan = synthesize(request, OUTPUT, STORAGE)
        assert "" not in plan.runtime_args
        assert "" not in plan.builder_args


class TestAWSEnvArgs:
    """Tests for compose_aws_env_args function."""

    def test_masks_secrets_only(self):
        """Secret values should be masked, well-known names should not."""
        masked: list[str] = []
        env = EnvironmentSnapshot(
            {
                "AWS_ACCESS_KEY_ID": "AKIA",
                "AWS_SECRET_ACCESS_KEY": "s3cr3t",
                "AWS_REGION": "us-east-1",
                "AWS_DEFAULT_REGION": "us-east-1",
                "AWS_PROFILE": "ci",
            }
        )
        compose_aws_env_args(env, masked.append)
        assert sorted(masked) == ["AKIA", "s3cr3t"]

    def test_masks_session_token(self):
        """Session tokens should be masked and forwarded by name."""
        calls: list[str] = []

        def mask(value: str) -> None:
            calls.append(value)

        args = compose_aws_env_args(
            EnvironmentSnapshot({"AWS_SESSION_TOKEN": "tok"}), mask
        )
        assert calls == ["tok"]
        assert args == ["--env", "AWS_SESSION_TOKEN"]

    def test_synthesize_registers_masks(self, ami_request):
        """synthesize should pass secrets to the mask callback."""
        masked: list[str] = []
        synthesize(
            ami_request,
            OUTPUT,
            STORAGE,
            environment=EnvironmentSnapshot({"AWS_SECRET_ACCESS_KEY": "s3cr3t"}),
            mask=masked.append,
        )
        assert masked == ["s3cr3t"]


class TestEnvironmentSnapshot:
    """Tests for EnvironmentSnapshot."""

    def test_capture_filters_prefix(self):
        """Should keep only AWS_ variables."""
        snapshot = EnvironmentSnapshot.capture(
            {"AWS_REGION": "eu-west-1", "HOME": "/root", "MY_AWS_KEY": "x"}
        )
        assert dict(snapshot.variables) == {"AWS_REGION": "eu-west-1"}

    def test_snapshot_is_read_only(self):
        """Snapshot variables should not be mutable."""
        snapshot = EnvironmentSnapshot({"AWS_REGION": "eu-west-1"})
        with pytest.raises(TypeError):
            snapshot.variables["AWS_REGION"] = "us-east-1"

    def test_snapshot_copies_source(self):
        """Later changes to the source mapping should not leak in."""
        source = {"AWS_REGION": "eu-west-1"}
        snapshot = EnvironmentSnapshot.capture(source)
        source["AWS_PROFILE"] = "ci"
        assert "AWS_PROFILE" not in snapshot.variables


class TestBuilderArgs:
    """Tests for builder argument synthesis."""

    def test_minimal(self, minimal_request):
        """Should compose build with output and image."""
        assert compose_builder_args(minimal_request) == (
            "build",
            "--output",
            "/output",
            "quay.io/example/os:latest",
        )

    def test_optional_flags(self):
        """Should add TLS, chown, rootfs, and extra args in order."""
        request = BuildRequest(
            config_file="c.toml",
            image="img",
            tls_verify=False,
            chown="1001:1001",
            rootfs="xfs",
            additional_args="  --log-level debug   --progress verbose ",
        )
        assert compose_builder_args(request) == (
            "build",
            "--output",
            "/output",
            "--tls-verify=false",
            "--chown",
            "1001:1001",
            "--rootfs",
            "xfs",
            "--log-level",
            "debug",
            "--progress",
            "verbose",
            "img",
        )

    def test_types_in_order_with_duplicates(self):
        """Should add one --type per entry, keeping order and duplicates."""
        request = BuildRequest(
            config_file="c.toml", image="img", types=["qcow2", "raw", "qcow2"]
        )
        args = compose_builder_args(request)
        types = [args[i + 1] for i, a in enumerate(args) if a == "--type"]
        assert types == ["qcow2", "raw", "qcow2"]

    def test_ami_without_region(self, ami_request):
        """Should add bucket and AMI name but no region."""
        args = compose_builder_args(ami_request)

        assert args == (
            "build",
            "--output",
            "/output",
            "--type",
            "ami",
            "--aws-bucket",
            "y",
            "--aws-ami-name",
            "x",
            "quay.io/example/os:latest",
        )
        assert "--aws-region" not in args

    def test_ami_with_region(self):
        """Should add the region after bucket and AMI name."""
        request = BuildRequest(
            config_file="c.toml",
            image="img",
            types=["ami"],
            aws=AWSOptions(ami_name="x", bucket_name="y", region="eu-west-1"),
        )
        args = compose_builder_args(request)
        assert args[-7:] == (
            "--aws-bucket",
            "y",
            "--aws-ami-name",
            "x",
            "--aws-region",
            "eu-west-1",
            "img",
        )

    def test_aws_flags_only_for_ami(self):
        """AWS options should be ignored when ami is not requested."""
        request = BuildRequest(
            config_file="c.toml",
            image="img",
            types=["qcow2"],
            aws=AWSOptions(ami_name="x", bucket_name="y"),
        )
        assert not any(a.startswith("--aws") for a in compose_builder_args(request))

    def test_target_image_last(self):
        """Target image should be the last builder argument."""
        request = BuildRequest(
            config_file="c.toml",
            image="quay.io/example/os:42",
            types=["qcow2"],
            additional_args="--progress verbose",
        )
        assert compose_builder_args(request)[-1] == "quay.io/example/os:42"


class TestInvocationPlan:
    """Tests for InvocationPlan."""

    def test_command_concatenates(self):
        """command should be runtime args followed by builder args."""
        plan = InvocationPlan(
            runtime_args=("run", "builder"), builder_args=("build", "img")
        )
        assert plan.command == ["run", "builder", "build", "img"]

    def test_synthesize_is_deterministic(self, ami_request):
        """The same inputs should produce the same plan."""
        env = EnvironmentSnapshot({"AWS_B": "2", "AWS_A": "1"})
        first = synthesize(ami_request, OUTPUT, STORAGE, environment=env)
        second = synthesize(ami_request, OUTPUT, STORAGE, environment=env)
        assert first == second
