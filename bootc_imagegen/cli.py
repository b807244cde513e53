"""Thin CLI wrapper for bootc_imagegen.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.

Every build option falls back to the matching GitHub Actions input
(INPUT_<NAME> environment variable), so the same command serves as the
action entrypoint and as a local tool.
"""

import json
import logging
import re
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from bootc_imagegen import __version__, actions
from bootc_imagegen.config import get_settings, print_settings_json
from bootc_imagegen.types import BuildResult

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="bootc-imagegen",
    help="bootc Image Generator - build disk images and ISOs from bootc images",
    no_args_is_help=True,
)
console = Console()

TYPES_SEPARATOR = re.compile(r"[\s,]+")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"bootc-imagegen version {__version__}")
        raise typer.Exit()


def configure_logging(level: str) -> None:
    """Send log records to stderr through rich."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """bootc Image Generator - build disk images and ISOs from bootc images."""
    configure_logging(get_settings().log_level)


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = get_settings()
    if json_output:
        console.print(print_settings_json(settings))
    else:
        timeout_display = {
            "pull": settings.pull_timeout or "(none)",
            "build": settings.build_timeout or "(none)",
        }
        console.print("[bold]Effective Configuration:[/bold]")
        console.print()
        console.print("[bold]Container runtime:[/bold]")
        console.print(f"  Runtime:             {settings.runtime}")
        console.print(f"  Elevate with:        {settings.elevate_with or '(none)'}")
        console.print()
        console.print("[bold]Paths:[/bold]")
        console.print(f"  Storage root:        {settings.storage_root}")
        console.print(f"  Storage run root:    {settings.storage_run_root}")
        console.print(f"  Config directory:    {settings.containers_config_dir}")
        console.print(f"  Output directory:    {settings.output_dir}")
        console.print()
        console.print("[bold]Operational:[/bold]")
        console.print(f"  Prepare storage:     {settings.prepare_environment}")
        console.print(f"  Log level:           {settings.log_level}")
        console.print(f"  Checksum workers:    {settings.checksum_workers}")
        console.print()
        console.print("[bold]Timeouts (seconds):[/bold]")
        console.print(f"  Pull timeout:        {timeout_display['pull']}")
        console.print(f"  Build timeout:       {timeout_display['build']}")


def split_types(value: str | None) -> list[str]:
    """Split the types input on whitespace or commas."""
    if not value:
        return []
    return [t for t in TYPES_SEPARATOR.split(value) if t]


def publish_outputs(result: BuildResult) -> None:
    """Write the build result as step outputs."""
    actions.set_output("manifest-path", result.manifest_path)
    actions.set_output("output-directory", result.output_directory)
    actions.set_output("output-paths", json.dumps(result.output_paths()))
    for artifact_type, artifact in result.artifacts.items():
        logger.debug(
            "Setting output path for %s to %s with checksum %s",
            artifact_type,
            artifact.path,
            artifact.checksum,
        )
        actions.set_output(f"{artifact_type}-output-path", artifact.path)
        actions.set_output(f"{artifact_type}-output-checksum", artifact.checksum or "")


@app.command()
def build(
    config_file: Annotated[
        str,
        typer.Option(
            "--config-file",
            "-c",
            envvar="INPUT_CONFIG-FILE",
            help="Path to the builder configuration file",
        ),
    ],
    image: Annotated[
        str,
        typer.Option(
            "--image",
            "-i",
            envvar="INPUT_IMAGE",
            help="Image to convert, including registry and tag",
        ),
    ],
    builder_image: Annotated[
        str | None,
        typer.Option(
            "--builder-image",
            envvar="INPUT_BUILDER-IMAGE",
            help="bootc-image-builder image to run",
        ),
    ] = None,
    platform: Annotated[
        str,
        typer.Option(
            "--platform",
            envvar="INPUT_PLATFORM",
            help="Target platform for pulls and the build",
        ),
    ] = "linux/amd64",
    additional_args: Annotated[
        str | None,
        typer.Option(
            "--additional-args",
            envvar="INPUT_ADDITIONAL-ARGS",
            help="Extra arguments passed to the builder",
        ),
    ] = None,
    chown: Annotated[
        str | None,
        typer.Option(
            "--chown",
            envvar="INPUT_CHOWN",
            help="uid:gid to own the output files",
        ),
    ] = None,
    rootfs: Annotated[
        str | None,
        typer.Option(
            "--rootfs",
            envvar="INPUT_ROOTFS",
            help="Root filesystem type for disk images",
        ),
    ] = None,
    tls_verify: Annotated[
        bool,
        typer.Option(
            "--tls-verify/--no-tls-verify",
            envvar="INPUT_TLS-VERIFY",
            help="Verify TLS certificates when pulling",
        ),
    ] = True,
    types: Annotated[
        str | None,
        typer.Option(
            "--types",
            "-t",
            envvar="INPUT_TYPES",
            help="Artifact types to build (comma or space separated)",
        ),
    ] = None,
    aws_ami_name: Annotated[
        str | None,
        typer.Option(
            "--aws-ami-name",
            envvar="INPUT_AWS-AMI-NAME",
            help="Name of the AWS AMI image",
        ),
    ] = None,
    aws_bucket: Annotated[
        str | None,
        typer.Option(
            "--aws-bucket",
            envvar="INPUT_AWS-BUCKET",
            help="S3 bucket to stage the AMI upload in",
        ),
    ] = None,
    aws_region: Annotated[
        str | None,
        typer.Option(
            "--aws-region",
            envvar="INPUT_AWS-REGION",
            help="AWS region to make the AMI available in",
        ),
    ] = None,
    output_dir: Annotated[
        Path | None,
        typer.Option(
            "--output-dir",
            "-o",
            help="Directory for build outputs (overrides BOOTC_IMG_OUTPUT_DIR)",
        ),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Build disk images or ISOs from a bootc image."""
    from bootc_imagegen.builds.request import parse_request
    from bootc_imagegen.builds.service import build_image
    from bootc_imagegen.errors import InvalidRequest, describe_error

    settings = get_settings()
    if output_dir is not None:
        settings = settings.model_copy(update={"output_dir": output_dir})

    aws = None
    if aws_ami_name or aws_bucket or aws_region:
        aws = {
            "ami_name": aws_ami_name,
            "bucket_name": aws_bucket,
            "region": aws_region,
        }

    config_path = str(Path(config_file).absolute()) if config_file.strip() else ""

    try:
        request = parse_request(
            {
                "config_file": config_path,
                "image": image,
                "builder_image": builder_image,
                "platform": platform,
                "additional_args": additional_args,
                "chown": chown,
                "rootfs": rootfs,
                "tls_verify": tls_verify,
                "types": split_types(types),
                "aws": aws,
            }
        )
    except InvalidRequest as e:
        message = describe_error(e)
        actions.set_failed(message)
        if json_output:
            typer.echo(
                json.dumps(
                    {"success": False, "error_code": e.code, "error_message": message},
                    indent=2,
                )
            )
        else:
            console.print(f"[red]{escape(message)}[/red]")
        raise typer.Exit(code=1) from None

    outcome = build_image(request, settings=settings)

    if outcome.success:
        publish_outputs(outcome.result)
    else:
        actions.set_failed(outcome.error_message or "Build failed")

    if json_output:
        typer.echo(json.dumps(outcome.to_dict(), indent=2))
    elif outcome.success:
        console.print("[green]✓ Build succeeded[/green]")
        console.print(f"  Manifest: {outcome.result.manifest_path}")
        console.print(f"  Output directory: {outcome.result.output_directory}")
        for artifact_type, artifact in outcome.result.artifacts.items():
            console.print(f"  [green]{artifact_type}[/green]: {artifact.path}")
            console.print(f"    sha256: {artifact.checksum}")
    else:
        console.print("[red]✗ Build failed[/red]")
        console.print(f"  Error: {escape(outcome.error_message or '')}")

    if not outcome.success:
        raise typer.Exit(code=1)
