"""Container storage workarounds for CI runners.

Hosted runners ship a container storage configuration that breaks
privileged builder runs. Before any pull, the storage tree is removed and a
plain overlay configuration is written in its place. Running this twice
leaves the host in the same state.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from bootc_imagegen.builds.runner import run_privileged
from bootc_imagegen.errors import EnvironmentSetupFailure, ProcessFailure

if TYPE_CHECKING:
    from bootc_imagegen.config import Settings

logger = logging.getLogger(__name__)

STORAGE_CONF_NAME = "storage.conf"


def render_storage_conf(run_root: Path, graph_root: Path) -> str:
    """Render the container storage configuration.

    Args:
        run_root: Storage run root.
        graph_root: Storage graph root.

    Returns:
        TOML content for storage.conf.
    """
    return (
        "[storage]\n"
        'driver = "overlay"\n'
        f'runroot = "{run_root}"\n'
        f'graphroot = "{graph_root}"\n'
    )


def prepare_environment(settings: Settings) -> None:
    """Reset container storage and write the storage configuration.

    Args:
        settings: Application settings.

    Raises:
        EnvironmentSetupFailure: If any step fails.
    """
    config_dir = settings.containers_config_dir
    conf_path = config_dir / STORAGE_CONF_NAME
    content = render_storage_conf(settings.storage_run_root, settings.storage_root)

    logger.info("Resetting container storage at %s", settings.storage_root)
    try:
        # rm -f semantics: a missing tree is not an error
        run_privileged(
            "rm", ["-rf", str(settings.storage_root)], elevate_with=settings.elevate_with
        )
        run_privileged(
            "mkdir", ["-p", str(config_dir)], elevate_with=settings.elevate_with
        )
        # tee truncates, so prior content is always replaced
        run_privileged(
            "tee",
            [str(conf_path)],
            elevate_with=settings.elevate_with,
            input_text=content,
            discard_stdout=True,
        )
    except ProcessFailure as e:
        raise EnvironmentSetupFailure(
            f"Failed to prepare container storage: {e.message}"
        ) from e

    logger.info("Wrote container storage configuration to %s", conf_path)


__all__ = ["STORAGE_CONF_NAME", "prepare_environment", "render_storage_conf"]
