"""Build orchestration module.

This module handles:
- Container storage workarounds for CI runners
- Argument synthesis for the builder invocation
- Running the container runtime with elevated privilege
- Artifact discovery, type normalization, and checksums
"""

from bootc_imagegen.builds.request import AWSOptions, BuildRequest

__all__ = ["AWSOptions", "BuildRequest"]

# Access submodules via bootc_imagegen.builds.service, etc.
