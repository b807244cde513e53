"""bootc Image Generator - CI orchestration for bootc-image-builder.

This package prepares the container runtime, runs the containerized
bootc-image-builder, and collects and checksums the artifacts it produces.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
