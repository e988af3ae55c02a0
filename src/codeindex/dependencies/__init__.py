"""Provisioning of native dependencies."""

from codeindex.dependencies.manager import (
    LANCEDB_VERSION,
    DependencyManager,
    ProgressCallback,
)
from codeindex.dependencies.platform import PlatformTarget, detect_platform

__all__ = [
    "LANCEDB_VERSION",
    "DependencyManager",
    "PlatformTarget",
    "ProgressCallback",
    "detect_platform",
]
