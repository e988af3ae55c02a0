"""Workspace path helpers."""

import hashlib
import os
from pathlib import Path


def workspace_storage_name(workspace_path: Path | str) -> str:
    """Deterministic per-workspace directory name.

    ``<basename>-<first 16 hex chars of sha256(workspace_path)>``
    """
    workspace = str(workspace_path)
    digest = hashlib.sha256(workspace.encode("utf-8")).hexdigest()
    return f"{os.path.basename(workspace)}-{digest[:16]}"


def to_workspace_relative(file_path: str, workspace_path: Path | str) -> str:
    """Normalize a path to workspace-relative, OS-native form.

    Absolute paths are made relative to the workspace root; relative paths
    are only normalized.
    """
    if os.path.isabs(file_path):
        file_path = os.path.relpath(file_path, str(workspace_path))
    return os.path.normpath(file_path)
