"""Utility functions for codeindex."""

from codeindex.utils.workspace import to_workspace_relative, workspace_storage_name

__all__ = ["to_workspace_relative", "workspace_storage_name"]
