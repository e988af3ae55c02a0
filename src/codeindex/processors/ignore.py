"""Decides which workspace files are indexed."""

import fnmatch
import logging
from pathlib import Path, PurePath
from typing import Iterable, Optional

from codeindex.constants import MAX_FILE_SIZE_BYTES

logger = logging.getLogger(__name__)

# Directories never worth indexing
SKIP_DIRECTORIES = {
    "__pycache__",
    "node_modules",
    "venv",
    "env",
    "dist",
    "build",
    "out",
    "target",
    "vendor",
    "coverage",
}

# Extensions that are never source text
BINARY_EXTENSIONS = {
    # Images
    ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".ico", ".webp", ".tiff",
    # Documents
    ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx", ".odt", ".ods",
    # Archives
    ".zip", ".tar", ".gz", ".rar", ".7z", ".bz2", ".xz", ".jar",
    # Executables
    ".exe", ".dll", ".so", ".dylib", ".bin",
    # Media
    ".mp3", ".mp4", ".avi", ".mov", ".wav", ".flac", ".mkv", ".webm",
    # Compiled
    ".pyc", ".pyo", ".class", ".o", ".obj", ".wasm",
    # Fonts
    ".ttf", ".otf", ".woff", ".woff2", ".eot",
    # Data
    ".db", ".sqlite", ".sqlite3", ".lance", ".npy", ".pkl",
    # Lock files carry no searchable code
    ".lock",
}


def is_binary_content(content: bytes, sample_size: int = 8192) -> bool:
    """Detect binary content by null bytes or a failed UTF-8 decode of the sample."""
    if not content:
        return False

    sample = content[:sample_size]
    if b"\x00" in sample:
        return True

    try:
        sample.decode("utf-8")
    except UnicodeDecodeError as e:
        # A multi-byte sequence cut off by the sample boundary is still text
        return e.start < len(sample) - 3
    return False


class IgnoreFilter:
    """Hidden paths, build directories, binaries, oversized files and .gitignore rules.

    Supported ``.gitignore`` syntax: blank lines and ``#`` comments,
    ``name``, ``*.ext``-style globs, trailing ``/`` for directories and a
    leading ``/`` anchoring the pattern to the workspace root. Negations
    (``!pattern``) are not supported and are skipped.
    """

    def __init__(self, patterns: Iterable[str] = (), max_file_size: int = MAX_FILE_SIZE_BYTES):
        self.max_file_size = max_file_size
        self._rules: list[tuple[str, bool, bool]] = []  # (pattern, dir_only, anchored)
        for raw in patterns:
            self.add_pattern(raw)

    @classmethod
    def from_workspace(cls, workspace_path: Path | str, **kwargs) -> "IgnoreFilter":
        """Build a filter from the workspace's ``.gitignore``, if present."""
        gitignore = Path(workspace_path) / ".gitignore"
        patterns: list[str] = []
        if gitignore.is_file():
            try:
                patterns = gitignore.read_text(encoding="utf-8", errors="replace").splitlines()
            except OSError as e:
                logger.warning(f"Could not read {gitignore}: {e}")
        return cls(patterns, **kwargs)

    def add_pattern(self, raw: str) -> None:
        pattern = raw.strip()
        if not pattern or pattern.startswith("#") or pattern.startswith("!"):
            return
        dir_only = pattern.endswith("/")
        anchored = pattern.startswith("/") or "/" in pattern.rstrip("/")
        self._rules.append((pattern.strip("/"), dir_only, anchored))

    def _matches_rule(self, parts: tuple[str, ...], is_dir: bool) -> bool:
        for pattern, dir_only, anchored in self._rules:
            if anchored:
                # Match the path itself or any parent directory against the rooted pattern
                for depth in range(1, len(parts) + 1):
                    candidate_is_dir = depth < len(parts) or is_dir
                    if dir_only and not candidate_is_dir:
                        continue
                    if fnmatch.fnmatchcase("/".join(parts[:depth]), pattern):
                        return True
            else:
                for depth, part in enumerate(parts, start=1):
                    candidate_is_dir = depth < len(parts) or is_dir
                    if dir_only and not candidate_is_dir:
                        continue
                    if fnmatch.fnmatchcase(part, pattern):
                        return True
        return False

    def is_ignored(self, relative_path: str | PurePath, is_dir: bool = False) -> bool:
        """Check a workspace-relative path against the skip rules (no disk access)."""
        parts = tuple(part for part in PurePath(relative_path).parts if part not in ("", "."))
        if not parts:
            return False

        # Skip hidden files/folders
        if any(part.startswith(".") for part in parts):
            return True

        dir_parts = parts if is_dir else parts[:-1]
        if any(part in SKIP_DIRECTORIES or part.endswith(".egg-info") for part in dir_parts):
            return True

        if not is_dir and PurePath(parts[-1]).suffix.lower() in BINARY_EXTENSIONS:
            return True

        return self._matches_rule(parts, is_dir)

    def should_index(self, full_path: Path, relative_path: str, content: Optional[bytes] = None) -> bool:
        """Full check for a file: path rules, size limit and binary content."""
        if self.is_ignored(relative_path):
            return False
        try:
            if full_path.stat().st_size > self.max_file_size:
                logger.debug(f"Skipping {relative_path}: larger than {self.max_file_size} bytes")
                return False
        except OSError:
            return False
        if content is not None and is_binary_content(content):
            return False
        return True
