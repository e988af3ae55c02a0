"""Persistent map of indexed files to their content hashes."""

import hashlib
import json
import logging
import os
from pathlib import Path

from codeindex.constants import CACHE_DIRECTORY_NAME
from codeindex.utils import workspace_storage_name

logger = logging.getLogger(__name__)


def content_hash(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()


class FileHashCache:
    """JSON file mapping workspace-relative path -> sha256 of the indexed content.

    Stored at ``<storage_root>/cache/<workspace-storage-name>.json``. Changes
    are kept in memory until ``save()``.
    """

    def __init__(self, cache_path: Path | str):
        self.cache_path = Path(cache_path).expanduser()
        self._hashes: dict[str, str] = {}
        self.load()

    @classmethod
    def for_workspace(cls, storage_root: Path | str, workspace_path: Path | str) -> "FileHashCache":
        root = Path(storage_root).expanduser() / CACHE_DIRECTORY_NAME
        return cls(root / f"{workspace_storage_name(workspace_path)}.json")

    def load(self) -> None:
        if not self.cache_path.is_file():
            self._hashes = {}
            return
        try:
            data = json.loads(self.cache_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Discarding unreadable hash cache {self.cache_path}: {e}")
            self._hashes = {}
            return
        self._hashes = {str(k): str(v) for k, v in data.items()} if isinstance(data, dict) else {}

    def save(self) -> None:
        """Write the cache atomically (temp file + rename)."""
        self.cache_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.cache_path.with_suffix(".json.tmp")
        tmp_path.write_text(json.dumps(self._hashes, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(tmp_path, self.cache_path)

    def get_hash(self, file_path: str) -> str | None:
        return self._hashes.get(file_path)

    def update_hash(self, file_path: str, file_hash: str) -> None:
        self._hashes[file_path] = file_hash

    def delete_hash(self, file_path: str) -> None:
        self._hashes.pop(file_path, None)

    def all_paths(self) -> set[str]:
        return set(self._hashes)

    def clear(self) -> None:
        """Forget every hash and remove the cache file."""
        self._hashes = {}
        try:
            self.cache_path.unlink()
        except FileNotFoundError:
            pass

    def __len__(self) -> int:
        return len(self._hashes)
