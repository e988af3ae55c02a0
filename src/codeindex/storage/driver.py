"""LanceDB driver loaded from the isolated dependency directory."""

import importlib
import logging
from types import ModuleType
from typing import Any, Optional

from codeindex.dependencies import DependencyManager
from codeindex.errors import DriverLoadError

logger = logging.getLogger(__name__)


class LanceDBDriver:
    """DatabaseDriver backed by the ``lancedb`` package.

    The package is provisioned by the DependencyManager on first connect and
    imported from its isolated directory.
    """

    def __init__(self, manager: DependencyManager):
        self.manager = manager
        self._module: Optional[ModuleType] = None

    async def load(self) -> ModuleType:
        """Return the lancedb module, installing it if needed."""
        if self._module is not None:
            return self._module

        await self.manager.ensure_available()
        self.manager.activate()

        try:
            self._module = importlib.import_module("lancedb")
        except ImportError as e:
            logger.error(f"Failed to load LanceDB module: {e}")
            raise DriverLoadError(f"Failed to load LanceDB module: {e}") from e
        return self._module

    async def connect(self, uri: str) -> Any:
        lancedb = await self.load()
        return await lancedb.connect_async(uri)
