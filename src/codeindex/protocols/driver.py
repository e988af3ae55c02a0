"""Protocol for the embedded database driver used by the LanceDB store."""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class DatabaseDriver(Protocol):
    """Opens connections to an on-disk vector database.

    The returned connection follows the ``lancedb.AsyncConnection`` surface
    (``table_names``, ``open_table``, ``create_table``, ``drop_table``,
    ``close``). Tests substitute a fake driver here instead of patching the
    module.
    """

    async def connect(self, uri: str) -> Any:
        """Open (creating if needed) the database at ``uri``."""
        ...
