"""
Shared test fixtures and configuration for pytest.
"""

import re
from pathlib import Path
from typing import Any, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from codeindex.models import Point
from codeindex.storage import LanceDBVectorStore


# ============================================================================
# In-memory stand-ins for the LanceDB async connection
# ============================================================================

_KEY_PREDICATE = re.compile(r"^key = '(.*)'$")
_ID_PREDICATE = re.compile(r"^id = '(.*)'$")


class FakeQuery:
    """Records the builder calls made against a table query."""

    def __init__(self, table: "FakeTable"):
        self.table = table
        self.calls: list[tuple[str, Any]] = []

    def where(self, predicate: str) -> "FakeQuery":
        self.calls.append(("where", predicate))
        return self

    def nearest_to(self, vector: Any) -> "FakeQuery":
        self.calls.append(("nearest_to", vector))
        return self

    def distance_type(self, distance_type: str) -> "FakeQuery":
        self.calls.append(("distance_type", distance_type))
        return self

    def distance_range(self, lower: float, upper: float) -> "FakeQuery":
        self.calls.append(("distance_range", (lower, upper)))
        return self

    def limit(self, n: int) -> "FakeQuery":
        self.calls.append(("limit", n))
        return self

    def call(self, name: str) -> Any:
        for call_name, value in self.calls:
            if call_name == name:
                return value
        return None

    async def to_list(self) -> list[dict]:
        if self.table.query_error is not None:
            raise self.table.query_error
        if self.call("nearest_to") is not None:
            return list(self.table.search_rows)
        predicate = self.call("where")
        match = _KEY_PREDICATE.match(predicate or "")
        if match:
            return [row for row in self.table.rows if row.get("key") == match.group(1)]
        return list(self.table.rows)


class FakeTable:
    """Minimal table: keeps rows for metadata lookups, records every mutation."""

    def __init__(self, name: str, rows: Optional[list[dict]] = None):
        self.name = name
        self.rows = list(rows or [])
        self.search_rows: list[dict] = []
        self.query_error: Optional[Exception] = None
        self.queries: list[FakeQuery] = []
        self.add = AsyncMock(side_effect=self._add)
        self.delete = AsyncMock(side_effect=self._delete)
        self.count_rows = AsyncMock(side_effect=lambda: len(self.rows))
        self.optimize = AsyncMock()

    async def _add(self, rows: list[dict]) -> None:
        self.rows.extend(rows)

    async def _delete(self, predicate: str) -> None:
        if predicate == "true":
            self.rows = []
            return
        for pattern, column in ((_KEY_PREDICATE, "key"), (_ID_PREDICATE, "id")):
            match = pattern.match(predicate)
            if match:
                self.rows = [row for row in self.rows if row.get(column) != match.group(1)]
                return

    def query(self) -> FakeQuery:
        query = FakeQuery(self)
        self.queries.append(query)
        return query


class FakeConnection:
    """Stands in for ``lancedb.AsyncConnection``."""

    def __init__(self):
        self.tables: dict[str, FakeTable] = {}
        self.table_names = AsyncMock(side_effect=lambda: list(self.tables))
        self.open_table = AsyncMock(side_effect=self._open_table)
        self.create_table = AsyncMock(side_effect=self._create_table)
        self.drop_table = AsyncMock(side_effect=self._drop_table)
        self.close = MagicMock()

    async def _open_table(self, name: str) -> FakeTable:
        if name not in self.tables:
            raise ValueError(f"Table '{name}' was not found")
        return self.tables[name]

    async def _create_table(self, name: str, data: list[dict]) -> FakeTable:
        table = FakeTable(name, data)
        self.tables[name] = table
        return table

    async def _drop_table(self, name: str) -> None:
        self.tables.pop(name, None)

    def seed(self, vector_size: Optional[int], indexing_complete: bool = False) -> FakeTable:
        """Pre-populate an existing database (``vector_size=None`` omits the metadata table)."""
        vector_table = FakeTable("vector")
        self.tables["vector"] = vector_table
        if vector_size is not None:
            self.tables["metadata"] = FakeTable(
                "metadata",
                [
                    {"key": "vector_size", "value": str(vector_size)},
                    {"key": "indexing_complete", "value": "true" if indexing_complete else "false"},
                ],
            )
        return vector_table


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def fake_connection() -> FakeConnection:
    return FakeConnection()


@pytest.fixture
def fake_driver(fake_connection: FakeConnection) -> MagicMock:
    """DatabaseDriver whose connect() hands out the fake connection."""
    driver = MagicMock()
    driver.connect = AsyncMock(return_value=fake_connection)
    return driver


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    path = tmp_path / "workspace"
    path.mkdir()
    return path


@pytest.fixture
def lancedb_store(tmp_path: Path, workspace: Path, fake_driver: MagicMock) -> LanceDBVectorStore:
    """Store with vector size 3 wired to the fake driver."""
    return LanceDBVectorStore(workspace, 3, tmp_path / "db", fake_driver)


@pytest.fixture
def make_point():
    """Factory for points with a valid payload."""

    def _make(point_id: str, file_path: str = "src/app.py", vector: Optional[list[float]] = None) -> Point:
        return Point(
            id=point_id,
            vector=vector or [0.1, 0.2, 0.3],
            payload={"filePath": file_path, "codeChunk": "def f(): pass", "startLine": 1, "endLine": 1},
        )

    return _make
