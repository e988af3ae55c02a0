"""Embedded, on-disk vector store backed by LanceDB."""

import asyncio
import json
import logging
import shutil
from datetime import timedelta
from pathlib import Path
from typing import Any, Optional, Sequence

import numpy as np

from codeindex.constants import DEFAULT_MAX_SEARCH_RESULTS, DEFAULT_SEARCH_MIN_SCORE
from codeindex.errors import VectorStoreError, VectorStoreInitError
from codeindex.models import Point, SearchResult, is_payload_valid
from codeindex.protocols import DatabaseDriver
from codeindex.storage.escaping import escape_sql_like_pattern, sql_in_list
from codeindex.utils import to_workspace_relative, workspace_storage_name

logger = logging.getLogger(__name__)

VECTOR_SIZE_KEY = "vector_size"
INDEXING_COMPLETE_KEY = "indexing_complete"
SAMPLE_ROW_ID = "sample"


class LanceDBVectorStore:
    """Per-workspace vector store persisted in a LanceDB directory.

    The database holds two tables:

    - ``vector``: one row per point (id, vector, filePath, codeChunk,
      startLine, endLine)
    - ``metadata``: key/value rows, values JSON-encoded; tracks the
      ``vector_size`` the table was built with and whether the last
      indexing pass completed

    The instance caches one connection and one open table handle.
    ``initialize()`` always reconnects, so it must not run concurrently with
    other calls on the same instance.
    """

    vector_table_name = "vector"
    metadata_table_name = "metadata"

    def __init__(
        self,
        workspace_path: Path | str,
        vector_size: int,
        db_directory: Path | str,
        driver: DatabaseDriver,
    ):
        self.workspace_path = str(workspace_path)
        self.vector_size = vector_size
        self.db_path = Path(db_directory).expanduser() / workspace_storage_name(workspace_path)
        self.driver = driver
        self._db: Any = None
        self._table: Any = None

    # Connection management

    async def _get_db(self) -> Any:
        if self._db is not None:
            return self._db
        self._db = await self.driver.connect(str(self.db_path))
        return self._db

    async def _get_table(self) -> Any:
        if self._table is not None:
            return self._table
        db = await self._get_db()
        try:
            self._table = await db.open_table(self.vector_table_name)
        except Exception as e:
            raise VectorStoreError(f"Table {self.vector_table_name} does not exist") from e
        return self._table

    async def _close_connection(self) -> None:
        self._table = None
        if self._db is not None:
            db, self._db = self._db, None
            db.close()

    # Schema

    def _sample_rows(self) -> list[dict]:
        return [
            {
                "id": SAMPLE_ROW_ID,
                "vector": np.zeros(self.vector_size, dtype=np.float32).tolist(),
                "filePath": SAMPLE_ROW_ID,
                "codeChunk": SAMPLE_ROW_ID,
                "startLine": 0,
                "endLine": 0,
            }
        ]

    def _metadata_rows(self) -> list[dict]:
        return [
            {"key": VECTOR_SIZE_KEY, "value": json.dumps(self.vector_size)},
            {"key": INDEXING_COMPLETE_KEY, "value": json.dumps(False)},
        ]

    async def _create_tables(self, db: Any) -> None:
        # The sample row only establishes the schema (including vector width).
        self._table = await db.create_table(self.vector_table_name, self._sample_rows())
        await self._table.delete(f"id = '{SAMPLE_ROW_ID}'")
        await db.create_table(self.metadata_table_name, self._metadata_rows())

    async def _drop_table_if_exists(self, db: Any, table_name: str) -> None:
        if table_name in await db.table_names():
            await db.drop_table(table_name)

    async def _read_metadata(self, db: Any, key: str) -> Any:
        metadata_table = await db.open_table(self.metadata_table_name)
        rows = await metadata_table.query().where(f"key = '{key}'").to_list()
        if not rows:
            return None
        return json.loads(rows[0]["value"])

    async def _get_stored_vector_size(self, db: Any) -> Optional[int]:
        try:
            value = await self._read_metadata(db, VECTOR_SIZE_KEY)
        except Exception as e:
            logger.warning(f"Failed to read metadata table: {e}")
            return None
        if isinstance(value, bool) or not isinstance(value, int):
            return None
        return value

    async def _set_metadata(self, key: str, value: Any) -> None:
        db = await self._get_db()
        metadata_table = await db.open_table(self.metadata_table_name)
        await metadata_table.delete(f"key = '{key}'")
        await metadata_table.add([{"key": key, "value": json.dumps(value)}])

    # Store contract

    async def initialize(self) -> bool:
        """Open or create the tables for this workspace.

        Returns:
            True if the tables were created or rebuilt (vector size changed),
            False if an existing, compatible table was opened.

        Raises:
            VectorStoreInitError: on any driver failure
        """
        try:
            await self._close_connection()
            self.db_path.mkdir(parents=True, exist_ok=True)
            db = await self._get_db()

            table_names = await db.table_names()
            if self.vector_table_name not in table_names:
                await self._create_tables(db)
                logger.info(f"Created vector store at {self.db_path}")
                return True

            self._table = await db.open_table(self.vector_table_name)

            stored_size = None
            if self.metadata_table_name in table_names:
                stored_size = await self._get_stored_vector_size(db)

            if stored_size != self.vector_size:
                logger.info(
                    f"Vector size changed ({stored_size} -> {self.vector_size}), rebuilding {self.db_path}"
                )
                await self._drop_table_if_exists(db, self.vector_table_name)
                await self._drop_table_if_exists(db, self.metadata_table_name)
                await self._create_tables(db)
                await self.optimize_table()
                return True

            await self.optimize_table()
            return False
        except Exception as e:
            logger.error(f"Failed to initialize LanceDB vector store: {e}")
            raise VectorStoreInitError(f"Failed to initialize LanceDB vector store: {e}") from e

    async def upsert_points(self, points: Sequence[Point]) -> None:
        """Replace rows by id: delete existing ids, then insert.

        Points with an invalid payload are dropped silently. The delete and
        insert are two separate operations; a crash between them loses the
        affected ids until they are indexed again.
        """
        if not points:
            return

        valid_points = [point for point in points if is_payload_valid(point.payload)]
        if not valid_points:
            return

        table = await self._get_table()
        try:
            rows = [
                {
                    "id": point.id,
                    "vector": [float(x) for x in point.vector],
                    "filePath": point.payload["filePath"],
                    "codeChunk": point.payload["codeChunk"],
                    "startLine": point.payload["startLine"],
                    "endLine": point.payload["endLine"],
                }
                for point in valid_points
            ]

            await table.delete(f"id IN ({sql_in_list(row['id'] for row in rows)})")
            await table.add(rows)
        except Exception as e:
            logger.error(f"Failed to upsert points: {e}")
            raise

    async def search(
        self,
        query_vector: Sequence[float],
        directory_prefix: Optional[str] = None,
        min_score: Optional[float] = None,
        max_results: Optional[int] = None,
    ) -> list[SearchResult]:
        """Cosine nearest-neighbor search.

        ``min_score`` is converted to the distance range
        ``[0, 1 - min_score]`` and applied by the engine.
        """
        min_score = DEFAULT_SEARCH_MIN_SCORE if min_score is None else min_score
        max_results = DEFAULT_MAX_SEARCH_RESULTS if max_results is None else max_results

        try:
            table = await self._get_table()

            query = table.query().nearest_to(np.asarray(query_vector, dtype=np.float32))
            if directory_prefix:
                query = query.where(f"`filePath` LIKE '{escape_sql_like_pattern(directory_prefix)}%'")
            query = (
                query.distance_type("cosine")
                .distance_range(0.0, 1.0 - min_score)
                .limit(max_results)
            )

            rows = await query.to_list()
        except Exception as e:
            logger.error(f"Failed to search points: {e}")
            raise

        return [
            SearchResult(
                id=row["id"],
                score=1.0 - row["_distance"],
                payload={
                    "filePath": row["filePath"],
                    "codeChunk": row["codeChunk"],
                    "startLine": row["startLine"],
                    "endLine": row["endLine"],
                },
            )
            for row in rows
        ]

    async def delete_points_by_file_path(self, file_path: str) -> None:
        await self.delete_points_by_multiple_file_paths([file_path])

    async def delete_points_by_multiple_file_paths(self, file_paths: Sequence[str]) -> None:
        if not file_paths:
            return

        try:
            table = await self._get_table()
            normalized = [to_workspace_relative(path, self.workspace_path) for path in file_paths]
            await table.delete(f"`filePath` IN ({sql_in_list(normalized)})")
        except Exception as e:
            logger.error(f"Failed to delete points by file paths: {e}")
            raise

    async def delete_collection(self) -> None:
        """Remove the database directory.

        If the directory cannot be removed, falls back to dropping both
        tables; the original error is raised either way.
        """
        await self._close_connection()
        try:
            if self.db_path.exists():
                await asyncio.to_thread(shutil.rmtree, self.db_path)
        except Exception:
            try:
                db = await self._get_db()
                await self._drop_table_if_exists(db, self.vector_table_name)
                await self._drop_table_if_exists(db, self.metadata_table_name)
            except Exception as clear_error:
                logger.error(f"Failed to clear collection and metadata: {clear_error}")
            raise

    async def clear_collection(self) -> None:
        """Delete every row, keeping the tables."""
        try:
            table = await self._get_table()
            await table.delete("true")

            try:
                db = await self._get_db()
                if self.metadata_table_name in await db.table_names():
                    metadata_table = await db.open_table(self.metadata_table_name)
                    await metadata_table.delete("true")
            except Exception as metadata_error:
                logger.warning(f"Failed to clear metadata table: {metadata_error}")

            await self.optimize_table()
        except Exception as e:
            logger.error(f"Failed to clear collection: {e}")
            raise

    async def collection_exists(self) -> bool:
        # Checking must not create the database directory.
        if not self.db_path.is_dir():
            return False
        try:
            db = await self._get_db()
            return self.vector_table_name in await db.table_names()
        except Exception as e:
            logger.debug(f"Could not check for collection: {e}")
            return False

    async def has_indexed_data(self) -> bool:
        """True if the table has rows and the last indexing pass completed."""
        if not self.db_path.is_dir():
            return False
        try:
            db = await self._get_db()
            table = await self._get_table()
            if await table.count_rows() == 0:
                return False
            return await self._read_metadata(db, INDEXING_COMPLETE_KEY) is True
        except Exception as e:
            logger.warning(f"Failed to check if collection has data: {e}")
            return False

    async def mark_indexing_complete(self) -> None:
        try:
            await self._set_metadata(INDEXING_COMPLETE_KEY, True)
            logger.info("Marked indexing as complete")
        except Exception as e:
            logger.error(f"Failed to mark indexing as complete: {e}")
            raise

    async def mark_indexing_incomplete(self) -> None:
        try:
            await self._set_metadata(INDEXING_COMPLETE_KEY, False)
            logger.info("Marked indexing as incomplete (in progress)")
        except Exception as e:
            logger.error(f"Failed to mark indexing as incomplete: {e}")
            raise

    async def optimize_table(self) -> None:
        """Compact the table and prune old versions. Never raises."""
        try:
            table = await self._get_table()
            await table.optimize(cleanup_older_than=timedelta(0), delete_unverified=False)
        except Exception as e:
            logger.error(f"Failed to optimize table: {e}")
