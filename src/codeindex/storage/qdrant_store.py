"""Remote vector store backed by a Qdrant server."""

import hashlib
import logging
import os
import uuid
from pathlib import Path
from typing import Optional, Sequence

from qdrant_client import AsyncQdrantClient
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    FilterSelector,
    MatchAny,
    MatchValue,
    PayloadSchemaType,
    PointStruct,
    VectorParams,
)

from codeindex.constants import DEFAULT_MAX_SEARCH_RESULTS, DEFAULT_SEARCH_MIN_SCORE
from codeindex.errors import VectorStoreInitError
from codeindex.models import Point, SearchResult, is_payload_valid
from codeindex.utils import to_workspace_relative

logger = logging.getLogger(__name__)

# Fixed id for the point carrying the indexing-complete flag.
METADATA_POINT_ID = str(uuid.uuid5(uuid.NAMESPACE_URL, "codeindex:__indexing_metadata__"))
MAX_PATH_SEGMENTS = 5


def path_segments(file_path: str) -> dict[str, str]:
    """Index path components as ``{"0": "src", "1": "app.py"}`` for prefix filters."""
    parts = [part for part in Path(file_path).parts if part not in ("", os.sep)]
    return {str(i): part for i, part in enumerate(parts)}


class QdrantVectorStore:
    """VectorStore backed by one Qdrant collection per workspace."""

    def __init__(
        self,
        workspace_path: Path | str,
        url: str,
        vector_size: int,
        api_key: Optional[str] = None,
        client: Optional[AsyncQdrantClient] = None,
    ):
        self.workspace_path = str(workspace_path)
        self.vector_size = vector_size
        digest = hashlib.sha256(self.workspace_path.encode("utf-8")).hexdigest()
        self.collection_name = f"ws-{digest[:16]}"
        # No server round trip at construction time.
        self.client = client or AsyncQdrantClient(url=url, api_key=api_key or None, check_compatibility=False)

    async def _create_collection(self) -> None:
        await self.client.create_collection(
            collection_name=self.collection_name,
            vectors_config=VectorParams(size=self.vector_size, distance=Distance.COSINE),
        )
        for i in range(MAX_PATH_SEGMENTS):
            await self.client.create_payload_index(
                collection_name=self.collection_name,
                field_name=f"pathSegments.{i}",
                field_schema=PayloadSchemaType.KEYWORD,
            )

    async def initialize(self) -> bool:
        try:
            if not await self.client.collection_exists(self.collection_name):
                await self._create_collection()
                return True

            info = await self.client.get_collection(self.collection_name)
            existing_size = getattr(info.config.params.vectors, "size", None)
            if existing_size == self.vector_size:
                return False

            logger.info(
                f"Vector size changed ({existing_size} -> {self.vector_size}), "
                f"recreating collection {self.collection_name}"
            )
            await self.client.delete_collection(self.collection_name)
            await self._create_collection()
            return True
        except Exception as e:
            logger.error(f"Failed to initialize Qdrant collection {self.collection_name}: {e}")
            raise VectorStoreInitError(f"Failed to initialize Qdrant vector store: {e}") from e

    async def upsert_points(self, points: Sequence[Point]) -> None:
        valid_points = [point for point in points if is_payload_valid(point.payload)]
        if not valid_points:
            return

        structs = [
            PointStruct(
                id=point.id,
                vector=[float(x) for x in point.vector],
                payload={
                    **point.payload,
                    "pathSegments": path_segments(point.payload["filePath"]),
                },
            )
            for point in valid_points
        ]
        try:
            await self.client.upsert(collection_name=self.collection_name, points=structs, wait=True)
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
        metadata_point = FieldCondition(key="type", match=MatchValue(value="metadata"))
        query_filter = Filter(must_not=[metadata_point])
        if directory_prefix:
            segments = path_segments(os.path.normpath(directory_prefix))
            query_filter.must = [
                FieldCondition(key=f"pathSegments.{i}", match=MatchValue(value=part))
                for i, part in segments.items()
                if part != "."
            ]

        try:
            response = await self.client.query_points(
                collection_name=self.collection_name,
                query=[float(x) for x in query_vector],
                query_filter=query_filter,
                score_threshold=DEFAULT_SEARCH_MIN_SCORE if min_score is None else min_score,
                limit=DEFAULT_MAX_SEARCH_RESULTS if max_results is None else max_results,
                with_payload=True,
            )
        except Exception as e:
            logger.error(f"Failed to search points: {e}")
            raise

        results = []
        for hit in response.points:
            if not is_payload_valid(hit.payload):
                continue
            payload = hit.payload
            results.append(
                SearchResult(
                    id=str(hit.id),
                    score=hit.score,
                    payload={
                        "filePath": payload["filePath"],
                        "codeChunk": payload["codeChunk"],
                        "startLine": payload["startLine"],
                        "endLine": payload["endLine"],
                    },
                )
            )
        return results

    async def delete_points_by_file_path(self, file_path: str) -> None:
        await self.delete_points_by_multiple_file_paths([file_path])

    async def delete_points_by_multiple_file_paths(self, file_paths: Sequence[str]) -> None:
        if not file_paths:
            return
        normalized = [to_workspace_relative(path, self.workspace_path) for path in file_paths]
        try:
            await self.client.delete(
                collection_name=self.collection_name,
                points_selector=FilterSelector(
                    filter=Filter(must=[FieldCondition(key="filePath", match=MatchAny(any=normalized))])
                ),
                wait=True,
            )
        except Exception as e:
            logger.error(f"Failed to delete points by file paths: {e}")
            raise

    async def delete_collection(self) -> None:
        try:
            if await self.client.collection_exists(self.collection_name):
                await self.client.delete_collection(self.collection_name)
        except Exception as e:
            logger.error(f"Failed to delete collection {self.collection_name}: {e}")
            raise

    async def clear_collection(self) -> None:
        try:
            await self.client.delete(
                collection_name=self.collection_name,
                points_selector=FilterSelector(filter=Filter(must=[])),
                wait=True,
            )
        except Exception as e:
            logger.error(f"Failed to clear collection {self.collection_name}: {e}")
            raise

    async def collection_exists(self) -> bool:
        try:
            return await self.client.collection_exists(self.collection_name)
        except Exception as e:
            logger.debug(f"Could not check for collection: {e}")
            return False

    async def has_indexed_data(self) -> bool:
        try:
            if not await self.client.collection_exists(self.collection_name):
                return False
            count = await self.client.count(collection_name=self.collection_name, exact=True)
            # The metadata point does not count as indexed data.
            if count.count <= 1:
                return False
            records = await self.client.retrieve(
                collection_name=self.collection_name, ids=[METADATA_POINT_ID], with_payload=True
            )
            if not records:
                return False
            return records[0].payload.get("indexing_complete") is True
        except Exception as e:
            logger.warning(f"Failed to check if collection has data: {e}")
            return False

    async def _set_indexing_flag(self, complete: bool) -> None:
        await self.client.upsert(
            collection_name=self.collection_name,
            points=[
                PointStruct(
                    id=METADATA_POINT_ID,
                    vector=[0.0] * self.vector_size,
                    payload={"type": "metadata", "indexing_complete": complete},
                )
            ],
            wait=True,
        )

    async def mark_indexing_complete(self) -> None:
        try:
            await self._set_indexing_flag(True)
            logger.info("Marked indexing as complete")
        except Exception as e:
            logger.error(f"Failed to mark indexing as complete: {e}")
            raise

    async def mark_indexing_incomplete(self) -> None:
        try:
            await self._set_indexing_flag(False)
            logger.info("Marked indexing as incomplete (in progress)")
        except Exception as e:
            logger.error(f"Failed to mark indexing as incomplete: {e}")
            raise
