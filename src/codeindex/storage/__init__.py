"""Vector store backends."""

from codeindex.storage.driver import LanceDBDriver
from codeindex.storage.escaping import escape_sql_like_pattern, escape_sql_string, sql_in_list
from codeindex.storage.lancedb_store import LanceDBVectorStore
from codeindex.storage.qdrant_store import QdrantVectorStore

__all__ = [
    "LanceDBDriver",
    "LanceDBVectorStore",
    "QdrantVectorStore",
    "escape_sql_like_pattern",
    "escape_sql_string",
    "sql_in_list",
]
