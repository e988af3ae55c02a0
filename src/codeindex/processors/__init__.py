"""File processing: chunking, filtering, scanning and watching."""

from codeindex.processors.cache import FileHashCache, content_hash
from codeindex.processors.chunker import LineChunker
from codeindex.processors.ignore import IgnoreFilter, is_binary_content
from codeindex.processors.indexing import ChunkIndexer, point_id_for_chunk
from codeindex.processors.scanner import DirectoryScanner, ScanResult
from codeindex.processors.watcher import FileWatcher, WatchBatchResult

__all__ = [
    "ChunkIndexer",
    "DirectoryScanner",
    "FileHashCache",
    "FileWatcher",
    "IgnoreFilter",
    "LineChunker",
    "ScanResult",
    "WatchBatchResult",
    "content_hash",
    "is_binary_content",
    "point_id_for_chunk",
]
