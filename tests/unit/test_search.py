"""
Unit tests for the search service, result formatting, the MCP server and the CLI.
"""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from codeindex.cli import build_parser, load_config, main
from codeindex.errors import CodeIndexError, EmbedderError, VectorStoreError, VectorStoreInitError
from codeindex.factory import CodeIndexServiceFactory
from codeindex.models import SearchResult
from codeindex.protocols import EmbedderInfo, EmbeddingResponse, ValidationResult
from codeindex.search import CodeSearchService, format_results
from codeindex.server import create_mcp_server
from codeindex.storage import LanceDBVectorStore

pytestmark = pytest.mark.unit


def hit(path: str = "src/app.py", score: float = 0.87, chunk: str = "def main():\n    pass") -> SearchResult:
    return SearchResult(
        id="p1",
        score=score,
        payload={"filePath": path, "codeChunk": chunk, "startLine": 3, "endLine": 4},
    )


@pytest.fixture
def embedder() -> MagicMock:
    embedder = MagicMock()
    embedder.embedder_info = EmbedderInfo(name="fake")
    embedder.create_embeddings = AsyncMock(return_value=EmbeddingResponse(embeddings=[[0.1, 0.2, 0.3]]))
    return embedder


@pytest.fixture
def vector_store() -> AsyncMock:
    store = AsyncMock()
    store.collection_exists.return_value = True
    store.initialize.return_value = False
    store.has_indexed_data.return_value = True
    store.search.return_value = [hit()]
    return store


class TestCodeSearchService:
    async def test_embeds_query_and_searches(self, embedder, vector_store):
        service = CodeSearchService(embedder, vector_store, min_score=0.3, max_results=20)

        results = await service.search("entry point", directory_prefix="src")

        embedder.create_embeddings.assert_awaited_once_with(["entry point"])
        vector_store.search.assert_awaited_once_with(
            [0.1, 0.2, 0.3], directory_prefix="src", min_score=0.3, max_results=20
        )
        assert results[0].payload["filePath"] == "src/app.py"

    async def test_call_limit_overrides_default(self, embedder, vector_store):
        service = CodeSearchService(embedder, vector_store, max_results=20)

        await service.search("q", max_results=5)

        assert vector_store.search.await_args.kwargs["max_results"] == 5

    async def test_unindexed_workspace(self, embedder, vector_store):
        vector_store.has_indexed_data.return_value = False

        with pytest.raises(CodeIndexError, match="not indexed"):
            await CodeSearchService(embedder, vector_store).search("q")

        embedder.create_embeddings.assert_not_awaited()

    async def test_no_query_vector(self, embedder, vector_store):
        embedder.create_embeddings.return_value = EmbeddingResponse(embeddings=[])

        with pytest.raises(EmbedderError):
            await CodeSearchService(embedder, vector_store).search("q")

    async def test_missing_collection_is_not_created(self, embedder, vector_store):
        vector_store.collection_exists.return_value = False

        with pytest.raises(CodeIndexError, match="not indexed"):
            await CodeSearchService(embedder, vector_store).search("q")

        vector_store.initialize.assert_not_awaited()

    async def test_model_change_reports_not_indexed(self, embedder, vector_store):
        """A store rebuilt for a new vector size is empty and drops the hash cache."""
        vector_store.initialize.return_value = True
        cache = MagicMock()

        with pytest.raises(CodeIndexError, match="not indexed"):
            await CodeSearchService(embedder, vector_store, cache=cache).search("q")

        cache.clear.assert_called_once()
        embedder.create_embeddings.assert_not_awaited()
        vector_store.search.assert_not_awaited()

    async def test_store_opened_once(self, embedder, vector_store):
        service = CodeSearchService(embedder, vector_store)

        await service.search("first")
        await service.search("second")

        vector_store.initialize.assert_awaited_once()

    async def test_open_failure_is_a_codeindex_error(self, embedder, vector_store):
        vector_store.initialize.side_effect = VectorStoreInitError("driver missing")

        with pytest.raises(CodeIndexError, match="driver missing"):
            await CodeSearchService(embedder, vector_store).search("q")

    async def test_driver_error_wrapped(self, embedder, vector_store):
        vector_store.search.side_effect = ValueError(
            "No vector column found to match with the query vector dimension: 4"
        )

        with pytest.raises(VectorStoreError, match="query vector dimension") as excinfo:
            await CodeSearchService(embedder, vector_store).search("q")

        assert isinstance(excinfo.value.__cause__, ValueError)


class TestFormatResults:
    def test_empty(self):
        assert format_results([], "nothing") == "No results found for: nothing"

    def test_ranked_listing(self):
        text = format_results([hit(), hit("lib/b.py", 0.5)], "main")

        assert "1. [0.870] src/app.py:3-4" in text
        assert "2. [0.500] lib/b.py:3-4" in text
        assert "def main():     pass" in text

    def test_long_snippet_truncated(self):
        text = format_results([hit(chunk="x" * 500)], "q")

        assert "x" * 200 + "..." in text
        assert "x" * 201 not in text


class TestMcpServer:
    async def test_registers_search_tool(self):
        services = MagicMock()

        mcp = create_mcp_server(services, "my-project")

        tools = await mcp.list_tools()
        assert [tool.name for tool in tools] == ["codebase_search"]
        assert mcp.name == "my-project"


class TestCli:
    """Tests for argument parsing and top-level error handling."""

    def test_search_arguments(self):
        args = build_parser().parse_args(["search", "auth flow", "-p", "src", "-n", "3", "--min-score", "0.2"])

        assert args.command == "search"
        assert args.query == "auth flow"
        assert args.path == "src"
        assert args.limit == 3
        assert args.min_score == pytest.approx(0.2)
        assert args.workspace == "."

    def test_workspace_defaults_to_cwd(self):
        args = build_parser().parse_args(["index", "--force"])

        assert args.workspace == "."
        assert args.force is True

    def test_global_overrides(self, tmp_path):
        config_path = tmp_path / "codeindex.json"
        config_path.write_text('{"embedder_provider": "openai"}')
        args = build_parser().parse_args(
            ["-c", str(config_path), "--provider", "ollama", "--model", "all-minilm", "status"]
        )

        config = load_config(args)

        assert config.embedder_provider == "ollama"
        assert config.model_id == "all-minilm"

    def test_missing_workspace_exits_nonzero(self, tmp_path):
        with pytest.raises(SystemExit) as excinfo:
            main(["status", str(tmp_path / "missing")])

        assert excinfo.value.code == 1

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestCliCommands:
    """Command runs against the in-memory LanceDB connection."""

    @pytest.fixture
    def config_path(self, tmp_path):
        path = tmp_path / "codeindex.json"
        path.write_text(json.dumps({"storage_root": str(tmp_path / "storage")}))
        return path

    @pytest.fixture
    def cli_embedder(self, monkeypatch) -> MagicMock:
        """3-d embedder handed out by every factory the CLI builds."""

        async def create_embeddings(texts, model=None):
            return EmbeddingResponse(embeddings=[[0.1, 0.2, 0.3] for _ in texts])

        embedder = MagicMock()
        embedder.embedder_info = EmbedderInfo(name="fake")
        embedder.create_embeddings = AsyncMock(side_effect=create_embeddings)
        embedder.validate_configuration = AsyncMock(return_value=ValidationResult(valid=True))
        monkeypatch.setattr(CodeIndexServiceFactory, "create_embedder", lambda self: embedder)
        return embedder

    @pytest.fixture
    def source_tree(self, workspace):
        (workspace / "app.py").write_text("def main():\n    return 1\n")
        (workspace / "util.py").write_text("def helper():\n    return 2\n")
        return workspace

    def use_store(self, monkeypatch, store):
        monkeypatch.setattr(CodeIndexServiceFactory, "create_vector_store", lambda self: store)

    def test_force_then_incremental_embeds_nothing(
        self, monkeypatch, config_path, source_tree, lancedb_store, cli_embedder
    ):
        self.use_store(monkeypatch, lancedb_store)
        run = ["-c", str(config_path), "index"]

        main(run + [str(source_tree)])
        main(run + ["--force", str(source_tree)])
        embedded = cli_embedder.create_embeddings.await_count

        main(run + [str(source_tree)])

        assert cli_embedder.create_embeddings.await_count == embedded

    def test_force_keeps_vector_size_recorded(
        self, monkeypatch, config_path, source_tree, lancedb_store, fake_connection, cli_embedder
    ):
        self.use_store(monkeypatch, lancedb_store)
        main(["-c", str(config_path), "index", str(source_tree)])

        main(["-c", str(config_path), "index", "--force", str(source_tree)])

        metadata = {row["key"]: row["value"] for row in fake_connection.tables["metadata"].rows}
        assert metadata["vector_size"] == "3"
        assert metadata["indexing_complete"] == "true"

    def test_search_after_model_change_exits_cleanly(
        self, monkeypatch, tmp_path, config_path, source_tree, fake_driver, cli_embedder, caplog
    ):
        narrow = LanceDBVectorStore(source_tree, 3, tmp_path / "db", fake_driver)
        self.use_store(monkeypatch, narrow)
        main(["-c", str(config_path), "index", str(source_tree)])
        embedded = cli_embedder.create_embeddings.await_count

        wide = LanceDBVectorStore(source_tree, 4, tmp_path / "db", fake_driver)
        self.use_store(monkeypatch, wide)
        with pytest.raises(SystemExit) as excinfo:
            main(["-c", str(config_path), "search", "entry point", "-w", str(source_tree)])

        assert excinfo.value.code == 1
        assert "not indexed" in caplog.text
        assert cli_embedder.create_embeddings.await_count == embedded

        main(["-c", str(config_path), "index", str(source_tree)])

        assert cli_embedder.create_embeddings.await_count > embedded
