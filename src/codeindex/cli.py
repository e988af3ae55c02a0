"""CLI entry point for codeindex."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

from codeindex.config import CodeIndexConfig
from codeindex.errors import CodeIndexError
from codeindex.factory import CodeIndexServiceFactory, CodeIndexServices
from codeindex.search import format_results

logger = logging.getLogger(__name__)


def report_progress(phase: str, message: str) -> None:
    """Progress callback for the driver install."""
    if phase == "installing":
        logger.info(f"{message}...")
    else:
        logger.info(message)


def load_config(args: argparse.Namespace) -> CodeIndexConfig:
    """Config file (if given) or environment, with command-line overrides."""
    config = CodeIndexConfig.from_file(args.config) if args.config else CodeIndexConfig.from_env()
    if args.provider:
        config.embedder_provider = args.provider
    if args.model:
        config.model_id = args.model
    if args.vector_store:
        config.vector_store_provider = args.vector_store
    return config


def build_factory(args: argparse.Namespace) -> CodeIndexServiceFactory:
    workspace = Path(args.workspace)
    if not workspace.is_dir():
        raise CodeIndexError(f"Workspace not found: {args.workspace}")
    return CodeIndexServiceFactory(load_config(args), workspace, progress=report_progress)


async def prepare(services: CodeIndexServices) -> None:
    """Open the vector store; a rebuilt store invalidates the hash cache."""
    if await services.vector_store.initialize():
        logger.info("Vector store created (or rebuilt), indexing all files")
        services.cache.clear()


async def index(args: argparse.Namespace) -> None:
    """Index (or re-index changed files of) a workspace."""
    factory = build_factory(args)
    services = factory.create_services()

    validation = await factory.validate_embedder(services.embedder)
    if not validation.valid:
        raise CodeIndexError(f"Embedder configuration is invalid: {validation.error}")

    if args.force:
        # Dropped rather than cleared, so initialize() records the vector size again.
        logger.info("Removing existing index")
        await services.vector_store.delete_collection()
        services.cache.clear()
    await prepare(services)

    logger.info(f"Indexing {factory.workspace_path}")
    result = await services.scanner.scan_directory(factory.workspace_path)
    if not result.complete:
        raise CodeIndexError(f"{result.failed_files} files failed to index; run again to retry")


async def search(args: argparse.Namespace) -> None:
    factory = build_factory(args)
    services = factory.create_services()
    if args.min_score is not None:
        services.search.min_score = args.min_score

    results = await services.search.search(args.query, directory_prefix=args.path, max_results=args.limit)
    print(format_results(results, args.query))


async def status(args: argparse.Namespace) -> None:
    """Show the index state of a workspace."""
    factory = build_factory(args)
    config = factory.config
    services = factory.create_services()

    exists = await services.vector_store.collection_exists()
    # A model change empties the store here, so it reports as incomplete.
    complete = await services.search.ensure_ready() and await services.vector_store.has_indexed_data()

    print(f"Workspace: {factory.workspace_path}")
    print(f"  Embedder: {config.embedder_provider} ({config.resolve_model_id()})")
    print(f"  Vector store: {config.vector_store_provider}")
    if config.vector_store_provider == "lancedb":
        manager = factory.dependency_manager
        installed = manager.installed_version() if manager.modules_path.is_dir() else None
        print(f"  LanceDB driver: {installed or 'not installed'} (pinned {manager.version})")
    print()
    print("Index:")
    print(f"  Collection exists: {'yes' if exists else 'no'}")
    print(f"  Indexing complete: {'yes' if complete else 'no'}")
    print(f"  Files tracked: {len(services.cache)}")


async def clear(args: argparse.Namespace) -> None:
    """Remove all indexed points but keep the collection."""
    services = build_factory(args).create_services()
    if not await services.vector_store.collection_exists():
        logger.info("Nothing to clear")
        return
    await services.vector_store.clear_collection()
    services.cache.clear()
    logger.info("Index cleared")


async def delete(args: argparse.Namespace) -> None:
    """Delete the workspace's collection and its hash cache."""
    services = build_factory(args).create_services()
    await services.vector_store.delete_collection()
    services.cache.clear()
    logger.info("Index deleted")


async def install_driver(args: argparse.Namespace) -> None:
    config = load_config(args)
    factory = CodeIndexServiceFactory(config, Path.cwd(), progress=report_progress)
    manager = factory.dependency_manager
    if manager.check_binaries():
        logger.info(f"LanceDB {manager.version} already installed in {manager.modules_path}")
        return
    await manager.ensure_available()


async def watch(args: argparse.Namespace) -> None:
    """Index once, then keep the index current until interrupted."""
    factory = build_factory(args)
    services = factory.create_services()

    await prepare(services)
    await services.scanner.scan_directory(factory.workspace_path)

    logger.info("Watching for changes (Ctrl-C to stop)")
    await services.file_watcher.run()


def serve(args: argparse.Namespace) -> None:
    """Start the MCP server for a workspace.

    Args:
        args: Parsed arguments (workspace, transport)
    """
    from typing import Literal, cast

    # Import here to avoid loading MCP unless needed
    from codeindex.server import create_mcp_server

    factory = build_factory(args)
    services = factory.create_services()

    logger.info(f"Serving {factory.workspace_path} via {args.transport}")
    mcp = create_mcp_server(services, Path(factory.workspace_path).name)
    mcp.run(transport=cast(Literal["stdio", "sse", "streamable-http"], args.transport))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="codeindex",
        description="codeindex - semantic search over your codebase",
    )
    parser.add_argument("-c", "--config", help="JSON config file (default: environment variables)")
    parser.add_argument("--provider", help="Embedder provider override")
    parser.add_argument("--model", help="Embedding model override")
    parser.add_argument("--vector-store", choices=["lancedb", "qdrant"], help="Vector store override")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def workspace_command(name: str, help_text: str) -> argparse.ArgumentParser:
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("workspace", nargs="?", default=".", help="Workspace directory (default: .)")
        return sub

    # index command
    index_parser = workspace_command("index", "Index a workspace (only changed files are re-embedded)")
    index_parser.add_argument("--force", action="store_true", help="Clear the index and start over")

    # search command
    search_parser = subparsers.add_parser("search", help="Semantic search in an indexed workspace")
    search_parser.add_argument("query", help="Natural language query")
    search_parser.add_argument("-w", "--workspace", default=".", help="Workspace directory (default: .)")
    search_parser.add_argument("-p", "--path", help="Restrict results to a directory prefix")
    search_parser.add_argument("-n", "--limit", type=int, default=10, help="Maximum results (default: 10)")
    search_parser.add_argument("--min-score", type=float, help="Minimum similarity score (0-1)")

    workspace_command("status", "Show index status for a workspace")
    workspace_command("clear", "Remove all indexed data, keeping the collection")
    workspace_command("delete", "Delete the workspace's index from disk")
    workspace_command("watch", "Index, then re-index files as they change")

    subparsers.add_parser("install-driver", help="Install the LanceDB driver for this platform")

    # serve command
    serve_parser = workspace_command("serve", "Start MCP server for a workspace")
    serve_parser.add_argument(
        "--transport",
        choices=["stdio", "sse"],
        default="stdio",
        help="Transport protocol (default: stdio)",
    )

    return parser


def main(argv: Optional[list[str]] = None) -> None:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.INFO, format="%(message)s")

    try:
        if args.command == "index":
            asyncio.run(index(args))
        elif args.command == "search":
            asyncio.run(search(args))
        elif args.command == "status":
            asyncio.run(status(args))
        elif args.command == "clear":
            asyncio.run(clear(args))
        elif args.command == "delete":
            asyncio.run(delete(args))
        elif args.command == "install-driver":
            asyncio.run(install_driver(args))
        elif args.command == "watch":
            asyncio.run(watch(args))
        elif args.command == "serve":
            serve(args)
    except CodeIndexError as e:
        logger.error(f"Error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Stopped")


if __name__ == "__main__":
    main()
