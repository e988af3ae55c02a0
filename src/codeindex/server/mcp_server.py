"""FastMCP server exposing semantic code search for one workspace."""

from typing import Optional

from mcp.server.fastmcp import FastMCP

from codeindex.errors import CodeIndexError
from codeindex.factory import CodeIndexServices
from codeindex.search import format_results


def create_mcp_server(services: CodeIndexServices, workspace_name: str = "codeindex") -> FastMCP:
    """Create an MCP server for a single indexed workspace.

    Design: 1 process = 1 workspace, so results never mix code from
    different projects.

    Args:
        services: Wired services for the workspace
        workspace_name: Name reported to MCP clients

    Returns:
        Configured FastMCP server instance
    """
    mcp = FastMCP(name=workspace_name)

    @mcp.tool()
    async def codebase_search(query: str, path: Optional[str] = None, limit: int = 10) -> str:
        """Semantic search across the workspace's source code.

        Use this to find code by concept, not just keyword. For example:
        "retry with backoff" might find a scheduler even if it never
        mentions the word "retry".

        Args:
            query: Natural language description of what you're looking for
            path: Optional workspace-relative directory to restrict results to (e.g., "src/")
            limit: Maximum number of results to return (default: 10)

        Returns:
            Ranked list of matching chunks with file, line range and similarity score
        """
        try:
            results = await services.search.search(query, directory_prefix=path, max_results=limit)
        except CodeIndexError as e:
            return f"Error: {e}"
        return format_results(results, query)

    return mcp
