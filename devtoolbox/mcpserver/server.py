"""FastMCP server exposing public snippets as MCP tools."""

from __future__ import annotations

import logging
from typing import Any

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError

from ..api.model import dump
from ..api.service import SnippetService
from ..exception_handler import SnippetError
from ..snippet import SNIPPET_TYPES

logger = logging.getLogger("devtoolbox")


def _handle_snippet_error(exc: SnippetError) -> ToolError:
    return ToolError(exc.message)


def _handle_generic_exception(exc: Exception, *, default_message: str) -> ToolError:
    logger.exception(default_message)
    return ToolError(default_message)


def create_server(service: SnippetService) -> FastMCP:
    """Create a FastMCP server bound to ``service``."""

    server = FastMCP("DevToolbox Snippets MCP Server")

    @server.tool(
        name="list_public_snippets",
        description=(
            "List recently shared public snippets, newest first. Returns metadata only"
            " (id, title, type, createdAt); call `get_public_snippet` for the content."
            f" Filter with `type` ({', '.join(SNIPPET_TYPES)})."
        ),
        tags={"snippets", "public"},
    )
    async def list_public_snippets(type: str | None = None, limit: int = 20) -> dict[str, Any]:
        try:
            response = await service.list_public_snippets(type, limit)
        except SnippetError as exc:
            raise _handle_snippet_error(exc)
        except Exception as exc:  # pragma: no cover - transport errors
            raise _handle_generic_exception(exc, default_message="Failed to fetch public snippets")
        return dump(response)

    @server.tool(
        name="get_public_snippet",
        description="Fetch the full content of a public snippet by its id.",
        tags={"snippets", "public"},
    )
    async def get_public_snippet(snippet_id: str) -> dict[str, Any]:
        if not snippet_id or not snippet_id.strip():
            raise ToolError("Snippet id is required.")
        try:
            response = await service.get_snippet(snippet_id.strip(), None)
        except SnippetError as exc:
            raise _handle_snippet_error(exc)
        except Exception as exc:  # pragma: no cover - transport errors
            raise _handle_generic_exception(exc, default_message="Failed to fetch snippet")
        return dump(response)

    return server


__all__ = ["create_server"]
