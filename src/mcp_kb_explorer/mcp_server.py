"""FastMCP server definition (tools + resources)."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from mcp.server.fastmcp import Context, FastMCP

from .models import Connection, KnowledgeBase, Resource
from .pagination import collect_all
from .reconcile import knowledge_base_pages
from .session import Workspace
from .settings import Settings
from .views import TreeView


@dataclass(slots=True)
class AppContext:
    settings: Settings
    workspace: Workspace


def _workspace(ctx: Context) -> Workspace:
    app: AppContext = ctx.request_context.lifespan_context
    return app.workspace


def create_mcp_server(settings: Settings, workspace: Workspace | None = None) -> FastMCP:
    # The workspace outlives single MCP sessions: with stateless HTTP every
    # request runs the lifespan below.
    workspace = workspace or Workspace(settings)

    @asynccontextmanager
    async def lifespan(_: FastMCP) -> AsyncIterator[AppContext]:
        yield AppContext(settings=settings, workspace=workspace)

    mcp = FastMCP(
        "Stack knowledge bases",
        instructions=(
            "Browse a connected drive, select files and folders, import them into a "
            "knowledge base, then inspect its indexing status and delete resources. "
            "Directories load lazily: expand one to list its children."
        ),
        lifespan=lifespan,
        stateless_http=True,
        json_response=True,
    )

    @mcp.resource("stack-kb://{knowledge_base_id}/root")
    async def read_knowledge_base_root(knowledge_base_id: str, ctx: Context) -> list[Resource]:
        """Every top-level resource of a knowledge base."""
        client = await _workspace(ctx).client()
        return await collect_all(knowledge_base_pages(client), knowledge_base_id, "/")

    @mcp.tool()
    async def connections_list(ctx: Context, provider: str | None = None) -> list[Connection]:
        """List drive connections (default provider from settings)."""
        ws = _workspace(ctx)
        client = await ws.client()
        return await client.list_connections(provider or settings.connection_provider, limit=1)

    @mcp.tool()
    async def knowledge_bases_list(ctx: Context) -> list[KnowledgeBase]:
        """List knowledge bases."""
        client = await _workspace(ctx).client()
        return await client.list_knowledge_bases()

    @mcp.tool()
    async def browse_open(
        ctx: Context,
        connection_id: str | None = None,
        filter_text: str | None = None,
    ) -> TreeView:
        """Open the import dialog on a connection and load its top level."""
        dialog = await _workspace(ctx).open_import(connection_id)
        if filter_text is not None:
            dialog.tree.set_filter(filter_text)
        return dialog.tree.render()

    @mcp.tool()
    async def browse_view(ctx: Context) -> TreeView:
        """Show the connection tree as currently loaded."""
        return _workspace(ctx).require_import().tree.render()

    @mcp.tool()
    async def browse_toggle_expand(resource_id: str, ctx: Context) -> TreeView:
        """Expand or collapse a directory of the connection tree."""
        tree = _workspace(ctx).require_import().tree
        tree.toggle_expand(resource_id)
        await tree.wait_idle()
        return tree.render()

    @mcp.tool()
    async def browse_toggle_select(resource_id: str, ctx: Context) -> TreeView:
        """Select or deselect a resource for import. Directories do not select their children."""
        tree = _workspace(ctx).require_import().tree
        tree.toggle_select(resource_id)
        return tree.render()

    @mcp.tool()
    async def browse_set_filter(text: str, ctx: Context) -> TreeView:
        """Hide files whose path does not contain ``text``; directories stay visible."""
        tree = _workspace(ctx).require_import().tree
        tree.set_filter(text)
        return tree.render()

    @mcp.tool()
    async def browse_close(ctx: Context) -> dict[str, Any]:
        """Close the import dialog. The selection is kept for the next browse_open."""
        dialog = _workspace(ctx).require_import()
        dialog.close()
        return {"closed": True, "selected": dialog.tree.state.selected}

    @mcp.tool()
    async def knowledge_base_create(ctx: Context) -> TreeView:
        """Create a knowledge base from the selection and open it."""
        ws = _workspace(ctx)
        dialog = ws.require_import()
        if not dialog.can_submit:
            raise ValueError("Select at least one resource before creating a knowledge base")
        await ws.submit_import()
        return ws.require_knowledge_base().render()

    @mcp.tool()
    async def knowledge_base_open(knowledge_base_id: str, ctx: Context) -> TreeView:
        """Open a knowledge base and load its top level."""
        tree = await _workspace(ctx).open_knowledge_base(knowledge_base_id)
        return tree.render()

    @mcp.tool()
    async def knowledge_base_view(ctx: Context) -> TreeView:
        """Show the open knowledge base as currently loaded."""
        return _workspace(ctx).require_knowledge_base().render()

    @mcp.tool()
    async def knowledge_base_toggle_expand(path: str, ctx: Context) -> TreeView:
        """Expand or collapse a directory of the open knowledge base."""
        tree = _workspace(ctx).require_knowledge_base()
        tree.toggle_expand(path)
        await tree.wait_idle()
        return tree.render()

    @mcp.tool()
    async def knowledge_base_delete_resource(path: str, ctx: Context) -> dict[str, Any]:
        """Delete a resource from the open knowledge base and reload its directory."""
        tree = _workspace(ctx).require_knowledge_base()
        deleted = await tree.delete_resource(path)
        return {
            "deleted": deleted,
            "path": path,
            "knowledge_base_id": tree.knowledge_base_id,
            "in_progress": not deleted,
        }

    @mcp.tool()
    async def knowledge_base_refresh(ctx: Context) -> TreeView:
        """Reload the open knowledge base's top level to see current indexing status."""
        tree = _workspace(ctx).require_knowledge_base()
        await tree.refresh()
        return tree.render()

    return mcp
