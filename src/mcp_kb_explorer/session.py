"""Per-server workspace: the open import dialog and the open knowledge base."""

from __future__ import annotations

import logging

from .auth import fetch_access_token
from .bridge import ImportDialog
from .models import Connection, KnowledgeBase
from .reconcile import KnowledgeBaseTree
from .settings import Settings
from .stack_client import StackClient
from .tree import TreeController, TreeState

logger = logging.getLogger(__name__)


class Workspace:
    """Holds at most one import dialog and one knowledge-base view.

    The Stack client is created on first use, logging in with the configured
    credentials when no token is configured.
    """

    def __init__(self, settings: Settings, client: StackClient | None = None) -> None:
        self.settings = settings
        self._client = client
        self.import_dialog: ImportDialog | None = None
        self.knowledge_base: KnowledgeBaseTree | None = None

    async def client(self) -> StackClient:
        if self._client is None:
            token = self.settings.stack_api_token
            if not token:
                logger.info("Logging in to Stack as %s", self.settings.stack_email)
                token = await fetch_access_token(
                    auth_url=str(self.settings.stack_auth_url),
                    anon_key=self.settings.stack_anon_key or "",
                    email=self.settings.stack_email or "",
                    password=self.settings.stack_password or "",
                    timeout_seconds=self.settings.http_timeout_seconds,
                )
            self._client = StackClient(
                base_url=str(self.settings.stack_api_url),
                token=token,
                timeout_seconds=self.settings.http_timeout_seconds,
            )
        return self._client

    async def default_connection(self) -> Connection:
        client = await self.client()
        connections = await client.list_connections(self.settings.connection_provider, limit=1)
        if not connections:
            raise ValueError(f"No {self.settings.connection_provider} connection is available")
        return connections[0]

    async def open_import(self, connection_id: str | None = None) -> ImportDialog:
        """Open the import dialog, reusing the previous one for the same connection.

        Reopening keeps the selection made earlier on that connection.
        """
        if connection_id is None:
            connection_id = (await self.default_connection()).connection_id

        dialog = self.import_dialog
        if dialog is None or dialog.connection_id != connection_id:
            if dialog is not None:
                await dialog.tree.aclose()
            client = await self.client()
            tree = TreeController.for_connection(
                client,
                connection_id,
                page_delay=self.settings.page_delay_seconds,
            )
            dialog = ImportDialog(tree, client.create_knowledge_base, connection_id=connection_id)
            self.import_dialog = dialog

        if not dialog.is_open:
            dialog.open()
        await dialog.tree.wait_idle()
        return dialog

    def require_import(self) -> ImportDialog:
        if self.import_dialog is None or not self.import_dialog.is_open:
            raise ValueError("No import dialog is open; call browse_open first")
        return self.import_dialog

    async def submit_import(self) -> KnowledgeBase | None:
        """Create a knowledge base from the selection and switch to viewing it."""
        dialog = self.require_import()
        kb = await dialog.submit()
        if kb is not None:
            await self.open_knowledge_base(kb.id)
        return kb

    async def open_knowledge_base(self, knowledge_base_id: str) -> KnowledgeBaseTree:
        """Open a knowledge base with a fresh, empty tree state."""
        if self.knowledge_base is not None:
            await self.knowledge_base.aclose()
        client = await self.client()
        tree = KnowledgeBaseTree.for_knowledge_base(
            client,
            knowledge_base_id,
            state=TreeState(),
            page_delay=self.settings.page_delay_seconds,
        )
        self.knowledge_base = tree
        logger.info("Opened knowledge base %s", knowledge_base_id)
        tree.open()
        await tree.wait_idle()
        return tree

    def require_knowledge_base(self) -> KnowledgeBaseTree:
        if self.knowledge_base is None:
            raise ValueError("No knowledge base is open; call knowledge_base_open first")
        return self.knowledge_base

    async def aclose(self) -> None:
        if self.import_dialog is not None:
            await self.import_dialog.tree.aclose()
        if self.knowledge_base is not None:
            await self.knowledge_base.aclose()
        if self._client is not None:
            await self._client.aclose()
            self._client = None
