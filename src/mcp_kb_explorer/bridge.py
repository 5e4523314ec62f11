"""Turning a connector selection into a new knowledge base."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from .models import CreateKnowledgeBaseRequest, KnowledgeBase
from .tree import TreeController

logger = logging.getLogger(__name__)

KnowledgeBaseCreator = Callable[[CreateKnowledgeBaseRequest], Awaitable[KnowledgeBase]]


class ImportDialog:
    """The import surface over one connector tree.

    ``submit`` sends the current selection, in the order it was made, as the
    source ids of a new knowledge base. Success clears the selection and
    closes the dialog; failure keeps both so the user can retry.
    """

    def __init__(
        self,
        tree: TreeController,
        create: KnowledgeBaseCreator,
        *,
        connection_id: str,
    ) -> None:
        self.tree = tree
        self.connection_id = connection_id
        self._create = create
        self._submitting = False
        self.error: str | None = None

    @property
    def is_open(self) -> bool:
        return self.tree.is_open

    @property
    def is_submitting(self) -> bool:
        return self._submitting

    @property
    def can_submit(self) -> bool:
        return self.is_open and not self._submitting and bool(self.tree.state.selected)

    def open(self) -> None:
        self.error = None
        self.tree.open()

    def close(self) -> None:
        self.tree.close()

    def build_request(self) -> CreateKnowledgeBaseRequest:
        return CreateKnowledgeBaseRequest(
            connection_id=self.connection_id,
            connection_source_ids=self.tree.state.selected,
        )

    async def submit(self) -> KnowledgeBase | None:
        """Create the knowledge base; returns None when there is nothing to submit."""
        if not self.can_submit:
            return None
        request = self.build_request()
        self._submitting = True
        self.error = None
        try:
            kb = await self._create(request)
        except Exception as exc:
            self.error = str(exc) or "Failed to create knowledge base"
            logger.warning("Knowledge base creation failed: %s", self.error)
            raise
        finally:
            self._submitting = False

        self.tree.state.clear_selection()
        self.close()
        return kb
