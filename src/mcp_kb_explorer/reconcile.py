"""Knowledge-base trees and keeping them in step with deletions."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from .errors import StackApiError
from .models import DeleteResult, Page
from .pagination import PageFetcher
from .stack_client import StackClient
from .tree import PATH_KEY, TreeController, TreeNode

logger = logging.getLogger(__name__)

# (knowledge_base_id, path) -> DeleteResult
ResourceDeleter = Callable[[str, str], Awaitable[DeleteResult]]


def knowledge_base_pages(client: StackClient) -> PageFetcher:
    """Page fetcher listing a knowledge-base directory by path."""

    async def fetch_page(
        container_key: str, directory_key: str | None, cursor: str | None
    ) -> Page:
        return await client.list_knowledge_base_children(
            container_key, path=directory_key or "/", cursor=cursor
        )

    return fetch_page


class KnowledgeBaseTree(TreeController):
    """Tree over a knowledge base's resources, keyed by path.

    Deleting a resource never edits a listing locally. Once the backend
    confirms, the directory that listed the resource is fetched again and that
    listing alone changes; sibling and ancestor listings are left as they are.
    """

    def __init__(
        self,
        fetch_page: PageFetcher,
        delete: ResourceDeleter,
        knowledge_base_id: str,
        **kwargs: Any,
    ) -> None:
        super().__init__(fetch_page, knowledge_base_id, key_strategy=PATH_KEY, **kwargs)
        self._delete = delete
        self._deleting: set[str] = set()

    @classmethod
    def for_knowledge_base(
        cls, client: StackClient, knowledge_base_id: str, **kwargs: Any
    ) -> KnowledgeBaseTree:
        return cls(
            knowledge_base_pages(client),
            client.delete_knowledge_base_resource,
            knowledge_base_id,
            **kwargs,
        )

    @property
    def knowledge_base_id(self) -> str:
        return self.container_key

    def is_deleting(self, path: str) -> bool:
        return path in self._deleting

    def _is_pending(self, key: str) -> bool:
        return self.is_deleting(key)

    def listing_parent(self, path: str) -> TreeNode:
        node = self.node(path)
        if node is None or node.parent is None:
            raise ValueError(f"{path!r} is not listed in knowledge base {self.knowledge_base_id}")
        return node.parent

    async def delete_resource(self, path: str) -> bool:
        """Delete the resource at ``path`` and re-read the directory that listed it.

        Returns False without sending anything while a deletion of the same
        path is in flight. Errors propagate and leave every listing untouched.
        """
        if path in self._deleting:
            return False
        parent = self.listing_parent(path)

        self._deleting.add(path)
        try:
            result = await self._delete(self.knowledge_base_id, path)
            if not result.success:
                raise StackApiError(
                    status_code=result.status_code,
                    method="DELETE",
                    url=path,
                    response_text="deletion was not acknowledged",
                )
            logger.info(
                "Reloading %s of %s after deleting %s", parent.key, self.knowledge_base_id, path
            )
            if parent.engine is not None:
                await parent.engine.refetch()
        finally:
            self._deleting.discard(path)
        return True

    async def refresh(self) -> None:
        """Re-read the root listing, e.g. to pick up new indexing statuses."""
        if self.root.engine is not None:
            await self.root.engine.refetch()
        await self.wait_idle()
