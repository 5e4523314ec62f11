"""Async client for the Stack connections and knowledge-base API."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from .errors import PageValidationError, StackApiError
from .models import Connection, CreateKnowledgeBaseRequest, DeleteResult, KnowledgeBase, Page

logger = logging.getLogger(__name__)


class StackClient:
    """Thin wrapper around the Stack REST API.

    Every request carries the bearer token given at construction.
    """

    def __init__(
        self,
        *,
        base_url: str,
        token: str,
        timeout_seconds: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=httpx.Timeout(timeout_seconds),
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
            },
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request_json(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> Any:
        method = method.upper()
        url_path = path if path.startswith("/") else f"/{path}"
        # Optional query parameters are dropped rather than sent as "None".
        q = {k: v for k, v in (params or {}).items() if v is not None}

        resp = await self._client.request(method, url_path, params=q, json=json_body)
        if resp.status_code >= 400:
            raise StackApiError(
                status_code=resp.status_code,
                method=method,
                url=str(resp.request.url),
                response_text=(resp.text or "").strip(),
            )
        if not resp.content:
            return None
        return resp.json()

    async def _get_page(self, path: str, params: dict[str, Any]) -> Page:
        raw = await self.request_json("GET", path, params=params)
        try:
            return Page.model_validate(raw)
        except ValidationError as exc:
            raise PageValidationError(path, str(exc)) from exc

    async def list_connections(self, provider: str = "gdrive", limit: int = 1) -> list[Connection]:
        raw = await self.request_json(
            "GET",
            "/connections",
            params={"connection_provider": provider, "limit": limit},
        )
        return [Connection.model_validate(item) for item in raw or []]

    async def list_connection_children(
        self,
        connection_id: str,
        resource_id: str | None = None,
        cursor: str | None = None,
    ) -> Page:
        """List one page of a connection directory; no resource_id means the top level."""
        return await self._get_page(
            f"/connections/{connection_id}/resources/children",
            {"resource_id": resource_id, "cursor": cursor},
        )

    async def list_knowledge_bases(self) -> list[KnowledgeBase]:
        raw = await self.request_json("GET", "/knowledge_bases")
        if isinstance(raw, dict):
            raw = raw.get("admin") or []
        return [KnowledgeBase.model_validate(item) for item in raw or []]

    async def list_knowledge_base_children(
        self,
        knowledge_base_id: str,
        path: str = "/",
        cursor: str | None = None,
    ) -> Page:
        return await self._get_page(
            f"/knowledge_bases/{knowledge_base_id}/resources/children",
            {"resource_path": path, "cursor": cursor},
        )

    async def create_knowledge_base(self, request: CreateKnowledgeBaseRequest) -> KnowledgeBase:
        """Create a knowledge base; indexing then runs asynchronously on the backend."""
        raw = await self.request_json(
            "POST", "/knowledge_bases", json_body=request.model_dump(mode="json")
        )
        kb = KnowledgeBase.model_validate(raw)
        logger.info(
            "Created knowledge base %s from %d resources",
            kb.id,
            len(request.connection_source_ids),
        )
        return kb

    async def delete_knowledge_base_resource(
        self, knowledge_base_id: str, path: str
    ) -> DeleteResult:
        resp = await self._client.request(
            "DELETE",
            f"/knowledge_bases/{knowledge_base_id}/resources",
            params={"resource_path": path},
        )
        if resp.status_code >= 400:
            raise StackApiError(
                status_code=resp.status_code,
                method="DELETE",
                url=str(resp.request.url),
                response_text=(resp.text or "").strip(),
            )
        logger.info("Deleted %s from knowledge base %s", path, knowledge_base_id)
        return DeleteResult(success=True, status_code=resp.status_code)
