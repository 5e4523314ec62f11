"""Shared test helpers for mcp_kb_explorer tests."""

from __future__ import annotations

import asyncio
from typing import Any

from mcp_kb_explorer.models import Page, Resource


def make_file(resource_id: str, path: str | None = None, **extra: Any) -> Resource:
    return Resource.model_validate(
        {
            "resource_id": resource_id,
            "inode_type": "file",
            "inode_path": {"path": path or resource_id},
            **extra,
        }
    )


def make_dir(resource_id: str, path: str | None = None) -> Resource:
    return Resource.model_validate(
        {
            "resource_id": resource_id,
            "inode_type": "directory",
            "inode_path": {"path": path or resource_id},
        }
    )


Batch = list[Resource] | Exception


class ScriptedPages:
    """Fake page fetcher serving scripted batches per directory.

    Batch ``i`` of a directory is returned for cursor ``c{i}`` (batch 0 for no
    cursor) and points at ``c{i+1}`` while batches remain. An exception in the
    script is raised instead of returning a page.
    """

    def __init__(self) -> None:
        self._scripts: dict[str | None, list[Batch]] = {}
        self.gates: dict[str | None, asyncio.Event] = {}
        self.calls: list[tuple[str, str | None, str | None]] = []

    def script(self, directory_key: str | None, *batches: Batch) -> None:
        self._scripts[directory_key] = list(batches)

    def hold(self, directory_key: str | None) -> asyncio.Event:
        """Block fetches of ``directory_key`` until the returned event is set."""
        gate = asyncio.Event()
        self.gates[directory_key] = gate
        return gate

    def cursors(self, directory_key: str | None) -> list[str | None]:
        return [cursor for _, key, cursor in self.calls if key == directory_key]

    def chains(self, directory_key: str | None) -> int:
        return self.cursors(directory_key).count(None)

    async def __call__(
        self, container_key: str, directory_key: str | None, cursor: str | None
    ) -> Page:
        self.calls.append((container_key, directory_key, cursor))
        gate = self.gates.get(directory_key)
        if gate is not None:
            await gate.wait()
        batches = self._scripts.get(directory_key, [[]])
        index = 0 if cursor is None else int(cursor[1:])
        batch = batches[index]
        if isinstance(batch, Exception):
            raise batch
        next_cursor = f"c{index + 1}" if index + 1 < len(batches) else None
        return Page(data=batch, next_cursor=next_cursor)


def ids(resources: Any) -> list[str]:
    return [r.resource_id for r in resources]
