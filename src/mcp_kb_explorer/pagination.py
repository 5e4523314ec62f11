"""Cursor-continuation loading of one directory's children.

A ``PaginatedFetch`` owns the listing of exactly one ``(container, directory)``
pair. Enabling it starts a chain: page after page is fetched with the cursor
returned by the previous one until a page comes back without ``next_cursor``.
At most one chain runs per engine. Starting a new chain cancels the running
one, and every page is checked against the chain's generation before it is
committed, so a superseded chain can never write into the newer one's state.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace

from .errors import ListingError
from .models import Page, Resource

logger = logging.getLogger(__name__)

# (container_key, directory_key, cursor) -> Page
PageFetcher = Callable[[str, "str | None", "str | None"], Awaitable[Page]]


@dataclass(frozen=True, slots=True)
class DirectoryLoadState:
    resources: tuple[Resource, ...] = ()
    is_loading: bool = False
    is_loading_more: bool = False
    error: str | None = None
    has_more: bool = False

    @property
    def busy(self) -> bool:
        return self.is_loading or self.is_loading_more


IDLE = DirectoryLoadState()

Listener = Callable[[DirectoryLoadState], None]


class PaginatedFetch:
    def __init__(
        self,
        fetch_page: PageFetcher,
        *,
        container_key: str,
        directory_key: str | None = None,
        page_delay: float = 0.0,
    ) -> None:
        self._fetch_page = fetch_page
        self._container_key = container_key
        self._directory_key = directory_key
        self._page_delay = page_delay
        self._enabled = False
        self._state = IDLE
        self._generation = 0
        self._task: asyncio.Task[None] | None = None
        self._listeners: list[Listener] = []

    @property
    def state(self) -> DirectoryLoadState:
        return self._state

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def key(self) -> tuple[str, str | None]:
        return self._container_key, self._directory_key

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` with every new state; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def load(
        self,
        container_key: str,
        directory_key: str | None,
        enabled: bool = True,
    ) -> DirectoryLoadState:
        """Declare what should be loaded; restarts the chain only on a change.

        Enabling, or changing either key while enabled, starts a fresh chain
        from an empty listing. Disabling cancels the chain and reports IDLE.
        """
        changed = (container_key, directory_key) != self.key
        self._container_key = container_key
        self._directory_key = directory_key

        if not enabled:
            if self._enabled or self._state is not IDLE:
                self._enabled = False
                self._stop()
            return self._state

        if not self._enabled or changed:
            self._enabled = True
            self._start(reset=True)
        return self._state

    async def refetch(self) -> DirectoryLoadState:
        """Restart the whole chain for the current keys and wait for it.

        The previous listing stays visible until the first page of the new
        chain replaces it. A disabled engine has nothing to refresh.
        """
        if not self._enabled:
            return self._state
        self._start(reset=False)
        return await self.wait()

    async def wait(self) -> DirectoryLoadState:
        """Wait until no chain is running, following any chain that supersedes it."""
        while self._task is not None and not self._task.done():
            await asyncio.wait({self._task})
        task = self._task
        if task is not None and not task.cancelled() and task.exception() is not None:
            raise task.exception()  # type: ignore[misc]
        return self._state

    async def aclose(self) -> None:
        self._enabled = False
        task = self._task
        self._stop()
        self._listeners.clear()
        if task is not None and not task.done():
            await asyncio.wait({task})

    def _stop(self) -> None:
        self._generation += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._commit(IDLE)

    def _start(self, *, reset: bool) -> None:
        self._generation += 1
        generation = self._generation
        if self._task is not None and not self._task.done():
            self._task.cancel()
        resources = () if reset else self._state.resources
        self._commit(DirectoryLoadState(resources=resources, is_loading=True, has_more=True))
        self._task = asyncio.create_task(
            self._run(generation, self._container_key, self._directory_key)
        )

    def _current(self, generation: int) -> bool:
        return generation == self._generation and self._enabled

    async def _run(
        self, generation: int, container_key: str, directory_key: str | None
    ) -> None:
        cursor: str | None = None
        first = True
        while True:
            try:
                page = await self._fetch_page(container_key, directory_key, cursor)
            except Exception as exc:
                if not self._current(generation):
                    return
                logger.warning(
                    "Listing %s:%s stopped after %d resources: %s",
                    container_key,
                    directory_key or "<root>",
                    len(self._state.resources),
                    exc,
                )
                self._commit(
                    replace(
                        self._state,
                        is_loading=False,
                        is_loading_more=False,
                        error=str(exc) or "Failed to load resources",
                        has_more=False,
                    )
                )
                return

            if not self._current(generation):
                return

            resources = tuple(page.data) if first else self._state.resources + tuple(page.data)
            has_more = page.next_cursor is not None
            self._commit(
                DirectoryLoadState(
                    resources=resources,
                    is_loading=False,
                    is_loading_more=has_more,
                    error=None,
                    has_more=has_more,
                )
            )
            if not has_more:
                return

            first = False
            cursor = page.next_cursor
            if self._page_delay:
                await asyncio.sleep(self._page_delay)
            if not self._current(generation):
                return

    def _commit(self, state: DirectoryLoadState) -> None:
        self._state = state
        for listener in list(self._listeners):
            listener(state)


async def collect_all(
    fetch_page: PageFetcher,
    container_key: str,
    directory_key: str | None = None,
) -> list[Resource]:
    """Load every page of one directory; raises if the chain ends in an error."""
    engine = PaginatedFetch(fetch_page, container_key=container_key, directory_key=directory_key)
    try:
        engine.load(container_key, directory_key, enabled=True)
        state = await engine.wait()
    finally:
        await engine.aclose()
    if state.error is not None:
        raise ListingError(state.error)
    return list(state.resources)
