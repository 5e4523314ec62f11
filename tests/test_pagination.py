from __future__ import annotations

import asyncio

import pytest
from helpers import ScriptedPages, ids, make_dir, make_file

from mcp_kb_explorer.errors import ListingError, PageValidationError
from mcp_kb_explorer.pagination import IDLE, DirectoryLoadState, PaginatedFetch, collect_all

pytestmark = pytest.mark.anyio


def engine_for(pages: ScriptedPages, directory_key: str | None = None) -> PaginatedFetch:
    return PaginatedFetch(pages, container_key="conn", directory_key=directory_key)


async def test_follows_cursor_until_absent(pages: ScriptedPages) -> None:
    pages.script(None, [make_dir("dirA"), make_file("fileB")], [make_file("fileC")])
    engine = engine_for(pages)

    engine.load("conn", None, enabled=True)
    state = await engine.wait()

    assert ids(state.resources) == ["dirA", "fileB", "fileC"]
    assert state.has_more is False
    assert state.is_loading is False
    assert state.is_loading_more is False
    assert state.error is None
    assert pages.cursors(None) == [None, "c1"]


async def test_empty_page_with_cursor_keeps_paginating(pages: ScriptedPages) -> None:
    pages.script(None, [make_file("a")], [], [], [make_file("b")])
    engine = engine_for(pages)

    engine.load("conn", None)
    state = await engine.wait()

    assert ids(state.resources) == ["a", "b"]
    assert pages.cursors(None) == [None, "c1", "c2", "c3"]


async def test_reports_each_page_as_it_arrives(pages: ScriptedPages) -> None:
    pages.script(None, [make_file("a"), make_file("b")], [make_file("c")])
    engine = engine_for(pages)
    seen: list[DirectoryLoadState] = []
    engine.subscribe(seen.append)

    engine.load("conn", None)
    await engine.wait()

    assert [(len(s.resources), s.is_loading, s.is_loading_more, s.has_more) for s in seen] == [
        (0, True, False, True),
        (2, False, True, True),
        (3, False, False, False),
    ]


async def test_failure_keeps_pages_already_loaded(pages: ScriptedPages) -> None:
    pages.script(None, [make_file("a")], RuntimeError("backend down"), [make_file("c")])
    engine = engine_for(pages)

    engine.load("conn", None)
    state = await engine.wait()

    assert ids(state.resources) == ["a"]
    assert state.error == "backend down"
    assert state.has_more is False
    assert state.busy is False
    assert pages.cursors(None) == [None, "c1"]


async def test_invalid_page_is_reported_as_error(pages: ScriptedPages) -> None:
    pages.script(None, PageValidationError("/connections/x/resources/children", "bad inode_type"))
    engine = engine_for(pages)

    engine.load("conn", None)
    state = await engine.wait()

    assert state.resources == ()
    assert state.error is not None
    assert "bad inode_type" in state.error


async def test_rapid_toggles_apply_a_single_chain(pages: ScriptedPages) -> None:
    pages.script(None, [make_file("a"), make_file("b")], [make_file("c")])
    gate = pages.hold(None)
    engine = engine_for(pages)

    engine.load("conn", None, enabled=True)
    await asyncio.sleep(0)
    engine.load("conn", None, enabled=False)
    engine.load("conn", None, enabled=True)
    await asyncio.sleep(0)
    gate.set()
    state = await engine.wait()

    assert pages.chains(None) == 2
    assert ids(state.resources) == ["a", "b", "c"]


async def test_disable_stops_continuation(pages: ScriptedPages) -> None:
    pages.script(None, [make_file("a")], [make_file("b")])
    engine = engine_for(pages)

    def collapse_after_first_page(state: DirectoryLoadState) -> None:
        if state.resources and state.has_more:
            engine.load("conn", None, enabled=False)

    engine.subscribe(collapse_after_first_page)
    engine.load("conn", None)
    state = await engine.wait()

    assert state == IDLE
    assert pages.cursors(None) == [None]


async def test_disabled_engine_is_idle_and_restarts_from_scratch(pages: ScriptedPages) -> None:
    pages.script(None, [make_file("a")], [make_file("b")])
    engine = engine_for(pages)
    assert engine.load("conn", None, enabled=False) == IDLE
    assert pages.calls == []

    engine.load("conn", None)
    await engine.wait()
    assert engine.load("conn", None, enabled=False) == IDLE

    restarted = engine.load("conn", None, enabled=True)
    assert restarted.resources == ()
    assert restarted.is_loading is True
    state = await engine.wait()

    assert ids(state.resources) == ["a", "b"]
    assert pages.chains(None) == 2


async def test_same_keys_do_not_restart(pages: ScriptedPages) -> None:
    pages.script("d1", [make_file("a")])
    engine = engine_for(pages, "d1")

    engine.load("conn", "d1")
    engine.load("conn", "d1")
    await engine.wait()

    assert pages.chains("d1") == 1


async def test_key_change_restarts_for_new_directory(pages: ScriptedPages) -> None:
    pages.script("d1", [make_file("a")])
    pages.script("d2", [make_file("b")])
    engine = engine_for(pages, "d1")

    engine.load("conn", "d1")
    await engine.wait()
    engine.load("conn", "d2")
    state = await engine.wait()

    assert ids(state.resources) == ["b"]
    assert engine.key == ("conn", "d2")


async def test_refetch_replaces_listing_on_first_page(pages: ScriptedPages) -> None:
    pages.script(None, [make_file("a")])
    engine = engine_for(pages)
    engine.load("conn", None)
    await engine.wait()

    pages.script(None, [make_file("b")], [make_file("c")])
    seen: list[DirectoryLoadState] = []
    engine.subscribe(seen.append)
    state = await engine.refetch()

    assert ids(state.resources) == ["b", "c"]
    assert pages.chains(None) == 2
    # The old listing stays visible until the new first page lands.
    assert ids(seen[0].resources) == ["a"]
    assert seen[0].is_loading is True


async def test_refetch_of_disabled_engine_does_nothing(pages: ScriptedPages) -> None:
    engine = engine_for(pages)

    assert await engine.refetch() == IDLE
    assert pages.calls == []


async def test_collect_all(pages: ScriptedPages) -> None:
    pages.script("/", [make_file("a")], [make_file("b")])

    resources = await collect_all(pages, "kb", "/")

    assert ids(resources) == ["a", "b"]


async def test_collect_all_raises_on_failure(pages: ScriptedPages) -> None:
    pages.script("/", [make_file("a")], RuntimeError("nope"))

    with pytest.raises(ListingError, match="nope"):
        await collect_all(pages, "kb", "/")


async def test_refetch_supersedes_chain_in_flight(pages: ScriptedPages) -> None:
    pages.script(None, [make_file("old")], [make_file("old2")])
    gate = pages.hold(None)
    engine = engine_for(pages)
    seen: list[DirectoryLoadState] = []
    engine.subscribe(seen.append)

    engine.load("conn", None)
    await asyncio.sleep(0)
    pages.script(None, [make_file("new")])
    refetch = asyncio.create_task(engine.refetch())
    await asyncio.sleep(0)
    gate.set()
    state = await refetch

    assert ids(state.resources) == ["new"]
    assert state.has_more is False
    assert pages.chains(None) == 2
    assert all("old" not in ids(s.resources) for s in seen)
    assert await engine.wait() == state
