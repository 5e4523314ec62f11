"""Pytest fixtures for mcp_kb_explorer tests."""

from __future__ import annotations

import pytest
from helpers import ScriptedPages


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def pages() -> ScriptedPages:
    return ScriptedPages()
