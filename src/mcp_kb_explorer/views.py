"""Structured snapshots of a tree, returned by the MCP tools."""

from __future__ import annotations

from pydantic import BaseModel, Field

from .models import InodeType


def format_file_size(size: int | None) -> str:
    if not size:
        return ""
    if size < 1024:
        return f"{size} B"
    if size < 1024**2:
        return f"{size / 1024:.1f} KB"
    if size < 1024**3:
        return f"{size / 1024**2:.1f} MB"
    return f"{size / 1024**3:.1f} GB"


class DirectoryListingView(BaseModel):
    is_loading: bool
    is_loading_more: bool
    has_more: bool
    error: str | None = None
    children: list[TreeNodeView] = Field(default_factory=list)


class TreeNodeView(BaseModel):
    key: str
    resource_id: str
    path: str
    inode_type: InodeType
    selected: bool
    expanded: bool = False
    size: int | None = None
    size_label: str = ""
    content_mime: str | None = None
    status: str | None = None
    deleting: bool = False
    listing: DirectoryListingView | None = None


class TreeView(BaseModel):
    container_key: str
    key_scheme: str
    filter: str = ""
    selected: list[str] = Field(default_factory=list)
    expanded: list[str] = Field(default_factory=list)
    root: DirectoryListingView


DirectoryListingView.model_rebuild()
TreeNodeView.model_rebuild()
