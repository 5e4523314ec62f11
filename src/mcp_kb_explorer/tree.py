"""Lazily loaded resource trees.

A tree is a root listing plus one ``TreeNode`` per resource that is currently
listed under an expanded directory. Each directory node owns a
``PaginatedFetch`` for its own children and keeps it enabled exactly while its
key is in the expansion set. Selection and expansion live in one ``TreeState``
shared by every node of the tree, so both are flat across subtrees.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any

from .models import Page, Resource
from .pagination import DirectoryLoadState, PageFetcher, PaginatedFetch
from .stack_client import StackClient
from .views import DirectoryListingView, TreeNodeView, TreeView, format_file_size

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class KeyStrategy:
    """How the nodes of one tree are identified.

    The key names a node in the expansion set and is the directory key its
    children are listed by. Trees never mix strategies.
    """

    name: str
    root_key: str | None
    key_of: Callable[[Resource], str]


def _resource_id(resource: Resource) -> str:
    return resource.resource_id


def _inode_path(resource: Resource) -> str:
    return resource.inode_path.path


# Connector trees list children by opaque resource id, the root has none.
RESOURCE_ID_KEY = KeyStrategy(name="resource_id", root_key=None, key_of=_resource_id)
# Knowledge-base trees list children by path, the root is "/".
PATH_KEY = KeyStrategy(name="path", root_key="/", key_of=_inode_path)


def connection_pages(client: StackClient) -> PageFetcher:
    """Page fetcher listing a connection directory by resource id."""

    async def fetch_page(
        container_key: str, directory_key: str | None, cursor: str | None
    ) -> Page:
        return await client.list_connection_children(
            container_key, resource_id=directory_key, cursor=cursor
        )

    return fetch_page


class TreeState:
    """Selected resource ids and expanded node keys, in insertion order."""

    def __init__(self) -> None:
        self._selected: dict[str, None] = {}
        self._expanded: dict[str, None] = {}

    @property
    def selected(self) -> list[str]:
        return list(self._selected)

    @property
    def expanded(self) -> list[str]:
        return list(self._expanded)

    def is_selected(self, resource_id: str) -> bool:
        return resource_id in self._selected

    def is_expanded(self, key: str | None) -> bool:
        return key in self._expanded

    def toggle_select(self, resource_id: str) -> bool:
        if resource_id in self._selected:
            del self._selected[resource_id]
            return False
        self._selected[resource_id] = None
        return True

    def toggle_expand(self, key: str) -> bool:
        if key in self._expanded:
            del self._expanded[key]
            return False
        self._expanded[key] = None
        return True

    def clear_selection(self) -> None:
        self._selected.clear()


class TreeNode:
    def __init__(
        self,
        tree: TreeController,
        resource: Resource | None,
        parent: TreeNode | None,
    ) -> None:
        self.tree = tree
        self.resource = resource
        self.parent = parent
        self.key: str | None = (
            tree.key_strategy.root_key if resource is None else tree.key_strategy.key_of(resource)
        )
        self.children: dict[str, TreeNode] = {}
        self.engine: PaginatedFetch | None = None
        if self.is_directory:
            self.engine = PaginatedFetch(
                tree.fetch_page,
                container_key=tree.container_key,
                directory_key=self.key,
                page_delay=tree.page_delay,
            )
            self.engine.subscribe(self._on_listing)

    def __repr__(self) -> str:
        return f"TreeNode(key={self.key!r})"

    @property
    def is_root(self) -> bool:
        return self.resource is None

    @property
    def is_directory(self) -> bool:
        return self.resource is None or self.resource.is_directory

    @property
    def expanded(self) -> bool:
        if self.is_root:
            return self.tree.is_open
        return self.is_directory and self.tree.state.is_expanded(self.key)

    @property
    def listing(self) -> DirectoryLoadState | None:
        return self.engine.state if self.engine is not None else None

    def sync(self) -> None:
        """Enable the listing while expanded, disable it otherwise."""
        if self.engine is not None:
            self.engine.load(self.tree.container_key, self.key, enabled=self.expanded)

    def unmount(self) -> None:
        if self.engine is not None:
            self.engine.load(self.tree.container_key, self.key, enabled=False)
        for child in list(self.children.values()):
            child.unmount()
        self.children = {}
        self.tree._forget(self)

    def _on_listing(self, state: DirectoryLoadState) -> None:
        key_of = self.tree.key_strategy.key_of
        mounted: dict[str, TreeNode] = {}
        created: list[TreeNode] = []
        for resource in state.resources:
            key = key_of(resource)
            if key in mounted:
                continue
            node = self.children.get(key)
            if node is not None and node.resource is not None:
                if node.resource.inode_type is resource.inode_type:
                    node.resource = resource
                    mounted[key] = node
                    continue
                node.unmount()
            node = TreeNode(self.tree, resource, self)
            mounted[key] = node
            created.append(node)

        # Children missing from a listing still in progress may arrive on a
        # later page; only a finished listing decides what is gone.
        for key, node in self.children.items():
            if key in mounted:
                continue
            if state.busy:
                mounted[key] = node
            else:
                node.unmount()

        self.children = mounted
        for node in created:
            self.tree._register(node)
            node.sync()


class TreeController:
    """One browsable tree: a root listing, its nodes and their shared state."""

    def __init__(
        self,
        fetch_page: PageFetcher,
        container_key: str,
        *,
        key_strategy: KeyStrategy = RESOURCE_ID_KEY,
        state: TreeState | None = None,
        page_delay: float = 0.0,
        files_only: bool = False,
        filter_text: str = "",
    ) -> None:
        self.fetch_page = fetch_page
        self.container_key = container_key
        self.key_strategy = key_strategy
        self.state = state if state is not None else TreeState()
        self.page_delay = page_delay
        self.files_only = files_only
        self.filter_text = filter_text
        self._open = False
        # A key can be mounted more than once, e.g. a drive item shared into two folders.
        self._nodes: dict[str, list[TreeNode]] = {}
        self.root = TreeNode(self, None, None)

    @classmethod
    def for_connection(
        cls, client: StackClient, connection_id: str, **kwargs: Any
    ) -> TreeController:
        """Tree over a connector's resources, keyed by resource id."""
        return cls(connection_pages(client), connection_id, key_strategy=RESOURCE_ID_KEY, **kwargs)

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self) -> None:
        """Start loading the root listing."""
        self._open = True
        self.root.sync()

    def close(self) -> None:
        """Stop every listing and drop all nodes; the tree state is kept."""
        self._open = False
        self.root.unmount()

    async def aclose(self) -> None:
        """Close the tree for good and wait for its listings to stop."""
        engines = [n.engine for n in self.nodes() if n.engine is not None]
        self.close()
        for engine in engines:
            await engine.aclose()

    def node(self, key: str) -> TreeNode | None:
        """The first mounted node for ``key``, if any."""
        mounted = self._nodes.get(key)
        return mounted[0] if mounted else None

    def nodes_for(self, key: str) -> list[TreeNode]:
        return list(self._nodes.get(key, ()))

    def nodes(self) -> Iterator[TreeNode]:
        yield self.root
        for mounted in list(self._nodes.values()):
            yield from list(mounted)

    def find_resource(self, resource_id: str) -> Resource | None:
        for node in self.nodes():
            if node.resource is not None and node.resource.resource_id == resource_id:
                return node.resource
        return None

    def toggle_expand(self, key: str) -> bool:
        """Flip ``key`` in the expansion set and load or drop that directory's children.

        Files cannot be expanded; toggling a known file changes nothing.
        """
        mounted = self.nodes_for(key)
        if mounted and not any(node.is_directory for node in mounted):
            return False
        expanded = self.state.toggle_expand(key)
        logger.debug("%s %s", "Expanded" if expanded else "Collapsed", key)
        for node in mounted:
            if node in self._nodes.get(key, ()):
                node.sync()
        return expanded

    def toggle_select(self, resource: Resource | str) -> bool:
        """Flip one resource id in the selection set.

        Never cascades: selecting a directory says nothing about its children.
        With ``files_only`` directories cannot be selected.
        """
        if isinstance(resource, Resource):
            resource_id = resource.resource_id
            found: Resource | None = resource
        else:
            resource_id = resource
            found = self.find_resource(resource_id)
        if self.files_only and found is not None and found.is_directory:
            return self.state.is_selected(resource_id)
        return self.state.toggle_select(resource_id)

    def set_filter(self, text: str) -> None:
        self.filter_text = text

    def matches_filter(self, resource: Resource) -> bool:
        """Directories always match; files match on a case-insensitive path substring."""
        if not self.filter_text or resource.is_directory:
            return True
        return self.filter_text.lower() in resource.path.lower()

    def visible_children(self, node: TreeNode) -> list[Resource]:
        if node.engine is None:
            return []
        return [r for r in node.engine.state.resources if self.matches_filter(r)]

    async def wait_idle(self) -> None:
        """Wait until no listing in the tree is loading, including ones started meanwhile."""
        while True:
            running = [n.engine for n in self.nodes() if n.engine is not None and n.engine.running]
            if not running:
                return
            for engine in running:
                await engine.wait()

    def render(self) -> TreeView:
        return TreeView(
            container_key=self.container_key,
            key_scheme=self.key_strategy.name,
            filter=self.filter_text,
            selected=self.state.selected,
            expanded=self.state.expanded,
            root=self._render_listing(self.root),
        )

    def _is_pending(self, key: str) -> bool:
        return False

    def _render_listing(self, node: TreeNode) -> DirectoryListingView:
        state = node.listing or DirectoryLoadState()
        return DirectoryListingView(
            is_loading=state.is_loading,
            is_loading_more=state.is_loading_more,
            has_more=state.has_more,
            error=state.error,
            children=[
                self._render_node(resource, node.children.get(self.key_strategy.key_of(resource)))
                for resource in self.visible_children(node)
            ],
        )

    def _render_node(self, resource: Resource, node: TreeNode | None) -> TreeNodeView:
        key = self.key_strategy.key_of(resource)
        expanded = resource.is_directory and self.state.is_expanded(key)
        listing = None
        if expanded and node is not None:
            listing = self._render_listing(node)
        return TreeNodeView(
            key=key,
            resource_id=resource.resource_id,
            path=resource.path,
            inode_type=resource.inode_type,
            selected=self.state.is_selected(resource.resource_id),
            expanded=expanded,
            size=resource.size,
            size_label=format_file_size(resource.size),
            content_mime=resource.content_mime,
            status=resource.display_status,
            deleting=self._is_pending(key),
            listing=listing,
        )

    def _register(self, node: TreeNode) -> None:
        if node.key is not None:
            self._nodes.setdefault(node.key, []).append(node)

    def _forget(self, node: TreeNode) -> None:
        mounted = self._nodes.get(node.key) if node.key is not None else None
        if mounted is None or node not in mounted:
            return
        mounted.remove(node)
        if not mounted:
            del self._nodes[node.key]  # type: ignore[arg-type]
