"""
Content Tree

Derives a node's addressing (full slug, path, breadcrumbs) from its parent
chain. The pure functions take a ``parent_lookup`` callable that resolves a
node id to a node (or None); ``TreeService`` supplies one backed by an
in-memory arena of the space's nodes.

Every ancestor walk is bounded by a visited-id set and ``max_tree_depth``,
so a corrupted ``parent_id`` graph raises ``CycleDetectedError`` instead of
looping forever.
"""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from collections.abc import Callable
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession  # noqa: TC002

from content_engine.config import settings
from content_engine.exceptions import ContentNotFoundError, CycleDetectedError, InvalidOperationError
from content_engine.models.content_node import ContentNode
from content_engine.schemas.content import Breadcrumb, TreeFields
from content_engine.services.node_store import NodeStore
from content_engine.utils.clock import utcnow

logger = logging.getLogger(__name__)

ParentLookup = Callable[[int], Any]

MAX_SLUG_ATTEMPTS = 1000


def ancestor_chain(node: Any, parent_lookup: ParentLookup, max_depth: int | None = None) -> list[Any]:
    """Return ``[node, parent, grandparent, ...]`` up to the root.

    A parent id that cannot be resolved ends the walk; the last resolved node
    is then treated as the root.

    Raises:
        CycleDetectedError: if an id repeats or the chain exceeds ``max_depth``.
    """
    limit = settings.max_tree_depth if max_depth is None else max_depth
    chain = [node]
    visited = {node.id} if node.id is not None else set()
    parent_id = node.parent_id

    while parent_id is not None:
        if parent_id in visited or len(chain) > limit:
            ids = [item.id for item in chain] + [parent_id]
            logger.error("Cycle detected in ancestor chain: node_id=%s chain=%s", node.id, ids)
            raise CycleDetectedError(node.id, ids)
        parent = parent_lookup(parent_id)
        if parent is None:
            logger.warning("Dangling parent reference: node_id=%s parent_id=%s", chain[-1].id, parent_id)
            break
        chain.append(parent)
        visited.add(parent.id)
        parent_id = parent.parent_id

    return chain


def generate_full_slug(node: Any, parent_lookup: ParentLookup) -> str:
    """Slash-joined slugs from the root down to ``node``."""
    return "/".join(item.slug for item in reversed(ancestor_chain(node, parent_lookup)))


def generate_breadcrumbs(node: Any, parent_lookup: ParentLookup) -> list[Breadcrumb]:
    """Root-to-self list of ``{id, uuid, name, slug}`` entries; the last one is ``node``."""
    return [
        Breadcrumb(id=item.id, uuid=getattr(item, "uuid", None), name=item.name, slug=item.slug)
        for item in reversed(ancestor_chain(node, parent_lookup))
    ]


def recompute_tree_fields(node: Any, parent_lookup: ParentLookup) -> TreeFields:
    """Recompute and assign ``full_slug``, ``path`` and ``breadcrumbs`` on ``node``."""
    full_slug = generate_full_slug(node, parent_lookup)
    breadcrumbs = generate_breadcrumbs(node, parent_lookup)

    node.full_slug = full_slug
    node.path = "/" + full_slug
    node.breadcrumbs = [crumb.model_dump() for crumb in breadcrumbs]

    return TreeFields(full_slug=full_slug, path=node.path, breadcrumbs=breadcrumbs)


def would_create_cycle(node_id: int, new_parent_id: int | None, parent_lookup: ParentLookup) -> bool:
    """True if placing ``node_id`` under ``new_parent_id`` would make it its own ancestor."""
    if new_parent_id is None:
        return False
    if new_parent_id == node_id:
        return True
    new_parent = parent_lookup(new_parent_id)
    if new_parent is None:
        return False
    return any(item.id == node_id for item in ancestor_chain(new_parent, parent_lookup))


def ensure_unique_slug(slug: str, siblings: list[Any], exclude_id: int | None = None) -> str:
    """Append ``-1``, ``-2``, ... until ``slug`` is unused among ``siblings``."""
    taken = {item.slug for item in siblings if exclude_id is None or item.id != exclude_id}
    if slug not in taken:
        return slug

    for counter in range(1, MAX_SLUG_ATTEMPTS + 1):
        candidate = f"{slug}-{counter}"
        if candidate not in taken:
            return candidate

    return f"{slug}-{uuid.uuid4().hex[:8]}"


class TreeService:
    """Tree maintenance for the nodes of one space.

    Methods other than ``move`` mutate nodes in the session without
    committing; the caller owns the transaction.
    """

    def __init__(self, db: AsyncSession, space_id: int):
        self.db = db
        self.space_id = space_id
        self.store = NodeStore(db, space_id)

    async def _arena(self, *extra: ContentNode) -> dict[int, ContentNode]:
        arena = await self.store.arena()
        for node in extra:
            if node.id is not None:
                arena[node.id] = node
        return arena

    async def recompute(self, node: ContentNode) -> TreeFields:
        arena = await self._arena(node)
        return recompute_tree_fields(node, arena.get)

    async def recompute_subtree(self, node: ContentNode) -> list[ContentNode]:
        """Recompute ``node`` and every descendant; returns the descendants touched."""
        arena = await self._arena(node)
        recompute_tree_fields(node, arena.get)

        children: dict[int, list[ContentNode]] = defaultdict(list)
        for item in arena.values():
            if item.parent_id is not None:
                children[item.parent_id].append(item)

        touched: list[ContentNode] = []
        visited = {node.id}
        queue = list(children.get(node.id, []))
        while queue:
            child = queue.pop(0)
            if child.id in visited:
                raise CycleDetectedError(child.id, [item.id for item in touched] + [child.id])
            visited.add(child.id)
            recompute_tree_fields(child, arena.get)
            touched.append(child)
            queue.extend(children.get(child.id, []))

        if touched:
            logger.info("Recomputed %d descendants of node_id=%s", len(touched), node.id)
        return touched

    async def check_parent(self, node: ContentNode, new_parent_id: int | None) -> None:
        """Reject a parent that does not exist or that would create a cycle."""
        if new_parent_id is None:
            return
        arena = await self._arena(node)
        if new_parent_id not in arena:
            raise ContentNotFoundError(new_parent_id)
        if node.id is not None and would_create_cycle(node.id, new_parent_id, arena.get):
            raise InvalidOperationError(
                "Circular parent-child reference detected",
                details={"node_id": node.id, "parent_id": new_parent_id},
            )

    async def unique_slug(self, node: ContentNode, slug: str, parent_id: int | None) -> str:
        siblings = await self.store.siblings_of(parent_id, node.language)
        return ensure_unique_slug(slug, siblings, exclude_id=node.id)

    async def move(self, node: ContentNode, new_parent_id: int | None) -> ContentNode:
        """Re-parent ``node`` and refresh the addressing of its whole subtree."""
        await self.check_parent(node, new_parent_id)
        node.parent_id = new_parent_id
        node.slug = await self.unique_slug(node, node.slug, new_parent_id)
        node.updated_at = utcnow()
        await self.recompute_subtree(node)
        await self.db.commit()
        await self.db.refresh(node)
        logger.info("Node moved: node_id=%s parent_id=%s", node.id, new_parent_id)
        return node
