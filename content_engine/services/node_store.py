"""
Node Store

Tenant-scoped access to content nodes. Every query is filtered by the
``space_id`` the store was created with, and soft-deleted nodes are hidden
unless asked for.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: TC002

from content_engine.exceptions import ContentNotFoundError
from content_engine.models.content_node import ContentNode

logger = logging.getLogger(__name__)


class NodeStore:
    """Load and persist content nodes of one space."""

    def __init__(self, db: AsyncSession, space_id: int):
        self.db = db
        self.space_id = space_id

    def _query(self, include_deleted: bool = False):
        query = select(ContentNode).where(ContentNode.space_id == self.space_id)
        if not include_deleted:
            query = query.where(ContentNode.deleted_at.is_(None))
        return query

    async def find(self, node_id: int, include_deleted: bool = False) -> ContentNode | None:
        result = await self.db.execute(self._query(include_deleted).where(ContentNode.id == node_id))
        return result.scalars().first()

    async def get(self, node_id: int) -> ContentNode:
        node = await self.find(node_id)
        if node is None:
            raise ContentNotFoundError(node_id)
        return node

    async def save(self, node: ContentNode) -> ContentNode:
        if node.space_id is None:
            node.space_id = self.space_id
        self.db.add(node)
        await self.db.commit()
        await self.db.refresh(node)
        return node

    async def find_by_group_id(self, group_id: int) -> list[ContentNode]:
        result = await self.db.execute(
            self._query().where(ContentNode.translation_group_id == group_id).order_by(ContentNode.id)
        )
        return list(result.scalars().all())

    async def children_of(self, node_id: int) -> list[ContentNode]:
        result = await self.db.execute(
            self._query().where(ContentNode.parent_id == node_id).order_by(ContentNode.sort_order, ContentNode.id)
        )
        return list(result.scalars().all())

    async def siblings_of(self, parent_id: int | None, language: str) -> list[ContentNode]:
        """Live nodes sharing a parent and language (the slug namespace)."""
        query = self._query().where(ContentNode.language == language)
        if parent_id is None:
            query = query.where(ContentNode.parent_id.is_(None))
        else:
            query = query.where(ContentNode.parent_id == parent_id)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def all_nodes(self, include_deleted: bool = False) -> list[ContentNode]:
        result = await self.db.execute(self._query(include_deleted).order_by(ContentNode.id))
        return list(result.scalars().all())

    async def arena(self) -> dict[int, ContentNode]:
        """All live nodes of the space indexed by id, for in-memory tree walks."""
        return {node.id: node for node in await self.all_nodes()}
