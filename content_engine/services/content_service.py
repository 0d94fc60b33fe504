"""
Content Service

The edit flow for content nodes: create, update under the editing lock,
publication status changes and soft deletion. Validation, tree maintenance
and translation sync are delegated to their own services.
"""

import copy
import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from content_engine.config import settings
from content_engine.exceptions import InvalidOperationError, InvalidStatusTransitionError, ValidationError
from content_engine.models.content_node import ContentNode, NodeStatus
from content_engine.models.space import Space
from content_engine.schemas.content import Actor, NodeCreate, NodeUpdate
from content_engine.services.component_registry import ComponentRegistry, load_registry
from content_engine.services.content_tree import TreeService
from content_engine.services.lock_service import LockService
from content_engine.services.node_store import NodeStore
from content_engine.services.schema_validator import validate_content_tree
from content_engine.services.translation_sync_service import TranslationService
from content_engine.utils.clock import to_naive_utc, utcnow
from content_engine.utils.slugify import slugify

logger = logging.getLogger(__name__)

STATUS_TRANSITIONS: dict[NodeStatus, set[NodeStatus]] = {
    NodeStatus.DRAFT: {NodeStatus.REVIEW, NodeStatus.PUBLISHED, NodeStatus.SCHEDULED, NodeStatus.ARCHIVED},
    NodeStatus.REVIEW: {NodeStatus.DRAFT, NodeStatus.PUBLISHED, NodeStatus.SCHEDULED, NodeStatus.ARCHIVED},
    NodeStatus.SCHEDULED: {NodeStatus.DRAFT, NodeStatus.PUBLISHED},
    NodeStatus.PUBLISHED: {NodeStatus.DRAFT, NodeStatus.ARCHIVED},
    NodeStatus.ARCHIVED: {NodeStatus.DRAFT},
}

# Changing any of these alters the addressing of the node's subtree
ADDRESSING_FIELDS = ("slug", "parent_id", "name")


def _raise_if_invalid(content, registry: ComponentRegistry | None) -> None:
    errors = validate_content_tree(content, registry)
    if errors:
        logger.warning("Content rejected: %d field errors", len(errors))
        raise ValidationError(errors)


async def publish_due_nodes(db: AsyncSession, now: datetime | None = None, space_id: int | None = None) -> int:
    """Publish every scheduled node whose ``scheduled_at`` has passed. Returns the count."""
    now = now or utcnow()
    query = select(ContentNode).where(
        ContentNode.status == NodeStatus.SCHEDULED.value,
        ContentNode.scheduled_at <= now,
        ContentNode.deleted_at.is_(None),
    )
    if space_id is not None:
        query = query.where(ContentNode.space_id == space_id)

    result = await db.execute(query)
    nodes = list(result.scalars().all())
    for node in nodes:
        node.status = NodeStatus.PUBLISHED.value
        node.published_at = now
        node.updated_at = now
        logger.info("Scheduled node published: node_id=%s", node.id)

    if nodes:
        await db.commit()
    return len(nodes)


class ContentService:
    """Service for editing the content nodes of one space."""

    def __init__(self, db: AsyncSession, space_id: int):
        self.db = db
        self.space_id = space_id
        self.store = NodeStore(db, space_id)
        self.tree = TreeService(db, space_id)
        self.locks = LockService(db)

    async def get_node(self, node_id: int) -> ContentNode:
        return await self.store.get(node_id)

    async def _default_language(self) -> str:
        space = await self.db.get(Space, self.space_id)
        return space.default_language if space and space.default_language else settings.default_language

    async def _validate(self, content, registry: ComponentRegistry | None) -> None:
        if content and registry is None:
            registry = await load_registry(self.db, self.space_id)
        _raise_if_invalid(content, registry)

    async def create_node(
        self,
        data: NodeCreate,
        actor: Actor,
        registry: ComponentRegistry | None = None,
    ) -> ContentNode:
        """Create a draft node with a sibling-unique slug and computed addressing.

        Content is checked against ``registry``, or against the space's stored
        components when no registry is given.
        """
        await self._validate(data.content, registry)

        node = ContentNode(
            space_id=self.space_id,
            parent_id=data.parent_id,
            name=data.name,
            language=data.language or await self._default_language(),
            content=copy.deepcopy(data.content),
            meta_data=copy.deepcopy(data.meta_data),
            meta_title=data.meta_title,
            meta_description=data.meta_description,
            is_folder=data.is_folder,
            is_startpage=data.is_startpage,
            sort_order=data.sort_order,
            status=NodeStatus.DRAFT.value,
            created_by=actor.id,
            updated_by=actor.id,
        )
        await self.tree.check_parent(node, data.parent_id)
        node.slug = await self.tree.unique_slug(node, slugify(data.slug or data.name), data.parent_id)

        self.db.add(node)
        await self.db.flush()
        await self.tree.recompute(node)
        await self.db.commit()
        await self.db.refresh(node)

        logger.info(
            "Node created: space_id=%d node_id=%s full_slug=%s actor_id=%s",
            self.space_id,
            node.id,
            node.full_slug,
            actor.id,
        )
        return node

    async def update_node(
        self,
        node: ContentNode,
        data: NodeUpdate,
        actor: Actor,
        registry: ComponentRegistry | None = None,
        sync_translations: bool = False,
        now: datetime | None = None,
    ) -> ContentNode:
        """Apply a partial update to a node the actor may edit.

        Raises:
            LockConflictError: if another actor holds the node's lock.
            ValidationError: if the new content does not match its schemas.
        """
        await self.locks.ensure_editable(node, actor, now=now)
        updates = data.model_dump(exclude_unset=True)

        if "content" in updates:
            await self._validate(updates["content"], registry)
            updates["content"] = copy.deepcopy(updates["content"] or {})
        if "meta_data" in updates:
            updates["meta_data"] = copy.deepcopy(updates["meta_data"] or {})

        parent_id = updates.get("parent_id", node.parent_id)
        if parent_id != node.parent_id:
            await self.tree.check_parent(node, parent_id)
        if "slug" in updates or parent_id != node.parent_id:
            slug = slugify(updates.get("slug") or node.slug)
            updates["slug"] = await self.tree.unique_slug(node, slug, parent_id)

        readdress = any(key in updates and updates[key] != getattr(node, key) for key in ADDRESSING_FIELDS)

        for key, value in updates.items():
            setattr(node, key, value)
        node.updated_by = actor.id
        node.updated_at = utcnow()

        if readdress:
            await self.tree.recompute_subtree(node)

        await self.db.commit()
        await self.db.refresh(node)
        logger.info("Node updated: node_id=%s fields=%s actor_id=%s", node.id, sorted(updates), actor.id)

        if sync_translations and node.translation_group_id is not None:
            await TranslationService(self.db, self.space_id).sync_group(node)
        return node

    async def transition_status(
        self,
        node: ContentNode,
        new_status: NodeStatus | str,
        actor: Actor,
        scheduled_at: datetime | None = None,
        now: datetime | None = None,
    ) -> ContentNode:
        """Move a node to ``new_status`` along an allowed transition."""
        now = now or utcnow()
        await self.locks.ensure_editable(node, actor, now=now)

        try:
            target = NodeStatus(new_status)
        except ValueError:
            raise InvalidOperationError(f"Unknown status '{new_status}'") from None

        current = NodeStatus(node.status)
        if target not in STATUS_TRANSITIONS[current]:
            raise InvalidStatusTransitionError(current.value, target.value)

        if target == NodeStatus.SCHEDULED:
            if scheduled_at is None:
                raise ValidationError({"scheduled_at": "Scheduled time is required"})
            scheduled_at = to_naive_utc(scheduled_at)
            if scheduled_at <= now:
                raise ValidationError({"scheduled_at": "Scheduled time must be in the future"})
            node.scheduled_at = scheduled_at
        elif target == NodeStatus.PUBLISHED:
            node.published_at = now
            node.scheduled_at = None
        elif current == NodeStatus.SCHEDULED:
            node.scheduled_at = None

        node.status = target.value
        node.updated_by = actor.id
        node.updated_at = now
        await self.db.commit()
        await self.db.refresh(node)

        logger.info(
            "Node status changed: node_id=%s %s -> %s actor_id=%s",
            node.id,
            current.value,
            target.value,
            actor.id,
        )
        return node

    async def delete_node(self, node: ContentNode, actor: Actor, now: datetime | None = None) -> ContentNode:
        """Soft-delete a node that has no live children."""
        await self.locks.ensure_editable(node, actor, now=now)

        children = await self.store.children_of(node.id)
        if children:
            raise InvalidOperationError(
                "Cannot delete a node that still has children",
                details={"child_ids": [child.id for child in children]},
            )

        node.deleted_at = utcnow()
        node.updated_by = actor.id

        if node.translation_group_id is not None:
            remaining = [
                member
                for member in await self.store.find_by_group_id(node.translation_group_id)
                if member.id != node.id
            ]
            languages = sorted({member.language for member in remaining})
            for member in remaining:
                member.translated_languages = list(languages)

        await self.db.commit()
        await self.db.refresh(node)
        logger.info("Node deleted: node_id=%s actor_id=%s", node.id, actor.id)
        return node

    async def publish_due_nodes(self, now: datetime | None = None) -> int:
        return await publish_due_nodes(self.db, now=now, space_id=self.space_id)
