"""
Component Service

Administrative lifecycle of component schemas: creation with schema checks,
versioned updates, and soft deletion guarded against live references.
"""

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from content_engine.exceptions import (
    ComponentNotFoundError,
    DuplicateResourceError,
    InvalidOperationError,
    ValidationError,
)
from content_engine.models.component import Component
from content_engine.schemas.content import Actor, ComponentCreate, ComponentUpdate
from content_engine.services.node_store import NodeStore
from content_engine.services.schema_validator import validate_schema_definition
from content_engine.utils.clock import utcnow
from content_engine.utils.slugify import slugify

logger = logging.getLogger(__name__)


def content_uses_component(value: Any, technical_name: str) -> bool:
    """True if any component instance inside ``value`` is built from ``technical_name``."""
    if isinstance(value, dict):
        if value.get("component") == technical_name:
            return True
        return any(content_uses_component(child, technical_name) for child in value.values())
    if isinstance(value, list):
        return any(content_uses_component(child, technical_name) for child in value)
    return False


def _raise_schema_errors(schema: Any) -> None:
    problems = validate_schema_definition(schema)
    if problems:
        raise ValidationError(
            {key: "; ".join(messages) for key, messages in problems.items()},
            message="Component schema is invalid",
        )


class ComponentService:
    """Service for managing the component schemas of one space."""

    def __init__(self, db: AsyncSession, space_id: int):
        self.db = db
        self.space_id = space_id

    async def get_component(self, component_id: int) -> Component:
        result = await self.db.execute(
            select(Component).where(
                Component.id == component_id,
                Component.space_id == self.space_id,
                Component.deleted_at.is_(None),
            )
        )
        component = result.scalar_one_or_none()
        if component is None:
            raise ComponentNotFoundError(component_id)
        return component

    async def get_by_technical_name(self, technical_name: str, include_deleted: bool = False) -> Component | None:
        query = select(Component).where(
            Component.space_id == self.space_id,
            Component.technical_name == technical_name,
        )
        if not include_deleted:
            query = query.where(Component.deleted_at.is_(None))
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def create_component(self, data: ComponentCreate, actor: Actor) -> Component:
        """Create a component after checking its schema and name uniqueness."""
        technical_name = data.technical_name or slugify(data.name).replace("-", "_")

        if await self.get_by_technical_name(technical_name, include_deleted=True):
            raise DuplicateResourceError("Component", "technical_name", technical_name)

        _raise_schema_errors(data.schema_)

        component = Component(
            space_id=self.space_id,
            name=data.name,
            technical_name=technical_name,
            display_name=data.display_name,
            description=data.description,
            schema=list(data.schema_),
            is_nestable=data.is_nestable,
            is_root=data.is_root,
            version=1,
            created_by=actor.id,
            updated_by=actor.id,
        )
        self.db.add(component)
        await self.db.commit()
        await self.db.refresh(component)

        logger.info("Component created: space_id=%d technical_name=%s", self.space_id, technical_name)
        return component

    async def update_component(self, component: Component, data: ComponentUpdate, actor: Actor) -> Component:
        """Apply a partial update. The version is bumped only when the schema changes."""
        updates = data.model_dump(exclude_unset=True, by_alias=False)
        new_schema = updates.pop("schema_", None)

        if new_schema is not None and new_schema != (component.schema or []):
            _raise_schema_errors(new_schema)
            component.schema = list(new_schema)
            component.version = (component.version or 1) + 1
            logger.info(
                "Component schema changed: technical_name=%s version=%d",
                component.technical_name,
                component.version,
            )

        for key, value in updates.items():
            setattr(component, key, value)

        component.updated_by = actor.id
        component.updated_at = utcnow()
        await self.db.commit()
        await self.db.refresh(component)
        return component

    async def delete_component(self, component: Component, actor: Actor) -> Component:
        """Soft-delete a component that no live content references."""
        nodes = await NodeStore(self.db, self.space_id).all_nodes()
        referencing = [node.id for node in nodes if content_uses_component(node.content, component.technical_name)]
        if referencing:
            raise InvalidOperationError(
                f"Component '{component.technical_name}' is still used by live content",
                details={"node_ids": referencing},
            )

        component.deleted_at = utcnow()
        component.updated_by = actor.id
        await self.db.commit()
        await self.db.refresh(component)

        logger.info("Component deleted: technical_name=%s by actor_id=%s", component.technical_name, actor.id)
        return component
