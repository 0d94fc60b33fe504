"""
Component Registry

Resolves a component reference (its technical name) to a field schema. The
registry is an in-memory snapshot of one space's components so that
validation never performs I/O; ``load_registry`` builds the snapshot from the
database.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: TC002

from content_engine.exceptions import SchemaMismatchError
from content_engine.models.component import Component, ComponentStatus
from content_engine.schemas.fields import FieldDefinition, parse_schema

logger = logging.getLogger(__name__)


class ComponentRegistry:
    """Technical name -> parsed schema lookup for one space."""

    def __init__(self, schemas: dict[str, list[dict[str, Any]] | list[FieldDefinition]] | None = None):
        self._schemas: dict[str, list[FieldDefinition]] = {}
        for name, schema in (schemas or {}).items():
            self.register(name, schema)

    def register(self, technical_name: str, schema: list[dict[str, Any]] | list[FieldDefinition]) -> None:
        self._schemas[technical_name] = parse_schema(schema)

    def get_schema(self, component_ref: str) -> list[FieldDefinition]:
        try:
            return self._schemas[component_ref]
        except KeyError:
            raise SchemaMismatchError(component_ref) from None

    def __contains__(self, component_ref: object) -> bool:
        return component_ref in self._schemas

    def __len__(self) -> int:
        return len(self._schemas)


async def load_registry(db: AsyncSession, space_id: int) -> ComponentRegistry:
    """Snapshot the active, non-deleted components of a space."""
    result = await db.execute(
        select(Component).where(
            Component.space_id == space_id,
            Component.deleted_at.is_(None),
            Component.status != ComponentStatus.INACTIVE.value,
        )
    )
    registry = ComponentRegistry()
    for component in result.scalars().all():
        registry.register(component.technical_name, component.schema or [])
    logger.debug("Loaded %d components for space_id=%d", len(registry), space_id)
    return registry
