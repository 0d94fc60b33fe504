"""
Component model: a schema definition for one class of content blocks.

``schema`` is stored as the raw list of field dictionaries; ``fields``
parses it into typed field definitions.
"""

import enum

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint

from content_engine.database import Base
from content_engine.schemas.fields import FieldDefinition, parse_schema
from content_engine.utils.clock import utcnow


class ComponentStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    DEPRECATED = "deprecated"


class Component(Base):
    __tablename__ = "components"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    space_id = Column(Integer, ForeignKey("spaces.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    technical_name = Column(String(100), nullable=False)
    display_name = Column(String(200), nullable=True)
    description = Column(Text, nullable=True)
    schema = Column(JSON, nullable=False, default=list)
    status = Column(String(20), nullable=False, default=ComponentStatus.ACTIVE.value)
    is_nestable = Column(Boolean, nullable=False, default=True)
    is_root = Column(Boolean, nullable=False, default=False)
    version = Column(Integer, nullable=False, default=1)
    created_by = Column(String(64), nullable=True)
    updated_by = Column(String(64), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)
    deleted_at = Column(DateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint("space_id", "technical_name", name="uq_component_technical_name"),
        Index("idx_component_space_status", "space_id", "status"),
    )

    @property
    def fields(self) -> list[FieldDefinition]:
        return parse_schema(self.schema or [])

    def get_field(self, key: str) -> FieldDefinition | None:
        return next((field for field in self.fields if field.key == key), None)

    def is_active(self) -> bool:
        return self.status == ComponentStatus.ACTIVE.value and self.deleted_at is None
