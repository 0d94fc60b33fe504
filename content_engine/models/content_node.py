"""
ContentNode model: an addressable, hierarchical unit of structured content.

Stored in the ``stories`` table. ``full_slug``, ``path`` and ``breadcrumbs``
are derived from the ``parent_id`` chain and are recomputed explicitly by
the tree service whenever ``slug`` or ``parent_id`` change. The ``locked_*``
columns hold the embedded editing lock.

JSON columns are replaced, never mutated in place, so that the session
picks up the change.
"""

import enum
import uuid

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text

from content_engine.database import Base
from content_engine.utils.clock import utcnow


class NodeStatus(str, enum.Enum):
    DRAFT = "draft"
    REVIEW = "review"
    PUBLISHED = "published"
    SCHEDULED = "scheduled"
    ARCHIVED = "archived"


class ContentNode(Base):
    __tablename__ = "stories"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    uuid = Column(String(36), nullable=False, unique=True, default=lambda: str(uuid.uuid4()))
    space_id = Column(Integer, ForeignKey("spaces.id", ondelete="CASCADE"), nullable=False, index=True)
    parent_id = Column(Integer, ForeignKey("stories.id", ondelete="SET NULL"), nullable=True, index=True)

    name = Column(String, nullable=False)
    slug = Column(String, nullable=False)
    full_slug = Column(String, nullable=True, index=True)
    path = Column(String, nullable=True)
    breadcrumbs = Column(JSON, nullable=True)

    content = Column(JSON, nullable=False, default=dict)
    meta_data = Column(JSON, nullable=True, default=dict)
    meta_title = Column(Text, nullable=True)
    meta_description = Column(Text, nullable=True)

    language = Column(String(10), nullable=False, default="en")
    translation_group_id = Column(Integer, nullable=True, index=True)
    translated_languages = Column(JSON, nullable=True, default=list)

    status = Column(String(20), nullable=False, default=NodeStatus.DRAFT.value)
    is_folder = Column(Boolean, nullable=False, default=False)
    is_startpage = Column(Boolean, nullable=False, default=False)
    sort_order = Column(Integer, nullable=False, default=0)

    # Embedded editing lock
    locked_by = Column(String(64), nullable=True)
    locked_by_name = Column(String(200), nullable=True)
    locked_by_email = Column(String(255), nullable=True)
    locked_at = Column(DateTime, nullable=True)
    lock_expires_at = Column(DateTime, nullable=True)
    lock_session_id = Column(String(128), nullable=True)

    published_at = Column(DateTime, nullable=True)
    scheduled_at = Column(DateTime, nullable=True)
    created_by = Column(String(64), nullable=True)
    updated_by = Column(String(64), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)
    deleted_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("idx_story_space_parent", "space_id", "parent_id"),
        Index("idx_story_space_group", "space_id", "translation_group_id"),
        Index("idx_story_lock_expiry", "lock_expires_at"),
        Index("idx_story_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<ContentNode id={self.id} slug={self.slug!r} language={self.language!r}>"

    def get_components_by_type(self, component: str) -> list[dict]:
        """Top-level ``body`` blocks built from the given component."""
        body = (self.content or {}).get("body")
        if not isinstance(body, list):
            return []
        return [block for block in body if isinstance(block, dict) and block.get("component") == component]

    def has_translation(self, language: str) -> bool:
        return language in (self.translated_languages or [])

    def is_deleted(self) -> bool:
        return self.deleted_at is not None
