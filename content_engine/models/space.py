"""
Space model: the tenant boundary.

Every component and content node belongs to exactly one space. Engine calls
receive the space explicitly; nothing reads a "current space" from ambient
state.
"""

from sqlalchemy import Column, DateTime, Integer, String

from content_engine.database import Base
from content_engine.utils.clock import utcnow


class Space(Base):
    __tablename__ = "spaces"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    slug = Column(String(100), nullable=False, unique=True, index=True)
    default_language = Column(String(10), nullable=False, default="en")
    created_at = Column(DateTime, nullable=False, default=utcnow)
