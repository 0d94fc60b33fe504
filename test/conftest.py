"""
Pytest configuration and fixtures for content engine tests
"""

from collections.abc import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import content_engine.models  # noqa: F401
from content_engine.database import Base
from content_engine.models.content_node import ContentNode
from content_engine.models.space import Space
from content_engine.schemas.content import Actor
from content_engine.services.component_registry import ComponentRegistry
from content_engine.services.content_tree import TreeService
from content_engine.services.node_store import NodeStore

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

HERO_SCHEMA = [
    {"key": "title", "type": "text", "required": True, "max_length": 60},
    {"key": "subtitle", "type": "text"},
    {"key": "button_text", "type": "text"},
]

TEXT_BLOCK_SCHEMA = [
    {"key": "content", "type": "richtext"},
    {
        "key": "alignment",
        "type": "select",
        "options": [
            {"name": "Left", "value": "left"},
            {"name": "Center", "value": "center"},
            {"name": "Right", "value": "right"},
        ],
    },
]

CTA_SCHEMA = [
    {"key": "title", "type": "text", "required": True},
    {"key": "button_text", "type": "text"},
]

SECTION_SCHEMA = [
    {"key": "headline", "type": "text"},
    {"key": "body", "type": "blocks", "component_whitelist": ["hero", "text_block"]},
]


@pytest.fixture(scope="function")
async def test_engine():
    """A fresh in-memory database per test; StaticPool keeps it on one connection."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, autoflush=False, expire_on_commit=False)


@pytest.fixture
async def test_db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for tests that need it."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def space(test_db: AsyncSession) -> Space:
    """Create the space every test works in"""
    space = Space(name="Main Site", slug="main-site", default_language="en")
    test_db.add(space)
    await test_db.commit()
    await test_db.refresh(space)
    return space


@pytest.fixture
async def other_space(test_db: AsyncSession) -> Space:
    space = Space(name="Other Site", slug="other-site", default_language="de")
    test_db.add(space)
    await test_db.commit()
    await test_db.refresh(space)
    return space


@pytest.fixture
def editor() -> Actor:
    return Actor(id="user-1", display_name="Alice Editor", email="alice@example.com")


@pytest.fixture
def other_editor() -> Actor:
    return Actor(id="user-2", display_name="Bob Writer", email="bob@example.com")


@pytest.fixture
def registry() -> ComponentRegistry:
    """Component schemas used by the block fixtures"""
    return ComponentRegistry(
        {
            "hero": HERO_SCHEMA,
            "text_block": TEXT_BLOCK_SCHEMA,
            "cta_section": CTA_SCHEMA,
            "section": SECTION_SCHEMA,
        }
    )


@pytest.fixture
def page_content() -> dict:
    return {
        "body": [
            {
                "_uid": "hero-uid-123",
                "component": "hero",
                "title": "Welcome to our site",
                "subtitle": "The best content platform",
                "button_text": "Get Started",
            },
            {
                "_uid": "text-uid-456",
                "component": "text_block",
                "content": "This is the main content of the page.",
                "alignment": "center",
            },
        ]
    }


@pytest.fixture
def make_node(test_db: AsyncSession, space: Space):
    """Factory persisting a node with computed tree fields"""

    async def _make_node(name: str, slug: str | None = None, parent: ContentNode | None = None, **kwargs):
        node = ContentNode(
            space_id=kwargs.pop("space_id", space.id),
            name=name,
            slug=slug or name.lower().replace(" ", "-"),
            parent_id=parent.id if parent is not None else None,
            language=kwargs.pop("language", "en"),
            content=kwargs.pop("content", {}),
            **kwargs,
        )
        node = await NodeStore(test_db, node.space_id).save(node)
        await TreeService(test_db, node.space_id).recompute(node)
        await test_db.commit()
        await test_db.refresh(node)
        return node

    return _make_node
