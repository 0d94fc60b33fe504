"""
Lock Service

Pessimistic, session-scoped edit locks on content nodes.

A node is either unlocked or locked by one actor until ``lock_expires_at``.
Every transition is a single conditional ``UPDATE ... WHERE`` on the node
row, so two actors racing for the same node are serialized by the database
and the loser simply gets ``False`` back. Expired locks are cleared lazily by
the next lock-aware call on that node, and in bulk by
``cleanup_expired_locks`` which the scheduler runs periodically.

Functions:
    - lock_is_active: True if a node carries an unexpired lock
    - LockService.lock / unlock / extend_lock: lock transitions
    - LockService.get_lock_info: lock details for display
    - LockService.cleanup_expired_locks: maintenance sweep
    - LockService.ensure_editable: guard used by the edit flow
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta

from sqlalchemy import and_, or_, update
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: TC002

from content_engine.config import settings
from content_engine.exceptions import LockConflictError
from content_engine.models.content_node import ContentNode
from content_engine.schemas.content import Actor, Locker, LockInfo
from content_engine.utils.clock import utcnow

logger = logging.getLogger(__name__)

CLEARED_LOCK = {
    "locked_by": None,
    "locked_by_name": None,
    "locked_by_email": None,
    "locked_at": None,
    "lock_expires_at": None,
    "lock_session_id": None,
}


def lock_is_active(node: ContentNode, now: datetime | None = None) -> bool:
    """True if ``node`` is locked and the lock has not expired yet."""
    now = now or utcnow()
    return bool(node.locked_by) and node.lock_expires_at is not None and node.lock_expires_at > now


def _lock_expired(now: datetime):
    """SQL condition matching rows whose lock is absent or past its expiry."""
    return or_(
        ContentNode.locked_by.is_(None),
        ContentNode.lock_expires_at.is_(None),
        ContentNode.lock_expires_at <= now,
    )


def _clamp_minutes(minutes: int | None) -> int:
    if minutes is None:
        minutes = settings.lock_default_minutes
    return max(1, min(int(minutes), settings.lock_max_minutes))


class LockService:
    """Service for acquiring and releasing node edit locks."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _apply(self, node: ContentNode, statement) -> bool:
        result = await self.db.execute(statement.execution_options(synchronize_session=False))
        await self.db.commit()
        await self.db.refresh(node)
        return result.rowcount > 0

    async def _clear_if_expired(self, node: ContentNode, now: datetime) -> None:
        if node.locked_by is None or lock_is_active(node, now):
            return
        statement = (
            update(ContentNode)
            .where(ContentNode.id == node.id, ContentNode.locked_by.is_not(None), _lock_expired(now))
            .values(**CLEARED_LOCK)
        )
        if await self._apply(node, statement):
            logger.debug("Expired lock cleared: node_id=%s", node.id)

    async def lock(
        self,
        node: ContentNode,
        actor: Actor,
        session_id: str | None = None,
        duration_minutes: int | None = None,
        now: datetime | None = None,
    ) -> bool:
        """Acquire or refresh the lock on ``node`` for ``actor``.

        Succeeds when the node is unlocked, its lock has expired, or ``actor``
        already holds it (the expiry is then pushed out). Returns False without
        touching the node when another actor holds an active lock.
        """
        now = now or utcnow()
        expires_at = now + timedelta(minutes=_clamp_minutes(duration_minutes))

        statement = (
            update(ContentNode)
            .where(
                ContentNode.id == node.id,
                or_(ContentNode.locked_by == actor.id, _lock_expired(now)),
            )
            .values(
                locked_by=actor.id,
                locked_by_name=actor.display_name,
                locked_by_email=actor.email,
                locked_at=now,
                lock_expires_at=expires_at,
                lock_session_id=session_id,
            )
        )
        acquired = await self._apply(node, statement)

        if acquired:
            logger.info(
                "Lock acquired: node_id=%s actor_id=%s expires_at=%s",
                node.id,
                actor.id,
                expires_at.isoformat(),
            )
        else:
            logger.warning(
                "Lock refused: node_id=%s actor_id=%s held_by=%s",
                node.id,
                actor.id,
                node.locked_by,
            )
        return acquired

    async def unlock(
        self,
        node: ContentNode,
        actor: Actor | None = None,
        session_id: str | None = None,
        now: datetime | None = None,
    ) -> bool:
        """Release the lock on ``node``.

        Without an ``actor`` the lock is force-cleared. Otherwise the caller
        must own the lock or present its session id. A node that is not
        (or no longer) locked counts as released.
        """
        now = now or utcnow()

        if actor is None:
            statement = update(ContentNode).where(ContentNode.id == node.id).values(**CLEARED_LOCK)
            await self._apply(node, statement)
            logger.info("Lock force-cleared: node_id=%s", node.id)
            return True

        await self._clear_if_expired(node, now)
        if not lock_is_active(node, now):
            return True

        holder = [ContentNode.locked_by == actor.id]
        if session_id is not None:
            holder.append(ContentNode.lock_session_id == session_id)

        statement = (
            update(ContentNode)
            .where(ContentNode.id == node.id, ContentNode.lock_expires_at > now, or_(*holder))
            .values(**CLEARED_LOCK)
        )
        released = await self._apply(node, statement)

        if released:
            logger.info("Lock released: node_id=%s actor_id=%s", node.id, actor.id)
        else:
            logger.warning(
                "Unlock refused: node_id=%s actor_id=%s held_by=%s",
                node.id,
                actor.id,
                node.locked_by,
            )
        return released

    async def extend_lock(
        self,
        node: ContentNode,
        actor: Actor,
        extend_minutes: int | None = None,
        now: datetime | None = None,
    ) -> bool:
        """Push the expiry of a lock held by ``actor`` out by ``extend_minutes``."""
        now = now or utcnow()
        if not await self.is_locked_by(node, actor, now=now):
            logger.warning("Lock extension refused: node_id=%s actor_id=%s", node.id, actor.id)
            return False

        current_expiry = node.lock_expires_at
        new_expiry = current_expiry + timedelta(minutes=_clamp_minutes(extend_minutes))
        statement = (
            update(ContentNode)
            .where(
                ContentNode.id == node.id,
                ContentNode.locked_by == actor.id,
                ContentNode.lock_expires_at == current_expiry,
            )
            .values(lock_expires_at=new_expiry)
        )
        extended = await self._apply(node, statement)
        if extended:
            logger.info("Lock extended: node_id=%s until=%s", node.id, new_expiry.isoformat())
        return extended

    async def is_locked(self, node: ContentNode, now: datetime | None = None) -> bool:
        now = now or utcnow()
        await self._clear_if_expired(node, now)
        return lock_is_active(node, now)

    async def is_locked_by(self, node: ContentNode, actor: Actor, now: datetime | None = None) -> bool:
        return await self.is_locked(node, now=now) and node.locked_by == actor.id

    async def is_locked_by_other(self, node: ContentNode, actor: Actor, now: datetime | None = None) -> bool:
        return await self.is_locked(node, now=now) and node.locked_by != actor.id

    async def get_lock_info(self, node: ContentNode, now: datetime | None = None) -> LockInfo | None:
        """Lock details, or None when the node is not locked."""
        now = now or utcnow()
        if not await self.is_locked(node, now=now):
            return None

        remaining = (node.lock_expires_at - now).total_seconds() / 60
        return LockInfo(
            locked_by=node.locked_by,
            locker=Locker(id=node.locked_by, name=node.locked_by_name, email=node.locked_by_email),
            locked_at=node.locked_at,
            expires_at=node.lock_expires_at,
            session_id=node.lock_session_id,
            time_remaining=max(1, math.ceil(remaining)),
        )

    async def cleanup_expired_locks(self, space_id: int | None = None, now: datetime | None = None) -> int:
        """Clear every expired lock, optionally within one space. Returns the count."""
        now = now or utcnow()
        conditions = [
            ContentNode.locked_by.is_not(None),
            or_(ContentNode.lock_expires_at.is_(None), ContentNode.lock_expires_at <= now),
        ]
        if space_id is not None:
            conditions.append(ContentNode.space_id == space_id)

        result = await self.db.execute(
            update(ContentNode)
            .where(and_(*conditions))
            .values(**CLEARED_LOCK)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

        count = result.rowcount or 0
        if count:
            logger.info("Cleaned up %d expired locks", count)
        return count

    async def ensure_editable(self, node: ContentNode, actor: Actor, now: datetime | None = None) -> None:
        """Raise ``LockConflictError`` if another actor holds an active lock on ``node``."""
        if await self.is_locked_by_other(node, actor, now=now):
            raise LockConflictError(
                node.id,
                locked_by=node.locked_by_name or node.locked_by,
                locked_until=node.lock_expires_at,
            )
