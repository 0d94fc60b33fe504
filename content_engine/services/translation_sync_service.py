"""
Translation Sync Service

Keeps the language variants of a node (its translation group) structurally
aligned while preserving each variant's translated text.

Content blocks are correlated across languages by their ``_uid``, never by
position: a matched pair is merged key by key (the target keeps its
translatable text and adopts new or non-translatable keys from the source),
and a source block the target lacks is appended and flagged with
``_translation_needed``.

Functions:
    - merge_content: structural merge of a source document into a target
    - sync_metadata: copy allow-listed, non-translatable metadata keys
    - count_translatable_fields: non-empty translatable strings in a document
    - word_count: rough word count of a content document
    - find_untranslated_fields: source strings the target has not translated
    - is_translation_of: group membership check for two nodes
    - TranslationService: group-aware creation, sync and status reporting
"""

from __future__ import annotations

import copy
import logging
import re
from collections.abc import Callable, Iterable
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession  # noqa: TC002

from content_engine.config import settings
from content_engine.exceptions import DuplicateTranslationError, InvalidOperationError
from content_engine.models.content_node import ContentNode, NodeStatus
from content_engine.schemas.content import Actor, TranslationStatusEntry
from content_engine.services.content_tree import TreeService
from content_engine.services.node_store import NodeStore
from content_engine.services.schema_validator import make_translatable_predicate
from content_engine.utils.clock import utcnow
from content_engine.utils.slugify import slugify

logger = logging.getLogger(__name__)

Predicate = Callable[[str], bool]

TRANSLATION_NEEDED_FLAG = "_translation_needed"

# Keys that carry structure rather than prose
STRUCTURAL_KEYS = frozenset({"_uid", "component"})

TAG_RE = re.compile(r"<[^>]+>")


def _is_block(value: Any) -> bool:
    return isinstance(value, dict) and bool(value.get("_uid"))


def _is_block_list(value: Any) -> bool:
    return isinstance(value, list) and any(_is_block(item) for item in value)


def _merge_blocks(target: list[Any], source: list[Any], predicate: Predicate) -> list[Any]:
    source_by_uid = {block["_uid"]: block for block in source if _is_block(block)}
    target_uids = {block["_uid"] for block in target if _is_block(block)}

    merged = []
    for block in target:
        if _is_block(block) and block["_uid"] in source_by_uid:
            merged.append(_merge_dict(block, source_by_uid[block["_uid"]], predicate))
        else:
            merged.append(copy.deepcopy(block))

    for block in source:
        if _is_block(block) and block["_uid"] not in target_uids:
            added = copy.deepcopy(block)
            added[TRANSLATION_NEEDED_FLAG] = True
            merged.append(added)

    return merged


def _merge_dict(target: dict[str, Any], source: dict[str, Any], predicate: Predicate) -> dict[str, Any]:
    merged = copy.deepcopy(target)
    for key, source_value in source.items():
        if _is_block_list(source_value):
            current = merged.get(key)
            merged[key] = _merge_blocks(current if isinstance(current, list) else [], source_value, predicate)
        elif key not in merged:
            merged[key] = copy.deepcopy(source_value)
        elif isinstance(source_value, dict) and isinstance(merged[key], dict):
            merged[key] = _merge_dict(merged[key], source_value, predicate)
        elif not predicate(key):
            merged[key] = copy.deepcopy(source_value)
    return merged


def merge_content(
    target: dict[str, Any] | None,
    source: dict[str, Any] | None,
    predicate: Predicate | None = None,
) -> dict[str, Any]:
    """Merge ``source``'s structure into ``target`` and return a new document.

    Neither argument is modified.
    """
    predicate = predicate or make_translatable_predicate()
    return _merge_dict(target or {}, source or {}, predicate)


def sync_metadata(
    target: dict[str, Any] | None,
    source: dict[str, Any] | None,
    sync_keys: Iterable[str] | None = None,
    predicate: Predicate | None = None,
) -> dict[str, Any]:
    """Return ``target`` metadata updated from ``source``.

    Allow-listed keys are always copied. Other keys are adopted only when the
    target lacks them and they are not translatable. Translatable keys the
    target already has are never touched.
    """
    predicate = predicate or make_translatable_predicate()
    allowed = set(settings.metadata_sync_keys if sync_keys is None else sync_keys)

    merged = copy.deepcopy(target or {})
    for key, value in (source or {}).items():
        if key in allowed or (key not in merged and not predicate(key)):
            merged[key] = copy.deepcopy(value)
    return merged


def _translatable_strings(value: Any, predicate: Predicate, key: str | None = None) -> Iterable[str]:
    if isinstance(value, dict):
        for child_key, child in value.items():
            yield from _translatable_strings(child, predicate, child_key)
    elif isinstance(value, list):
        for item in value:
            yield from _translatable_strings(item, predicate, key)
    elif isinstance(value, str) and key is not None and value.strip() and predicate(key):
        yield value


def count_translatable_fields(content: dict[str, Any] | None, predicate: Predicate | None = None) -> int:
    """Number of non-empty string values stored under translatable field names."""
    predicate = predicate or make_translatable_predicate()
    return sum(1 for _ in _translatable_strings(content or {}, predicate))


def _prose(value: Any, key: str | None = None) -> Iterable[str]:
    if isinstance(value, dict):
        for child_key, child in value.items():
            if child_key in STRUCTURAL_KEYS or child_key.startswith("_"):
                continue
            yield from _prose(child, child_key)
    elif isinstance(value, list):
        for item in value:
            yield from _prose(item, key)
    elif isinstance(value, str):
        yield value


def word_count(content: dict[str, Any] | None) -> int:
    """Words in every string value of ``content``, markup stripped."""
    text = " ".join(_prose(content or {}))
    return len(TAG_RE.sub(" ", text).split())


def _untranslated(
    target: Any,
    source: Any,
    predicate: Predicate,
    path: str,
    key: str | None,
    found: dict[str, Any],
) -> None:
    if isinstance(source, dict):
        target = target if isinstance(target, dict) else {}
        for child_key, child in source.items():
            if child_key in STRUCTURAL_KEYS:
                continue
            child_path = f"{path}.{child_key}" if path else child_key
            _untranslated(target.get(child_key), child, predicate, child_path, child_key, found)
    elif isinstance(source, list):
        target = target if isinstance(target, list) else []
        target_by_uid = {block["_uid"]: block for block in target if _is_block(block)}
        for index, item in enumerate(source):
            if _is_block(item):
                counterpart = target_by_uid.get(item["_uid"])
                item_path = f"{path}.{item['_uid']}"
            else:
                counterpart = target[index] if index < len(target) else None
                item_path = f"{path}.{index}"
            _untranslated(counterpart, item, predicate, item_path, key, found)
    elif isinstance(source, str) and source.strip() and key is not None and predicate(key):
        if not isinstance(target, str) or not target.strip() or target == source:
            found[path] = source


def find_untranslated_fields(
    target: ContentNode,
    source: ContentNode,
    predicate: Predicate | None = None,
) -> dict[str, dict[str, Any]]:
    """Source strings that are missing, empty or unchanged in ``target``.

    Returns ``{"content": {path: source_value}, "meta": {key: source_value}}``.
    Block paths use the block ``_uid`` (``body.hero-1.title``).
    """
    predicate = predicate or make_translatable_predicate()

    content: dict[str, Any] = {}
    _untranslated(target.content or {}, source.content or {}, predicate, "", None, content)

    meta: dict[str, Any] = {}
    target_meta = target.meta_data or {}
    for key, value in (source.meta_data or {}).items():
        if not isinstance(value, str) or not value.strip() or not predicate(key):
            continue
        translated = target_meta.get(key)
        if not isinstance(translated, str) or not translated.strip() or translated == value:
            meta[key] = value

    return {"content": content, "meta": meta}


def is_translation_of(node: ContentNode, other: ContentNode) -> bool:
    return (
        node.translation_group_id is not None
        and node.translation_group_id == other.translation_group_id
        and node.id != other.id
    )


class TranslationService:
    """Service for the translation groups of one space."""

    def __init__(self, db: AsyncSession, space_id: int, predicate: Predicate | None = None):
        self.db = db
        self.space_id = space_id
        self.store = NodeStore(db, space_id)
        self.predicate = predicate or make_translatable_predicate()

    async def group_members(self, node: ContentNode) -> list[ContentNode]:
        """Every live member of ``node``'s group, ``node`` included, oldest first."""
        if node.translation_group_id is None:
            return [node]
        members = await self.store.find_by_group_id(node.translation_group_id)
        if all(member.id != node.id for member in members):
            members.append(node)
        return sorted(members, key=lambda member: (member.created_at or utcnow(), member.id or 0))

    @staticmethod
    def designated_source(members: list[ContentNode], group_id: int | None) -> ContentNode:
        """The member whose id is the group id, else the earliest created one."""
        for member in members:
            if member.id == group_id:
                return member
        return members[0]

    async def get_all_translations(self, node: ContentNode) -> list[ContentNode]:
        """The other members of ``node``'s group."""
        return [member for member in await self.group_members(node) if member.id != node.id]

    async def create_translation(
        self,
        source: ContentNode,
        target_language: str,
        overrides: dict[str, Any] | None,
        actor: Actor,
    ) -> ContentNode:
        """Create the ``target_language`` variant of ``source``.

        Raises:
            DuplicateTranslationError: if the group already has that language.
        """
        overrides = overrides or {}
        group_id = source.translation_group_id or source.id
        members = await self.group_members(source)

        if any(member.language == target_language for member in members):
            logger.warning(
                "Duplicate translation refused: group_id=%s language=%s",
                group_id,
                target_language,
            )
            raise DuplicateTranslationError(target_language, group_id)

        content = {**copy.deepcopy(source.content or {}), **copy.deepcopy(overrides.get("content") or {})}
        meta_data = {**copy.deepcopy(source.meta_data or {}), **copy.deepcopy(overrides.get("meta_data") or {})}

        translation = ContentNode(
            space_id=self.space_id,
            parent_id=source.parent_id,
            is_folder=source.is_folder,
            is_startpage=overrides.get("is_startpage", source.is_startpage),
            sort_order=overrides.get("sort_order", source.sort_order),
            name=overrides.get("name") or source.name,
            language=target_language,
            translation_group_id=group_id,
            content=content,
            meta_data=meta_data,
            meta_title=overrides.get("meta_title", source.meta_title),
            meta_description=overrides.get("meta_description", source.meta_description),
            status=NodeStatus.DRAFT.value,
            created_by=actor.id,
            updated_by=actor.id,
        )

        tree = TreeService(self.db, self.space_id)
        slug = slugify(overrides["slug"]) if overrides.get("slug") else source.slug
        translation.slug = await tree.unique_slug(translation, slug, source.parent_id)

        if source.translation_group_id is None:
            source.translation_group_id = group_id

        self.db.add(translation)
        await self.db.flush()
        await tree.recompute(translation)

        languages = sorted({member.language for member in members} | {target_language})
        for member in [*members, translation]:
            member.translated_languages = list(languages)

        await self.db.commit()
        await self.db.refresh(translation)

        logger.info(
            "Translation created: source_id=%s node_id=%s language=%s group_id=%s",
            source.id,
            translation.id,
            target_language,
            group_id,
        )
        return translation

    async def sync_content(
        self,
        target: ContentNode,
        source: ContentNode,
        fields: Iterable[str] = ("content", "meta_data"),
    ) -> bool:
        """Bring ``target`` in line with ``source``'s structure.

        Returns False when the two nodes are not in the same group.
        """
        if not is_translation_of(target, source):
            logger.warning("Sync refused: node_id=%s is not a translation of node_id=%s", target.id, source.id)
            return False

        fields = set(fields)
        unknown = fields - {"content", "meta_data"}
        if unknown:
            raise InvalidOperationError(
                f"Cannot sync fields: {', '.join(sorted(unknown))}",
                details={"fields": sorted(unknown)},
            )

        if "content" in fields:
            target.content = merge_content(target.content, source.content, self.predicate)
        if "meta_data" in fields:
            target.meta_data = sync_metadata(target.meta_data, source.meta_data, predicate=self.predicate)

        target.updated_at = utcnow()
        await self.db.commit()
        await self.db.refresh(target)

        logger.info(
            "Translation synced: node_id=%s language=%s from source_id=%s fields=%s",
            target.id,
            target.language,
            source.id,
            sorted(fields),
        )
        return True

    async def sync_group(self, source: ContentNode) -> dict[str, bool]:
        """Sync every other member of ``source``'s group. Each member commits on its own."""
        results = {}
        for member in await self.get_all_translations(source):
            results[member.language] = await self.sync_content(member, source)
        return results

    async def get_translation_status(self, node: ContentNode) -> dict[str, TranslationStatusEntry]:
        """Completion and staleness of every member of ``node``'s group, keyed by language."""
        members = await self.group_members(node)
        source = self.designated_source(members, node.translation_group_id)

        def translatable(member: ContentNode) -> int:
            return count_translatable_fields(member.content, self.predicate) + count_translatable_fields(
                member.meta_data, self.predicate
            )

        total = translatable(source)
        status = {}
        for member in members:
            is_source = member.id == source.id
            if is_source or total == 0:
                completion = 100
            else:
                completion = min(100, round(100 * translatable(member) / total))

            needs_sync = (
                not is_source
                and source.updated_at is not None
                and member.updated_at is not None
                and source.updated_at > member.updated_at
            )
            status[member.language] = TranslationStatusEntry(
                id=member.id,
                uuid=member.uuid,
                language=member.language,
                completion_percentage=completion,
                last_updated=member.updated_at,
                needs_sync=needs_sync,
                word_count=word_count(member.content),
                is_source=is_source,
            )
        return status
