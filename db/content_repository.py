import json
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import String, cast, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from content_search.logger import GLOBAL_LOGGER as log

from .models import ContentItem, Folder, ProcessingStatus, utcnow


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _contains(column, term: str):
    return column.ilike(_like_pattern(term), escape="\\")


def _json_contains(column, term: str):
    """
    Prefilter on the serialized JSON list. Matches the JSON-escaped term so
    quotes and backslashes inside entries are found; punctuation of the list
    itself can still match, so callers re-check entries with _entry_contains.
    """
    escaped = json.dumps(term, ensure_ascii=False)[1:-1]
    return cast(column, String).ilike(_like_pattern(escaped), escape="\\")


def _entry_contains(values: Optional[List[Any]], term: str) -> bool:
    wanted = term.lower()
    return any(isinstance(v, str) and wanted in v.lower() for v in (values or []))


TEXT_COLUMNS = (
    "name",
    "description",
    "extracted_text",
    "image_description",
    "image_scene",
    "image_mood",
    "image_text",
    "audio_transcript",
    "video_transcript",
    "video_description",
)
LIST_COLUMNS = ("tags", "image_objects", "image_colors", "video_scenes")


def _matches_lexically(item: ContentItem, term: str) -> bool:
    wanted = term.lower()
    if any(wanted in (getattr(item, column) or "").lower() for column in TEXT_COLUMNS):
        return True
    return any(_entry_contains(getattr(item, column), term) for column in LIST_COLUMNS)


class ContentRepository:
    """
    Reads and writes of content items for the processing pipeline and search.

    The processing columns are only ever written through claim_item,
    complete_item, release_item and reset_item.
    """

    def _scoped(self, stmt, user_id: str, category: Optional[str] = None,
                start: Optional[datetime] = None, end: Optional[datetime] = None):
        stmt = stmt.where(ContentItem.user_id == user_id, ContentItem.is_deleted.is_(False))
        if category and category != "all":
            stmt = stmt.where(ContentItem.category == category)
        if start is not None:
            stmt = stmt.where(ContentItem.created_at >= start)
        if end is not None:
            stmt = stmt.where(ContentItem.created_at <= end)
        return stmt

    async def get_item(self, db: AsyncSession, item_id: str) -> Optional[ContentItem]:
        out = await db.execute(
            select(ContentItem)
            .where(ContentItem.id == item_id)
            .execution_options(populate_existing=True)
        )
        return out.scalar_one_or_none()

    async def claim_item(self, db: AsyncSession, item_id: str) -> bool:
        """Move unprocessed -> claimed. Exactly one concurrent caller gets True."""
        result = await db.execute(
            update(ContentItem)
            .where(
                ContentItem.id == item_id,
                ContentItem.processing_status == ProcessingStatus.UNPROCESSED.value,
            )
            .values(processing_status=ProcessingStatus.CLAIMED.value, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await db.commit()

        won = result.rowcount == 1
        log.info("Claim attempt | item_id=%s | won=%s", item_id, won)
        return won

    async def complete_item(self, db: AsyncSession, item_id: str, fields: Dict[str, Any]) -> None:
        """Single write of every derived field plus the processed flags."""
        now = utcnow()
        await db.execute(
            update(ContentItem)
            .where(ContentItem.id == item_id)
            .values(
                **fields,
                is_processed=True,
                processing_status=ProcessingStatus.PROCESSED.value,
                processed_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        log.info("Processing results stored | item_id=%s", item_id)

    async def release_item(self, db: AsyncSession, item_id: str) -> None:
        """Hand a claim back without results (pipeline crashed before completing)."""
        await db.execute(
            update(ContentItem)
            .where(
                ContentItem.id == item_id,
                ContentItem.processing_status == ProcessingStatus.CLAIMED.value,
            )
            .values(processing_status=ProcessingStatus.UNPROCESSED.value, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        log.warning("Claim released | item_id=%s", item_id)

    async def reset_item(self, db: AsyncSession, item_id: str, stale_before: Optional[datetime] = None) -> bool:
        """
        Put an item back to unprocessed. A live claim is left alone; a claim
        last touched before `stale_before` counts as abandoned and is reset.
        Returns False when the item is currently claimed by a running pipeline.
        """
        resettable = ContentItem.processing_status != ProcessingStatus.CLAIMED.value
        if stale_before is not None:
            resettable = or_(resettable, ContentItem.updated_at < stale_before)

        result = await db.execute(
            update(ContentItem)
            .where(ContentItem.id == item_id, resettable)
            .values(
                is_processed=False,
                processing_status=ProcessingStatus.UNPROCESSED.value,
                processed_at=None,
                text_extraction_error=None,
                embedding_error=None,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        await db.commit()

        reset = result.rowcount == 1
        if reset:
            log.info("Processing state reset | item_id=%s", item_id)
        else:
            log.info("Reset skipped, item is being processed | item_id=%s", item_id)
        return reset

    async def lexical_candidates(
        self,
        db: AsyncSession,
        user_id: str,
        query: str,
        limit: int,
        category: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[ContentItem]:
        stmt = self._scoped(select(ContentItem), user_id, category, start, end).where(
            or_(
                *(_contains(getattr(ContentItem, column), query) for column in TEXT_COLUMNS),
                *(_json_contains(getattr(ContentItem, column), query) for column in LIST_COLUMNS),
            )
        )
        out = await db.execute(stmt.order_by(ContentItem.created_at.desc()))
        # JSON prefilter hits on list punctuation are dropped here, before the limit
        matches = [item for item in out.scalars().all() if _matches_lexically(item, query)]
        return matches[:limit]

    async def semantic_candidates(
        self,
        db: AsyncSession,
        user_id: str,
        cap: int,
        category: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[ContentItem]:
        stmt = self._scoped(select(ContentItem), user_id, category, start, end).where(
            ContentItem.is_processed.is_(True),
            ContentItem.embedding.is_not(None),
        )
        out = await db.execute(stmt.order_by(ContentItem.created_at.desc()).limit(cap))
        return list(out.scalars().all())

    async def content_matches(self, db: AsyncSession, user_id: str, query: str, limit: int) -> List[ContentItem]:
        stmt = self._scoped(select(ContentItem), user_id).where(
            ContentItem.is_processed.is_(True),
            _contains(ContentItem.extracted_text, query),
        )
        out = await db.execute(stmt.order_by(ContentItem.created_at.desc()).limit(limit))
        return list(out.scalars().all())

    async def name_matches(self, db: AsyncSession, user_id: str, query: str, limit: int) -> List[ContentItem]:
        stmt = self._scoped(select(ContentItem), user_id).where(_contains(ContentItem.name, query))
        out = await db.execute(stmt.order_by(ContentItem.created_at.desc()).limit(limit))
        return list(out.scalars().all())

    async def items_tagged(self, db: AsyncSession, user_id: str, tag: str) -> List[ContentItem]:
        stmt = self._scoped(select(ContentItem), user_id).where(_json_contains(ContentItem.tags, tag))
        out = await db.execute(stmt.order_by(ContentItem.created_at.desc()))
        return [item for item in out.scalars().all() if _has_tag(item.tags, tag)]

    async def folders_tagged(self, db: AsyncSession, user_id: str, tag: str) -> List[Folder]:
        stmt = select(Folder).where(
            Folder.user_id == user_id,
            Folder.is_deleted.is_(False),
            _json_contains(Folder.tags, tag),
        )
        out = await db.execute(stmt.order_by(Folder.created_at.desc()))
        return [folder for folder in out.scalars().all() if _has_tag(folder.tags, tag)]


def _has_tag(tags: Optional[List[str]], tag: str) -> bool:
    wanted = tag.strip().lower()
    return any(isinstance(t, str) and t.strip().lower() == wanted for t in (tags or []))
