from __future__ import annotations

import asyncio
import os
import time
from datetime import timedelta
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import async_sessionmaker

from content_search.exception import NotFoundError
from content_search.logger import GLOBAL_LOGGER as log
from content_search.src.embedding.generator import EmbeddingGenerator
from content_search.src.extraction.dispatcher import ExtractionDispatcher, empty_media_fields
from content_search.src.processing.search_text import SEARCH_TEXT_EXTRACT_CHARS, build_search_text
from content_search.src.summarization.summarizer import Summarizer
from db.content_repository import ContentRepository
from db.models import ContentItem, ProcessingStatus, utcnow

NO_SEARCH_TEXT = "No search text available"


class ProcessingOrchestrator:
    """
    Drives one content item through extract -> embed -> summarize.

    Each item is claimed with a conditional update so only one caller ever
    runs the pipeline for it; stage failures are recorded on the item and
    never stop the remaining stages.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        dispatcher: ExtractionDispatcher,
        embedder: EmbeddingGenerator,
        summarizer: Summarizer,
        repository: Optional[ContentRepository] = None,
        config: Optional[Dict[str, Any]] = None,
        storage_root: Optional[str] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        config = config or {}
        self.session_factory = session_factory
        self.dispatcher = dispatcher
        self.embedder = embedder
        self.summarizer = summarizer
        self.repo = repository or ContentRepository()
        self.storage_root = os.getenv("STORAGE_ROOT") or storage_root or "."
        self._sleep = sleep

        self.short_text_threshold = config.get("short_text_threshold", 200)
        self.summary_max_length = config.get("summary_max_length", 150)
        self.search_text_extract_chars = config.get("search_text_extract_chars", SEARCH_TEXT_EXTRACT_CHARS)
        self.claim_wait_interval = config.get("claim_wait_interval", 0.25)
        self.claim_wait_timeout = config.get("claim_wait_timeout", 300)
        self.batch_size = config.get("batch_size", 5)
        self.batch_delay = config.get("batch_delay", 1.0)

    def _resolve_path(self, stored_path: str) -> Path:
        path = Path(stored_path)
        return path if path.is_absolute() else Path(self.storage_root) / stored_path

    async def _load(self, item_id: str) -> Optional[ContentItem]:
        async with self.session_factory() as db:
            return await self.repo.get_item(db, item_id)

    async def process_entity(self, item_id: str) -> ContentItem:
        item = await self._load(item_id)
        if item is None:
            raise NotFoundError(f"Content item not found: {item_id}")

        if item.is_processed and item.extracted_text and item.embedding:
            log.info("Item already processed, skipping | item_id=%s", item_id)
            return item

        async with self.session_factory() as db:
            won = await self.repo.claim_item(db, item_id)

        if not won:
            log.info("Item claimed elsewhere, waiting for result | item_id=%s", item_id)
            return await self._wait_for_release(item_id)

        log.info("Processing started | item_id=%s | name=%s | category=%s", item_id, item.name, item.category)
        try:
            fields = await self._run_stages(item)
        except BaseException:
            # Unexpected crash: hand the claim back so the item is not stuck
            async with self.session_factory() as db:
                await self.repo.release_item(db, item_id)
            raise

        async with self.session_factory() as db:
            await self.repo.complete_item(db, item_id, fields)
            processed = await self.repo.get_item(db, item_id)

        log.info(
            "Processing finished | item_id=%s | has_text=%s | has_embedding=%s | has_summary=%s",
            item_id,
            bool(fields["extracted_text"]),
            bool(fields["embedding"]),
            bool(fields["summary"]),
        )
        return processed

    async def _wait_for_release(self, item_id: str) -> ContentItem:
        deadline = time.monotonic() + self.claim_wait_timeout

        while True:
            current = await self._load(item_id)
            if current is None:
                raise NotFoundError(f"Content item not found: {item_id}")

            if current.processing_status != ProcessingStatus.CLAIMED.value:
                return current

            if time.monotonic() >= deadline:
                log.warning("Timed out waiting for claimed item | item_id=%s", item_id)
                return current

            await self._sleep(self.claim_wait_interval)

    async def _run_stages(self, item: ContentItem) -> Dict[str, Any]:
        fields: Dict[str, Any] = {
            "extracted_text": None,
            "embedding": None,
            "summary": None,
            "text_extraction_error": None,
            "embedding_error": None,
            **empty_media_fields(),
        }

        try:
            outcome = await self.dispatcher.extract(
                self._resolve_path(item.path), item.mime_type, item.name, item.category
            )
            fields["extracted_text"] = outcome.text
            fields.update(outcome.media)
            log.info(
                "Text extraction done | item_id=%s | chars=%d",
                item.id,
                len(outcome.text or ""),
            )
        except Exception as e:
            log.error("Text extraction failed | item_id=%s | error=%s", item.id, str(e))
            fields["text_extraction_error"] = str(e)

        extracted_text = fields["extracted_text"]

        search_text = build_search_text(
            item.name,
            item.description,
            item.category,
            item.tags,
            extracted_text,
            self.search_text_extract_chars,
        )
        if search_text.strip():
            try:
                fields["embedding"] = await self.embedder.generate(search_text)
            except Exception as e:
                log.error("Embedding generation failed | item_id=%s | error=%s", item.id, str(e))
                fields["embedding_error"] = str(e)
        else:
            fields["embedding_error"] = NO_SEARCH_TEXT

        if extracted_text and len(extracted_text) > self.short_text_threshold:
            fields["summary"] = await self.summarizer.summarize(extracted_text, self.summary_max_length)
        elif extracted_text:
            fields["summary"] = extracted_text

        return fields

    async def reprocess_entity(self, item_id: str) -> ContentItem:
        item = await self._load(item_id)
        if item is None:
            raise NotFoundError(f"Content item not found: {item_id}")

        stale_before = utcnow() - timedelta(seconds=self.claim_wait_timeout)
        async with self.session_factory() as db:
            reset = await self.repo.reset_item(db, item_id, stale_before=stale_before)

        if not reset:
            # a live run already produces fresh results for this item
            log.info("Item is being processed, waiting instead of reprocessing | item_id=%s", item_id)
            return await self._wait_for_release(item_id)

        log.info("Reprocessing item | item_id=%s", item_id)
        return await self.process_entity(item_id)

    async def process_batch(
        self,
        item_ids: Sequence[str],
        batch_size: Optional[int] = None,
        delay: Optional[float] = None,
    ) -> Dict[str, List]:
        """
        Process ids in fixed-size concurrent batches with a pause in between.
        A failing item is reported and never aborts the rest.
        """
        batch_size = max(int(batch_size or self.batch_size), 1)
        delay = self.batch_delay if delay is None else delay
        report: Dict[str, List] = {"processed": [], "failed": []}

        for start in range(0, len(item_ids), batch_size):
            batch = list(item_ids[start : start + batch_size])
            results = await asyncio.gather(
                *(self.process_entity(item_id) for item_id in batch),
                return_exceptions=True,
            )

            for item_id, result in zip(batch, results):
                if isinstance(result, BaseException):
                    log.error("Batch item failed | item_id=%s | error=%s", item_id, str(result))
                    report["failed"].append({"id": item_id, "error": str(result)})
                else:
                    report["processed"].append(item_id)

            if start + batch_size < len(item_ids) and delay > 0:
                await self._sleep(delay)

        log.info(
            "Batch processing complete | processed=%d | failed=%d",
            len(report["processed"]),
            len(report["failed"]),
        )
        return report
