from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Dict, List, Optional

from cachetools import TTLCache
from sqlalchemy.ext.asyncio import async_sessionmaker

from content_search.exception import ValidationError
from content_search.logger import GLOBAL_LOGGER as log
from content_search.src.embedding.generator import EmbeddingGenerator
from content_search.src.embedding.similarity import cosine_similarity
from content_search.src.search.date_range import resolve_date_range
from content_search.src.search.schemas import SearchOptions, SearchResult
from content_search.utils.thread_pool import run_sync
from db.content_repository import ContentRepository
from redis_cache.redis_client import cache_query_embedding, get_cached_query_embedding

LEXICAL_BASE_SCORE = 0.8
NAME_HIT_BONUS = 0.1
TEXT_HIT_BONUS = 0.05
CONTENT_SCORE = 0.8
FILENAME_SCORE = 0.9
TAG_SCORE = 0.95


def normalize_query(query: Optional[str]) -> str:
    return " ".join((query or "").split())


class QueryEmbeddingCache:
    """
    Query -> embedding lookup: in-process TTLCache first, then Redis,
    then the embedding generator. Redis failures are logged and ignored.
    """

    def __init__(self, embedder: EmbeddingGenerator, ttl: int = 3600, maxsize: int = 1024, use_redis: bool = True):
        self.embedder = embedder
        self.ttl = ttl
        self.use_redis = use_redis
        self._local: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl)

    async def get(self, query: str) -> List[float]:
        key = normalize_query(query).lower()

        cached = self._local.get(key)
        if cached is not None:
            return cached

        if self.use_redis:
            cached = await run_sync(get_cached_query_embedding, key)
            if cached:
                self._local[key] = cached
                return cached

        embedding = await self.embedder.generate(query)
        self._local[key] = embedding
        if self.use_redis:
            await run_sync(cache_query_embedding, key, embedding, self.ttl)
        return embedding


class HybridSearchEngine:
    """
    Lexical + semantic search over a user's content items.

    Lexical matches are found in the database, semantic matches by cosine
    similarity against stored embeddings. Both lists are fused by item id,
    keeping the higher score per item.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        embedder: EmbeddingGenerator,
        repository: Optional[ContentRepository] = None,
        query_cache: Optional[QueryEmbeddingCache] = None,
        candidate_cap: int = 500,
        chunk_size: int = 50,
    ):
        self.session_factory = session_factory
        self.embedder = embedder
        self.repo = repository or ContentRepository()
        self.query_cache = query_cache or QueryEmbeddingCache(embedder)
        self.candidate_cap = candidate_cap
        self.chunk_size = max(chunk_size, 1)

    @staticmethod
    def _require(value: Optional[str], what: str) -> str:
        # inner whitespace is kept so the text matches literally
        value = (value or "").strip()
        if not value:
            raise ValidationError(f"{what} is required")
        return value

    async def search(
        self,
        user_id: str,
        query: str,
        options: Optional[SearchOptions] = None,
        now: Optional[datetime] = None,
    ) -> List[SearchResult]:
        query = self._require(query, "Search query")
        options = options or SearchOptions()
        start, end = resolve_date_range(options.date_range, now=now)

        lexical = await self._lexical(user_id, query, options, start, end)

        semantic: List[SearchResult] = []
        try:
            query_embedding = await self.query_cache.get(query)
            semantic = await self._semantic(user_id, query_embedding, options, start, end)
        except Exception as e:
            log.warning("Semantic search unavailable, using lexical results only | error=%s", str(e))

        results = self.fuse(lexical, semantic, options.limit)
        log.info(
            "Hybrid search done | user_id=%s | lexical=%d | semantic=%d | returned=%d",
            user_id,
            len(lexical),
            len(semantic),
            len(results),
        )
        return results

    async def _lexical(self, user_id, query, options, start, end) -> List[SearchResult]:
        async with self.session_factory() as db:
            items = await self.repo.lexical_candidates(
                db, user_id, query, options.limit * 2, options.category, start, end
            )

        lowered = query.lower()
        results = []
        for item in items:
            score = LEXICAL_BASE_SCORE
            if lowered in (item.name or "").lower():
                score += NAME_HIT_BONUS
            if lowered in (item.extracted_text or "").lower():
                score += TEXT_HIT_BONUS
            results.append(SearchResult(item=item, score=min(score, 1.0), search_type="text"))
        return results

    async def _semantic(self, user_id, query_embedding, options, start, end) -> List[SearchResult]:
        async with self.session_factory() as db:
            candidates = await self.repo.semantic_candidates(
                db, user_id, self.candidate_cap, options.category, start, end
            )

        results = []
        for offset in range(0, len(candidates), self.chunk_size):
            for item in candidates[offset : offset + self.chunk_size]:
                score = cosine_similarity(query_embedding, item.embedding)
                if score >= options.min_score:
                    results.append(SearchResult(item=item, score=score, search_type="ai"))
            # let other requests run between chunks
            await asyncio.sleep(0)

        results.sort(key=lambda r: r.score, reverse=True)
        return results

    @staticmethod
    def fuse(lexical: List[SearchResult], semantic: List[SearchResult], limit: int) -> List[SearchResult]:
        """Merge by item id; a semantic hit replaces a lexical one only with a strictly higher score."""
        merged: Dict[str, SearchResult] = {}
        for result in lexical:
            merged.setdefault(result.id, result)
        for result in semantic:
            current = merged.get(result.id)
            if current is None or result.score > current.score:
                merged[result.id] = result

        ranked = sorted(merged.values(), key=lambda r: r.score, reverse=True)
        return ranked[: max(limit, 0)]

    async def search_by_content(self, user_id: str, query: str, limit: int = 20) -> List[SearchResult]:
        query = self._require(query, "Search query")
        async with self.session_factory() as db:
            items = await self.repo.content_matches(db, user_id, query, limit)
        return [SearchResult(item=item, score=CONTENT_SCORE, search_type="content") for item in items]

    async def search_by_name(self, user_id: str, query: str, limit: int = 20) -> List[SearchResult]:
        query = self._require(query, "Search query")
        async with self.session_factory() as db:
            items = await self.repo.name_matches(db, user_id, query, limit)
        return [SearchResult(item=item, score=FILENAME_SCORE, search_type="filename") for item in items]

    async def search_by_tags(self, user_id: str, tag: str, limit: int = 20) -> List[SearchResult]:
        tag = self._require(tag, "Tag")
        async with self.session_factory() as db:
            items = await self.repo.items_tagged(db, user_id, tag)
            folders = await self.repo.folders_tagged(db, user_id, tag)

        results = [SearchResult(item=item, score=TAG_SCORE, search_type="tags") for item in items]
        results.extend(
            SearchResult(item=folder, score=TAG_SCORE, search_type="tags", type="folder") for folder in folders
        )
        results.sort(key=lambda r: r.score, reverse=True)
        return results[: max(limit, 0)]
