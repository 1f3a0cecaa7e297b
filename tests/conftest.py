import asyncio
from typing import Dict, List, Sequence

import httpx
import pytest
import pytest_asyncio

from content_search.exception import ProviderError
from content_search.src.embedding.generator import EmbeddingGenerator
from content_search.src.embedding.providers import EmbeddingProvider, RetryPolicy
from content_search.src.extraction.dispatcher import ExtractionDispatcher
from content_search.src.processing.orchestrator import ProcessingOrchestrator
from content_search.src.search.hybrid import HybridSearchEngine, QueryEmbeddingCache
from content_search.src.summarization.summarizer import Summarizer
from db.database import build_engine, build_session_factory, init_db
from db.models import ContentItem, Folder

USER_ID = "user-1"
OTHER_USER_ID = "user-2"


class KeywordEmbeddingProvider(EmbeddingProvider):
    """Deterministic provider: the first keyword found in the text picks the vector."""

    name = "keyword"

    def __init__(self, mapping: Dict[str, Sequence[float]], default: Sequence[float] = (0.0, 0.0, 1.0), delay: float = 0.0):
        super().__init__("keyword-model", 8000, RetryPolicy(max_attempts=1, wait_step_seconds=0, timeout_seconds=5))
        self.mapping = mapping
        self.default = default
        self.delay = delay
        self.fail = False
        self.calls: List[str] = []

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise ProviderError("keyword provider unavailable")

        lowered = text.lower()
        for keyword, vector in self.mapping.items():
            if keyword in lowered:
                return list(vector)
        return list(self.default)


KEYWORD_VECTORS = {
    "beach": (1.0, 0.0, 0.0),
    "invoice": (0.0, 1.0, 0.0),
    "notes": (0.0, 0.2, 1.0),
}


def summary_transport(summary: str = "Short summary.") -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[{"summary_text": summary}])

    return httpx.MockTransport(handler)


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'content.db'}")
    await init_db(engine)
    yield build_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def provider():
    return KeywordEmbeddingProvider(KEYWORD_VECTORS)


@pytest.fixture
def embedder(provider):
    return EmbeddingGenerator([provider])


@pytest.fixture
def summarizer():
    return Summarizer(transport=summary_transport())


@pytest.fixture
def storage(tmp_path):
    root = tmp_path / "storage"
    root.mkdir()
    return root


@pytest.fixture
def orchestrator(session_factory, embedder, summarizer, storage):
    async def no_wait(_seconds):
        return None

    return ProcessingOrchestrator(
        session_factory,
        ExtractionDispatcher(),
        embedder,
        summarizer,
        config={"claim_wait_interval": 0.01, "claim_wait_timeout": 5},
        storage_root=str(storage),
        sleep=no_wait,
    )


@pytest.fixture
def search_engine(session_factory, embedder):
    return HybridSearchEngine(
        session_factory,
        embedder,
        query_cache=QueryEmbeddingCache(embedder, use_redis=False),
        chunk_size=2,
    )


@pytest.fixture
def add_item(session_factory):
    async def _add(**fields) -> ContentItem:
        fields.setdefault("user_id", USER_ID)
        fields.setdefault("path", fields.get("name", "file.bin"))
        fields.setdefault("mime_type", "text/plain")
        fields.setdefault("category", "Document")
        fields.setdefault("tags", [])
        item = ContentItem(**fields)
        async with session_factory() as db:
            db.add(item)
            await db.commit()
        return item

    return _add


@pytest.fixture
def add_folder(session_factory):
    async def _add(**fields) -> Folder:
        fields.setdefault("user_id", USER_ID)
        folder = Folder(**fields)
        async with session_factory() as db:
            db.add(folder)
            await db.commit()
        return folder

    return _add
