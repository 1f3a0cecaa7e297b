# orchestrator/orchestrator_manager.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from content_search.logger import GLOBAL_LOGGER as log
from content_search.src.embedding.generator import EmbeddingGenerator
from content_search.src.extraction.dispatcher import ExtractionDispatcher
from content_search.src.processing.orchestrator import ProcessingOrchestrator
from content_search.src.processing.scheduler import ProcessingScheduler
from content_search.src.search.hybrid import HybridSearchEngine, QueryEmbeddingCache
from content_search.utils.config_loader import load_config
from content_search.utils.model_loader import ModelLoader
from db.database import AsyncSessionLocal


@dataclass
class Services:
    orchestrator: ProcessingOrchestrator
    search_engine: HybridSearchEngine
    scheduler: ProcessingScheduler
    embedder: EmbeddingGenerator


def build_services(config: Optional[dict] = None, session_factory: Optional[async_sessionmaker] = None) -> Services:
    """Wire providers, orchestrator and search engine from the YAML config."""
    config = config or load_config()
    session_factory = session_factory or AsyncSessionLocal

    loader = ModelLoader(config)
    embedder = loader.load_embedder()
    extraction_cfg = config.get("extraction", {})
    search_cfg = config.get("search", {})

    orchestrator = ProcessingOrchestrator(
        session_factory,
        ExtractionDispatcher(
            loader.load_media_extractor(),
            max_text_length=extraction_cfg.get("max_text_length", 50000),
        ),
        embedder,
        loader.load_summarizer(),
        config=config.get("processing", {}),
        storage_root=config.get("storage", {}).get("root"),
    )

    search_engine = HybridSearchEngine(
        session_factory,
        embedder,
        query_cache=QueryEmbeddingCache(
            embedder,
            ttl=search_cfg.get("query_cache_ttl", 3600),
            maxsize=search_cfg.get("query_cache_size", 1024),
            use_redis=search_cfg.get("redis_cache_enabled", True),
        ),
        candidate_cap=search_cfg.get("semantic_candidate_cap", 500),
        chunk_size=search_cfg.get("semantic_chunk_size", 50),
    )

    return Services(
        orchestrator=orchestrator,
        search_engine=search_engine,
        scheduler=ProcessingScheduler(orchestrator),
        embedder=embedder,
    )


class OrchestratorManager:
    """
    Holds the process-wide service graph.

    Built lazily on first use so importing the API does not require
    provider credentials or a reachable database.
    """

    def __init__(self):
        self._services: Optional[Services] = None

    def get_services(self) -> Services:
        if self._services is None:
            log.info("Building processing and search services")
            self._services = build_services()
        return self._services

    def set_services(self, services: Optional[Services]) -> None:
        self._services = services

    @property
    def is_built(self) -> bool:
        return self._services is not None


orchestrator_manager = OrchestratorManager()
