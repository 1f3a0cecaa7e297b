from __future__ import annotations

from typing import Any, Dict, List, Sequence

from content_search.exception import EmbeddingError, ProviderExhausted
from content_search.logger import GLOBAL_LOGGER as log
from content_search.src.embedding.providers import EmbeddingProvider


class EmbeddingGenerator:
    """
    Walks an ordered chain of embedding providers.

    Each provider applies its own character budget, timeout and retry policy;
    the first one returning a valid vector wins. ProviderExhausted is raised
    only after every provider failed.
    """

    def __init__(self, providers: Sequence[EmbeddingProvider]):
        self.providers = list(providers)

    async def generate(self, text: str) -> List[float]:
        if not text or not text.strip():
            raise EmbeddingError("Text is required for embedding")

        if not self.providers:
            raise ProviderExhausted("No embedding provider configured")

        failures: List[str] = []

        for provider in self.providers:
            prepared = provider.prepare(text)
            log.info(
                "Calling embedding provider | provider=%s | chars=%d",
                provider.describe(),
                len(prepared),
            )
            try:
                vector = await provider.embed(prepared)
            except Exception as e:
                log.warning(
                    "Embedding provider failed, trying next | provider=%s | error=%s",
                    provider.describe(),
                    str(e),
                )
                failures.append(f"{provider.describe()}: {e}")
                continue

            log.info(
                "Embedding generated | provider=%s | dimensions=%d",
                provider.describe(),
                len(vector),
            )
            return vector

        log.error("All embedding providers failed | attempts=%d", len(failures))
        raise ProviderExhausted("All embedding providers failed. " + " | ".join(failures))

    async def check_connection(self) -> Dict[str, Any]:
        """Embed a probe string and report which provider answered."""
        if not self.providers:
            return {
                "connected": False,
                "provider": None,
                "model": None,
                "dimensions": 0,
                "error": "No embedding provider configured",
            }

        for provider in self.providers:
            try:
                vector = await provider.embed(provider.prepare("test"))
            except Exception as e:
                log.warning("Provider status check failed | provider=%s | error=%s", provider.describe(), str(e))
                continue
            return {
                "connected": True,
                "provider": provider.name,
                "model": provider.model,
                "dimensions": len(vector),
                "error": None,
            }

        return {
            "connected": False,
            "provider": None,
            "model": None,
            "dimensions": 0,
            "error": "All embedding providers failed",
        }
