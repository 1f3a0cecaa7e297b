from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from numbers import Real
from typing import Any, Awaitable, Callable, List, Optional

import httpx

from content_search.exception import ProviderError, ProviderPermanent, ProviderTransient
from content_search.logger import GLOBAL_LOGGER as log
from content_search.utils.thread_pool import run_sync

MODEL_LOADING_STATUS = 503
GONE_STATUSES = {404, 410}


@dataclass(frozen=True)
class RetryPolicy:
    """
    Per-provider call budget.

    - max_attempts: attempts per endpoint, transient responses only
    - wait_step_seconds: linear backoff step (attempt 1 waits 1x, attempt 2 waits 2x ...)
    - timeout_seconds: hard timeout of a single call
    """

    max_attempts: int = 3
    wait_step_seconds: float = 10.0
    timeout_seconds: float = 30.0

    def wait_for(self, attempt: int) -> float:
        return self.wait_step_seconds * attempt


def coerce_vector(data: Any) -> List[float]:
    """
    Normalize a provider payload into a flat float vector.

    Accepts a flat list, a nested list (first row is used) or a dict wrapping
    one of those under `embeddings` / `embedding` / `output`. Anything else
    is rejected as a permanent provider failure so the chain moves on.
    """
    if isinstance(data, dict):
        data = data.get("embeddings") or data.get("embedding") or data.get("output")

    if isinstance(data, list) and data and isinstance(data[0], list):
        data = data[0]

    if not isinstance(data, list) or not data:
        raise ProviderPermanent("Invalid embedding response: no vector found")

    if not all(isinstance(v, Real) and not isinstance(v, bool) for v in data):
        raise ProviderPermanent("Invalid embedding response: non-numeric values")

    return [float(v) for v in data]


class EmbeddingProvider(ABC):
    """One interchangeable entry of the embedding fallback chain."""

    name: str = "provider"

    def __init__(self, model: str, max_chars: int, policy: RetryPolicy):
        self.model = model
        self.max_chars = max_chars
        self.policy = policy

    def prepare(self, text: str) -> str:
        return text if len(text) <= self.max_chars else text[: self.max_chars]

    @abstractmethod
    async def embed(self, text: str) -> List[float]:
        """Return the embedding vector for already-prepared text."""

    def describe(self) -> str:
        return f"{self.name}:{self.model}"


class GoogleEmbeddingProvider(EmbeddingProvider):
    """Google Generative AI embeddings through LangChain."""

    name = "google"

    def __init__(self, embeddings, model: str, max_chars: int = 8000, policy: Optional[RetryPolicy] = None):
        super().__init__(model, max_chars, policy or RetryPolicy(max_attempts=1, wait_step_seconds=0))
        # GoogleGenerativeAIEmbeddings (or any object exposing embed_query)
        self.embeddings = embeddings

    async def embed(self, text: str) -> List[float]:
        try:
            vector = await asyncio.wait_for(
                run_sync(self.embeddings.embed_query, text),
                timeout=self.policy.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise ProviderError(f"Google embedding timed out after {self.policy.timeout_seconds}s", e) from e
        except Exception as e:
            raise ProviderError(f"Google embedding failed: {e}", e) from e

        return coerce_vector(vector)


def _inputs_payload(text: str) -> dict:
    return {"json": {"inputs": text}}


def _raw_text_payload(text: str) -> dict:
    return {"json": text}


class HuggingFaceEmbeddingProvider(EmbeddingProvider):
    """
    Hugging Face inference API feature extraction.

    Endpoint shapes are tried in order: `/models/{model}` with an `inputs`
    body, then `/pipeline/feature-extraction/{model}` with the raw text.
    A 503 (model loading) is retried on the same shape with linear backoff;
    a 404/410 switches to the next shape without retrying.
    """

    name = "huggingface"

    def __init__(
        self,
        model: str,
        base_url: str = "https://api-inference.huggingface.co",
        api_key: Optional[str] = None,
        max_chars: int = 512,
        policy: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        super().__init__(model, max_chars, policy or RetryPolicy())
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self._transport = transport
        self._sleep = sleep

        self.endpoint_shapes = [
            (f"{self.base_url}/models/{self.model}", _inputs_payload),
            (f"{self.base_url}/pipeline/feature-extraction/{self.model}", _raw_text_payload),
        ]

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _post_once(self, url: str, payload: dict) -> Any:
        try:
            async with httpx.AsyncClient(
                timeout=self.policy.timeout_seconds, transport=self._transport
            ) as client:
                response = await client.post(url, headers=self._headers(), **payload)
        except httpx.TimeoutException as e:
            raise ProviderError(f"Request to {url} timed out", e) from e
        except httpx.HTTPError as e:
            raise ProviderError(f"Request to {url} failed: {e}", e) from e

        status = response.status_code
        if status == MODEL_LOADING_STATUS:
            raise ProviderTransient(f"Model is loading ({status})", status_code=status)
        if status in GONE_STATUSES:
            raise ProviderPermanent(f"Endpoint returned {status}", status_code=status)
        if status >= 400:
            raise ProviderError(f"Endpoint returned {status}: {response.text[:200]}", status_code=status)

        try:
            return response.json()
        except ValueError as e:
            raise ProviderPermanent("Embedding response is not valid JSON", e) from e

    async def _post_with_retry(self, url: str, payload: dict) -> Any:
        for attempt in range(1, self.policy.max_attempts + 1):
            try:
                return await self._post_once(url, payload)
            except ProviderTransient:
                if attempt >= self.policy.max_attempts:
                    raise
                wait = self.policy.wait_for(attempt)
                log.warning(
                    "Model is loading, waiting %ss | model=%s | attempt=%d/%d",
                    wait,
                    self.model,
                    attempt,
                    self.policy.max_attempts,
                )
                await self._sleep(wait)

        raise ProviderTransient(f"Retries exhausted for {url}")

    async def embed(self, text: str) -> List[float]:
        last_error: Optional[ProviderError] = None

        for url, build_payload in self.endpoint_shapes:
            try:
                data = await self._post_with_retry(url, build_payload(text))
            except ProviderPermanent as e:
                if e.status_code in GONE_STATUSES:
                    log.warning(
                        "Endpoint gone, trying alternative endpoint | model=%s | status=%s",
                        self.model,
                        e.status_code,
                    )
                    last_error = e
                    continue
                raise

            return coerce_vector(data)

        raise ProviderPermanent(
            f"No usable endpoint for {self.model}: {last_error}",
            status_code=last_error.status_code if last_error else None,
        )
