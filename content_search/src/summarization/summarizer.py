from __future__ import annotations

from typing import Any, Optional

import httpx

from content_search.exception import SummarizationFailure
from content_search.logger import GLOBAL_LOGGER as log


def naive_summary(text: str, max_length: int) -> str:
    """First max_length // 5 words, with "..." when that drops anything."""
    words = text.split(" ")
    head = " ".join(words[: max(max_length // 5, 1)])
    return head + "..." if len(head) < len(text) else head


def _summary_from_response(data: Any) -> Optional[str]:
    if isinstance(data, list) and data:
        data = data[0]

    if isinstance(data, dict):
        data = data.get("summary_text") or data.get("generated_text")

    if isinstance(data, str) and data.strip():
        return data.strip()
    return None


class Summarizer:
    """
    Abstractive summaries from a Hugging Face summarization model.

    summarize() never raises: any provider failure or unrecognized response
    degrades to a naive word-prefix summary.
    """

    def __init__(
        self,
        model: str = "facebook/bart-large-cnn",
        base_url: str = "https://api-inference.huggingface.co",
        api_key: Optional[str] = None,
        timeout: float = 60,
        input_chars: int = 1024,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.model = model
        self.url = f"{base_url.rstrip('/')}/models/{model}"
        self.api_key = api_key
        self.timeout = timeout
        self.input_chars = input_chars
        self._transport = transport

    async def _request_summary(self, text: str, max_length: int) -> str:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        payload = {
            "inputs": text[: self.input_chars],
            "parameters": {"max_length": max_length, "min_length": max_length // 2},
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.url, headers=headers, json=payload)
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise SummarizationFailure(f"Summarization request failed: {e}", e) from e

        summary = _summary_from_response(data)
        if summary is None:
            raise SummarizationFailure(f"Unrecognized summarization response: {str(data)[:200]}")
        return summary

    async def summarize(self, text: Optional[str], max_length: int = 200) -> Optional[str]:
        if not text or not text.strip():
            return None

        if len(text) <= max_length:
            return text

        try:
            summary = await self._request_summary(text, max_length)
        except SummarizationFailure as e:
            log.warning("Summarization failed, using fallback | model=%s | error=%s", self.model, str(e))
            return naive_summary(text, max_length)

        log.info("Summary generated | model=%s | chars=%d", self.model, len(summary))
        return summary
