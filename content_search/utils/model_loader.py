import os
from typing import Dict, List, Optional

from dotenv import load_dotenv
from groq import AsyncGroq
from langchain_google_genai import ChatGoogleGenerativeAI, GoogleGenerativeAIEmbeddings

from content_search.logger import GLOBAL_LOGGER as log
from content_search.src.embedding.generator import EmbeddingGenerator
from content_search.src.embedding.providers import (
    EmbeddingProvider,
    GoogleEmbeddingProvider,
    HuggingFaceEmbeddingProvider,
    RetryPolicy,
)
from content_search.src.extraction.media import (
    DEFAULT_VISION_PROMPT,
    GeminiVisionProvider,
    GroqTranscriber,
    GroqVisionProvider,
    MediaExtractor,
    VisionProvider,
)
from content_search.src.summarization.summarizer import Summarizer
from content_search.utils.config_loader import load_config


class ApiKeyManager:
    # Every key is optional: a missing key only removes that provider from its chain
    OPTIONAL = ["GROQ_API_KEY", "GOOGLE_API_KEY", "HF_API_KEY"]

    def __init__(self):
        load_dotenv()
        self.keys: Dict[str, str] = {}

        for k in self.OPTIONAL:
            if val := os.getenv(k):
                self.keys[k] = val
                log.info("Loaded %s from env", k)
            else:
                log.warning("API key not set, dependent providers disabled | key=%s", k)

    def get(self, key: str) -> Optional[str]:
        return self.keys.get(key)


class ModelLoader:
    """
    Responsible for:
    - Building the embedding provider chain
    - Loading the vision providers and the transcriber
    - Loading the summarizer
    """

    def __init__(self, config: Optional[dict] = None):
        self.api_key_mgr = ApiKeyManager()
        self.config = config or load_config()
        log.info("YAML config loaded | sections=%s", list(self.config.keys()))

        self._groq_client = None

    def _groq(self) -> Optional[AsyncGroq]:
        api_key = self.api_key_mgr.get("GROQ_API_KEY")
        if not api_key:
            return None
        if self._groq_client is None:
            self._groq_client = AsyncGroq(api_key=api_key)
        return self._groq_client

    @property
    def huggingface_base_url(self) -> str:
        return self.config["embedding"].get("huggingface_base_url", "https://api-inference.huggingface.co")

    def load_embedding_providers(self) -> List[EmbeddingProvider]:
        providers: List[EmbeddingProvider] = []

        for entry in self.config["embedding"]["providers"]:
            policy = RetryPolicy(
                max_attempts=entry.get("max_attempts", 1),
                wait_step_seconds=entry.get("wait_step_seconds", 0),
                timeout_seconds=entry.get("timeout", 30),
            )
            provider = entry["provider"]
            model = entry["model_name"]

            if provider == "google":
                api_key = self.api_key_mgr.get("GOOGLE_API_KEY")
                if not api_key:
                    log.info("Skipping Google embeddings (no key) | model=%s", model)
                    continue
                embeddings = GoogleGenerativeAIEmbeddings(model=model, google_api_key=api_key)
                providers.append(
                    GoogleEmbeddingProvider(embeddings, model, max_chars=entry.get("max_chars", 8000), policy=policy)
                )
            elif provider == "huggingface":
                providers.append(
                    HuggingFaceEmbeddingProvider(
                        model,
                        base_url=self.huggingface_base_url,
                        api_key=self.api_key_mgr.get("HF_API_KEY"),
                        max_chars=entry.get("max_chars", 512),
                        policy=policy,
                    )
                )
            else:
                log.error("Unknown embedding provider in config | provider=%s", provider)
                raise ValueError(f"Unknown embedding provider '{provider}'")

            log.info("Embedding provider registered | provider=%s | model=%s", provider, model)

        return providers

    def load_embedder(self) -> EmbeddingGenerator:
        return EmbeddingGenerator(self.load_embedding_providers())

    def _load_vision_provider(self, cfg: dict) -> Optional[VisionProvider]:
        provider = cfg["provider"]
        model = cfg["model_name"]

        if provider == "groq":
            client = self._groq()
            if client is None:
                return None
            return GroqVisionProvider(
                client,
                model,
                max_tokens=cfg.get("max_tokens", 500),
                temperature=cfg.get("temperature", 0.3),
                top_p=cfg.get("top_p", 0.9),
                timeout=cfg.get("timeout", 30),
            )

        if provider == "google":
            api_key = self.api_key_mgr.get("GOOGLE_API_KEY")
            if not api_key:
                return None
            llm = ChatGoogleGenerativeAI(
                model=model,
                google_api_key=api_key,
                temperature=cfg.get("temperature", 0.3),
                max_output_tokens=cfg.get("max_tokens", 500),
            )
            return GeminiVisionProvider(llm, timeout=cfg.get("timeout", 30))

        log.error("Unknown vision provider in config | provider=%s", provider)
        raise ValueError(f"Unknown vision provider '{provider}'")

    def load_media_extractor(self) -> MediaExtractor:
        extraction_cfg = self.config.get("extraction", {})
        vision_cfg = extraction_cfg.get("vision", {})

        vision_providers = []
        for role in ("primary", "secondary"):
            if role in vision_cfg:
                provider = self._load_vision_provider(vision_cfg[role])
                if provider is not None:
                    vision_providers.append(provider)
                    log.info("Vision provider registered | role=%s | provider=%s", role, provider.name)

        transcriber = None
        transcription_cfg = extraction_cfg.get("transcription")
        client = self._groq()
        if transcription_cfg and client is not None:
            transcriber = GroqTranscriber(
                client,
                model=transcription_cfg.get("model_name", "whisper-large-v3"),
                timeout=transcription_cfg.get("timeout", 120),
            )

        return MediaExtractor(
            vision_providers,
            transcriber,
            vision_prompt=vision_cfg.get("prompt", DEFAULT_VISION_PROMPT),
        )

    def load_summarizer(self) -> Summarizer:
        cfg = self.config.get("summarization", {})
        return Summarizer(
            model=cfg.get("model_name", "facebook/bart-large-cnn"),
            base_url=self.huggingface_base_url,
            api_key=self.api_key_mgr.get("HF_API_KEY"),
            timeout=cfg.get("timeout", 60),
            input_chars=cfg.get("input_chars", 1024),
        )
