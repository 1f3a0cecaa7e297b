from __future__ import annotations

import asyncio
import base64
import json
import mimetypes
import os
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from langchain_core.messages import HumanMessage

from content_search.logger import GLOBAL_LOGGER as log
from content_search.utils.thread_pool import run_sync

IMAGE_PLACEHOLDER = "Image file - no description available"
VIDEO_PLACEHOLDER = "Video file - processing not available yet"

DEFAULT_VISION_PROMPT = (
    "Describe this image in detail. Include: main objects, scene description, "
    "colors, mood, and any text visible in the image. Respond in JSON format "
    "with keys: description, objects (array), scene, colors (array), mood, text."
)

COMMON_OBJECTS = [
    "person", "people", "man", "woman", "child", "car", "tree", "building", "house",
    "dog", "cat", "bird", "table", "chair", "computer", "phone", "book", "flower",
    "sky", "water", "road", "mountain", "beach", "food", "cup",
]
SCENE_WORDS = ["beach", "mountain", "city", "indoor", "outdoor"]
COLOR_WORDS = [
    "red", "blue", "green", "yellow", "orange", "purple", "pink", "black",
    "white", "gray", "grey", "brown",
]

MAX_GROQ_CONCURRENCY = int(os.getenv("MAX_GROQ_CONCURRENCY", 12))

# Bounds concurrent Groq calls (vision + transcription)
semaphore = asyncio.Semaphore(MAX_GROQ_CONCURRENCY)

_JSON_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def empty_image_data(description: Optional[str] = None) -> Dict[str, Any]:
    return {
        "description": description,
        "objects": [],
        "scene": None,
        "colors": [],
        "mood": None,
        "text": None,
    }


def _as_list(value) -> List[str]:
    if isinstance(value, list):
        return [str(v) for v in value if v not in (None, "")]
    if isinstance(value, str) and value.strip():
        return [v.strip() for v in value.split(",") if v.strip()]
    return []


def _as_text(value) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_structured_description(content: str) -> Dict[str, Any]:
    """
    Turn a vision answer into image fields.

    A JSON object (optionally wrapped in a markdown fence) is mapped key by
    key; any other answer becomes the description with empty fields.
    """
    stripped = _JSON_FENCE.sub("", (content or "").strip())
    try:
        parsed = json.loads(stripped)
    except ValueError:
        return empty_image_data(_as_text(content))

    if not isinstance(parsed, dict):
        return empty_image_data(_as_text(content))

    return {
        "description": _as_text(parsed.get("description")) or _as_text(content),
        "objects": _as_list(parsed.get("objects")),
        "scene": _as_text(parsed.get("scene")),
        "colors": _as_list(parsed.get("colors")),
        "mood": _as_text(parsed.get("mood")),
        "text": _as_text(parsed.get("text")),
    }


def derive_structure_from_text(content: str) -> Dict[str, Any]:
    """Keyword-derived objects, scene and colors from a free-text description."""
    lowered = (content or "").lower()
    words = set(re.findall(r"[a-z]+", lowered))

    scene = next((s for s in SCENE_WORDS if s in words), None)
    return {
        "description": _as_text(content),
        "objects": [o for o in COMMON_OBJECTS if o in words][:10],
        "scene": scene,
        "colors": [c for c in COLOR_WORDS if c in words],
        "mood": None,
        "text": None,
    }


def combine_image_data_for_search(data: Dict[str, Any]) -> str:
    parts: List[str] = []
    if data.get("description"):
        parts.append(data["description"])
    if data.get("objects"):
        parts.append(f"Objects: {', '.join(data['objects'])}")
    if data.get("scene"):
        parts.append(f"Scene: {data['scene']}")
    if data.get("colors"):
        parts.append(f"Colors: {', '.join(data['colors'])}")
    if data.get("mood"):
        parts.append(f"Mood: {data['mood']}")
    if data.get("text"):
        parts.append(f"Text in image: {data['text']}")
    return " ".join(parts)


def combine_video_data_for_search(data: Dict[str, Any]) -> str:
    parts: List[str] = []
    if data.get("description"):
        parts.append(data["description"])
    if data.get("transcript"):
        parts.append(f"Transcript: {data['transcript']}")
    if data.get("scenes"):
        parts.append(f"Scenes: {', '.join(data['scenes'])}")
    return " ".join(parts)


async def _read_file_b64(path: Path) -> str:
    def _read():
        with open(path, "rb") as f:
            return base64.b64encode(f.read()).decode("utf-8")

    return await run_sync(_read)


class VisionProvider(ABC):
    name: str = "vision"

    @abstractmethod
    async def describe(self, b64: str, mime_type: str, prompt: str) -> Dict[str, Any]:
        """Return image fields for a base64-encoded image."""


class GroqVisionProvider(VisionProvider):
    """Llama vision model served by Groq; answers are expected as JSON."""

    name = "groq"

    def __init__(self, client, model: str, max_tokens: int = 500, temperature: float = 0.3,
                 top_p: float = 0.9, timeout: float = 30):
        self.client = client
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.top_p = top_p
        self.timeout = timeout

    async def describe(self, b64: str, mime_type: str, prompt: str) -> Dict[str, Any]:
        message = [
            {"type": "text", "text": prompt},
            {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{b64}"}},
        ]

        async with semaphore:
            completion = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.model,
                    messages=[{"role": "user", "content": message}],
                    max_tokens=self.max_tokens,
                    top_p=self.top_p,
                    temperature=self.temperature,
                ),
                timeout=self.timeout,
            )

        content = completion.choices[0].message.content
        if not isinstance(content, str):
            content = str(content)
        return parse_structured_description(content)


class GeminiVisionProvider(VisionProvider):
    """Gemini through LangChain; structure is keyword-derived from the answer."""

    name = "google"

    def __init__(self, llm, timeout: float = 30):
        # ChatGoogleGenerativeAI (or any chat model exposing ainvoke)
        self.llm = llm
        self.timeout = timeout

    async def describe(self, b64: str, mime_type: str, prompt: str) -> Dict[str, Any]:
        message = HumanMessage(
            content=[
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": f"data:{mime_type};base64,{b64}"},
            ]
        )
        response = await asyncio.wait_for(self.llm.ainvoke([message]), timeout=self.timeout)
        content = response.content if isinstance(response.content, str) else str(response.content)

        parsed = parse_structured_description(content)
        if parsed["objects"] or parsed["scene"] or parsed["colors"]:
            return parsed
        return derive_structure_from_text(content)


class GroqTranscriber:
    """Whisper speech-to-text served by Groq."""

    def __init__(self, client, model: str = "whisper-large-v3", timeout: float = 120):
        self.client = client
        self.model = model
        self.timeout = timeout

    async def transcribe(self, path: Path) -> Optional[str]:
        def _read():
            with open(path, "rb") as f:
                return f.read()

        audio_bytes = await run_sync(_read)
        async with semaphore:
            result = await asyncio.wait_for(
                self.client.audio.transcriptions.create(
                    file=(path.name, audio_bytes),
                    model=self.model,
                ),
                timeout=self.timeout,
            )
        text = getattr(result, "text", None)
        return text.strip() if isinstance(text, str) and text.strip() else None


class MediaExtractor:
    """
    Best-effort extraction for images, audio and video.

    None of these methods raise: a failed provider falls through to the next
    one, and the last resort is a placeholder (images, video) or None (audio).
    """

    def __init__(
        self,
        vision_providers: Sequence[VisionProvider] = (),
        transcriber: Optional[GroqTranscriber] = None,
        vision_prompt: str = DEFAULT_VISION_PROMPT,
    ):
        self.vision_providers = list(vision_providers)
        self.transcriber = transcriber
        self.vision_prompt = vision_prompt

    async def extract_image_data(self, path: Path, mime_type: Optional[str] = None) -> Dict[str, Any]:
        path = Path(path)
        if not path.exists():
            log.warning("Image file not found | path=%s", path)
            return empty_image_data()

        if not self.vision_providers:
            log.info("No vision provider configured | path=%s", path)
            return empty_image_data(IMAGE_PLACEHOLDER)

        mime_type = mime_type or mimetypes.guess_type(path.name)[0] or "image/jpeg"
        try:
            b64 = await _read_file_b64(path)
        except OSError as e:
            log.error("Image read failed | path=%s | error=%s", path, str(e))
            return empty_image_data(IMAGE_PLACEHOLDER)

        for provider in self.vision_providers:
            try:
                data = await provider.describe(b64, mime_type, self.vision_prompt)
            except Exception as e:
                log.warning("Vision provider failed | provider=%s | error=%s", provider.name, str(e))
                continue
            if data.get("description"):
                log.info("Image described | provider=%s | path=%s", provider.name, path)
                return data

        return empty_image_data(IMAGE_PLACEHOLDER)

    async def extract_audio_transcript(self, path: Path) -> Optional[str]:
        path = Path(path)
        if self.transcriber is None:
            log.info("No transcription provider configured | path=%s", path)
            return None
        if not path.exists():
            log.warning("Audio file not found | path=%s", path)
            return None

        try:
            transcript = await self.transcriber.transcribe(path)
        except Exception as e:
            log.error("Audio transcription failed | path=%s | error=%s", path, str(e))
            return None

        log.info("Audio transcribed | path=%s | chars=%d", path, len(transcript or ""))
        return transcript

    async def extract_video_data(self, path: Path) -> Dict[str, Any]:
        # TODO: sample frames through the vision providers once frame extraction lands
        return {"transcript": None, "scenes": [], "description": VIDEO_PLACEHOLDER}
