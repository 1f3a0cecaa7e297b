from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from content_search.logger import GLOBAL_LOGGER as log
from content_search.src.extraction.document_ops import extract_text_from_file
from content_search.src.extraction.media import (
    MediaExtractor,
    combine_image_data_for_search,
    combine_video_data_for_search,
)
from content_search.src.extraction.text_cleaning import MAX_TEXT_LENGTH, clean_extracted_text

MEDIA_FIELDS = (
    "image_description",
    "image_objects",
    "image_scene",
    "image_colors",
    "image_mood",
    "image_text",
    "audio_transcript",
    "video_transcript",
    "video_scenes",
    "video_description",
)


def empty_media_fields() -> Dict[str, Any]:
    return {name: None for name in MEDIA_FIELDS}


@dataclass
class ExtractionOutcome:
    text: Optional[str] = None
    media: Dict[str, Any] = field(default_factory=dict)


class ExtractionDispatcher:
    """Routes a stored file to the extractor matching its category."""

    def __init__(self, media_extractor: Optional[MediaExtractor] = None, max_text_length: int = MAX_TEXT_LENGTH):
        self.media = media_extractor or MediaExtractor()
        self.max_text_length = max_text_length

    async def extract(self, path: Path, mime_type: str, filename: str, category: str) -> ExtractionOutcome:
        category = getattr(category, "value", category) or "Other"
        path = Path(path)
        log.info("Extracting | file=%s | category=%s | mime=%s", filename, category, mime_type)

        if category == "Image":
            outcome = await self._extract_image(path, mime_type)
        elif category == "Audio":
            transcript = await self.media.extract_audio_transcript(path)
            outcome = ExtractionOutcome(text=transcript, media={"audio_transcript": transcript})
        elif category == "Video":
            data = await self.media.extract_video_data(path)
            outcome = ExtractionOutcome(
                text=combine_video_data_for_search(data) or None,
                media={
                    "video_transcript": data.get("transcript"),
                    "video_scenes": data.get("scenes") or [],
                    "video_description": data.get("description"),
                },
            )
        else:
            outcome = ExtractionOutcome(text=await extract_text_from_file(path, mime_type, filename))

        if outcome.text:
            outcome.text = clean_extracted_text(outcome.text, self.max_text_length) or None

        return outcome

    async def _extract_image(self, path: Path, mime_type: str) -> ExtractionOutcome:
        data = await self.media.extract_image_data(path, mime_type)
        return ExtractionOutcome(
            text=combine_image_data_for_search(data) or None,
            media={
                "image_description": data.get("description"),
                "image_objects": data.get("objects") or [],
                "image_scene": data.get("scene"),
                "image_colors": data.get("colors") or [],
                "image_mood": data.get("mood"),
                "image_text": data.get("text"),
            },
        )
