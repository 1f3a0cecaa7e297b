from typing import Iterable, Optional

SEARCH_TEXT_EXTRACT_CHARS = 2000


def build_search_text(
    name: Optional[str],
    description: Optional[str],
    category: Optional[str],
    tags: Optional[Iterable[str]],
    extracted_text: Optional[str] = None,
    extract_chars: int = SEARCH_TEXT_EXTRACT_CHARS,
) -> str:
    """Text the item is embedded from: metadata, then a bounded slice of its content.

    For images, audio and video the extracted text is the combined media
    description or transcript.
    """
    parts = [name, description, getattr(category, "value", category)]
    if extracted_text:
        parts.append(extracted_text[:extract_chars])
    parts.extend(tags or [])
    return " ".join(str(p).strip() for p in parts if p and str(p).strip())
