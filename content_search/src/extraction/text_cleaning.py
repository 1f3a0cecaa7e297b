import re

MAX_TEXT_LENGTH = 50000
TRUNCATION_MARKER = "..."

_WHITESPACE = re.compile(r"\s+")
# Keep word chars, whitespace, Arabic blocks and basic punctuation
_DISALLOWED = re.compile(
    r"[^\w\s\u0600-\u06FF\u0750-\u077F\u08A0-\u08FF\uFB50-\uFDFF\uFE70-\uFEFF.,;:!?()\[\]{}'\"\-]"
)


def clean_extracted_text(text: str, max_length: int = MAX_TEXT_LENGTH) -> str:
    """
    Normalize extracted text before it is stored or embedded.

    Whitespace runs collapse to one space, unsupported symbols become spaces
    and the result is capped at `max_length` characters plus a "..." marker.
    """
    if not text:
        return ""

    cleaned = _WHITESPACE.sub(" ", text)
    cleaned = _DISALLOWED.sub(" ", cleaned)
    cleaned = _WHITESPACE.sub(" ", cleaned).strip()

    if len(cleaned) > max_length:
        cleaned = cleaned[:max_length] + TRUNCATION_MARKER

    return cleaned
