from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from bs4 import BeautifulSoup
from langchain_community.document_loaders import Docx2txtLoader, PyPDFLoader, TextLoader
from langchain_core.documents import Document

from content_search.exception import ExtractionError
from content_search.logger import GLOBAL_LOGGER as log
from content_search.src.extraction.table import flatten_csv, flatten_spreadsheet
from content_search.utils.thread_pool import run_sync

PDF_MIME = "application/pdf"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
SPREADSHEET_MIMES = {
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-excel",
}
HTML_MIMES = {"text/html", "application/xhtml+xml"}

SPREADSHEET_EXTENSIONS = {".xlsx", ".xls"}
HTML_EXTENSIONS = {".html", ".htm"}
CODE_EXTENSIONS = {
    ".js", ".jsx", ".ts", ".tsx", ".py", ".java", ".cpp", ".c", ".html", ".css",
    ".json", ".xml", ".yaml", ".yml", ".md", ".txt", ".sql", ".sh", ".bash",
}

# pypdf messages for scanned / damaged files; these yield no text instead of an error
_UNREADABLE_PDF_MARKERS = ("invalid pdf structure", "eof marker not found")


def _join_pages(docs: List[Document]) -> str:
    return "\n".join(d.page_content for d in docs if d.page_content)


async def _extract_pdf(path: Path) -> Optional[str]:
    loader = PyPDFLoader(str(path))
    try:
        docs = await run_sync(loader.load)
    except Exception as e:
        message = str(e).lower()
        if any(marker in message for marker in _UNREADABLE_PDF_MARKERS):
            log.warning("PDF has no readable structure, skipping | file=%s | error=%s", path, str(e))
            return None
        raise ExtractionError(f"Failed to parse PDF: {e}", e) from e

    text = _join_pages(docs).strip()
    if not text:
        log.info("PDF contains no extractable text | file=%s", path)
        return None

    log.info("PDF text extracted | file=%s | pages=%d | chars=%d", path, len(docs), len(text))
    return text


async def _extract_docx(path: Path) -> Optional[str]:
    loader = Docx2txtLoader(str(path))
    try:
        docs = await run_sync(loader.load)
    except Exception as e:
        raise ExtractionError(f"Failed to parse DOCX: {e}", e) from e
    return _join_pages(docs) or None


async def _extract_spreadsheet(path: Path, extension: str) -> Optional[str]:
    func = flatten_csv if extension == ".csv" else flatten_spreadsheet
    try:
        text = await run_sync(func, str(path))
    except Exception as e:
        raise ExtractionError(f"Failed to read spreadsheet: {e}", e) from e
    return text or None


async def _extract_html(path: Path) -> Optional[str]:
    def _read_html_text():
        with open(path, "r", encoding="utf-8") as f:
            soup = BeautifulSoup(f, "html.parser")
            return soup.get_text(separator="\n")

    try:
        text = await run_sync(_read_html_text)
    except Exception as e:
        raise ExtractionError(f"Failed to read HTML: {e}", e) from e
    return text.strip() or None


async def _extract_plain_text(path: Path) -> Optional[str]:
    loader = TextLoader(str(path), encoding="utf-8")
    try:
        docs = await run_sync(loader.load)
    except Exception as e:
        raise ExtractionError(f"Failed to read text file: {e}", e) from e
    return _join_pages(docs) or None


async def _read_code(path: Path) -> Optional[str]:
    def _read():
        with open(path, "r", encoding="utf-8") as f:
            return f.read()

    try:
        return await run_sync(_read)
    except (OSError, UnicodeDecodeError) as e:
        log.warning("Code file could not be read | file=%s | error=%s", path, str(e))
        return None


async def extract_text_from_file(path: Path, mime_type: str, filename: str) -> Optional[str]:
    """
    Pull plain text out of a stored document or code file.

    Format is picked from the MIME type first and the uploaded file
    extension second. Returns None when the format carries no extractable
    text; raises ExtractionError when the file exists but cannot be parsed.
    """
    path = Path(path)
    if not path.exists():
        raise ExtractionError(f"File not found at path: {path}")

    mime = (mime_type or "").lower()
    extension = Path(filename or path.name).suffix.lower()

    if mime == PDF_MIME or extension == ".pdf":
        return await _extract_pdf(path)

    if mime == DOCX_MIME or extension == ".docx":
        return await _extract_docx(path)

    if mime in SPREADSHEET_MIMES or extension in SPREADSHEET_EXTENSIONS or extension == ".csv":
        return await _extract_spreadsheet(path, extension)

    if mime in HTML_MIMES or extension in HTML_EXTENSIONS:
        return await _extract_html(path)

    if mime.startswith("text/") or extension == ".txt":
        return await _extract_plain_text(path)

    if extension in CODE_EXTENSIONS:
        return await _read_code(path)

    log.info("No text extractor for file type | file=%s | mime=%s", filename, mime_type)
    return None
