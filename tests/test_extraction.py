import zipfile
from types import SimpleNamespace

import pandas as pd
import pytest
from pypdf import PdfWriter
from pypdf.errors import PdfReadError

from content_search.exception import ExtractionError
from content_search.src.extraction import document_ops
from content_search.src.extraction.dispatcher import ExtractionDispatcher
from content_search.src.extraction.document_ops import extract_text_from_file
from content_search.src.extraction.media import (
    IMAGE_PLACEHOLDER,
    VIDEO_PLACEHOLDER,
    GeminiVisionProvider,
    GroqTranscriber,
    GroqVisionProvider,
    MediaExtractor,
    VisionProvider,
    combine_image_data_for_search,
    derive_structure_from_text,
    parse_structured_description,
)


XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
DOCX_BODY = (
    '<w:document xmlns:w="http://schemas.openxmlformats.org/wordprocessingml/2006/main">'
    "<w:body>"
    "<w:p><w:r><w:t>Project kickoff</w:t></w:r></w:p>"
    "<w:p><w:r><w:t>Budget approved</w:t></w:r></w:p>"
    "</w:body>"
    "</w:document>"
)


def failing_pdf_loader(error):
    class _Loader:
        def __init__(self, path):
            self.path = path

        def load(self):
            raise error

    return _Loader


def write(tmp_path, name, content, mode="w"):
    path = tmp_path / name
    if mode == "wb":
        path.write_bytes(content)
    else:
        path.write_text(content, encoding="utf-8")
    return path


class FakeGroqClient:
    def __init__(self, content=None, transcript=None, error=None):
        self.requests = []
        self.content = content
        self.transcript = transcript
        self.error = error
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._complete))
        self.audio = SimpleNamespace(transcriptions=SimpleNamespace(create=self._transcribe))

    async def _complete(self, **kwargs):
        self.requests.append(kwargs)
        if self.error:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])

    async def _transcribe(self, **kwargs):
        self.requests.append(kwargs)
        if self.error:
            raise self.error
        return SimpleNamespace(text=self.transcript)


class FakeChatModel:
    def __init__(self, content):
        self.content = content

    async def ainvoke(self, messages):
        return SimpleNamespace(content=self.content)


class FailingVision(VisionProvider):
    name = "failing"

    async def describe(self, b64, mime_type, prompt):
        raise RuntimeError("vision down")


class TestDocumentOps:
    @pytest.mark.asyncio
    async def test_plain_text(self, tmp_path):
        path = write(tmp_path, "notes.txt", "Meeting notes\nline two")
        assert await extract_text_from_file(path, "text/plain", "notes.txt") == "Meeting notes\nline two"

    @pytest.mark.asyncio
    async def test_code_file_read_verbatim(self, tmp_path):
        source = "def main():\n    return 42\n"
        path = write(tmp_path, "stored-blob", source)
        assert await extract_text_from_file(path, "application/octet-stream", "script.py") == source

    @pytest.mark.asyncio
    async def test_html_text(self, tmp_path):
        path = write(tmp_path, "page.html", "<html><body><h1>Title</h1><p>Hello world</p></body></html>")
        text = await extract_text_from_file(path, "text/html", "page.html")
        assert "Title" in text
        assert "Hello world" in text
        assert "<p>" not in text

    @pytest.mark.asyncio
    async def test_csv_flattened_by_rows(self, tmp_path):
        path = write(tmp_path, "data.csv", "name,amount\nalpha,10\nbeta,\n")
        assert await extract_text_from_file(path, "text/csv", "data.csv") == "name amount\nalpha 10\nbeta"

    @pytest.mark.asyncio
    async def test_spreadsheet_flattened_one_row_per_line(self, tmp_path):
        path = tmp_path / "report.xlsx"
        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            pd.DataFrame([["name", "amount"], ["alpha", 10], ["beta", None]]).to_excel(
                writer, sheet_name="q1", index=False, header=False
            )
            pd.DataFrame([["gamma", "late"]]).to_excel(writer, sheet_name="q2", index=False, header=False)

        text = await extract_text_from_file(path, XLSX_MIME, "report.xlsx")

        assert text.split("\n") == ["name amount", "alpha 10", "beta", "gamma late"]

    @pytest.mark.asyncio
    async def test_docx_text(self, tmp_path):
        path = tmp_path / "minutes.docx"
        with zipfile.ZipFile(path, "w") as archive:
            archive.writestr("word/document.xml", DOCX_BODY)

        text = await extract_text_from_file(path, DOCX_MIME, "minutes.docx")

        assert "Project kickoff" in text
        assert "Budget approved" in text

    @pytest.mark.asyncio
    async def test_damaged_docx_raises(self, tmp_path):
        path = write(tmp_path, "broken.docx", b"not a zip archive", mode="wb")
        with pytest.raises(ExtractionError):
            await extract_text_from_file(path, DOCX_MIME, "broken.docx")

    @pytest.mark.asyncio
    async def test_pdf_without_text_returns_none(self, tmp_path):
        writer = PdfWriter()
        writer.add_blank_page(width=200, height=200)
        path = tmp_path / "scan.pdf"
        with open(path, "wb") as f:
            writer.write(f)

        assert await extract_text_from_file(path, "application/pdf", "scan.pdf") is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("message", ["EOF marker not found", "Invalid PDF structure"])
    async def test_unreadable_pdf_returns_none(self, tmp_path, monkeypatch, message):
        monkeypatch.setattr(document_ops, "PyPDFLoader", failing_pdf_loader(PdfReadError(message)))
        path = write(tmp_path, "scan.pdf", b"%PDF-1.4 truncated", mode="wb")

        assert await extract_text_from_file(path, "application/pdf", "scan.pdf") is None

    @pytest.mark.asyncio
    async def test_other_pdf_errors_raise(self, tmp_path, monkeypatch):
        error = PdfReadError("Invalid dictionary key in object 12")
        monkeypatch.setattr(document_ops, "PyPDFLoader", failing_pdf_loader(error))
        path = write(tmp_path, "odd.pdf", b"%PDF-1.4", mode="wb")

        with pytest.raises(ExtractionError):
            await extract_text_from_file(path, "application/pdf", "odd.pdf")

    @pytest.mark.asyncio
    async def test_unknown_type_returns_none(self, tmp_path):
        path = write(tmp_path, "archive.zip", b"PK\x03\x04", mode="wb")
        assert await extract_text_from_file(path, "application/zip", "archive.zip") is None

    @pytest.mark.asyncio
    async def test_missing_file_raises(self, tmp_path):
        with pytest.raises(ExtractionError):
            await extract_text_from_file(tmp_path / "gone.txt", "text/plain", "gone.txt")


class TestImageDescriptions:
    def test_json_answer_is_mapped(self):
        content = '```json\n{"description": "A dog on grass", "objects": ["dog"], "scene": "park", "colors": ["green"], "mood": "calm", "text": ""}\n```'
        data = parse_structured_description(content)
        assert data == {
            "description": "A dog on grass",
            "objects": ["dog"],
            "scene": "park",
            "colors": ["green"],
            "mood": "calm",
            "text": None,
        }

    def test_free_text_becomes_description(self):
        data = parse_structured_description("Just a sunset.")
        assert data["description"] == "Just a sunset."
        assert data["objects"] == []

    def test_keyword_derivation(self):
        data = derive_structure_from_text("A red car parked on a city street under a blue sky")
        assert data["objects"] == ["car", "sky"]
        assert data["scene"] == "city"
        assert data["colors"] == ["red", "blue"]

    def test_combined_search_text(self):
        text = combine_image_data_for_search(
            {"description": "A beach", "objects": ["water"], "scene": "beach", "colors": [], "mood": None, "text": "SALE"}
        )
        assert text == "A beach Objects: water Scene: beach Text in image: SALE"


class TestMediaExtractor:
    @pytest.mark.asyncio
    async def test_primary_vision_provider(self, tmp_path):
        path = write(tmp_path, "photo.jpg", b"\xff\xd8\xff", mode="wb")
        client = FakeGroqClient(content='{"description": "A cat", "objects": ["cat"]}')
        extractor = MediaExtractor([GroqVisionProvider(client, "vision-model")])

        data = await extractor.extract_image_data(path, "image/jpeg")

        assert data["description"] == "A cat"
        image_part = client.requests[0]["messages"][0]["content"][1]
        assert image_part["image_url"]["url"].startswith("data:image/jpeg;base64,")

    @pytest.mark.asyncio
    async def test_secondary_vision_provider_after_failure(self, tmp_path):
        path = write(tmp_path, "photo.jpg", b"\xff\xd8\xff", mode="wb")
        extractor = MediaExtractor([FailingVision(), GeminiVisionProvider(FakeChatModel("People on a sunny beach"))])

        data = await extractor.extract_image_data(path)

        assert data["description"] == "People on a sunny beach"
        assert data["scene"] == "beach"
        assert "people" in data["objects"]

    @pytest.mark.asyncio
    async def test_placeholder_when_every_provider_fails(self, tmp_path):
        path = write(tmp_path, "photo.jpg", b"\xff\xd8\xff", mode="wb")
        data = await MediaExtractor([FailingVision()]).extract_image_data(path)
        assert data["description"] == IMAGE_PLACEHOLDER
        assert data["objects"] == []

    @pytest.mark.asyncio
    async def test_missing_image_has_no_description(self, tmp_path):
        data = await MediaExtractor([FailingVision()]).extract_image_data(tmp_path / "gone.jpg")
        assert data["description"] is None

    @pytest.mark.asyncio
    async def test_audio_transcript(self, tmp_path):
        path = write(tmp_path, "memo.mp3", b"ID3", mode="wb")
        client = FakeGroqClient(transcript="  hello there  ")
        extractor = MediaExtractor(transcriber=GroqTranscriber(client))

        assert await extractor.extract_audio_transcript(path) == "hello there"
        assert client.requests[0]["file"][0] == "memo.mp3"

    @pytest.mark.asyncio
    async def test_audio_failure_returns_none(self, tmp_path):
        path = write(tmp_path, "memo.mp3", b"ID3", mode="wb")
        extractor = MediaExtractor(transcriber=GroqTranscriber(FakeGroqClient(error=RuntimeError("boom"))))
        assert await extractor.extract_audio_transcript(path) is None

    @pytest.mark.asyncio
    async def test_audio_without_transcriber(self, tmp_path):
        path = write(tmp_path, "memo.mp3", b"ID3", mode="wb")
        assert await MediaExtractor().extract_audio_transcript(path) is None


class TestExtractionDispatcher:
    @pytest.mark.asyncio
    async def test_document_text_is_cleaned(self, tmp_path):
        path = write(tmp_path, "doc.txt", "Hello   ★ world")
        outcome = await ExtractionDispatcher().extract(path, "text/plain", "doc.txt", "Document")
        assert outcome.text == "Hello world"
        assert outcome.media == {}

    @pytest.mark.asyncio
    async def test_image_outcome_carries_media_fields(self, tmp_path):
        path = write(tmp_path, "photo.png", b"\x89PNG", mode="wb")
        client = FakeGroqClient(content='{"description": "A red kite", "colors": ["red"], "scene": "outdoor"}')
        dispatcher = ExtractionDispatcher(MediaExtractor([GroqVisionProvider(client, "vision-model")]))

        outcome = await dispatcher.extract(path, "image/png", "photo.png", "Image")

        assert outcome.media["image_description"] == "A red kite"
        assert outcome.media["image_colors"] == ["red"]
        assert outcome.text == "A red kite Scene: outdoor Colors: red"

    @pytest.mark.asyncio
    async def test_video_placeholder(self, tmp_path):
        path = write(tmp_path, "clip.mp4", b"\x00", mode="wb")
        outcome = await ExtractionDispatcher().extract(path, "video/mp4", "clip.mp4", "Video")
        assert outcome.media["video_description"] == VIDEO_PLACEHOLDER
        assert outcome.media["video_scenes"] == []
        assert outcome.text == VIDEO_PLACEHOLDER
