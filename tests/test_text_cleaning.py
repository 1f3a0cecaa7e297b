from content_search.src.extraction.text_cleaning import MAX_TEXT_LENGTH, clean_extracted_text


class TestCleanExtractedText:
    def test_empty_input(self):
        assert clean_extracted_text("") == ""
        assert clean_extracted_text(None) == ""

    def test_collapses_whitespace(self):
        assert clean_extracted_text("  hello \n\n\t world  ") == "hello world"

    def test_replaces_unsupported_symbols(self):
        assert clean_extracted_text("price: 10€ ★ total") == "price: 10 total"

    def test_keeps_basic_punctuation(self):
        text = "Hello, world! (a) [b] {c} 'd' \"e\" x-y; z? ok."
        assert clean_extracted_text(text) == text

    def test_keeps_arabic_text(self):
        assert clean_extracted_text("مرحبا   بالعالم") == "مرحبا بالعالم"

    def test_truncates_with_marker(self):
        cleaned = clean_extracted_text("a" * (MAX_TEXT_LENGTH + 500))
        assert len(cleaned) == MAX_TEXT_LENGTH + 3
        assert cleaned.endswith("...")

    def test_text_at_limit_is_untouched(self):
        assert clean_extracted_text("b" * MAX_TEXT_LENGTH) == "b" * MAX_TEXT_LENGTH
