"""
Tests for xml_utils module - sanitization and escaping of replacement values
"""

import _fill_helpers  # noqa: F401  (adds the scripts directory to sys.path)

from docx_fill.xml_utils import escape_xml_text, sanitize_xml_string


class TestSanitizeXmlString:
    """Tests for sanitize_xml_string function"""

    def test_empty_string(self):
        assert sanitize_xml_string("") == ""

    def test_none_returns_none(self):
        assert sanitize_xml_string(None) is None

    def test_non_string_returns_unchanged(self):
        assert sanitize_xml_string(42) == 42

    def test_preserves_allowed_whitespace(self):
        """Tab, LF, and CR are preserved"""
        text = "Name:\tACME\nLine2\rLine3"
        assert sanitize_xml_string(text) == text

    def test_removes_control_characters(self):
        assert sanitize_xml_string("Invoice\x00 2024") == "Invoice 2024"
        assert sanitize_xml_string("A\x07B\x0BC\x0CD\x1FE") == "ABCDE"

    def test_only_control_chars_returns_empty(self):
        assert sanitize_xml_string("\x01\x02\x03") == ""

    def test_unicode_preserved(self):
        text = "Müller 株式会社 🌍"
        assert sanitize_xml_string(text) == text


class TestEscapeXmlText:
    """Tests for escape_xml_text function"""

    def test_plain_text_unchanged(self):
        assert escape_xml_text("Jane Doe") == "Jane Doe"

    def test_ampersand(self):
        assert escape_xml_text("Smith & Sons") == "Smith &amp; Sons"

    def test_angle_brackets(self):
        assert escape_xml_text("<b>bold</b>") == "&lt;b&gt;bold&lt;/b&gt;"

    def test_quotes(self):
        assert escape_xml_text('say "hi" \'there\'') == "say &quot;hi&quot; &#39;there&#39;"

    def test_existing_entity_escaped_again(self):
        """Values are literal text, an entity in the value is not markup"""
        assert escape_xml_text("&amp;") == "&amp;amp;"

    def test_control_chars_removed_before_escaping(self):
        assert escape_xml_text("a\x00&b") == "a&amp;b"

    def test_empty_string(self):
        assert escape_xml_text("") == ""
