#!/usr/bin/env python3
"""
ABOUTME: XML utility functions for replacement values
ABOUTME: Provides sanitization for XML-incompatible characters and text escaping
"""

# Escapes for text inserted between <w:t> and </w:t>
XML_TEXT_ESCAPES = {
    '&': '&amp;',
    '<': '&lt;',
    '>': '&gt;',
    '"': '&quot;',
    "'": '&#39;',
}


def sanitize_xml_string(text: str) -> str:
    """
    Remove control characters that are illegal in XML 1.0.

    XML 1.0 allows: #x9 (tab), #xA (LF), #xD (CR), and #x20-#xD7FF, #xE000-#xFFFD, #x10000-#x10FFFF
    This function removes all other control characters (0x00-0x08, 0x0B, 0x0C, 0x0E-0x1F).

    Args:
        text: Text that may contain control characters

    Returns:
        Sanitized text safe for XML. Returns input unchanged if not a non-empty string.
    """
    if not text or not isinstance(text, str):
        return text
    # Keep: \t (0x09), \n (0x0A), \r (0x0D)
    illegal_chars = ''.join(
        chr(c) for c in range(0x20)
        if c not in (0x09, 0x0A, 0x0D)
    )
    return text.translate(str.maketrans('', '', illegal_chars))


def escape_xml_text(text: str) -> str:
    """
    Make a replacement value safe to insert as raw XML text content.

    Illegal control characters are removed first, then markup characters are
    replaced by entities, so escaping is applied exactly once.

    Examples:
        "Smith & Sons" -> "Smith &amp; Sons"
        "<b>" -> "&lt;b&gt;"
    """
    text = sanitize_xml_string(text)
    if not text:
        return text
    return ''.join(XML_TEXT_ESCAPES.get(ch, ch) for ch in text)
