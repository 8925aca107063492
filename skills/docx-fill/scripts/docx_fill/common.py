#!/usr/bin/env python3
"""
ABOUTME: Shared constants, span primitive, options and error types for docx_fill
ABOUTME: Delimiter helpers used by the parser, the replacer and the CLI
"""

import re
from dataclasses import dataclass
from typing import List, Optional


# ============================================================
# Constants
# ============================================================

OPEN_DELIMITER = '{'
CLOSE_DELIMITER = '}'

# Qualified names of the run element (<w:r>, </w:r>, <w:r/>) and its text element (<w:t>)
RUN_TAG = 'w:r'
TEXT_TAG = 'w:t'

# Matches header and footer parts inside the package
# Matches: /word/header1.xml, /word/footer.xml, /word/footer12.xml
HEADER_FOOTER_PART_PATTERN = re.compile(r'^/word/(?:header|footer)\d*\.xml$')

# Nested placeholder policies
NESTED_SKIP = 'skip'
NESTED_ERROR = 'error'
NESTED_POLICIES = (NESTED_SKIP, NESTED_ERROR)


# ============================================================
# Errors
# ============================================================

class PlaceholderError(Exception):
    """Base class for all docx_fill errors"""


class StructuralParseError(PlaceholderError, ValueError):
    """Run nesting or delimiter structure is inconsistent; the parse result is unusable"""


class NotFoundError(PlaceholderError, LookupError):
    """Requested key is not a placeholder of the parsed buffer"""

    def __init__(self, key: str):
        super().__init__(f"placeholder not found in document: {key}")
        self.key = key


class IncompleteReplacementError(PlaceholderError):
    """Fewer placeholders were replaced than the document text contains"""


class NestedPlaceholderWarning(UserWarning):
    """A nested placeholder pattern was found; the run was skipped"""


@dataclass
class InvalidSpan:
    """One tag span which no longer slices out the expected tag"""
    run_index: int
    kind: str          # open_tag | close_tag | text_open | text_close
    start: int
    end: int
    found: str         # what the span currently slices out (truncated)

    def __str__(self) -> str:
        return f"run {self.run_index} {self.kind} [{self.start}:{self.end}] '{self.found}'"


class ValidationError(PlaceholderError, ValueError):
    """
    One or more tag offsets are invalid.

    Replacing on top of invalid offsets would corrupt the XML, so the buffer
    must be discarded by the caller.
    """

    def __init__(self, invalid_spans: List[InvalidSpan], message: Optional[str] = None):
        self.invalid_spans = list(invalid_spans)
        if message is None:
            message = "one or more tags are invalid and will cause the XML to be corrupt"
        details = '\n'.join(f"  - {span}" for span in self.invalid_spans)
        super().__init__(f"{message}\n{details}" if details else message)


class ReplaceCorruptionError(ValidationError):
    """Validation failed after the buffer was mutated; the buffer is unusable"""


# ============================================================
# Data Classes
# ============================================================

@dataclass
class Span:
    """Half-open byte range [start, end) into the current document buffer"""
    start: int = 0
    end: int = 0

    def valid(self) -> bool:
        return self.start <= self.end

    def shift(self, delta: int):
        self.start += delta
        self.end += delta

    def shift_from(self, offset: int, delta: int):
        """Shift each boundary located at or after offset."""
        if self.start >= offset:
            self.start += delta
        if self.end >= offset:
            self.end += delta

    def length(self) -> int:
        return self.end - self.start

    def slice(self, document) -> bytes:
        if self.start < 0 or self.end > len(document) or not self.valid():
            return b''
        return bytes(document[self.start:self.end])

    def copy(self) -> 'Span':
        return Span(self.start, self.end)


@dataclass
class FillOptions:
    """Settings shared by the parser, the replacer and the template"""
    open_delimiter: str = OPEN_DELIMITER
    close_delimiter: str = CLOSE_DELIMITER
    run_tag: str = RUN_TAG
    text_tag: str = TEXT_TAG
    nested: str = NESTED_SKIP
    escape_values: bool = True
    strict: bool = True
    verbose: bool = False

    def __post_init__(self):
        for name in ('open_delimiter', 'close_delimiter'):
            value = getattr(self, name)
            if len(value) != 1:
                raise ValueError(f"{name} must be a single character, got {value!r}")
        if self.open_delimiter == self.close_delimiter:
            raise ValueError("open and close delimiter must differ")
        if self.nested not in NESTED_POLICIES:
            raise ValueError(
                f"Unknown nested placeholder policy: {self.nested!r} "
                f"(expected one of {', '.join(NESTED_POLICIES)})"
            )


# ============================================================
# Helper Functions
# ============================================================

def is_delimited_placeholder(text: str, open_delimiter: str = OPEN_DELIMITER,
                             close_delimiter: str = CLOSE_DELIMITER) -> bool:
    """
    Check whether text starts with the open and ends with the close delimiter.

    Examples:
        "{foo}" -> True
        "foo" -> False
        "" -> False
    """
    if len(text) < 2:
        return False
    return text[0] == open_delimiter and text[-1] == close_delimiter


def add_placeholder_delimiter(key: str, open_delimiter: str = OPEN_DELIMITER,
                              close_delimiter: str = CLOSE_DELIMITER) -> str:
    """Wrap a bare key with the delimiters; delimited keys are returned unchanged."""
    if is_delimited_placeholder(key, open_delimiter, close_delimiter):
        return key
    return f"{open_delimiter}{key}{close_delimiter}"


def remove_placeholder_delimiter(text: str, open_delimiter: str = OPEN_DELIMITER,
                                 close_delimiter: str = CLOSE_DELIMITER) -> str:
    """Strip the delimiters from a delimited placeholder; other text is returned unchanged."""
    if not is_delimited_placeholder(text, open_delimiter, close_delimiter):
        return text
    return text[1:-1]


def format_text_preview(text: str, max_len: int = 30) -> str:
    """
    Format text for log output: remove newlines and truncate.

    Args:
        text: Text to format
        max_len: Maximum length before truncation

    Returns:
        Clean, truncated text with "..." suffix if truncated
    """
    clean = text.replace('\n', ' ').replace('\r', '').replace('\t', ' ')
    while '  ' in clean:
        clean = clean.replace('  ', ' ')
    clean = clean.strip()
    if len(clean) > max_len:
        return clean[:max_len] + "..."
    return clean
