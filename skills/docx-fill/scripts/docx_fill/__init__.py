"""
ABOUTME: Placeholder replacement for DOCX XML parts
ABOUTME: Handles placeholders split across runs while keeping tag offsets consistent
"""

from .common import (
    CLOSE_DELIMITER,
    OPEN_DELIMITER,
    FillOptions,
    IncompleteReplacementError,
    InvalidSpan,
    NestedPlaceholderWarning,
    NotFoundError,
    PlaceholderError,
    ReplaceCorruptionError,
    Span,
    StructuralParseError,
    ValidationError,
    add_placeholder_delimiter,
    is_delimited_placeholder,
    remove_placeholder_delimiter,
)
from .placeholders import Fragment, Placeholder, parse_placeholders
from .replacer import Replacer
from .runs import Run, RunParser
from .template import DocxTemplate, FillReport
from .validation import find_invalid_spans, validate_positions
