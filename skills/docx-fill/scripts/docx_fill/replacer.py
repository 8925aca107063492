"""Placeholder replacement on a parsed document buffer."""

import sys
import threading
from typing import Dict, List, Mapping, Optional

from .common import (
    FillOptions,
    NotFoundError,
    ReplaceCorruptionError,
    add_placeholder_delimiter,
    format_text_preview,
)
from .placeholders import Fragment, Placeholder, parse_placeholders
from .runs import Run, RunParser
from .shift_mixin import FragmentShiftMixin
from .validation import validate_positions
from .xml_utils import escape_xml_text, sanitize_xml_string


class Replacer(FragmentShiftMixin):
    """
    Replaces placeholders inside one document buffer.

    The replacer owns the buffer and the span set of one parse. Every edit
    updates all affected spans before returning, so replace() can be called
    repeatedly with different keys against the evolving buffer. Mutating calls
    are serialized by a lock.

    Attributes:
        replace_count: Number of placeholders replaced so far
        bytes_changed: Signed byte difference between the current and the original buffer
    """

    def __init__(self, document: bytes, placeholders: List[Placeholder],
                 runs: Optional[List[Run]] = None, options: Optional[FillOptions] = None):
        self.options = options or FillOptions()
        self._document = bytearray(document)
        self.placeholders = list(placeholders)
        self.runs = runs if runs is not None else self._distinct_runs(self.placeholders)
        self.replace_count = 0
        self.bytes_changed = 0
        self._lock = threading.Lock()

        self._run_fragments: Dict[int, List[Fragment]] = {}
        for placeholder in self.placeholders:
            for fragment in placeholder.fragments:
                self._run_fragments.setdefault(fragment.run.index, []).append(fragment)

    @classmethod
    def from_document(cls, document: bytes, options: Optional[FillOptions] = None) -> 'Replacer':
        """Locate runs and placeholders in document and return a ready replacer."""
        options = options or FillOptions()
        parser = RunParser(document, options.run_tag, options.text_tag, verbose=options.verbose)
        runs = parser.execute()
        placeholders = parse_placeholders(
            runs, document,
            open_delimiter=options.open_delimiter,
            close_delimiter=options.close_delimiter,
            nested=options.nested,
            verbose=options.verbose,
        )
        return cls(document, placeholders, runs=runs, options=options)

    @staticmethod
    def _distinct_runs(placeholders: List[Placeholder]) -> List[Run]:
        seen = set()
        runs = []
        for placeholder in placeholders:
            for fragment in placeholder.fragments:
                if fragment.run.index not in seen:
                    seen.add(fragment.run.index)
                    runs.append(fragment.run)
        return runs

    def to_bytes(self) -> bytes:
        """Snapshot of the document buffer, including all replacements so far."""
        with self._lock:
            return bytes(self._document)

    def keys(self) -> List[str]:
        """Texts of the placeholders which were not replaced yet, in document order."""
        with self._lock:
            return [p.text(self._document) for p in self.placeholders if not p.replaced]

    def _prepare_value(self, value: str) -> bytes:
        if self.options.escape_values:
            value = escape_xml_text(value)
        else:
            value = sanitize_xml_string(value)
        return (value or '').encode('utf-8')

    def replace(self, key: str, value: str):
        """
        Replace every occurrence of key with value.

        A bare key is wrapped with the delimiters. Replaced placeholders are
        spent and never matched again.

        Raises:
            NotFoundError: no placeholder with this key in the buffer
            ReplaceCorruptionError: spans no longer match the buffer after an
                edit; the buffer is unusable and must not be persisted
        """
        options = self.options
        with self._lock:
            key = add_placeholder_delimiter(key, options.open_delimiter, options.close_delimiter)
            key_bytes = key.encode('utf-8')
            value_bytes = self._prepare_value(value)

            found = False
            for placeholder in self.placeholders:
                if placeholder.replaced:
                    continue
                if placeholder.text_bytes(self._document) != key_bytes:
                    continue
                found = True

                # the first fragment carries the value, the others are cut
                self._replace_fragment_value(placeholder.fragments[0], value_bytes)
                for fragment in placeholder.fragments[1:]:
                    self._cut_fragment(fragment)
                placeholder.replaced = True

                # every edit may break the XML; re-validate all tags
                validate_positions(
                    self._document, self.runs, options.run_tag, options.text_tag,
                    error_class=ReplaceCorruptionError,
                )

                if options.verbose:
                    print(f"[DEBUG] replaced {key} ({len(placeholder.fragments)} fragment(s)) "
                          f"with '{format_text_preview(value)}'", file=sys.stderr)

            if not found:
                raise NotFoundError(key)

    def replace_all(self, mapping: Mapping[str, object]) -> List[str]:
        """
        Replace every key of mapping; non-string values are converted with str().

        Returns:
            Keys which were not found in the buffer
        """
        missing = []
        for key, value in mapping.items():
            try:
                self.replace(key, value if isinstance(value, str) else str(value))
            except NotFoundError:
                missing.append(key)
        return missing
