"""Placeholder and fragment model plus the run-text placeholder assembler."""

import re
import sys
import warnings
from dataclasses import dataclass, field
from typing import List, Tuple

from .common import (
    CLOSE_DELIMITER,
    NESTED_ERROR,
    NESTED_POLICIES,
    NESTED_SKIP,
    OPEN_DELIMITER,
    NestedPlaceholderWarning,
    Span,
    StructuralParseError,
    format_text_preview,
)
from .runs import Run, runs_with_text


@dataclass(eq=False)
class Fragment:
    """
    One contiguous slice of a placeholder literal inside a single run text.

    position is relative to run.text_open.end, so position 0 is the first byte
    of the run text. number is the ordinal of the fragment in its placeholder.
    The run is only referenced; it belongs to the parse result.
    """
    position: Span
    number: int
    run: Run = field(repr=False)

    @property
    def start_pos(self) -> int:
        return self.run.text_open.end + self.position.start

    @property
    def end_pos(self) -> int:
        return self.run.text_open.end + self.position.end

    def text_bytes(self, document) -> bytes:
        if self.start_pos < 0 or self.end_pos > len(document) or not self.position.valid():
            return b''
        return bytes(document[self.start_pos:self.end_pos])

    def text(self, document) -> str:
        return self.text_bytes(document).decode('utf-8', errors='replace')

    def shift_replace(self, delta: int):
        """
        Adjust after the fragment text was replaced by text delta bytes longer.

        The run text end and the run end move; so does the fragment end.
        """
        self.run.text_close.shift(delta)
        self.run.close_tag.shift(delta)
        self.position.end += delta

    def shift_cut(self, cut_length: int):
        """Adjust after the fragment text was cut out; the fragment becomes empty."""
        self.run.text_close.shift(-cut_length)
        self.run.close_tag.shift(-cut_length)
        self.position.end = self.position.start

    def valid(self) -> bool:
        run = self.run
        return (run.open_tag.valid() and run.close_tag.valid() and run.text_open.valid()
                and run.text_close.valid() and self.position.valid())

    def signature(self) -> Tuple[int, int, int]:
        return (self.run.index, self.position.start, self.position.end)

    def describe(self, document) -> str:
        return (f"fragment {self.number} [{self.position.start}:{self.position.end}] "
                f"'{self.text(document)}' in {self.run.describe(document)}")


@dataclass(eq=False)
class Placeholder:
    """A delimited key in document order, possibly split over several runs"""
    fragments: List[Fragment]
    replaced: bool = False

    def text_bytes(self, document) -> bytes:
        return b''.join(fragment.text_bytes(document) for fragment in self.fragments)

    def text(self, document) -> str:
        """Assemble the full placeholder literal, delimiters included."""
        return self.text_bytes(document).decode('utf-8', errors='replace')

    @property
    def start_pos(self) -> int:
        return self.fragments[0].start_pos

    @property
    def end_pos(self) -> int:
        return self.fragments[-1].end_pos

    def valid(self) -> bool:
        return bool(self.fragments) and all(fragment.valid() for fragment in self.fragments)

    def signature(self) -> Tuple[Tuple[int, int, int], ...]:
        return tuple(fragment.signature() for fragment in self.fragments)


@dataclass
class _ScanState:
    """
    Accumulator threaded through the run scan.

    depth is the number of open delimiters not yet closed. fragments holds the
    pending placeholder while depth is 1. discard marks a pending placeholder
    which started inside a skipped run and must not be emitted.
    """
    depth: int = 0
    fragments: List[Fragment] = field(default_factory=list)
    discard: bool = False


class _NestedPattern(Exception):
    """Internal signal: the run holds an unsupported nested placeholder"""

    def __init__(self, end_depth: int):
        super().__init__(end_depth)
        self.end_depth = end_depth


def _delimiter_positions(text: bytes, delimiter: bytes) -> List[int]:
    return [match.start() for match in re.finditer(re.escape(delimiter), text)]


def _assemble_run(run: Run, text: bytes, state: _ScanState,
                  open_delimiter: bytes, close_delimiter: bytes
                  ) -> Tuple[List[Placeholder], _ScanState]:
    """
    Assemble the placeholders of one run text.

    Returns the placeholders completed in this run and the scan state for the
    next run.

    Delimiters are walked in positional order, starting at the depth left by
    the previous runs:
        '{foo}{bar}'   pairs only
        '}foo{bar}{'   leading close completes pending, trailing open starts pending
        'foo'          no delimiters, the whole text extends pending
        '{foo{bar}}'   depth 2, nested pattern
        'foo}'         close at depth 0, structural error
    """
    delimiters = sorted(
        [(pos, True) for pos in _delimiter_positions(text, open_delimiter)]
        + [(pos, False) for pos in _delimiter_positions(text, close_delimiter)]
    )
    close_length = len(close_delimiter)

    depth = state.depth
    nested = depth > 1
    for pos, is_open in delimiters:
        depth += 1 if is_open else -1
        if depth < 0:
            raise StructuralParseError(
                f"Unexpected {close_delimiter.decode()} at offset {pos} in run {run.index} "
                f"\"{format_text_preview(text.decode('utf-8', errors='replace'), 60)}\", "
                f"missing preceding {open_delimiter.decode()}"
            )
        if depth > 1:
            nested = True
    if nested:
        raise _NestedPattern(depth)

    def fragment(start: int, end: int, number: int = 0) -> Fragment:
        return Fragment(position=Span(start, end), number=number, run=run)

    completed: List[Placeholder] = []
    i = 0

    if state.depth == 1:
        if not delimiters:
            # the whole run text belongs to the pending placeholder
            state.fragments.append(fragment(0, len(text), len(state.fragments)))
            return completed, state
        # everything up to the first close belongs to the pending placeholder
        close_pos = delimiters[0][0]
        state.fragments.append(fragment(0, close_pos + close_length, len(state.fragments)))
        if not state.discard:
            completed.append(Placeholder(state.fragments))
        i = 1

    while i + 1 < len(delimiters):
        open_pos = delimiters[i][0]
        close_pos = delimiters[i + 1][0]
        completed.append(Placeholder([fragment(open_pos, close_pos + close_length)]))
        i += 2

    if i < len(delimiters):
        # a new placeholder opens and runs to the end of the run text
        return completed, _ScanState(depth=1, fragments=[fragment(delimiters[i][0], len(text))])

    return completed, _ScanState()


def parse_placeholders(runs: List[Run], document, open_delimiter: str = OPEN_DELIMITER,
                       close_delimiter: str = CLOSE_DELIMITER, nested: str = NESTED_SKIP,
                       verbose: bool = False) -> List[Placeholder]:
    """
    Parse all placeholders, including their fragments, from the located runs.

    Args:
        runs: Runs from RunParser.execute(), in parse order
        document: The buffer the runs were located in
        open_delimiter: Single character opening a placeholder
        close_delimiter: Single character closing a placeholder
        nested: 'skip' warns and skips runs with nested placeholders,
                'error' raises StructuralParseError
        verbose: Print debug output to stderr

    Returns:
        Placeholders in document order. A placeholder still open at the end of
        the document is dropped.

    Raises:
        StructuralParseError: A close delimiter has no matching open
    """
    if nested not in NESTED_POLICIES:
        raise ValueError(f"Unknown nested placeholder policy: {nested!r}")

    open_bytes = open_delimiter.encode('utf-8')
    close_bytes = close_delimiter.encode('utf-8')

    placeholders: List[Placeholder] = []
    state = _ScanState()

    for run in runs_with_text(runs):
        text = run.text_bytes(document)
        try:
            completed, state = _assemble_run(run, text, state, open_bytes, close_bytes)
        except _NestedPattern as e:
            preview = format_text_preview(text.decode('utf-8', errors='replace'), 60)
            message = f"detected nested placeholder in run {run.index} \"{preview}\""
            if nested == NESTED_ERROR:
                raise StructuralParseError(message) from None
            warnings.warn(f"{message}, skipping", NestedPlaceholderWarning, stacklevel=2)
            if verbose:
                print(f"Warning: {message}, skipping", file=sys.stderr)
            # whatever is still open started around the nested one, never emit it
            state = _ScanState(depth=e.end_depth, discard=e.end_depth > 0)
            continue
        placeholders.extend(completed)

    # keep only usable placeholders carrying both delimiters
    valid_placeholders = []
    for placeholder in placeholders:
        if not placeholder.valid():
            continue
        text = placeholder.text_bytes(document)
        if open_bytes not in text or close_bytes not in text:
            continue
        valid_placeholders.append(placeholder)

    if verbose:
        for placeholder in valid_placeholders:
            print(f"[DEBUG] placeholder with {len(placeholder.fragments)} fragment(s): "
                  f"{placeholder.text(document)}", file=sys.stderr)

    return valid_placeholders
