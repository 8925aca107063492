"""Run regions and the byte-offset run locator."""

import re
import sys
from bisect import bisect_right
from dataclasses import dataclass, field
from typing import Iterator, List, NamedTuple, Optional, Tuple

from .common import RUN_TAG, TEXT_TAG, Span, StructuralParseError, format_text_preview
from .validation import validate_positions


# Tokenizes markup. Comments, CDATA, processing instructions and DOCTYPE are
# matched first so their content is never taken for elements. Quoted attribute
# values may contain '>'.
MARKUP_PATTERN = re.compile(
    rb'<!--.*?-->'
    rb'|<!\[CDATA\[.*?\]\]>'
    rb'|<\?.*?\?>'
    rb'|<!DOCTYPE(?:[^>\[]|\[[^\]]*\])*>'
    rb'|<(?P<close>/)?(?P<name>[^\s/>!?]+)'
    rb'(?P<attrs>(?:[^>"\']|"[^"]*"|\'[^\']*\')*?)(?P<empty>/)?>',
    re.DOTALL,
)


class Tag(NamedTuple):
    name: str
    closing: bool
    self_closing: bool
    start: int
    end: int


def iter_tags(document) -> Iterator[Tag]:
    """Yield every element tag of the buffer in document order with its byte span."""
    for match in MARKUP_PATTERN.finditer(document):
        name = match.group('name')
        if name is None:
            continue
        yield Tag(
            name=name.decode('utf-8', errors='replace'),
            closing=match.group('close') is not None,
            self_closing=match.group('empty') is not None,
            start=match.start(),
            end=match.end(),
        )


@dataclass(eq=False)
class Run:
    """
    A run element located by byte offsets.

    open_tag/close_tag cover <w:r ...> and </w:r>; a self-closing <w:r/> has
    close_tag equal to open_tag. text_open/text_close cover <w:t ...> and
    </w:t> when the run has a text region. index is the position of the run
    in the parse result.
    """
    index: int = -1
    open_tag: Span = field(default_factory=Span)
    close_tag: Span = field(default_factory=Span)
    text_open: Span = field(default_factory=Span)
    text_close: Span = field(default_factory=Span)
    has_text: bool = False

    @property
    def self_closing(self) -> bool:
        return self.open_tag == self.close_tag

    def text_bytes(self, document) -> bytes:
        """Bytes between the text start and end tag; empty without text region."""
        if not self.has_text:
            return b''
        start = self.text_open.end
        end = self.text_close.start
        if start > end or end > len(document):
            return b''
        return bytes(document[start:end])

    def text(self, document) -> str:
        return self.text_bytes(document).decode('utf-8', errors='replace')

    def spans(self) -> List[Tuple[str, Span]]:
        spans = [('open_tag', self.open_tag), ('close_tag', self.close_tag)]
        if self.has_text:
            spans.append(('text_open', self.text_open))
            spans.append(('text_close', self.text_close))
        return spans

    def shift_from(self, offset: int, delta: int):
        """Move every tag boundary located at or after offset."""
        for span in (self.open_tag, self.close_tag, self.text_open, self.text_close):
            span.shift_from(offset, delta)

    def describe(self, document) -> str:
        """Debug representation with the bytes each span currently covers."""
        def show(span: Span) -> str:
            found = span.slice(document).decode('utf-8', errors='replace')
            return f"[{span.start}:{span.end}] '{found}'"

        desc = f"run {self.index} from {show(self.open_tag)} to {show(self.close_tag)}"
        if self.has_text:
            desc += (f"; text from {show(self.text_open)} to {show(self.text_close)}"
                     f" '{format_text_preview(self.text(document), 40)}'")
        return desc


def runs_with_text(runs: List[Run]) -> List[Run]:
    return [run for run in runs if run.has_text]


class RunParser:
    """
    Locates all runs and their text regions in a document buffer.

    Two passes are made over the buffer. First every run element is located
    and its open/close tag spans recorded, then the text elements are located
    and attached to the run containing them. The result is validated before
    it is handed out.
    """

    def __init__(self, document, run_tag: str = RUN_TAG, text_tag: str = TEXT_TAG,
                 verbose: bool = False):
        self.document = document
        self.run_tag = run_tag
        self.text_tag = text_tag
        self.verbose = verbose
        self._runs: List[Run] = []

    @property
    def runs(self) -> List[Run]:
        return self._runs

    def execute(self) -> List[Run]:
        """
        Parse the buffer.

        Raises:
            StructuralParseError: run nesting is unbalanced or a text element has no run
            ValidationError: a located span does not slice out the expected tag
        """
        self._runs = []
        runs = self._find_runs()
        self._find_text_runs(runs)
        validate_positions(self.document, runs, self.run_tag, self.text_tag)
        self._runs = runs
        return runs

    def _find_runs(self) -> List[Run]:
        runs: List[Run] = []
        stack: List[Run] = []
        current: Optional[Run] = None

        def finish(run: Run) -> Optional[Run]:
            run.index = len(runs)
            runs.append(run)
            # resume the enclosing run, if any
            return stack.pop() if stack else None

        for tag in iter_tags(self.document):
            if tag.name != self.run_tag:
                continue

            if tag.closing:
                if current is None:
                    raise StructuralParseError(
                        f"Unexpected </{self.run_tag}> at offset {tag.start}: no open run"
                    )
                current.close_tag = Span(tag.start, tag.end)
                current = finish(current)
                continue

            if current is not None:
                stack.append(current)
            current = Run(open_tag=Span(tag.start, tag.end))

            if tag.self_closing:
                current.close_tag = current.open_tag.copy()
                current = finish(current)

        depth = len(stack) + (1 if current is not None else 0)
        if depth != 0:
            raise StructuralParseError(
                f"Invalid run nesting: {depth} <{self.run_tag}> element(s) never closed"
            )

        if self.verbose:
            print(f"[DEBUG] Located {len(runs)} runs", file=sys.stderr)
        return runs

    def _find_text_runs(self, runs: List[Run]):
        # runs are appended when closed, so close offsets are ascending
        close_ends = [run.close_tag.end for run in runs]
        open_text_runs = set()

        def run_at(pos: int) -> Optional[Run]:
            for i in range(bisect_right(close_ends, pos), len(runs)):
                if runs[i].open_tag.start < pos < runs[i].close_tag.end:
                    return runs[i]
            return None

        for tag in iter_tags(self.document):
            if tag.name != self.text_tag or tag.self_closing:
                continue

            run = run_at(tag.end)
            if run is None:
                kind = 'end' if tag.closing else 'start'
                raise StructuralParseError(
                    f"Unable to find the run for text {kind}-element at offset {tag.start}"
                )

            if tag.closing:
                if run.index not in open_text_runs:
                    raise StructuralParseError(
                        f"Unexpected </{self.text_tag}> at offset {tag.start} in run {run.index}"
                    )
                run.text_close = Span(tag.start, tag.end)
                open_text_runs.discard(run.index)
            else:
                run.has_text = True
                run.text_open = Span(tag.start, tag.end)
                open_text_runs.add(run.index)

        if open_text_runs:
            raise StructuralParseError(
                f"Text element never closed in run(s): {sorted(open_text_runs)}"
            )
