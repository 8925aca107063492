"""Tag shape validation for located run and text spans."""

import re
from functools import lru_cache
from typing import Dict, List, Pattern

from .common import RUN_TAG, TEXT_TAG, InvalidSpan, ValidationError

# Optional attribute list after a tag name; quoted values may contain '>' or '/'
ATTRIBUTES = rb'(?:\s(?:[^>"\']|"[^"]*"|\'[^\']*\')*)?'

@lru_cache(maxsize=None)
def tag_patterns(run_tag: str = RUN_TAG, text_tag: str = TEXT_TAG) -> Dict[str, Pattern]:
    """
    Build the byte patterns a span must fully match for each kind of tag.

    Matches for run_tag='w:r':
        open_tag:   <w:r> <w:r w:rsidR="00AB">
        singleton:  <w:r/> <w:r w:rsidR="00AB"/>
        close_tag:  </w:r>
    """
    def start_tag(name: str) -> Pattern:
        return re.compile(rb'<' + re.escape(name.encode()) + ATTRIBUTES + rb'>')

    def singleton_tag(name: str) -> Pattern:
        return re.compile(rb'<' + re.escape(name.encode()) + ATTRIBUTES + rb'/>')

    def end_tag(name: str) -> Pattern:
        return re.compile(rb'</' + re.escape(name.encode()) + rb'\s*>')

    return {
        'open_tag': start_tag(run_tag),
        'singleton': singleton_tag(run_tag),
        'close_tag': end_tag(run_tag),
        'text_open': start_tag(text_tag),
        'text_close': end_tag(text_tag),
    }


def find_invalid_spans(document, runs, run_tag: str = RUN_TAG,
                       text_tag: str = TEXT_TAG) -> List[InvalidSpan]:
    """
    Check that every span of every run still slices out its tag.

    Returns all offending spans; an empty list means the offsets are consistent
    with the buffer.
    """
    patterns = tag_patterns(run_tag, text_tag)
    invalid: List[InvalidSpan] = []

    for run in runs:
        for kind, span in run.spans():
            if kind in ('open_tag', 'close_tag') and run.self_closing:
                pattern = patterns['singleton']
            else:
                pattern = patterns[kind]

            found = span.slice(document)
            matched = pattern.fullmatch(found) is not None
            if matched and pattern is not patterns['singleton'] and found.endswith(b'/>'):
                # <w:r /> also fits the start tag pattern
                matched = False
            if matched and span.valid() and 0 <= span.start and span.end <= len(document):
                continue
            invalid.append(InvalidSpan(
                run_index=run.index,
                kind=kind,
                start=span.start,
                end=span.end,
                found=found[:60].decode('utf-8', errors='replace'),
            ))

    return invalid


def validate_positions(document, runs, run_tag: str = RUN_TAG, text_tag: str = TEXT_TAG,
                       error_class=ValidationError):
    """
    Raise error_class listing every invalid span, if any.

    If the validation fails, replacing will corrupt the document since the
    offsets are wrong.
    """
    invalid = find_invalid_spans(document, runs, run_tag, text_tag)
    if invalid:
        raise error_class(invalid)
