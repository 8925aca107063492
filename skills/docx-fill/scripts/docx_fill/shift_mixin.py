"""Offset bookkeeping for in-place edits of the document buffer."""

from typing import Dict, List

from .placeholders import Fragment


class FragmentShiftMixin:
    """
    Splices fragment ranges of the buffer and keeps every tracked span in sync.

    Expects the host to provide:
        _document: bytearray being edited
        runs: every run of the parse
        _run_fragments: run index -> fragments located in that run
        replace_count, bytes_changed: counters
    """

    _document: bytearray
    _run_fragments: Dict[int, List[Fragment]]

    def _splice(self, start: int, end: int, data: bytes):
        # cut first, then insert at the cut position
        del self._document[start:end]
        if data:
            self._document[start:start] = data

    def _replace_fragment_value(self, fragment: Fragment, value: bytes):
        """Replace the fragment text with value and shift everything after it."""
        cut_start = fragment.start_pos
        cut_end = fragment.end_pos
        edit_end = fragment.position.end
        delta = len(value) - (cut_end - cut_start)

        self._splice(cut_start, cut_end, value)
        fragment.shift_replace(delta)

        self.replace_count += 1
        self.bytes_changed += delta
        self._shift_following_fragments(fragment, edit_end, cut_end, delta)

    def _cut_fragment(self, fragment: Fragment):
        """Remove the fragment text from the buffer and shift everything after it."""
        cut_start = fragment.start_pos
        cut_end = fragment.end_pos
        edit_end = fragment.position.end
        cut_length = cut_end - cut_start

        self._splice(cut_start, cut_end, b'')
        fragment.shift_cut(cut_length)

        self.bytes_changed -= cut_length
        self._shift_following_fragments(fragment, edit_end, cut_end, -cut_length)

    def _shift_following_fragments(self, from_fragment: Fragment, edit_end: int,
                                   abs_edit_end: int, delta: int):
        """
        Propagate delta to everything located after an edited fragment.

        edit_end is the end of the edited range relative to the run text and
        abs_edit_end its absolute offset, both taken before the edit.

        Fragments sharing the run only move their relative position; the run's
        own tags were already moved by shift_replace/shift_cut. Every other run
        moves each tag boundary at or after the edit once, which shifts later
        runs entirely and only the trailing tags of a run enclosing this one.
        """
        if delta == 0:
            return

        edited_run = from_fragment.run
        for fragment in self._run_fragments.get(edited_run.index, []):
            if fragment is from_fragment:
                continue
            # {key}{key}{foo} with from_fragment == {foo}: nothing to do for the others
            if fragment.position.start < edit_end:
                continue
            fragment.position.shift(delta)

        for run in self.runs:
            if run is edited_run:
                continue
            run.shift_from(abs_edit_end, delta)
