#!/usr/bin/env python3
"""
ABOUTME: Unit tests for the placeholder assembler (docx_fill.placeholders)
"""

import warnings

import pytest

from _fill_helpers import document_xml, paragraph_xml, parse, short_options

from docx_fill.common import FillOptions, NestedPlaceholderWarning, StructuralParseError
from docx_fill.placeholders import parse_placeholders
from docx_fill.runs import RunParser


def runs_buffer(*texts: str) -> bytes:
    """<r><t>..</t></r> per text, no enclosing root."""
    return ''.join(f'<r><t>{text}</t></r>' for text in texts).encode('utf-8')


def texts_of(*run_texts: str, **options):
    document = runs_buffer(*run_texts)
    _, placeholders = parse(document, short_options(**options))
    return [p.text(document) for p in placeholders]


class TestSingleRun:
    """Placeholders fully inside one run"""

    def test_one_placeholder(self):
        assert texts_of('Dear {name},') == ['{name}']

    def test_several_placeholders(self):
        assert texts_of('{a} and {b}{c}') == ['{a}', '{b}', '{c}']

    def test_no_delimiters(self):
        assert texts_of('plain text', 'more') == []

    def test_empty_placeholder(self):
        assert texts_of('x{}y') == ['{}']

    def test_fragment_layout(self):
        document = runs_buffer('ab{key}cd')
        _, placeholders = parse(document, short_options())
        fragment = placeholders[0].fragments[0]
        assert fragment.number == 0
        assert (fragment.position.start, fragment.position.end) == (2, 7)
        assert fragment.text(document) == '{key}'
        assert document[fragment.start_pos:fragment.end_pos] == b'{key}'


class TestSplitPlaceholders:
    """Placeholders split over several runs"""

    def test_split_over_two_runs(self):
        assert texts_of('{fo', 'o}') == ['{foo}']

    def test_split_over_three_runs(self):
        document = runs_buffer('Hello {na', 'm', 'e}!')
        _, placeholders = parse(document, short_options())
        assert len(placeholders) == 1
        fragments = placeholders[0].fragments
        assert [f.text(document) for f in fragments] == ['{na', 'm', 'e}']
        assert [f.number for f in fragments] == [0, 1, 2]
        assert [f.run.index for f in fragments] == [0, 1, 2]
        assert (fragments[0].position.start, fragments[0].position.end) == (6, 9)
        assert (fragments[1].position.start, fragments[1].position.end) == (0, 1)
        assert (fragments[2].position.start, fragments[2].position.end) == (0, 2)

    def test_close_then_open_in_one_run(self):
        """A run closing the pending placeholder may open the next one"""
        assert texts_of('{a', '}x{b}{c', '}') == ['{a}', '{b}', '{c}']

    def test_close_then_open_adjacent(self):
        assert texts_of('{a', '}{', 'b}') == ['{a}', '{b}']

    def test_runs_without_text_are_skipped(self):
        document = b'<r><t>{a</t></r><r/><r><t/></r><r><t>b}</t></r>'
        _, placeholders = parse(document, short_options())
        assert [p.text(document) for p in placeholders] == ['{ab}']
        assert len(placeholders[0].fragments) == 2

    def test_pending_at_end_of_input_dropped(self):
        assert texts_of('{a}', 'and {b') == ['{a}']

    def test_document_order(self):
        document = runs_buffer('{a', 'a}{b}', '{c}')
        _, placeholders = parse(document, short_options())
        starts = [p.start_pos for p in placeholders]
        assert starts == sorted(starts)
        assert [p.text(document) for p in placeholders] == ['{aa}', '{b}', '{c}']

    def test_wordprocessing_document(self):
        document = document_xml(
            paragraph_xml('Invoice for {cust', 'omer}'),
            paragraph_xml('Total: {amount}'),
        )
        _, placeholders = parse(document)
        assert [p.text(document) for p in placeholders] == ['{customer}', '{amount}']

    def test_custom_delimiters(self):
        assert texts_of('[k] {x} [y', ']', open_delimiter='[', close_delimiter=']') == ['[k]', '[y]']


class TestStructuralErrors:
    """A close delimiter without a matching open is fatal"""

    def test_stray_close(self):
        with pytest.raises(StructuralParseError, match="missing preceding"):
            texts_of('a}')

    def test_close_before_open_without_pending(self):
        with pytest.raises(StructuralParseError):
            texts_of('}x{')

    def test_stray_close_after_completed_placeholder(self):
        with pytest.raises(StructuralParseError):
            texts_of('{a}', 'b}')

    def test_unknown_nested_policy(self):
        document = runs_buffer('{a}')
        runs = RunParser(document, 'r', 't').execute()
        with pytest.raises(ValueError, match="nested placeholder policy"):
            parse_placeholders(runs, document, nested='keep')


class TestNestedPlaceholders:
    """Nested placeholders skip the run or fail, depending on the policy"""

    def test_skip_warns_and_drops_run(self):
        with pytest.warns(NestedPlaceholderWarning, match="nested placeholder"):
            texts = texts_of('{a{b}}', '{c}')
        assert texts == ['{c}']

    def test_skip_drops_enclosing_split_placeholder(self):
        with pytest.warns(NestedPlaceholderWarning):
            texts = texts_of('{x', '{y}', '}', '{z}')
        assert texts == ['{z}']

    def test_skip_keeps_following_placeholders_of_other_runs(self):
        with pytest.warns(NestedPlaceholderWarning):
            texts = texts_of('{p}', 'x{{q}}', '{r', 's}')
        assert texts == ['{p}', '{rs}']

    def test_error_policy(self):
        with pytest.raises(StructuralParseError, match="nested placeholder"):
            texts_of('{a{b}}', nested='error')

    def test_no_warning_without_nesting(self):
        with warnings.catch_warnings():
            warnings.simplefilter('error')
            assert texts_of('{a}{b}', '{c', '}') == ['{a}', '{b}', '{c}']

    def test_verbose_skip_message(self, capsys):
        document = runs_buffer('{a{b}}')
        runs = RunParser(document, 'r', 't').execute()
        with pytest.warns(NestedPlaceholderWarning):
            parse_placeholders(runs, document, verbose=True)
        assert "skipping" in capsys.readouterr().err


class TestParseProperties:
    """Round trip and idempotence of the parse"""

    def test_round_trip_single_fragment(self):
        document = document_xml(paragraph_xml('{one} two {three}', '{four}'))
        _, placeholders = parse(document)
        for placeholder in placeholders:
            assert document[placeholder.start_pos:placeholder.end_pos] == placeholder.text_bytes(document)

    def test_round_trip_split(self):
        document = runs_buffer('x{al', 'ph', 'a}y')
        _, placeholders = parse(document, short_options())
        assert placeholders[0].text(document) == '{alpha}'

    def test_idempotent(self):
        document = document_xml(
            paragraph_xml('{a', 'b}', 'c {d}'),
            paragraph_xml('{e}{f', 'g}'),
        )
        _, first = parse(document)
        _, second = parse(document)
        assert [p.signature() for p in first] == [p.signature() for p in second]
        assert len(first) == 4

    def test_placeholders_are_valid(self):
        document = runs_buffer('{a', 'b}')
        _, placeholders = parse(document, short_options())
        assert all(p.valid() for p in placeholders)
        assert not placeholders[0].replaced

    def test_verbose_lists_placeholders(self, capsys):
        document = runs_buffer('{a}')
        runs = RunParser(document, 'r', 't').execute()
        parse_placeholders(runs, document, verbose=True)
        assert "[DEBUG] placeholder with 1 fragment(s): {a}" in capsys.readouterr().err

    def test_describe_fragment(self):
        document = runs_buffer('{a}')
        _, placeholders = parse(document, short_options())
        desc = placeholders[0].fragments[0].describe(document)
        assert desc.startswith("fragment 0 [0:3] '{a}' in run 0")

    def test_options_defaults_match_parser_defaults(self):
        options = FillOptions()
        document = document_xml(paragraph_xml('{k}'))
        _, placeholders = parse(document, options)
        assert len(placeholders) == 1
