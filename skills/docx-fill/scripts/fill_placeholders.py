#!/usr/bin/env python3
"""
ABOUTME: Fills {placeholders} in a Word document with values from JSON or the command line
ABOUTME: Handles placeholders split across runs in the body, headers and footers
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Dict, List, Optional

from docx_fill import (
    DocxTemplate,
    FillOptions,
    IncompleteReplacementError,
)
from docx_fill.common import NESTED_POLICIES, NESTED_SKIP, format_text_preview


def load_values(values_path: Optional[str], assignments: List[str]) -> Dict[str, str]:
    """
    Build the placeholder mapping.

    Values from the JSON file are loaded first; --set KEY=VALUE assignments
    override them. Non-string JSON values are converted with str().
    """
    values: Dict[str, str] = {}

    if values_path:
        with open(values_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Values file must contain a JSON object: {values_path}")
        for key, value in data.items():
            values[str(key)] = value if isinstance(value, str) else str(value)

    for assignment in assignments:
        key, sep, value = assignment.partition('=')
        if not sep or not key:
            raise ValueError(f"Invalid --set value (expected KEY=VALUE): {assignment}")
        values[key] = value

    return values


def default_output_path(document: Path) -> Path:
    return document.with_stem(document.stem + '_filled')


def print_placeholders(template: DocxTemplate):
    for name, keys in template.placeholders().items():
        print(f"{name}: {len(keys)} placeholder(s)")
        for key in keys:
            print(f"  - {key}")


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Replace placeholders in a Word document"
    )
    parser.add_argument('document', help='Path to the DOCX template')
    parser.add_argument('values', nargs='?',
                        help='JSON file with an object mapping keys to values')
    parser.add_argument('--set', dest='assignments', action='append', default=[],
                        metavar='KEY=VALUE', help='Placeholder value (repeatable)')
    parser.add_argument('-o', '--output', help='Output file path (default: {document}_filled.docx)')
    parser.add_argument('--open-delimiter', default='{',
                        help='Opening placeholder delimiter (default: {)')
    parser.add_argument('--close-delimiter', default='}',
                        help='Closing placeholder delimiter (default: })')
    parser.add_argument('--nested', choices=NESTED_POLICIES, default=NESTED_SKIP,
                        help='Nested placeholder handling (default: skip)')
    parser.add_argument('--no-escape', action='store_true',
                        help='Insert values without XML escaping')
    parser.add_argument('--no-strict', action='store_true',
                        help='Do not fail when placeholders are left over')
    parser.add_argument('--list', action='store_true',
                        help='List the placeholders found and exit')
    parser.add_argument('--dry-run', action='store_true',
                        help='Replace but do not save')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Verbose output')

    args = parser.parse_args()

    doc_path = Path(args.document)
    if not doc_path.exists():
        print(f"Error: File not found: {args.document}", file=sys.stderr)
        return 1

    if doc_path.suffix.lower() != '.docx':
        print(f"Warning: File does not have .docx extension: {args.document}", file=sys.stderr)

    try:
        options = FillOptions(
            open_delimiter=args.open_delimiter,
            close_delimiter=args.close_delimiter,
            nested=args.nested,
            escape_values=not args.no_escape,
            strict=not args.no_strict,
            verbose=args.verbose,
        )

        template = DocxTemplate(doc_path, options)

        if args.list:
            print_placeholders(template)
            return 0

        values = load_values(args.values, args.assignments)
        if not values:
            print("Error: No values given (use a JSON file or --set KEY=VALUE)", file=sys.stderr)
            return 1

        output_path = Path(args.output) if args.output else default_output_path(doc_path)

        print(f"Source file: {doc_path}")
        print(f"Parts: {', '.join(template.parts)}")
        print(f"Values: {len(values)}")
        if args.verbose:
            print("-" * 50)

        report = template.replace_all(values)

        if args.verbose:
            for name, count in report.per_part.items():
                print(f"  {name}: {count} replaced")

        if report.missing:
            print("\nKeys not found in document:")
            for key in report.missing:
                print(f"  - {format_text_preview(key)}")

        print("-" * 50)
        print(f"Completed: {report.replaced} replaced, {len(report.missing)} not found, "
              f"{report.bytes_changed:+d} bytes")

        if args.dry_run:
            print(f"[DRY RUN] Would save to: {output_path}")
        else:
            template.save(output_path)
            print(f"Saved to: {output_path}")

        return 0

    except IncompleteReplacementError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("  → Placeholders may be nested or malformed; run with --list to inspect", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
