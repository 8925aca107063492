"""DOCX template: runs the placeholder replacement over the text parts of a package."""

import io
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Union

from docx import Document
from docx.oxml import parse_xml
from lxml import etree

from .common import (
    HEADER_FOOTER_PART_PATTERN,
    FillOptions,
    IncompleteReplacementError,
    NotFoundError,
    ValidationError,
    add_placeholder_delimiter,
)
from .replacer import Replacer


@dataclass
class FillReport:
    """Result of one replace_all() call"""
    replaced: int = 0
    bytes_changed: int = 0
    missing: List[str] = field(default_factory=list)   # keys found in no part
    per_part: Dict[str, int] = field(default_factory=dict)


class DocxTemplate:
    """
    A .docx document whose placeholders get replaced.

    The main document part and every header and footer part are parsed on
    open; each part gets its own Replacer. Parts are written back into the
    package only on save.
    """

    def __init__(self, source: Union[str, Path, bytes, io.IOBase],
                 options: Optional[FillOptions] = None):
        self.options = options or FillOptions()
        self.source_path: Optional[Path] = None

        if isinstance(source, (bytes, bytearray)):
            self.doc = Document(io.BytesIO(bytes(source)))
        elif isinstance(source, (str, Path)):
            self.source_path = Path(source)
            self.doc = Document(str(self.source_path))
        else:
            self.doc = Document(source)

        self.parts = self._collect_parts()
        self.replacers: Dict[str, Replacer] = {}
        for name, part in self.parts.items():
            if self.options.verbose:
                print(f"[DEBUG] Parsing part {name}", file=sys.stderr)
            self.replacers[name] = Replacer.from_document(part.blob, self.options)

    @property
    def main_part_name(self) -> str:
        return str(self.doc.part.partname)

    def _collect_parts(self) -> Dict[str, object]:
        """Main document part first, then headers and footers by name."""
        main_part = self.doc.part
        if main_part is None:
            raise ValueError("invalid docx archive, main document part is missing")

        parts = {str(main_part.partname): main_part}
        extra = {}
        for part in main_part.package.iter_parts():
            name = str(part.partname)
            if HEADER_FOOTER_PART_PATTERN.match(name):
                extra[name] = part
        for name in sorted(extra):
            parts[name] = extra[name]
        return parts

    def placeholders(self) -> Dict[str, List[str]]:
        """Placeholder texts per part which have not been replaced yet."""
        return {name: replacer.keys() for name, replacer in self.replacers.items()}

    def part_bytes(self, name: str) -> bytes:
        return self.replacers[name].to_bytes()

    def plaintext(self, name: Optional[str] = None) -> str:
        """Concatenated text element contents of a part (main part by default)."""
        name = name or self.main_part_name
        root = etree.fromstring(self.part_bytes(name))
        prefix, _, local = self.options.text_tag.rpartition(':')
        namespace = root.nsmap.get(prefix or None)
        tag = f'{{{namespace}}}{local}' if namespace else local
        return ''.join(elem.text or '' for elem in root.iter(tag))

    def count_placeholders(self, name: str, keys) -> int:
        """Count occurrences of the delimited keys in the plaintext of a part."""
        plaintext = self.plaintext(name)
        count = 0
        for key in keys:
            placeholder = add_placeholder_delimiter(
                key, self.options.open_delimiter, self.options.close_delimiter)
            count += plaintext.count(placeholder)
        return count

    def replace(self, key: str, value: str) -> int:
        """
        Replace key with value in every part.

        Returns:
            Number of placeholders replaced

        Raises:
            NotFoundError: key is not a placeholder of any part
        """
        replaced = 0
        for replacer in self.replacers.values():
            before = replacer.replace_count
            try:
                replacer.replace(key, value)
            except NotFoundError:
                continue
            replaced += replacer.replace_count - before
        if not replaced:
            raise NotFoundError(key)
        return replaced

    def replace_all(self, mapping: Mapping[str, object]) -> FillReport:
        """
        Replace every key of mapping in every part.

        In strict mode the number of replacements of each part must match
        the occurrences of the keys in the part text.

        Raises:
            IncompleteReplacementError: strict mode and a placeholder was left over
            ReplaceCorruptionError: a part became inconsistent while replacing
        """
        report = FillReport()
        found_keys = set()

        for name, replacer in self.replacers.items():
            expected = self.count_placeholders(name, mapping.keys()) if self.options.strict else None
            before_count = replacer.replace_count
            before_bytes = replacer.bytes_changed

            missing = replacer.replace_all(mapping)
            found_keys.update(key for key in mapping if key not in missing)

            made = replacer.replace_count - before_count
            report.per_part[name] = made
            report.replaced += made
            report.bytes_changed += replacer.bytes_changed - before_bytes

            if expected is not None and made != expected:
                raise IncompleteReplacementError(
                    f"not all placeholders were replaced in {name}, "
                    f"want={expected}, have={made}"
                )

        report.missing = [key for key in mapping if key not in found_keys]
        return report

    def _commit(self):
        """Write changed part buffers back into the package."""
        for name, replacer in self.replacers.items():
            if replacer.replace_count == 0:
                continue
            blob = replacer.to_bytes()
            try:
                etree.fromstring(blob)
            except etree.XMLSyntaxError as e:
                raise ValidationError(
                    [], f"part {name} is not well-formed XML after replacement: {e}"
                ) from e

            part = self.parts[name]
            if hasattr(part, '_element'):
                part._element = parse_xml(blob)
            else:
                part._blob = blob

    def save(self, output_path: Union[str, Path]) -> Path:
        """
        Save the filled document to output_path.

        The source file cannot be overwritten while it is open. Missing parent
        directories are created.
        """
        output_path = Path(output_path)
        if self.source_path is not None and output_path.resolve() == self.source_path.resolve():
            raise ValueError("cannot write into the original docx file while it is open")

        self._commit()
        output_path.parent.mkdir(parents=True, exist_ok=True)
        self.doc.save(str(output_path))
        return output_path

    def to_bytes(self) -> bytes:
        """Serialize the filled document to docx bytes."""
        self._commit()
        stream = io.BytesIO()
        self.doc.save(stream)
        return stream.getvalue()
