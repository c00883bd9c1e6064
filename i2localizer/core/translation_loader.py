# -*- coding: utf-8 -*-
"""
Translation Map Loader
======================

Reads translation documents supplied by translators and turns them into a
single term -> text mapping.

Formats are sniffed in this order, the first one that recognizes the
document wins (a recognized document may still hold no usable entries):
1. JSON object {term: text} or array of {"term", "translation"} records
2. Tagged pairs: #Term: line followed by #Original: / Translation: line
3. Delimited rows: tab or comma separated, CSV quoting
4. Bare pairs: one line term, next line translation
"""

import csv
import io
import json
import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from i2localizer.core.exceptions import ParseError
from i2localizer.core.i2_parser import unescape_value
from i2localizer.utils.encoding import read_text_safely

TERM_MARKER = '#Term:'
TRANSLATION_MARKERS = ('#Original:', '#Translation:', 'Translation:')
# Source text line of the plain text export, never a translation
ORIGINAL_MARKER = 'Original:'

FORMAT_JSON = 'json'
FORMAT_TAGGED = 'tagged'
FORMAT_DELIMITED = 'delimited'
FORMAT_PAIRS = 'pairs'


def _split_lines(document: str) -> List[str]:
    return document.replace('\r\n', '\n').replace('\r', '\n').split('\n')


def _strip_marker(line: str, marker: str) -> str:
    return line[len(marker):].strip()


def parse_json_document(document: str) -> Optional[Dict[str, str]]:
    """JSON object or array of records; None when the document is not JSON."""
    trimmed = document.strip()
    if not trimmed.startswith(('{', '[')):
        return None

    try:
        parsed = json.loads(trimmed)
    except ValueError:
        return None

    translations: Dict[str, str] = {}
    if isinstance(parsed, dict):
        for key, value in parsed.items():
            if isinstance(value, str):
                translations[str(key)] = value
    elif isinstance(parsed, list):
        for record in parsed:
            if not isinstance(record, dict):
                continue
            term = record.get('term')
            translation = record.get('translation')
            if term and isinstance(translation, str) and translation:
                translations[str(term)] = translation

    return translations


def _bare_translation(line: str) -> str:
    if line.startswith(('#', ORIGINAL_MARKER, 'Translation:')):
        return ''
    return unescape_value(line)


def parse_tagged_document(document: str) -> Optional[Dict[str, str]]:
    """
    #Term: blocks whose translation sits on a marker line of the same block,
    or on the unmarked line right after the term.
    """
    lines = [line.strip() for line in _split_lines(document)]
    if not any(line.startswith(TERM_MARKER) for line in lines):
        return None

    translations: Dict[str, str] = {}

    i = 0
    while i < len(lines):
        line = lines[i]
        if not line.startswith(TERM_MARKER):
            i += 1
            continue

        term = unescape_value(_strip_marker(line, TERM_MARKER))
        found: Dict[str, str] = {}
        j = i + 1
        while j < len(lines) and lines[j] and not lines[j].startswith(TERM_MARKER):
            for marker in TRANSLATION_MARKERS:
                if lines[j].startswith(marker):
                    found[marker] = unescape_value(_strip_marker(lines[j], marker))
                    break
            j += 1

        # Explicit translation lines take precedence over #Original:
        translation = found.get('Translation:') or found.get('#Translation:') or found.get('#Original:')
        if not translation and i + 1 < j:
            translation = _bare_translation(lines[i + 1])
        if term and translation:
            translations[term] = translation

        i = j

    return translations


def parse_delimited_document(document: str) -> Optional[Dict[str, str]]:
    """Tab or comma separated rows; used only when most rows have two fields."""
    first_line = next((line for line in _split_lines(document) if line.strip()), '')
    delimiter = '\t' if '\t' in first_line else ','
    if delimiter not in document:
        return None

    try:
        rows = list(csv.reader(io.StringIO(document.strip()), delimiter=delimiter))
    except csv.Error:
        return None

    rows = [[cell.strip() for cell in row] for row in rows if any(cell.strip() for cell in row)]
    multi = sum(1 for row in rows if len(row) >= 2)
    if not rows or multi <= len(rows) - multi:
        return None

    translation_column: Optional[int] = None
    header = rows[0]
    if header and header[0].lower() == 'term':
        lowered = [cell.lower() for cell in header]
        if 'translation' in lowered:
            translation_column = lowered.index('translation')
        rows = rows[1:]

    translations: Dict[str, str] = {}
    for row in rows:
        if len(row) < 2:
            continue
        term = row[0]
        if translation_column is not None:
            translation = row[translation_column] if translation_column < len(row) else ''
        elif len(row) == 2 or delimiter == '\t':
            translation = row[1]
        else:
            # Unquoted commas inside the translation
            translation = delimiter.join(row[1:]).strip()
        if term and translation:
            translations[term] = translation

    return translations


def parse_pair_document(document: str) -> Dict[str, str]:
    """Any non-empty line is a term, the next non-empty, non-marker line its text."""
    translations: Dict[str, str] = {}
    lines = [line.strip() for line in _split_lines(document)]
    lines = [line for line in lines if line]

    i = 0
    while i < len(lines):
        term = lines[i]
        if i + 1 < len(lines) and not lines[i + 1].startswith('#'):
            translations[term] = lines[i + 1]
            i += 2
            continue
        i += 1

    return translations


class TranslationMapLoader:
    """Format-sniffing loader for translation documents."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self.last_format: Optional[str] = None

        self._parsers: List[Tuple[str, Callable[[str], Optional[Dict[str, str]]]]] = [
            (FORMAT_JSON, parse_json_document),
            (FORMAT_TAGGED, parse_tagged_document),
            (FORMAT_DELIMITED, parse_delimited_document),
            (FORMAT_PAIRS, parse_pair_document),
        ]

    def parse(self, document: str) -> Dict[str, str]:
        """
        Parse a translation document into a new mapping.

        The result never merges with a previously loaded mapping; an empty or
        unrecognized document yields an empty mapping.
        """
        self.last_format = None
        if not document or not document.strip():
            return {}

        if document.startswith('\ufeff'):
            document = document[1:]

        for name, parser in self._parsers:
            translations = parser(document)
            if translations is None:
                continue

            self.last_format = name
            if translations:
                self.logger.info(f"Loaded {len(translations)} translation(s) ({name} format)")
            else:
                self.logger.warning(f"No translations found in document ({name} format)")
            return translations

        self.logger.warning("No translations found in document")
        return {}

    def load_file(self, file_path: str) -> Dict[str, str]:
        content = read_text_safely(Path(file_path))
        if content is None:
            raise ParseError(f"Could not read translation file: {file_path}")
        return self.parse(content)


def parse_translations(document: str) -> Dict[str, str]:
    return TranslationMapLoader().parse(document)
