"""
Exporters
=========

Serializes extracted items (and their translations, when known) for
translators. Every format written here is accepted back by the
translation loader.
"""

import csv
import io
import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

from i2localizer.core.i2_parser import ExtractedItem, escape_value
from i2localizer.utils.encoding import write_text_safely

CSV_HEADER = ['Term', 'Original Text', 'Translation']

EXPORT_FORMATS = ('text', 'json', 'csv')

logger = logging.getLogger(__name__)


def export_to_text(items: List[ExtractedItem], translations: Optional[Dict[str, str]] = None) -> str:
    """#Term: / Original: / Translation: blocks separated by blank lines."""
    translations = translations or {}
    lines: List[str] = []

    for item in items:
        lines.append(f"#Term: {escape_value(item.term)}")
        lines.append(f"Original: {escape_value(item.original_text)}")

        translation = translations.get(item.term)
        if translation:
            lines.append(f"Translation: {escape_value(translation)}")

        lines.append('')

    return '\n'.join(lines)


def export_to_json(items: List[ExtractedItem], translations: Optional[Dict[str, str]] = None) -> str:
    translations = translations or {}
    records = [
        {
            'term': item.term,
            'originalText': item.original_text,
            'translation': translations.get(item.term, ''),
        }
        for item in items
    ]
    return json.dumps(records, indent=2, ensure_ascii=False)


def export_to_csv(items: List[ExtractedItem], translations: Optional[Dict[str, str]] = None) -> str:
    translations = translations or {}
    output = io.StringIO()
    writer = csv.writer(output, lineterminator='\n')

    writer.writerow(CSV_HEADER)
    for item in items:
        writer.writerow([item.term, item.original_text, translations.get(item.term, '')])

    return output.getvalue()


_EXPORTERS = {
    'text': export_to_text,
    'json': export_to_json,
    'csv': export_to_csv,
}


def export_items(items: List[ExtractedItem], fmt: str, translations: Optional[Dict[str, str]] = None) -> str:
    try:
        exporter = _EXPORTERS[fmt]
    except KeyError:
        raise ValueError(f"Unknown export format: {fmt}") from None
    return exporter(items, translations)


def export_extension(fmt: str) -> str:
    return '.txt' if fmt == 'text' else f'.{fmt}'


def generate_output_file_name(original_name: str, suffix: str) -> str:
    """Insert `suffix` before the extension of `original_name`."""
    if not original_name:
        return f"output{suffix}.txt"

    path = Path(original_name)
    if path.suffix and path.stem:
        return str(path.with_name(f"{path.stem}{suffix}{path.suffix}"))
    return f"{original_name}{suffix}"


def save_export(
    items: List[ExtractedItem],
    output_path: str,
    fmt: str = 'csv',
    translations: Optional[Dict[str, str]] = None,
    encoding: str = 'utf-8'
) -> bool:
    content = export_items(items, fmt, translations)
    if write_text_safely(Path(output_path), content, encoding=encoding):
        logger.info(f"Exported {len(items)} item(s) to {output_path} ({fmt})")
        return True
    return False
