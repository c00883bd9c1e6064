# -*- coding: utf-8 -*-
"""
Merge Engine
============

Writes translated values back into the value lines found by the parser.
Only the quoted value of a targeted line changes; every other line, and the
prefix of the targeted line, is kept exactly as it was.
"""

import logging
from pathlib import Path
from typing import Callable, Dict, Iterable, NamedTuple

from i2localizer.core.i2_parser import ExtractedItem, escape_value
from i2localizer.core.line_buffer import LineBuffer
from i2localizer.core.rtl_shaper import shape_text
from i2localizer.utils.encoding import write_text_safely


class MergeResult(NamedTuple):
    """Rewritten buffer and the number of lines whose content changed."""
    buffer: LineBuffer
    applied_count: int


class MergeEngine:
    """Applies a translation mapping to a LineBuffer."""

    def __init__(self, shaper: Callable[[str], str] = shape_text):
        self.logger = logging.getLogger(__name__)
        self.shaper = shaper

    def render_line(self, item: ExtractedItem, text: str, shape: bool = False) -> str:
        """Build the value line for `item` carrying `text`."""
        if shape:
            text = self.shaper(text)
        return f'{item.line_prefix}{escape_value(text)}"'

    def apply(
        self,
        buffer: LineBuffer,
        items: Iterable[ExtractedItem],
        translations: Dict[str, str],
        shape: bool = False
    ) -> MergeResult:
        """
        Rewrite the value lines of all items that have a translation.

        The buffer is modified in place and returned. Items without a
        translation, or without a line index/prefix, or pointing past the end
        of the buffer are skipped. Rewriting a line with identical content is
        not counted, so applying the same mapping twice changes nothing the
        second time.
        """
        applied = 0
        skipped = 0

        for item in items:
            translation = translations.get(item.term)
            if not translation:
                continue

            if item.data_line_index is None or item.line_prefix is None:
                skipped += 1
                continue

            if not 0 <= item.data_line_index < len(buffer):
                skipped += 1
                continue

            new_line = self.render_line(item, translation, shape)
            if buffer.replace(item.data_line_index, new_line):
                applied += 1

        if skipped:
            self.logger.debug(f"Skipped {skipped} item(s) without a usable line reference")
        self.logger.info(f"Applied {applied} translation(s){' (shaped)' if shape else ''}")

        return MergeResult(buffer, applied)

    def save(self, buffer: LineBuffer, output_path: str, encoding: str = "utf-8", write_bom: bool = False) -> bool:
        """
        Write the buffer to disk with LF line endings.
        """
        if write_text_safely(Path(output_path), buffer.to_text(), encoding=encoding, write_bom=write_bom):
            self.logger.info(f"Saved: {output_path}")
            return True
        return False


def apply_translations(
    buffer: LineBuffer,
    items: Iterable[ExtractedItem],
    translations: Dict[str, str],
    shape: bool = False
) -> MergeResult:
    return MergeEngine().apply(buffer, items, translations, shape)
