# -*- coding: utf-8 -*-
"""
I2 String Table Parser
======================

Parses I2 Localization string table dumps and extracts the values of one
language slot.

Recognized layout:

    #Term: Greeting
    [0]
      0 string data = "Hello"
    [1]
      0 string data = "Salam"

The slot number comes from the bracketed line when present; a value line
that is not preceded by a bracketed line carries its own slot number.
"""

import re
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from i2localizer.core.exceptions import ParseError
from i2localizer.core.line_buffer import LineBuffer
from i2localizer.utils.encoding import read_text_safely

ProgressCallback = Callable[[int], None]

DEFAULT_PROGRESS_INTERVAL = 1000

_UNESCAPES = {
    'n': '\n',
    't': '\t',
    'r': '\r',
    '"': '"',
    '\\': '\\',
}

_ESCAPE_SEQUENCE_RE = re.compile(r'\\(.)', re.DOTALL)


def unescape_value(text: str) -> str:
    """Decode the escapes of a quoted value literal.

    Only \\n, \\t, \\r, \\" and \\\\ are recognized; any other backslash pair
    is kept verbatim.
    """
    if not text or '\\' not in text:
        return text

    def _replace(match):
        char = match.group(1)
        return _UNESCAPES.get(char, match.group(0))

    return _ESCAPE_SEQUENCE_RE.sub(_replace, text)


def escape_value(text: str) -> str:
    """Escape text so it can be embedded in a quoted value literal."""
    if not text:
        return text

    # Backslash first
    text = text.replace('\\', '\\\\')
    text = text.replace('"', '\\"')
    text = text.replace('\n', '\\n')
    text = text.replace('\r', '\\r')
    text = text.replace('\t', '\\t')

    return text


@dataclass(frozen=True)
class ExtractedItem:
    """One translatable value found for the target slot."""
    term: str
    original_text: str
    data_line_index: Optional[int] = None  # zero-based index of the value line
    line_prefix: Optional[str] = None      # value line text up to the opening quote

    def to_dict(self) -> Dict:
        return {
            'term': self.term,
            'originalText': self.original_text,
            'dataLineIndex': self.data_line_index,
            'linePrefix': self.line_prefix,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "ExtractedItem":
        return cls(
            term=data.get('term', ''),
            original_text=data.get('originalText', data.get('original_text', '')),
            data_line_index=data.get('dataLineIndex', data.get('data_line_index')),
            line_prefix=data.get('linePrefix', data.get('line_prefix')),
        )


@dataclass
class I2Document:
    """A parsed string table file together with its extracted items."""
    file_path: str
    target_slot: int
    buffer: LineBuffer
    items: List[ExtractedItem] = field(default_factory=list)

    def get_untranslated(self, translations: Dict[str, str]) -> List[ExtractedItem]:
        """Items that have no usable translation yet."""
        return [item for item in self.items if not (translations.get(item.term) or '').strip()]

    def get_translated_count(self, translations: Dict[str, str]) -> int:
        return count_translated(self.items, translations)


@dataclass
class _ScanState:
    """Fold state threaded through a single extraction scan."""
    current_term: Optional[str] = None
    found: bool = False


class I2Parser:
    """
    Extracts translatable values of one language slot from an I2 dump.

    Only the first value found for the target slot is kept for each term;
    later slot entries of the same term are ignored.
    """

    def __init__(self, progress_interval: int = DEFAULT_PROGRESS_INTERVAL):
        self.logger = logging.getLogger(__name__)
        self.progress_interval = max(1, int(progress_interval or DEFAULT_PROGRESS_INTERVAL))

        # #Term: Some/Key
        self._term_re = re.compile(r'^#Term:\s*(.+)$')

        # 1 string Term = "Some/Key" - raw asset dump form
        self._term_field_re = re.compile(r'^\s*\d+\s+string\s+Term\s*=\s*"((?:[^"\\]|\\.)*)"\s*$')

        # [3]
        self._slot_re = re.compile(r'^\[(\d+)\]$')

        # 0 string data = "..." - prefix kept verbatim for rewriting
        self._data_re = re.compile(r'^(\s*(\d+)\s+string\s+data\s*=\s*")((?:[^"\\]|\\.)*)"\s*$')

    def _match_term(self, line: str) -> Optional[str]:
        stripped = line.strip()
        match = self._term_re.match(stripped)
        if match:
            return match.group(1).strip()

        match = self._term_field_re.match(line)
        if match:
            term = unescape_value(match.group(1)).strip()
            return term or None

        return None

    def extract(
        self,
        content: Union[str, LineBuffer],
        target_slot: int,
        on_progress: Optional[ProgressCallback] = None
    ) -> List[ExtractedItem]:
        """
        Scan the content and return the items of `target_slot` in file order.

        Args:
            content: Raw file content or an already built LineBuffer
            target_slot: Language slot index to extract
            on_progress: Optional callback receiving the scanned percentage

        Returns:
            ExtractedItem list (empty when nothing matches)
        """
        buffer = content if isinstance(content, LineBuffer) else LineBuffer.from_text(content)
        lines = buffer.lines
        total = len(lines)

        results: List[ExtractedItem] = []
        state = _ScanState()

        i = 0
        processed = 0
        while i < total:
            line = lines[i]
            consumed = 1

            term = self._match_term(line)
            if term is not None:
                state = _ScanState(current_term=term)
            else:
                slot_match = self._slot_re.match(line.strip())
                if slot_match:
                    slot = int(slot_match.group(1))
                    if i + 1 < total:
                        data_match = self._data_re.match(lines[i + 1])
                        if data_match:
                            self._record(results, state, slot, target_slot, data_match, i + 1)
                            consumed = 2
                else:
                    data_match = self._data_re.match(line)
                    if data_match:
                        slot = int(data_match.group(2))
                        self._record(results, state, slot, target_slot, data_match, i)

            for _ in range(consumed):
                processed += 1
                if on_progress and processed % self.progress_interval == 0:
                    on_progress(round(processed / total * 100))
            i += consumed

        if on_progress:
            on_progress(100)

        self.logger.debug(f"Extracted {len(results)} item(s) for slot {target_slot} from {total} lines")
        return results

    def _record(self, results, state: _ScanState, slot: int, target_slot: int, data_match, line_index: int):
        if slot != target_slot or not state.current_term or state.found:
            return
        results.append(ExtractedItem(
            term=state.current_term,
            original_text=unescape_value(data_match.group(3)),
            data_line_index=line_index,
            line_prefix=data_match.group(1),
        ))
        state.found = True

    def parse_file(self, file_path: str, target_slot: int) -> I2Document:
        """
        Read a string table file and extract the items of `target_slot`.
        """
        content = read_text_safely(Path(file_path))
        if content is None:
            raise ParseError(f"Could not read file: {file_path}")

        buffer = LineBuffer.from_text(content)
        items = self.extract(buffer, target_slot)

        self.logger.info(f"Parsed {file_path} - {len(items)} item(s) for slot {target_slot}")

        return I2Document(
            file_path=str(file_path),
            target_slot=target_slot,
            buffer=buffer,
            items=items,
        )


def extract_items(
    content: Union[str, LineBuffer],
    target_slot: int,
    on_progress: Optional[ProgressCallback] = None,
    progress_interval: int = DEFAULT_PROGRESS_INTERVAL
) -> List[ExtractedItem]:
    return I2Parser(progress_interval).extract(content, target_slot, on_progress)


def filter_items(items: List[ExtractedItem], query: str) -> List[ExtractedItem]:
    """Case-insensitive search on term and original text."""
    if not query or not query.strip():
        return list(items)

    lowered = query.lower()
    return [
        item for item in items
        if lowered in item.term.lower() or lowered in item.original_text.lower()
    ]


def count_translated(items: List[ExtractedItem], translations: Dict[str, str]) -> int:
    """Number of items with a non-blank translation."""
    return sum(1 for item in items if (translations.get(item.term) or '').strip())
