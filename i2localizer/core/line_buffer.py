"""
Line Buffer
===========

Indexable sequence of text lines built from raw file content. Lines can be
replaced in place but never inserted or removed, so line indices recorded
during extraction stay valid for the whole lifetime of the buffer.
"""

import re
from typing import Iterable, Iterator, List, Optional

BOM = '\ufeff'

_NEWLINE_RE = re.compile(r'\r\n?')


def normalize_content(content: str) -> str:
    """Remove a leading BOM and convert CRLF / CR line endings to LF."""
    if not content:
        return ""
    if content.startswith(BOM):
        content = content[1:]
    return _NEWLINE_RE.sub('\n', content)


class LineBuffer:
    """Mutable list of lines addressed by zero-based index."""

    def __init__(self, lines: Optional[Iterable[str]] = None):
        self._lines: List[str] = list(lines) if lines is not None else []

    @classmethod
    def from_text(cls, content: str) -> "LineBuffer":
        return cls(normalize_content(content).split('\n'))

    def to_text(self) -> str:
        return '\n'.join(self._lines)

    @property
    def lines(self) -> List[str]:
        """Snapshot of the current lines."""
        return list(self._lines)

    def copy(self) -> "LineBuffer":
        return LineBuffer(self._lines)

    def replace(self, index: int, line: str) -> bool:
        """Replace one line; returns True when the content actually changed."""
        if self._lines[index] == line:
            return False
        self._lines[index] = line
        return True

    def __len__(self) -> int:
        return len(self._lines)

    def __getitem__(self, index: int) -> str:
        return self._lines[index]

    def __setitem__(self, index: int, line: str) -> None:
        if not isinstance(index, int):
            raise TypeError("LineBuffer only supports single line replacement")
        self._lines[index] = line

    def __iter__(self) -> Iterator[str]:
        return iter(self._lines)

    def __eq__(self, other) -> bool:
        if isinstance(other, LineBuffer):
            return self._lines == other._lines
        return NotImplemented

    def __repr__(self) -> str:
        return f"LineBuffer({len(self._lines)} lines)"
