"""
Encoding helpers to read/write text defensively without crashing on bad bytes.
"""

from __future__ import annotations

import logging
import chardet
from pathlib import Path
from typing import Optional, Tuple

logger = logging.getLogger(__name__)


def read_text_safely(path: Path, preferred: Tuple[str, ...] = ("utf-8-sig", "utf-8", "utf-16")) -> Optional[str]:
    """
    Read file as text with tolerant fallbacks:
    - try preferred encodings first
    - then chardet detection with errors='replace'
    Returns None on I/O failure.
    """
    try:
        raw = Path(path).read_bytes()
    except OSError as e:
        logger.error(f"Could not read {path}: {e}")
        return None

    for enc in preferred:
        if enc == "utf-16" and not raw.startswith((b"\xff\xfe", b"\xfe\xff")):
            continue
        try:
            return raw.decode(enc)
        except UnicodeDecodeError:
            continue

    detected = chardet.detect(raw)
    enc = detected.get("encoding") or "utf-8"
    logger.debug(f"Falling back to detected encoding {enc} for {path}")
    try:
        return raw.decode(enc, errors="replace")
    except LookupError:
        return raw.decode("utf-8", errors="replace")


def write_text_safely(path: Path, text: str, encoding: str = "utf-8", write_bom: bool = False) -> bool:
    """
    Write text with LF newlines, optionally prefixed with a UTF-8 BOM.
    Returns True if the write succeeded.
    """
    if write_bom and encoding.lower().replace("_", "-") == "utf-8":
        encoding = "utf-8-sig"
    try:
        Path(path).write_text(text, encoding=encoding, newline="\n")
        return True
    except (OSError, UnicodeEncodeError, LookupError) as e:
        logger.error(f"Could not write {path}: {e}")
        return False
