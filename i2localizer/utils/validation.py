"""
Input validation helpers for files and options supplied by the user.
"""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

SUPPORTED_EXTENSIONS = ('.txt', '.json', '.csv', '.tsv')

MAX_FILE_SIZE = 100 * 1024 * 1024
MAX_FILE_NAME_LENGTH = 255

_INVALID_NAME_CHARS_RE = re.compile(r'[<>:"|?*\x00-\x1F]')


@dataclass
class FileValidationResult:
    valid: bool
    error: Optional[str] = None


def is_valid_file_name(name: str) -> bool:
    if not name or not isinstance(name, str):
        return False
    if len(name) > MAX_FILE_NAME_LENGTH:
        return False
    return not _INVALID_NAME_CHARS_RE.search(name)


def is_supported_file_type(file_name: str) -> bool:
    return Path(file_name).suffix.lower() in SUPPORTED_EXTENSIONS


def is_acceptable_size(size: int, max_size: int = MAX_FILE_SIZE) -> bool:
    return isinstance(size, int) and 0 < size <= max_size


def is_valid_slot_index(index: int, max_slot: int = 12) -> bool:
    return isinstance(index, int) and not isinstance(index, bool) and 0 <= index <= max_slot


def sanitize_filename(file_name: str) -> str:
    """Replace characters that are unsafe in file names."""
    sanitized = _INVALID_NAME_CHARS_RE.sub('_', file_name)
    sanitized = re.sub(r'\s+', '_', sanitized)
    return sanitized[:MAX_FILE_NAME_LENGTH]


def validate_input_file(path: str, max_size: int = MAX_FILE_SIZE) -> FileValidationResult:
    """Check name, extension, existence and size of an input file."""
    file_path = Path(path)

    if not is_valid_file_name(file_path.name):
        return FileValidationResult(False, f"Invalid file name: {file_path.name}")

    if not is_supported_file_type(file_path.name):
        return FileValidationResult(
            False,
            f"Unsupported file type: {file_path.suffix or '(none)'}. Use {', '.join(SUPPORTED_EXTENSIONS)} files"
        )

    if not file_path.is_file():
        return FileValidationResult(False, f"File not found: {path}")

    size = file_path.stat().st_size
    if not is_acceptable_size(size, max_size):
        if size == 0:
            return FileValidationResult(False, f"File is empty: {path}")
        return FileValidationResult(False, f"File size exceeds {max_size // (1024 * 1024)}MB limit: {path}")

    return FileValidationResult(True)
