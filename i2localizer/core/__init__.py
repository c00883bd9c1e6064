"""
Core module for I2 RTL Localizer
================================
"""

from .line_buffer import LineBuffer, normalize_content
from .i2_parser import (
    I2Parser, I2Document, ExtractedItem, extract_items, escape_value, unescape_value,
    filter_items, count_translated
)
from .translation_loader import TranslationMapLoader, parse_translations
from .merge_engine import MergeEngine, MergeResult, apply_translations
from .rtl_shaper import shape_text, is_rtl_text
from .task_runner import TaskRunner, RunnerState

__all__ = [
    'LineBuffer', 'normalize_content',
    'I2Parser', 'I2Document', 'ExtractedItem', 'extract_items', 'escape_value', 'unescape_value',
    'filter_items', 'count_translated',
    'TranslationMapLoader', 'parse_translations',
    'MergeEngine', 'MergeResult', 'apply_translations',
    'shape_text', 'is_rtl_text',
    'TaskRunner', 'RunnerState'
]
