"""
I2 RTL Localizer - Translation tool for I2 Localization string tables
======================================================================

Converts string table dumps exported from a game engine into translated
versions, with an optional right-to-left re-encoding for renderers that do
not perform their own bidirectional layout:
- Term/value extraction with exact line preservation
- Translation import from JSON, tagged text, CSV/TSV or plain pairs
- In-place merge of translated values
- Persian/Arabic contextual shaping and run reversal
- Background worker with request correlation, timeouts and cancellation
"""

from . import core
from . import utils

__version__ = "1.0.0"

__all__ = ['core', 'utils', '__version__']
