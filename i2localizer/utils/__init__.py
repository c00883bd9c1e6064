"""
Utils module for I2 RTL Localizer
=================================
"""

from .config import ConfigManager, ExtractionSettings, WorkerSettings, OutputSettings, AppSettings
from .encoding import read_text_safely, write_text_safely

__all__ = [
    'ConfigManager', 'ExtractionSettings', 'WorkerSettings', 'OutputSettings', 'AppSettings',
    'read_text_safely', 'write_text_safely'
]
