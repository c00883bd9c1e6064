"""
Configuration Manager
====================

Manages application settings and configuration.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional
from dataclasses import dataclass, asdict, fields

@dataclass
class ExtractionSettings:
    """Extraction-related settings."""
    target_slot: int = 0
    max_slot: int = 12  # highest language slot accepted from the user
    progress_interval: int = 1000  # lines between progress reports

@dataclass
class WorkerSettings:
    """Background worker settings."""
    use_worker: bool = True
    handshake_timeout: float = 1.5  # seconds to wait for the READY handshake
    request_timeout: float = 30.0  # seconds before a pending task is rejected
    start_method: str = "spawn"
    join_timeout: float = 2.0  # seconds to wait for the worker on shutdown

@dataclass
class OutputSettings:
    """Output file settings."""
    translated_suffix: str = "_translated"
    shaped_suffix: str = "_rtl"
    encoding: str = "utf-8"
    write_bom: bool = False
    export_format: str = "csv"  # text, json or csv

@dataclass
class AppSettings:
    """General application settings."""
    last_input_directory: str = ""
    last_output_directory: str = ""
    max_file_size: int = 100 * 1024 * 1024
    auto_save_settings: bool = False


def _known_fields(cls, data: Dict[str, Any]) -> Dict[str, Any]:
    names = {f.name for f in fields(cls)}
    return {key: value for key, value in data.items() if key in names}


class ConfigManager:
    """Manages application configuration."""

    SECTIONS = {
        'extraction': 'extraction_settings',
        'worker': 'worker_settings',
        'output': 'output_settings',
        'app': 'app_settings',
    }

    def __init__(self, config_file: str = "config.json", load: bool = True):
        self.logger = logging.getLogger(__name__)
        self.config_file = Path(config_file)

        # Default configuration
        self.extraction_settings = ExtractionSettings()
        self.worker_settings = WorkerSettings()
        self.output_settings = OutputSettings()
        self.app_settings = AppSettings()

        # Load existing configuration
        if load:
            self.load_config()

    def load_config(self) -> bool:
        """Load configuration from file."""
        if not self.config_file.exists():
            self.logger.info("Config file doesn't exist, using defaults")
            return False

        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                config_data = json.load(f)
        except (OSError, ValueError) as e:
            self.logger.error(f"Error loading configuration: {e}")
            return False

        if not isinstance(config_data, dict):
            self.logger.error("Error loading configuration: top level is not an object")
            return False

        for attr in self.SECTIONS.values():
            section_data = config_data.get(attr)
            if not isinstance(section_data, dict):
                continue
            cls = type(getattr(self, attr))
            try:
                setattr(self, attr, cls(**_known_fields(cls, section_data)))
            except TypeError as e:
                self.logger.warning(f"Ignoring invalid {attr}: {e}")

        self.logger.info("Configuration loaded successfully")
        return True

    def save_config(self) -> bool:
        """Save configuration to file."""
        config_data = {attr: asdict(getattr(self, attr)) for attr in self.SECTIONS.values()}

        # Create backup if file exists
        if self.config_file.exists():
            backup_file = self.config_file.with_suffix('.json.bak')
            if backup_file.exists():
                try:
                    backup_file.unlink()
                except OSError as e:
                    self.logger.warning(f"Could not remove existing backup: {e}")
            try:
                self.config_file.rename(backup_file)
            except OSError as e:
                self.logger.warning(f"Could not create backup: {e}")

        try:
            with open(self.config_file, 'w', encoding='utf-8') as f:
                json.dump(config_data, f, indent=4, ensure_ascii=False)
        except OSError as e:
            self.logger.error(f"Error saving configuration: {e}")
            return False

        self.logger.info("Configuration saved successfully")
        return True

    def _section(self, name: str):
        attr = self.SECTIONS.get(name)
        return getattr(self, attr) if attr else None

    def get_setting(self, key: str, default: Any = None) -> Any:
        """Get a setting value using dot notation (e.g., 'worker.request_timeout')."""
        parts = key.split('.')
        if len(parts) != 2:
            return default
        section = self._section(parts[0])
        if section is None:
            return default
        return getattr(section, parts[1], default)

    def set_setting(self, key: str, value: Any) -> bool:
        """Set a setting value using dot notation (e.g., 'extraction.target_slot')."""
        parts = key.split('.')
        section = self._section(parts[0]) if len(parts) == 2 else None
        if section is None or not hasattr(section, parts[1]):
            self.logger.error(f"Unknown setting: {key}")
            return False

        setattr(section, parts[1], value)
        if self.app_settings.auto_save_settings:
            self.save_config()
        return True

    def reset_to_defaults(self) -> None:
        """Reset configuration to defaults."""
        self.extraction_settings = ExtractionSettings()
        self.worker_settings = WorkerSettings()
        self.output_settings = OutputSettings()
        self.app_settings = AppSettings()
        self.logger.info("Configuration reset to defaults")
