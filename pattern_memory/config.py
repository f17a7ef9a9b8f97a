"""
Configuration management for storage, session timing and input settings
"""

import json
import logging
from pathlib import Path
from typing import Dict, Any
from dataclasses import dataclass, asdict, fields

from .interfaces import ConfigError


logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".pattern-memory" / "config.json"


@dataclass
class StorageSettings:
    """Where and how the rejected-pattern set is persisted"""
    data_directory: str = str(Path.home() / ".pattern-memory")
    store_file: str = "patterns.json"
    store_key: str = "invalidPatterns"
    encrypt_store: bool = False
    key_file: str = ".store_key"
    export_directory: str = "."

    @property
    def store_path(self) -> Path:
        return Path(self.data_directory).expanduser() / self.store_file

    @property
    def key_path(self) -> Path:
        return Path(self.data_directory).expanduser() / self.key_file


@dataclass
class SessionSettings:
    """Pattern rules and result display timing"""
    min_pattern_length: int = 4
    dismiss_delay: float = 1.5


@dataclass
class InputSettings:
    """Pointer-to-dot mapping for drawing surfaces"""
    hit_tolerance: float = 40.0
    dot_spacing: float = 96.0
    grid_margin: float = 48.0


@dataclass
class LoggingSettings:
    """Standard logging and activity log settings"""
    level: str = "INFO"
    log_directory: str = str(Path.home() / ".pattern-memory" / "logs")
    activity_log: bool = True
    encrypt_activity_log: bool = False


class ConfigManager:
    """Configuration manager for pattern memory sessions"""

    SECTIONS = {
        'storage': ('storage_settings', StorageSettings),
        'session': ('session_settings', SessionSettings),
        'input': ('input_settings', InputSettings),
        'logging': ('logging_settings', LoggingSettings),
    }

    def __init__(self, config_path: str = None):
        self.config_path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
        self.storage_settings = StorageSettings()
        self.session_settings = SessionSettings()
        self.input_settings = InputSettings()
        self.logging_settings = LoggingSettings()

        self.load_config()

    def load_config(self) -> bool:
        """Load configuration from file, keeping defaults for anything missing"""
        if not self.config_path.exists():
            return False

        try:
            with open(self.config_path, 'r') as f:
                config_data = json.load(f)

            for category, (attribute, settings_class) in self.SECTIONS.items():
                section = config_data.get(category)
                if isinstance(section, dict):
                    setattr(self, attribute, self._load_section(category, settings_class, section))

            return True
        except (OSError, ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Error loading config {self.config_path}: {e}")
            return False

    def save_config(self) -> bool:
        """Save configuration to file"""
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, 'w') as f:
                json.dump(self.to_dict(), f, indent=2)
            return True
        except OSError as e:
            logger.error(f"Error saving config {self.config_path}: {e}")
            return False

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        return {
            category: asdict(getattr(self, attribute))
            for category, (attribute, _) in self.SECTIONS.items()
        }

    def update_setting(self, category: str, setting: str, value: Any) -> bool:
        """
        Update a specific setting and persist the configuration

        String values (as given on the command line) are converted to the
        type of the current value.

        Raises:
            ConfigError: For unknown settings or values that cannot be converted
        """
        if category not in self.SECTIONS:
            raise ConfigError(f"Unknown configuration category: {category}", setting)

        settings = getattr(self, self.SECTIONS[category][0])
        if setting not in {f.name for f in fields(settings)}:
            raise ConfigError(f"Unknown setting: {category}.{setting}", setting)

        setattr(settings, setting, self._coerce(getattr(settings, setting), value, setting))
        return self.save_config()

    def _load_section(self, category: str, settings_class, section: Dict[str, Any]):
        """Build one settings section, keeping the default for unusable values"""
        settings = settings_class()
        known = {f.name for f in fields(settings_class)}

        for setting, value in section.items():
            if setting not in known:
                continue
            try:
                setattr(settings, setting, self._coerce(getattr(settings, setting), value, setting))
            except ConfigError as e:
                logger.warning(f"Ignoring {category}.{setting} in {self.config_path}: {e.message}")

        return settings

    @staticmethod
    def _coerce(current: Any, value: Any, setting: str) -> Any:
        """
        Convert value to the type of the current setting value

        Strings (as given on the command line or hand-edited in the file)
        are parsed; other values must already have a compatible type.

        Raises:
            ConfigError: If value cannot be converted
        """
        try:
            if isinstance(current, bool):
                if isinstance(value, bool):
                    return value
                if isinstance(value, str):
                    lowered = value.strip().lower()
                    if lowered in ('1', 'true', 'yes', 'on'):
                        return True
                    if lowered in ('0', 'false', 'no', 'off'):
                        return False
                raise ValueError(value)

            if isinstance(current, (int, float)):
                if isinstance(value, bool):
                    raise ValueError(value)
                if isinstance(value, str):
                    value = float(value) if isinstance(current, float) else int(value)
                if not isinstance(value, (int, float)):
                    raise ValueError(value)
                if isinstance(current, int) and value != int(value):
                    raise ValueError(value)
                return type(current)(value)

            if isinstance(current, str) and not isinstance(value, str):
                raise ValueError(value)
        except (TypeError, ValueError, OverflowError):
            raise ConfigError(f"Invalid value for {setting}: {value!r}", setting)

        return value


# Global configuration instance
config_manager = ConfigManager()
