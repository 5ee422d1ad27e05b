"""
Constants for the goal cascade engine.

Note: These constants serve as default fallback values.
Actual values are loaded from .goalcascade/config.json at runtime via ConfigManager.
"""
from pathlib import Path
from typing import Any, Optional
import json

# =============================================================================
# Default Fallback Values
# These are used if config.json doesn't exist or doesn't specify a value.
# =============================================================================

DEFAULT_DATA_DIR = ".goalcascade"

# Rate written to an ancestor when its cascade is confirmed
DEFAULT_CONFIRM_COMPLETION_RATE = 100

# Percentage calculation defaults
DEFAULT_PERCENTAGE_ROUND_PRECISION = 1

# Planned number of weekly tasks under one outcome (display-only achievement rate)
DEFAULT_EXPECTED_TASK_COUNT = 24

DEFAULT_AUTO_ARCHIVE_ENABLED = True
DEFAULT_DATE_FORMAT = "%Y-%m-%d"

# Accepted spellings of true for hand-edited config values
TRUE_STRINGS = ("1", "true", "yes", "on")

# Status constants (not configurable)
COMPLETED_STATUS = "completed"
CANCELLED_STATUS = "cancelled"
ACTIVE_STATUS = "active"
LEAF_STATUSES = [ACTIVE_STATUS, COMPLETED_STATUS, CANCELLED_STATUS]

# Leaf progress is binary
LEAF_COMPLETED_RATE = 100
LEAF_OPEN_RATE = 0

# Validation error messages (not configurable)
VALIDATION_INVALID_LEAF_STATUS = "Task status must be one of: active, completed, cancelled."
VALIDATION_COMPLETION_DATE = "completion_date must be set if and only if status is completed."


# =============================================================================
# Config Loader
# Load values from .goalcascade/config.json at runtime.
# =============================================================================

_config_manager_instance: Optional['ConfigManager'] = None


class ConfigManager:
    """
    Manages loading configuration from a config.json file with fallback to defaults.

    This class is independent of the goal stores to avoid cyclic dependencies.
    Stores handle persistence; ConfigManager handles runtime access.

    Usage:
        # With default path (.goalcascade/config.json)
        config = ConfigManager()
        rate = config.get_int('confirm_completion_rate', DEFAULT_CONFIRM_COMPLETION_RATE)

        # With custom path
        config = ConfigManager(config_path=Path("/custom/path/config.json"))
    """

    def __init__(self, config_path: Optional[Path] = None, data_dir: Optional[Path] = None) -> None:
        """
        Initialize ConfigManager.

        Args:
            config_path: Direct path to config.json file. Takes precedence over data_dir.
            data_dir: Path to .goalcascade/ directory. Config path will be data_dir/config.json.
        """
        self._config: Optional[dict] = None

        if config_path is not None:
            self._config_path = config_path
        elif data_dir is not None:
            self._config_path = data_dir / "config.json"
        else:
            self._config_path = Path(DEFAULT_DATA_DIR) / "config.json"

    def _load_config(self) -> dict:
        """Load config from config.json file."""
        if self._config is not None:
            return self._config

        if self._config_path.exists():
            try:
                with open(self._config_path, "r") as f:
                    self._config = json.load(f)
            except (json.JSONDecodeError, IOError):
                self._config = {}
        else:
            self._config = {}

        return self._config

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a config value with fallback to default.

        Args:
            key: Configuration key name.
            default: Default value if key not found.

        Returns:
            Config value or default.
        """
        config = self._load_config()
        return config.get(key, default)

    def get_int(self, key: str, default: int) -> int:
        """Get an integer config value with fallback."""
        value = self.get(key, default)
        return int(value) if value is not None else default

    def get_bool(self, key: str, default: bool) -> bool:
        """Get a boolean config value with fallback."""
        value = self.get(key, default)
        if value is None:
            return default
        if isinstance(value, str):
            return value.strip().lower() in TRUE_STRINGS
        return bool(value)

    def get_str(self, key: str, default: str) -> str:
        """Get a string config value with fallback."""
        value = self.get(key, default)
        return str(value) if value is not None else default

    def reload(self) -> dict:
        """Force reload of config from disk."""
        self._config = None
        return self._load_config()

    @property
    def config_path(self) -> Path:
        """Get the config file path."""
        return self._config_path


def get_config_manager(reset: bool = False) -> ConfigManager:
    """
    Get the singleton ConfigManager instance with default path.

    Args:
        reset: If True, reset the singleton and create a new instance.

    Returns:
        ConfigManager singleton instance.
    """
    global _config_manager_instance
    if _config_manager_instance is None or reset:
        _config_manager_instance = ConfigManager()
    return _config_manager_instance


def reset_config_manager() -> None:
    """Reset the singleton ConfigManager instance (useful for testing)."""
    global _config_manager_instance
    _config_manager_instance = None


# Convenience functions for common config access
# These use the singleton with default path (.goalcascade/config.json)
def get_confirm_completion_rate() -> int:
    """Get the completion rate written on confirmation from config or default."""
    return get_config_manager().get_int('confirm_completion_rate', DEFAULT_CONFIRM_COMPLETION_RATE)


def get_percentage_round_precision() -> int:
    """Get percentage round precision from config or default."""
    return get_config_manager().get_int('percentage_round_precision', DEFAULT_PERCENTAGE_ROUND_PRECISION)


def get_expected_task_count() -> int:
    """Get the planned task count per outcome from config or default."""
    return get_config_manager().get_int('expected_task_count', DEFAULT_EXPECTED_TASK_COUNT)


def get_auto_archive_enabled() -> bool:
    """Get whether completed outcomes are archived from config or default."""
    return get_config_manager().get_bool('auto_archive_enabled', DEFAULT_AUTO_ARCHIVE_ENABLED)


def get_date_format() -> str:
    """Get the display date format from config or default."""
    return get_config_manager().get_str('date_format', DEFAULT_DATE_FORMAT)
