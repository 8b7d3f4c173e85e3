from pathlib import Path
from typing import Any, Dict, List, Optional
import logging
import os


class EnvironmentManager:
    """
    Environment manager holding the workflow engine settings.

    Values come from the defaults below, then a .env file, then the process
    environment (each setting can be set via its uppercase name), then any
    explicit update_settings() call.
    """

    _instance = None

    # List of all settings that are paths
    PATH_SETTINGS = [
        "workflow_custom_dir",
        "workflow_save_dir",
    ]

    # Default settings with their types
    DEFAULT_SETTINGS = {
        # Directory scanned for custom workflow files
        "workflow_custom_dir": (None, str),
        # Directory save_workflow writes to when no directory is given
        "workflow_save_dir": ("workflows", str),
        # Reject undeclared or mistyped run variables instead of warning
        "workflow_strict_variables": (False, bool),
        # Maximum characters kept in a step's output summary
        "workflow_output_summary_limit": (500, int),
        # Whole-run timeout in seconds, checked between steps
        "workflow_run_timeout": (None, float),
    }

    # Create mapping dynamically - each setting can be set via its uppercase env var
    ENV_MAPPING = {setting.upper(): setting for setting in DEFAULT_SETTINGS.keys()}

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialize()
        return cls._instance

    def _initialize(self):
        """Initialize environment with default values"""
        self.env_variables: Dict[str, str] = {}
        self.settings: Dict[str, Any] = {}
        self.logger = logging.getLogger(__name__)
        self.load()

    def _convert_value(self, value: Any, target_type: type) -> Any:
        """Convert string value to target type"""
        if value is None or isinstance(value, target_type):
            return value
        if target_type == bool:
            return str(value).lower() in ("1", "true", "yes")
        return target_type(value)

    def _apply(self, key: str, value: Any) -> None:
        setting_name = self.ENV_MAPPING.get(key.upper())
        if setting_name is None:
            return
        _, target_type = self.DEFAULT_SETTINGS[setting_name]
        if value == "":
            self.settings[setting_name] = self.DEFAULT_SETTINGS[setting_name][0]
            return
        try:
            self.settings[setting_name] = self._convert_value(value, target_type)
        except (TypeError, ValueError) as e:
            self.logger.warning(
                f"Ignoring invalid value {value!r} for {setting_name}: {e}"
            )

    def _env_file_paths(self) -> List[Path]:
        paths = [Path.cwd() / ".env"]
        try:
            paths.append(Path.home() / ".env")
        except (RuntimeError, OSError):
            # Skip home directory if it can't be determined
            pass
        return paths

    def _parse_env_file(self, env_file_path: Path):
        """Parse a .env file and apply the workflow settings it names"""
        try:
            with open(env_file_path, "r") as f:
                for line in f:
                    line = line.strip()
                    if not line or line.startswith("#") or "=" not in line:
                        continue
                    key, value = line.split("=", 1)
                    key = key.strip()
                    value = value.strip()

                    # Remove quotes if present
                    if (value.startswith('"') and value.endswith('"')) or (
                        value.startswith("'") and value.endswith("'")
                    ):
                        value = value[1:-1]

                    self.env_variables[key] = value
                    self._apply(key, value)
        except OSError as e:
            self.logger.warning(f"Error parsing .env file {env_file_path}: {e}")

    def _load_from_env_file(self):
        """Load settings from the first .env file found"""
        for env_path in self._env_file_paths():
            if env_path.exists() and env_path.is_file():
                self.logger.debug(f"Loading environment from: {env_path}")
                self._parse_env_file(env_path)
                return

    def load(self):
        """Reset to defaults and load the .env file and OS environment"""
        self.settings = {
            key: default for key, (default, _) in self.DEFAULT_SETTINGS.items()
        }
        self._load_from_env_file()

        for key, value in os.environ.items():
            if key in self.ENV_MAPPING:
                self._apply(key, value)

        return self

    def get_setting(self, name: str, default: Any = None) -> Any:
        """Get a setting value, resolving path settings to absolute paths"""
        value = self.settings.get(name, default)
        if value is not None and name in self.PATH_SETTINGS:
            return str(Path(value).expanduser().resolve())
        return value

    def update_settings(self, updates: Dict[str, Any]) -> None:
        """Override settings programmatically"""
        for name, value in updates.items():
            if name not in self.DEFAULT_SETTINGS:
                raise KeyError(f"Unknown setting '{name}'")
            self._apply(name, value)

    def get_custom_dir(self) -> Optional[str]:
        return self.get_setting("workflow_custom_dir")

    def get_save_dir(self) -> str:
        return self.get_setting("workflow_save_dir")

    def get_parameter_dict(self) -> Dict[str, Any]:
        """Get all settings as a dictionary"""
        return {name: self.get_setting(name) for name in self.DEFAULT_SETTINGS}


# Create singleton instance
env_manager = EnvironmentManager()
