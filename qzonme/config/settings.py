"""
Configuration Manager for QzonMe using Pydantic Settings.

This module provides a type-safe configuration system with:
- Automatic config file discovery
- Environment variable override support with proper type conversion
- Configuration validation with clear error messages
- No circular dependencies with logging

Media host credentials are never stored in the config file: the config
names the environment variables that hold them.
"""

from __future__ import annotations

import os
import yaml
import logging
from typing import Any, ClassVar
from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict, PydanticBaseSettingsSource


# Use basic logging during config initialization (before custom logger is
# set up)
_basic_logger = logging.getLogger(__name__)


class APISettings(BaseModel):
    """API configuration."""
    base_url: str = Field(
        default="http://127.0.0.1:10000",
        description="API base URL")
    host: str = Field(default="0.0.0.0", description="Host for uvicorn")
    port: int = Field(
        default=10000,
        ge=1,
        le=65535,
        description="Port for uvicorn")


class MediaSettings(BaseModel):
    """Remote media host (Cloudinary) configuration."""
    cloud_name_env: str = Field(default="CLOUDINARY_CLOUD_NAME")
    api_key_env: str = Field(default="CLOUDINARY_API_KEY")
    api_secret_env: str = Field(default="CLOUDINARY_API_SECRET")
    default_cloud_name: str | None = Field(
        default=None,
        description="Cloud name used when the cloud name variable is unset")
    folder: str = Field(
        default="quiz-images",
        description="Folder holding every quiz image on the media host")
    timeout_seconds: float = Field(
        default=60,
        gt=0,
        le=600,
        description="Timeout applied to every media host call")
    check_connection: bool = Field(
        default=True,
        description="Refuse to start if the media host is unreachable")

    def credentials(self) -> dict[str, str | None]:
        """
        Resolve credentials from the environment variables named above.

        Returns:
            Dict with cloud_name, api_key and api_secret (None when unset)
        """
        return {
            "cloud_name": os.getenv(self.cloud_name_env) or self.default_cloud_name,
            "api_key": os.getenv(self.api_key_env),
            "api_secret": os.getenv(self.api_secret_env),
        }


class UploadSettings(BaseModel):
    """Image upload staging configuration."""
    temp_dir: str = Field(
        default="dist/temp_uploads",
        description="Directory where incoming uploads are staged")
    max_file_size_mb: int = Field(default=10, ge=1, le=100)


class CleanupSettings(BaseModel):
    """Expired image cleanup configuration."""
    enabled: bool = Field(
        default=True,
        description="Run the cleanup scheduler in the API process")
    interval_seconds: float = Field(default=24 * 60 * 60, gt=0)
    initial_delay_seconds: float = Field(default=5 * 60, ge=0)
    page_size: int = Field(
        default=500,
        ge=1,
        le=500,
        description="Assets listed per run (host maximum is 500)")


class LoggingSettings(BaseModel):
    """Logging configuration (raw dict for logging.config.dictConfig)."""
    version: int = Field(default=1)
    disable_existing_loggers: bool = Field(default=False)
    formatters: dict[str, Any] = Field(default_factory=dict)
    handlers: dict[str, Any] = Field(default_factory=dict)
    root: dict[str, Any] = Field(default_factory=dict)
    loggers: dict[str, Any] = Field(default_factory=dict)

    # Allow extra fields for logging config flexibility
    model_config = {'extra': 'allow'}


class AppSettings(BaseSettings):
    """
    Main application settings using Pydantic Settings.

    This class automatically:
    - Loads configuration from YAML files
    - Overrides values from environment variables
    - Validates all settings

    Environment variables use the format: QZONME_SECTION__KEY
    Example: QZONME_CLEANUP__ENABLED=false
    """

    api: APISettings = Field(default_factory=APISettings)
    media: MediaSettings = Field(default_factory=MediaSettings)
    uploads: UploadSettings = Field(default_factory=UploadSettings)
    cleanup: CleanupSettings = Field(default_factory=CleanupSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = SettingsConfigDict(
        env_prefix="QZONME_",
        env_nested_delimiter="__",
        case_sensitive=False,
        # Allow extra fields for forward compatibility
        extra="ignore",
    )

    # Class variable to temporarily store YAML data
    _temp_config_data: ClassVar[dict[str, Any] | None] = None
    _temp_config_path: ClassVar[str | None] = None

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """
        Customize the sources and their priority for loading settings.

        Priority (highest to lowest):
        1. Environment variables (highest priority)
        2. YAML file data (if loaded via from_yaml)
        3. Default values
        """
        class YamlSettingsSource(PydanticBaseSettingsSource):
            def get_field_value(
                    self, field: Any, field_name: str) -> tuple[Any, str, bool]:
                if cls._temp_config_data and field_name in cls._temp_config_data:
                    return cls._temp_config_data[field_name], field_name, False
                return None, field_name, False

            def __call__(self) -> dict[str, Any]:
                return cls._temp_config_data or {}

        return (
            env_settings,
            YamlSettingsSource(settings_cls),
            init_settings,
        )

    @classmethod
    def from_yaml(cls, config_path: str | None = None) -> AppSettings:
        """
        Load configuration from YAML file with fallback search strategy.

        Search order:
        1. QZONME_CONFIG_PATH environment variable (if set)
        2. ./config.yaml (project root)
        3. qzonme/config/config.yaml (package location)

        Note: Environment variables (QZONME_*) always override YAML values.

        Args:
            config_path: Explicit path to config file (skips search if provided)

        Returns:
            AppSettings instance

        Raises:
            FileNotFoundError: If no config file is found in any location
            ValueError: If config file has invalid structure or values
        """
        if config_path is None:
            config_path = cls._find_config_file()

        _basic_logger.info(f"Loading configuration from: {config_path}")

        try:
            with open(config_path, "r") as f:
                config_data = yaml.safe_load(f) or {}
        except FileNotFoundError:
            _basic_logger.error(f"Configuration file not found: {config_path}")
            raise FileNotFoundError(
                f"Configuration file not found: {config_path}\n"
                f"Tried search paths: {cls._get_search_paths()}"
            )
        except yaml.YAMLError as e:
            _basic_logger.error(f"Invalid YAML in config file: {e}")
            raise ValueError(
                f"Invalid YAML in configuration file {config_path}: {e}")

        cls._temp_config_data = config_data
        cls._temp_config_path = config_path

        try:
            settings = cls()
            _basic_logger.info(
                "Configuration loaded and validated successfully")
            return settings
        except ValidationError as e:
            _basic_logger.error(f"Configuration validation failed: {e}")
            raise ValueError(f"Configuration validation failed:\n{e}")
        finally:
            cls._temp_config_data = None
            cls._temp_config_path = None

    @staticmethod
    def _get_search_paths() -> list[str]:
        """Get list of paths to search for config file."""
        return [
            os.getenv("QZONME_CONFIG_PATH", ""),
            "./config.yaml",
            os.path.join(os.path.dirname(__file__), "config.yaml"),
        ]

    @classmethod
    def _find_config_file(cls) -> str:
        """
        Search for config file in multiple locations.

        Returns:
            Path to first found config file

        Raises:
            FileNotFoundError: If no config file is found
        """
        search_paths = cls._get_search_paths()

        for path in search_paths:
            if path and os.path.isfile(path):
                _basic_logger.debug(f"Found config file at: {path}")
                return path

        error_msg = (
            "No configuration file found. Searched in:\n" +
            "\n".join(f"  - {p}" for p in search_paths if p) +
            "\n\nPlease either:\n"
            "  1. Set QZONME_CONFIG_PATH environment variable\n"
            "  2. Place config.yaml in project root"
        )
        _basic_logger.error(error_msg)
        raise FileNotFoundError(error_msg)


class ConfigManager:
    """Singleton wrapper for AppSettings."""

    _instance: ConfigManager | None = None
    _settings: AppSettings | None = None
    _config_path: str | None = None

    @classmethod
    def get_instance(cls) -> ConfigManager:
        """Get singleton instance of ConfigManager."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset_instance(cls):
        """Reset singleton instance (for testing)."""
        cls._instance = None
        cls._settings = None
        cls._config_path = None

    def load(self, config_path: str | None = None) -> dict[str, Any]:
        """
        Load configuration from file.

        Args:
            config_path: Optional path to config file

        Returns:
            Configuration as dictionary
        """
        if self._settings is not None and config_path is None:
            return self._settings.model_dump()

        self._config_path = config_path
        self._settings = AppSettings.from_yaml(config_path)

        return self._settings.model_dump()

    @property
    def settings(self) -> AppSettings:
        """Loaded settings (loads on first access)."""
        if self._settings is None:
            self.load()
        return self._settings

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation.

        Args:
            key: Config key in dot notation (e.g., "cleanup.page_size")
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        value = self.settings.model_dump()

        for k in key.split("."):
            if isinstance(value, dict):
                value = value.get(k, default)
                if value is default:
                    break
            else:
                return default

        return value

    def get_config(self) -> dict[str, Any]:
        """Get entire configuration as dictionary."""
        return self.settings.model_dump()

    def get_config_path(self) -> str | None:
        """Get path to loaded configuration file."""
        return self._config_path

    @property
    def api_host(self) -> str:
        return self.settings.api.host

    @property
    def api_port(self) -> int:
        return self.settings.api.port

    @property
    def media(self) -> MediaSettings:
        return self.settings.media

    @property
    def uploads(self) -> UploadSettings:
        return self.settings.uploads

    @property
    def cleanup(self) -> CleanupSettings:
        return self.settings.cleanup

    @property
    def logging_config(self) -> dict[str, Any]:
        """Get logging configuration."""
        return self.settings.logging.model_dump()


def get_config_manager() -> ConfigManager:
    """
    Get the ConfigManager singleton instance.

    Returns:
        ConfigManager instance
    """
    return ConfigManager.get_instance()


__all__ = [
    'ConfigManager',
    'AppSettings',
    'get_config_manager',
    'APISettings',
    'MediaSettings',
    'UploadSettings',
    'CleanupSettings',
    'LoggingSettings',
]
