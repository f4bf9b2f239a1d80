"""
Log manager for QzonMe.

Singleton that applies a ``logging.config.dictConfig`` dictionary once and
hands out loggers. Log directories for file handlers are created on demand.
"""

from __future__ import annotations

import logging
import logging.config
import os


class LogManager:
    """
    Singleton class to manage logging configuration and provide logger instances.

    Attributes:
        _instance (LogManager | None): Singleton instance of LogManager
        logger_settings (dict): Logging configuration settings
    """

    _instance: LogManager | None = None

    def __init__(self, logger_settings: dict | None):
        """
        Initialize the LogManager with logging settings.

        Args:
            logger_settings (dict): Dictionary containing logging configuration
        """
        self.logger_settings = logger_settings or {}
        if self.logger_settings.get('handlers'):
            self.logger_settings.setdefault('version', 1)

            for handler in self.logger_settings['handlers'].values():
                log_path = handler.get('filename') if isinstance(handler, dict) else None
                if log_path and os.path.dirname(log_path):
                    os.makedirs(os.path.dirname(log_path), exist_ok=True)

            try:
                logging.config.dictConfig(self.logger_settings)
            except (ValueError, TypeError, AttributeError, ImportError) as e:
                # Fallback to basic configuration if dictionary config fails
                logging.basicConfig(level=logging.INFO)
                logging.warning(
                    f"Failed to configure logging with provided settings: {e}")
        else:
            logging.basicConfig(
                level=logging.INFO,
                format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    @classmethod
    def get_instance(cls, logger_settings: dict | None = None) -> LogManager:
        """
        Get the singleton instance of LogManager.

        Args:
            logger_settings (dict, optional): Dictionary containing logging configuration

        Returns:
            LogManager: Singleton instance of LogManager
        """
        if cls._instance is None:
            cls._instance = cls(logger_settings)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Forget the singleton (for testing)."""
        cls._instance = None

    def get_logger(self, name: str) -> logging.Logger:
        return logging.getLogger(name)
