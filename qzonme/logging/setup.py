"""
Logging setup for QzonMe.

Logging is initialized after the configuration is loaded, so the config
module itself only uses the standard library logger.

Usage:
    from qzonme.logging.setup import setup_logging, get_logger
    from qzonme.config.settings import get_config_manager

    config_manager = get_config_manager()
    config_manager.load()
    setup_logging(config_manager.logging_config)

    logger = get_logger(__name__)
"""

from __future__ import annotations

import logging
from typing import Any

from qzonme.logging.log_manager import LogManager


_logging_configured = False
_log_manager: LogManager | None = None


def setup_logging(logging_config: dict[str, Any]) -> None:
    """
    Initialize logging system with configuration.

    Args:
        logging_config: Dictionary with logging configuration
    """
    global _logging_configured, _log_manager

    if _logging_configured:
        logging.getLogger(__name__).debug(
            "Logging already configured, skipping re-initialization")
        return

    _log_manager = LogManager.get_instance(logging_config)
    _logging_configured = True

    logging.getLogger(__name__).info("Logging system initialized successfully")


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance.

    Loggers are looked up by name, so a module-level logger obtained before
    setup_logging() picks up the configuration once it is applied.

    Args:
        name: Name for the logger (typically __name__)

    Returns:
        Logger instance
    """
    if _logging_configured and _log_manager is not None:
        return _log_manager.get_logger(name)
    return logging.getLogger(name)


def is_logging_configured() -> bool:
    return _logging_configured


def reset_logging():
    """
    Reset logging configuration.

    This is mainly useful for testing.
    """
    global _logging_configured, _log_manager
    _logging_configured = False
    _log_manager = None
    LogManager.reset_instance()
