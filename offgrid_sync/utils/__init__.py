"""Shared utilities for configuration, logging, and error handling"""

from offgrid_sync.utils.config_loader import ConfigLoader, ConfigurationError
from offgrid_sync.utils.logging_config import configure_logging, get_logger
from offgrid_sync.utils.retry import exponential_backoff_retry

__all__ = [
    "ConfigLoader",
    "ConfigurationError",
    "configure_logging",
    "exponential_backoff_retry",
    "get_logger",
]
