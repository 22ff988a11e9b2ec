"""
Utility modules for configuration, logging, and error handling.
"""

from tracksense.utils.errors import (
    AudioAnalysisError,
    AudioLoadError,
    AudioDecodeError,
    AudioFetchError,
    UnsupportedFormatError,
    FileTooLargeError,
    AnalysisError,
    AnalysisCancelledError,
    ConfigurationError,
)
from tracksense.utils.logging import (
    JSONFormatter,
    create_logger_with_context,
    setup_logging,
    setup_logging_from_config,
)
from tracksense.utils.config import ConfigManager, load_config, get_default_config

__all__ = [
    "AudioAnalysisError",
    "AudioLoadError",
    "AudioDecodeError",
    "AudioFetchError",
    "UnsupportedFormatError",
    "FileTooLargeError",
    "AnalysisError",
    "AnalysisCancelledError",
    "ConfigurationError",
    "JSONFormatter",
    "create_logger_with_context",
    "setup_logging",
    "setup_logging_from_config",
    "ConfigManager",
    "load_config",
    "get_default_config",
]
