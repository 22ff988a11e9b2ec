"""
Custom exceptions for TrackSense.

This module defines a hierarchy of exceptions for handling various
error conditions throughout the application.

Only AudioLoadError and its subclasses are fatal to an analysis call.
Failures inside an estimator stage are turned into fallback values by
BaseEstimator and never reach the caller.
"""

from typing import Optional, Any


class AudioAnalysisError(Exception):
    """Base exception for all audio analysis errors."""

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class AudioLoadError(AudioAnalysisError):
    """Raised when audio cannot be obtained or decoded."""

    def __init__(self, message: str, source: Optional[str] = None):
        super().__init__(message, details={"source": source})
        self.source = source


class AudioDecodeError(AudioLoadError):
    """Raised when the audio container is corrupt or uses an unsupported codec."""


class UnsupportedFormatError(AudioLoadError):
    """Raised when audio format is not supported."""

    def __init__(self, message: str, format: Optional[str] = None):
        super().__init__(message)
        self.format = format
        self.details = {"format": format}


class FileTooLargeError(AudioLoadError):
    """Raised when audio file exceeds size limit."""

    def __init__(
        self,
        message: str,
        file_size: Optional[int] = None,
        max_size: Optional[int] = None,
    ):
        super().__init__(message)
        self.file_size = file_size
        self.max_size = max_size
        self.details = {"file_size": file_size, "max_size": max_size}


class AudioFetchError(AudioLoadError):
    """Raised when a remote audio resource cannot be downloaded."""

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status: Optional[int] = None,
    ):
        super().__init__(message, source=url)
        self.url = url
        self.status = status
        self.details = {"url": url, "status": status}


class AnalysisError(AudioAnalysisError):
    """Raised when audio analysis fails."""

    def __init__(
        self,
        message: str,
        analyzer_name: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.analyzer_name = analyzer_name
        self.original_error = original_error
        self.details = {
            "analyzer_name": analyzer_name,
            "original_error": str(original_error) if original_error else None,
        }


class AnalysisCancelledError(AnalysisError):
    """Raised when a caller cancels an analysis between stages."""

    def __init__(self, message: str = "Analysis cancelled", stage: Optional[str] = None):
        super().__init__(message, analyzer_name=stage)
        self.stage = stage


class ConfigurationError(AudioAnalysisError):
    """Raised when configuration is invalid or missing."""

    def __init__(self, message: str, config_key: Optional[str] = None):
        super().__init__(message)
        self.config_key = config_key
        self.details = {"config_key": config_key}
