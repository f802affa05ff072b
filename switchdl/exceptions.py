"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class SwitchDLError(Exception):
    """Base exception for all application-specific errors."""


class InvalidArgumentError(SwitchDLError, ValueError):
    """
    Raised when a download request or identity derivation is called with a
    title, version or ID it is not defined for.
    """


class MissingLocalResourceError(SwitchDLError):
    """Raised when a required local file or directory does not exist."""


class RepackFailureError(SwitchDLError):
    """Raised when a downloaded title could not be repacked into an archive."""

    def __init__(self, message: str, output_path: str | None = None):
        super().__init__(message)
        self.output_path = output_path


class MetadataError(SwitchDLError):
    """Raised when the library metadata file cannot be read or written."""


class ConfigurationError(SwitchDLError):
    """Raised for issues related to configuration loading or validation."""


class DownloaderError(SwitchDLError):
    """Raised when the content downloader is unavailable or reports a failure."""
